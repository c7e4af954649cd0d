# File: synthmind/probes/analyzers/scoring.py
# =============================================================================
# Derived Score Calculator
# =============================================================================
# Single source of truth for the business-risk numbers shown next to a load
# test. Every formula here is fixed: stored sessions and the narrative step
# rely on these exact values, so changes break comparability with old runs.
#
#   conversionLossPct   = round1(avgLatencyMs / 1000 * 7)
#   adSpendRisk         = round(failureRate * throughput * 150 * 5)
#   stabilityRiskScore  = max(0, 100 - failureRate * 500 - p95LatencyMs / 20)
#   collapsePointVUs    = round(vus * (0.9 if failureRate > 0.05 else 1.5))
#
#   devOpsScore         = 30 docker + 30 ci/cd + 20 kubernetes + 20 start script
#   productionReady     = start script AND docker AND ci/cd
#   riskLevel           = low (>= 70) | medium (>= 40) | high
#
# Rounding is half-up (2.5 -> 3), not Python's banker's rounding.
# =============================================================================

from __future__ import annotations

import math
from typing import List, Optional

from synthmind.probes.base import (
    DerivedScores,
    RepositorySignals,
    RepositorySummary,
    UnifiedMetrics,
)

# Remediations, in the order they are checked.
REMEDIATION_CACHING = (
    "Introduce response caching (CDN or reverse-proxy) for hot paths: "
    "95th-percentile response time exceeds 500 ms under load."
)
REMEDIATION_CAPACITY = (
    "Add caching and provision more capacity: sustained throughput stayed "
    "below 100 requests per second."
)
REMEDIATION_AUTOSCALE = (
    "Enable auto-scaling and health-checked restarts: the server returned "
    "5xx responses under load."
)
REMEDIATION_PIPELINE = (
    "Set up a CI/CD pipeline so every release is built, tested and deployed "
    "the same way."
)

P95_LATENCY_THRESHOLD_MS = 500
THROUGHPUT_THRESHOLD_RPS = 100
COLLAPSE_FAILURE_THRESHOLD = 0.05


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like JavaScript's Math.round: halves go up, not to even."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def round1(value: float) -> float:
    return round_half_up(value, 1)


def _or_zero(value: Optional[float]) -> float:
    return 0.0 if value is None else float(value)


def compute_derived_scores(
    metrics: Optional[UnifiedMetrics],
    repository: Optional[RepositorySignals] = None,
) -> DerivedScores:
    """
    Derive business-risk indicators from normalized metrics and repository
    signals. Pure and deterministic; unavailable metric fields count as 0.

    Returns an all-zero result with no remediations when metrics are absent.
    """
    if metrics is None:
        return DerivedScores()

    avg_latency = _or_zero(metrics.latency_avg)
    p95_latency = _or_zero(metrics.latency_p95)
    throughput = _or_zero(metrics.throughput)
    failure_rate = _or_zero(metrics.failure_rate)
    server_error_rate = _or_zero(metrics.server_error_rate)
    vus = _or_zero(metrics.vus)

    collapse_factor = 0.9 if failure_rate > COLLAPSE_FAILURE_THRESHOLD else 1.5

    return DerivedScores(
        conversion_loss_pct=round1(avg_latency / 1000 * 7),
        ad_spend_risk=int(round_half_up(failure_rate * throughput * 150 * 5)),
        stability_risk_score=max(0.0, 100 - failure_rate * 500 - p95_latency / 20),
        collapse_point_vus=int(round_half_up(vus * collapse_factor)),
        remediations=build_remediations(
            p95_latency=p95_latency,
            throughput=throughput,
            server_error_rate=server_error_rate,
            repository=repository,
        ),
    )


def build_remediations(
    *,
    p95_latency: float,
    throughput: float,
    server_error_rate: float,
    repository: Optional[RepositorySignals],
) -> List[str]:
    """Ordered remediation list. Order of checks is part of the output contract."""
    items: List[str] = []
    if p95_latency > P95_LATENCY_THRESHOLD_MS:
        items.append(REMEDIATION_CACHING)
    if throughput < THROUGHPUT_THRESHOLD_RPS:
        items.append(REMEDIATION_CAPACITY)
    if server_error_rate > 0:
        items.append(REMEDIATION_AUTOSCALE)
    if repository is not None and not repository.cicd.present:
        items.append(REMEDIATION_PIPELINE)
    return items


def summarize_repository(signals: RepositorySignals) -> RepositorySummary:
    """DevOps readiness score, production-readiness flag and risk tier."""
    score = (
        (30 if signals.docker.present else 0)
        + (30 if signals.cicd.present else 0)
        + (20 if signals.kubernetes.present else 0)
        + (20 if signals.has_start_script else 0)
    )

    if score >= 70:
        risk_level = "low"
    elif score >= 40:
        risk_level = "medium"
    else:
        risk_level = "high"

    return RepositorySummary(
        dev_ops_score=score,
        production_ready=bool(
            signals.has_start_script and signals.docker.present and signals.cicd.present
        ),
        risk_level=risk_level,
    )


def stability_grade(score: float) -> tuple[str, str]:
    """
    Convert a stability risk score (100 = rock solid) to a letter grade.
    Returns: (grade, description)
    """
    if score >= 85:
        return "A", "Stable under the simulated load"
    elif score >= 70:
        return "B", "Minor degradation under load"
    elif score >= 50:
        return "C", "Noticeable degradation under load"
    elif score >= 25:
        return "D", "Significant instability under load"
    else:
        return "F", "Collapses under the simulated load"
