# synthmind/probes/context.py
"""
Narrative context assembly.

Builds the plain-text briefing handed to the narrative step. Sections
always appear in the same order and are left out entirely when their
data is missing:

    Target under test: https://example.com

    Runtime Metrics (Observed):          ← only when the load probe succeeded
    Derived Business Risk:               ← only when the load probe succeeded
    Repository Signals (Static):         ← only when a repository was analyzed
    Browser Experience Audit (External): ← only when a browser audit exists

The output is deterministic for identical inputs and never longer than
MAX_CONTEXT_CHARS.
"""

from __future__ import annotations

import math
from typing import List, Optional

from synthmind.probes.analyzers.scoring import stability_grade
from synthmind.probes.base import (
    BrowserAudit,
    DerivedScores,
    RepositorySignals,
    UnifiedMetrics,
)

MAX_CONTEXT_CHARS = 6000


def _percent(value: Optional[float]) -> str:
    if value is None or not math.isfinite(value):
        return "0.00"
    return f"{value * 100:.2f}"


def _number(value: Optional[float], fallback: str = "N/A") -> str:
    if value is None or not math.isfinite(value):
        return fallback
    return str(round(value, 2)) if isinstance(value, float) else str(value)


def _detected(present: bool) -> str:
    return "Detected" if present else "Not detected"


def _metrics_section(metrics: UnifiedMetrics) -> List[str]:
    return [
        "Runtime Metrics (Observed):",
        f"- Virtual Users: {_number(metrics.vus)}",
        f"- Failure Rate: {_percent(metrics.failure_rate)}%",
        f"- p95 Latency: {_number(metrics.latency_p95)} ms",
        f"- Avg Latency: {_number(metrics.latency_avg)} ms",
        f"- Throughput: {_number(metrics.throughput)} req/s",
        f"- Server Error Rate (5xx): {_percent(metrics.server_error_rate)}%",
        "",
    ]


def _derived_section(scores: DerivedScores) -> List[str]:
    grade, description = stability_grade(scores.stability_risk_score)
    lines = [
        "Derived Business Risk:",
        f"- Estimated Conversion Loss: {scores.conversion_loss_pct:g}%",
        f"- Ad Spend At Risk: {scores.ad_spend_risk}",
        f"- Stability Score: {scores.stability_risk_score:g}/100 (Grade {grade}: {description})",
        f"- Projected Collapse Point: {scores.collapse_point_vus} concurrent users",
    ]
    lines.extend(f"- Recommended: {item}" for item in scores.remediations)
    lines.append("")
    return lines


def _repository_section(signals: RepositorySignals) -> List[str]:
    lines = [
        "Repository Signals (Static):",
        f"- Docker: {_detected(signals.docker.present)}",
        f"- CI/CD: {_detected(signals.cicd.present)}",
        f"- Kubernetes: {_detected(signals.kubernetes.present)}",
        f"- Start Script: {_detected(signals.has_start_script)}",
    ]
    if signals.summary is not None:
        lines.append(
            f"- DevOps Score: {signals.summary.dev_ops_score}/100 "
            f"(risk {signals.summary.risk_level}, "
            f"{'production ready' if signals.summary.production_ready else 'not production ready'})"
        )
    lines.append("")
    return lines


def _browser_section(audit: BrowserAudit) -> List[str]:
    lines = [
        "Browser Experience Audit (External):",
        f"- Performance Score: {audit.performance}/100",
        f"- Accessibility Score: {audit.accessibility}/100",
        f"- Best Practices Score: {audit.best_practices}/100",
        f"- SEO Score: {audit.seo}/100",
        f"- Interactivity Score: {audit.interactivity}/100",
    ]
    if audit.load_time_ms:
        lines.append(f"- Real Browser Load Time: {audit.load_time_ms} ms")
    if audit.is_simulated:
        lines.append("- Note: scores are simulated estimates, not a live browser measurement")
    lines.append("")
    return lines


def build_context(
    target: str,
    metrics: Optional[UnifiedMetrics] = None,
    derived: Optional[DerivedScores] = None,
    repository: Optional[RepositorySignals] = None,
    browser: Optional[BrowserAudit] = None,
    max_chars: int = MAX_CONTEXT_CHARS,
) -> str:
    """Assemble the size-bounded narrative context."""
    lines = [f"Target under test: {target}", ""]

    if metrics is not None:
        lines.extend(_metrics_section(metrics))
        if derived is not None:
            lines.extend(_derived_section(derived))

    if repository is not None:
        lines.extend(_repository_section(repository))

    if browser is not None:
        lines.extend(_browser_section(browser))

    return "\n".join(lines)[:max_chars]
