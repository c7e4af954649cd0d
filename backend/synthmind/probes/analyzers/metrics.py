# synthmind/probes/analyzers/metrics.py
"""
Metrics Normalizer.

Turns a raw k6 summary-export document into UnifiedMetrics. Pure — no I/O.

Mapping (k6 metric → UnifiedMetrics field):
    http_req_duration.avg          → latency_avg (ms)
    http_req_duration["p(95)"]     → latency_p95 (ms)
    http_reqs.rate                 → throughput (req/s)
    http_reqs.count                → total_requests
    checks.fails / (passes+fails)  → failure_rate
        (falls back to http_req_failed.value when the run had no checks)
    server_errors.value            → server_error_rate
        (falls back to http_5xx.count / http_reqs.count)
    iterations.count               → iterations
    configured vus                 → vus (falls back to vus_max)

Anything missing, non-numeric, NaN or infinite becomes None ("not
available"). Rates are clamped to [0, 1], latencies and throughput to >= 0.
The document shape itself is checked on entry: a summary without a
"metrics" mapping is rejected here, not somewhere downstream.
"""

from __future__ import annotations

import math
from typing import Any, Mapping, Optional

from synthmind.probes.base import MalformedOutput, UnifiedMetrics


def validate_summary(raw: Any) -> Mapping[str, Mapping[str, Any]]:
    """
    Check the outer shape of a k6 summary and return its metrics block.
    Raises MalformedOutput if the document is not a k6 summary.
    """
    if not isinstance(raw, Mapping):
        raise MalformedOutput(f"k6 summary must be a JSON object, got {type(raw).__name__}")

    metrics = raw.get("metrics")
    if not isinstance(metrics, Mapping):
        raise MalformedOutput("k6 summary has no 'metrics' object")

    for key, value in metrics.items():
        if not isinstance(value, Mapping):
            raise MalformedOutput(f"k6 metric '{key}' is not an object")

    return metrics


def _finite(value: Any) -> Optional[float]:
    """Numeric value as float, or None for missing/NaN/inf/bool/non-numeric."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    if not math.isfinite(value):
        return None
    return value


def _non_negative(value: Optional[float]) -> Optional[float]:
    return None if value is None else max(0.0, value)


def _clamp_rate(value: Optional[float]) -> Optional[float]:
    return None if value is None else min(1.0, max(0.0, value))


def _count(value: Optional[float]) -> Optional[int]:
    return None if value is None else int(max(0.0, value))


def _field(metrics: Mapping[str, Mapping[str, Any]], metric: str, stat: str) -> Optional[float]:
    return _finite((metrics.get(metric) or {}).get(stat))


def _failure_rate(metrics: Mapping[str, Mapping[str, Any]]) -> Optional[float]:
    passes = _field(metrics, "checks", "passes")
    fails = _field(metrics, "checks", "fails")
    if passes is not None and fails is not None and passes + fails > 0:
        return fails / (passes + fails)
    return _field(metrics, "http_req_failed", "value")


def _server_error_rate(metrics: Mapping[str, Mapping[str, Any]]) -> Optional[float]:
    rate = _field(metrics, "server_errors", "value")
    if rate is not None:
        return rate
    errors = _field(metrics, "http_5xx", "count")
    total = _field(metrics, "http_reqs", "count")
    if errors is not None and total:
        return errors / total
    return None


def _vus(metrics: Mapping[str, Mapping[str, Any]], configured_vus: Optional[int]) -> Optional[int]:
    if configured_vus is not None and configured_vus > 0:
        return int(configured_vus)
    observed = _field(metrics, "vus_max", "max")
    if observed is None:
        observed = _field(metrics, "vus_max", "value")
    return _count(observed)


def normalize(raw: Any, configured_vus: Optional[int] = None) -> UnifiedMetrics:
    """
    Map a raw k6 summary onto the canonical UnifiedMetrics schema.

    Args:
        raw:            The parsed summary-export document.
        configured_vus: Virtual users the run was started with. Preferred
                        over what k6 reports, which can be lower on short runs.

    Raises:
        MalformedOutput if the document is not shaped like a k6 summary.
    """
    metrics = validate_summary(raw)

    return UnifiedMetrics(
        latency_avg=_non_negative(_field(metrics, "http_req_duration", "avg")),
        latency_p95=_non_negative(_field(metrics, "http_req_duration", "p(95)")),
        throughput=_non_negative(_field(metrics, "http_reqs", "rate")),
        failure_rate=_clamp_rate(_failure_rate(metrics)),
        server_error_rate=_clamp_rate(_server_error_rate(metrics)),
        vus=_vus(metrics, configured_vus),
        total_requests=_count(_field(metrics, "http_reqs", "count")),
        iterations=_count(_field(metrics, "iterations", "count")),
    )
