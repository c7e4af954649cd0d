# synthmind/probes/base.py
"""
Base classes for the SynthMind probe pipeline.

Architecture:
    ProbeRequest flows through:  Probes → Normalizer → Scoring → Context

BaseProbe:   Collects raw data from a single source (k6 load run, headless
             browser, repository scan). Probes NEVER score anything — they
             only gather facts.

Analyzers:   Pure functions that turn raw probe output into UnifiedMetrics
             and DerivedScores. They never collect data.

This separation means:
  - Each probe can fail independently without failing the whole audit
  - Scoring formulas can be audited and tested without a browser or k6
  - A failed probe is a value (ProbeOutcome), never an exception
"""

from __future__ import annotations

import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Longest load run we accept, in seconds.
MAX_DURATION_SECONDS = 600

_DURATION_RE = re.compile(r"^(\d+)(ms|s|m|h)$")
_DURATION_UNITS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def now_utc() -> datetime:
    """Timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def parse_duration(value: str) -> float:
    """
    Convert a k6-style duration string ("30s", "1m", "500ms") to seconds.
    Raises InvalidProbeRequest for anything else.
    """
    match = _DURATION_RE.match((value or "").strip())
    if not match:
        raise InvalidProbeRequest(f"invalid duration: {value!r}")
    amount, unit = match.groups()
    return int(amount) * _DURATION_UNITS[unit]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class FailureReason(Enum):
    ENGINE_UNAVAILABLE = "engine-unavailable"
    EXECUTION_FAILED = "execution-failed"
    OUTPUT_MISSING = "output-missing"
    MALFORMED_OUTPUT = "malformed-output"
    REPOSITORY_ANALYSIS_FAILED = "repository-analysis-failed"
    NOT_REQUESTED = "not-requested"


class InvalidProbeRequest(ValueError):
    """The inbound request cannot be orchestrated (no target, bad load params)."""


class ProbeError(Exception):
    """Raised inside a probe; converted to a failed ProbeOutcome by BaseProbe.run()."""

    reason: FailureReason = FailureReason.EXECUTION_FAILED

    def __init__(self, message: str = ""):
        super().__init__(message or self.reason.value)


class EngineUnavailable(ProbeError):
    reason = FailureReason.ENGINE_UNAVAILABLE


class ExecutionFailed(ProbeError):
    reason = FailureReason.EXECUTION_FAILED


class OutputMissing(ProbeError):
    reason = FailureReason.OUTPUT_MISSING


class MalformedOutput(ProbeError):
    reason = FailureReason.MALFORMED_OUTPUT


class RepositoryAnalysisFailed(ProbeError):
    reason = FailureReason.REPOSITORY_ANALYSIS_FAILED


# ---------------------------------------------------------------------------
# Data structures (flow through the entire pipeline)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProbeRequest:
    """
    What to audit and how hard to push it.

    At least one of target_url / repository must be given. Validation runs
    on construction so an invalid request never reaches the orchestrator.
    """
    target_url: Optional[str] = None
    repository: Optional[str] = None
    vus: int = 200
    duration: str = "5s"

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if not (self.target_url or "").strip() and not (self.repository or "").strip():
            raise InvalidProbeRequest("Provide testURL or githubRepo")
        if isinstance(self.vus, bool) or not isinstance(self.vus, int) or self.vus <= 0:
            raise InvalidProbeRequest(f"vus must be a positive integer, got {self.vus!r}")
        seconds = parse_duration(self.duration)
        if seconds <= 0 or seconds > MAX_DURATION_SECONDS:
            raise InvalidProbeRequest(
                f"duration must be between 1ms and {MAX_DURATION_SECONDS}s, got {self.duration!r}"
            )

    @property
    def target(self) -> str:
        return (self.target_url or self.repository or "").strip()

    @property
    def duration_seconds(self) -> float:
        return parse_duration(self.duration)


@dataclass
class ProbeOutcome(Generic[T]):
    """
    Tagged result of a single probe run: either a success carrying a value,
    or a failure carrying a reason. Every probe returns one of these.
    """
    ok: bool
    value: Optional[T] = None
    reason: Optional[FailureReason] = None
    message: str = ""
    duration_seconds: float = 0.0

    @classmethod
    def success(cls, value: T) -> "ProbeOutcome[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, reason: FailureReason, message: str = "") -> "ProbeOutcome[T]":
        return cls(ok=False, reason=reason, message=message or reason.value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
            "duration": self.duration_seconds,
        }


@dataclass
class UnifiedMetrics:
    """
    Canonical post-normalization performance schema.

    None means "not available" for that field; rates are always within
    [0, 1] and latencies are never negative.
    """
    latency_avg: Optional[float] = None       # ms
    latency_p95: Optional[float] = None       # ms
    throughput: Optional[float] = None        # req/s
    failure_rate: Optional[float] = None      # failed checks / total checks
    server_error_rate: Optional[float] = None  # 5xx / total responses
    vus: Optional[int] = None
    total_requests: Optional[int] = None
    iterations: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "latency": {"avg": self.latency_avg, "p95": self.latency_p95},
            "throughput": self.throughput,
            "failureRateUnderTest": self.failure_rate,
            "serverErrorRate": self.server_error_rate,
            "vus": self.vus,
            "totalRequests": self.total_requests,
            "iterations": self.iterations,
        }


@dataclass
class BrowserAudit:
    performance: int
    accessibility: int
    best_practices: int
    seo: int
    interactivity: int
    load_time_ms: Optional[int] = None
    is_simulated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "performance": self.performance,
            "accessibility": self.accessibility,
            "bestPractices": self.best_practices,
            "seo": self.seo,
            "interactivity": self.interactivity,
            "isSimulated": self.is_simulated,
        }
        if self.load_time_ms is not None:
            data["loadTimeMs"] = self.load_time_ms
        return data


@dataclass
class SignalPresence:
    present: bool = False
    files: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"present": self.present, "files": list(self.files)}


@dataclass
class RepositorySummary:
    dev_ops_score: int = 0
    production_ready: bool = False
    risk_level: str = "high"              # low, medium, high

    def to_dict(self) -> Dict[str, Any]:
        return {
            "devOpsScore": self.dev_ops_score,
            "productionReady": self.production_ready,
            "riskLevel": self.risk_level,
        }


@dataclass
class RepositorySignals:
    """
    Deployment/operational signals found in a source repository.
    The summary block is filled in by the scoring module, not by the probe.
    """
    docker: SignalPresence = field(default_factory=SignalPresence)
    cicd: SignalPresence = field(default_factory=SignalPresence)
    kubernetes: SignalPresence = field(default_factory=SignalPresence)
    has_start_script: bool = False
    repository: str = ""
    default_branch: Optional[str] = None
    summary: Optional[RepositorySummary] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "repository": self.repository,
            "defaultBranch": self.default_branch,
            "docker": self.docker.to_dict(),
            "cicd": self.cicd.to_dict(),
            "kubernetes": self.kubernetes.to_dict(),
            "hasStartScript": self.has_start_script,
            "summary": self.summary.to_dict() if self.summary else None,
        }


@dataclass
class DerivedScores:
    conversion_loss_pct: float = 0.0
    ad_spend_risk: int = 0
    stability_risk_score: float = 0.0
    collapse_point_vus: int = 0
    remediations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conversionLossPct": self.conversion_loss_pct,
            "adSpendRisk": self.ad_spend_risk,
            "stabilityRiskScore": self.stability_risk_score,
            "collapsePointVUs": self.collapse_point_vus,
            "remediations": list(self.remediations),
        }


# ---------------------------------------------------------------------------
# Abstract base class
# ---------------------------------------------------------------------------

class BaseProbe(ABC):
    """
    Abstract base for probes.

    To create a new probe:
        1. Subclass BaseProbe
        2. Set the `name` property (e.g., "load", "browser", "repository")
        3. Implement `execute(request)` returning the probe's raw value
        4. Raise a ProbeError subclass for expected failures
        5. Optionally override `can_run()` and `default_failure`

    The base class handles automatically:
        - Timing (duration_seconds is set automatically)
        - Error catching (exceptions become a failed ProbeOutcome)
    """

    # Reason used when execute() raises something that is not a ProbeError.
    default_failure: FailureReason = FailureReason.EXECUTION_FAILED

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique probe identifier. Used as key in OrchestrationResult.probes."""
        ...

    def can_run(self, request: ProbeRequest) -> bool:
        """Does the request carry the kind of target this probe needs?"""
        return bool((request.target_url or "").strip())

    def run(self, request: ProbeRequest) -> ProbeOutcome:
        """
        Execute the probe with automatic timing and error handling.

        DO NOT OVERRIDE THIS METHOD. Override `execute()` instead.

        Returns ProbeOutcome — always, even on failure.
        """
        if not self.can_run(request):
            return ProbeOutcome.failure(
                FailureReason.NOT_REQUESTED,
                f"Probe '{self.name}' has no target in this request",
            )

        start = time.monotonic()
        try:
            outcome: ProbeOutcome = ProbeOutcome.success(self.execute(request))
        except ProbeError as e:
            logger.warning(f"Probe '{self.name}' failed for {request.target}: {e}")
            outcome = ProbeOutcome.failure(e.reason, str(e))
        except Exception as e:
            logger.exception(f"Probe '{self.name}' crashed for {request.target}")
            outcome = ProbeOutcome.failure(
                self.default_failure, f"{type(e).__name__}: {str(e)}"
            )
        outcome.duration_seconds = round(time.monotonic() - start, 2)
        return outcome

    @abstractmethod
    def execute(self, request: ProbeRequest) -> Any:
        """
        Perform the actual data collection. Override this in subclasses.

        Returns the probe's raw value; raises ProbeError on failure.
        """
        ...
