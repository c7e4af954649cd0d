# synthmind/probes/orchestrator.py
"""
Probe Orchestrator — runs one launch audit end to end.

Pipeline:

    1. Validate the ProbeRequest (invalid → InvalidProbeRequest, nothing runs)
    2. Launch the requested probes concurrently:
         load        (k6)          — if a URL is given
         browser     (Playwright)  — if a URL is given
         repository  (GitHub)      — if a repository is given
    3. Wait for every launched probe to settle. A failing probe never
       cancels or affects its siblings; there is no early exit.
    4. Normalize the load summary → UnifiedMetrics
    5. Summarize repository signals, compute DerivedScores
    6. Assemble the bounded narrative context, generate the verdict

States: PENDING → PROBES_RUNNING → AGGREGATING → COMPLETE.
A partially failed audit is still COMPLETE; callers inspect which fields
are populated (see OrchestrationResult.partial_failure).

Usage from load_test/routes.py:
    from synthmind.probes import ProbeOrchestrator

    orchestrator = ProbeOrchestrator()
    result = orchestrator.execute(ProbeRequest(target_url="https://example.com"))
    # result.to_dict() is the session snapshot
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from synthmind.probes.analyzers.metrics import normalize
from synthmind.probes.analyzers.scoring import compute_derived_scores, summarize_repository
from synthmind.probes.base import (
    BaseProbe,
    BrowserAudit,
    DerivedScores,
    FailureReason,
    MalformedOutput,
    ProbeOutcome,
    ProbeRequest,
    RepositorySignals,
    UnifiedMetrics,
    now_utc,
)
from synthmind.probes.context import build_context
from synthmind.probes.engines import ALL_PROBES
from synthmind.probes.narrative import NarrativeClient, generate_verdict

logger = logging.getLogger(__name__)


class OrchestrationState(Enum):
    PENDING = "pending"
    PROBES_RUNNING = "probes_running"
    AGGREGATING = "aggregating"
    COMPLETE = "complete"


@dataclass
class OrchestrationResult:
    """
    Everything one audit produced. Fields are None when the probe behind
    them failed or was not requested; `probes` says which and why.
    """
    target: str
    state: OrchestrationState = OrchestrationState.PENDING
    metrics: Optional[UnifiedMetrics] = None
    browser_audit: Optional[BrowserAudit] = None
    repository: Optional[RepositorySignals] = None
    derived_scores: DerivedScores = field(default_factory=DerivedScores)
    context: str = ""
    narrative: str = ""
    probes: Dict[str, ProbeOutcome] = field(default_factory=dict)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    total_duration: float = 0.0

    @property
    def partial_failure(self) -> bool:
        """True when at least one requested probe did not succeed."""
        return any(
            not outcome.ok and outcome.reason is not FailureReason.NOT_REQUESTED
            for outcome in self.probes.values()
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "state": self.state.value,
            "partialFailure": self.partial_failure,
            "metrics": self.metrics.to_dict() if self.metrics else None,
            "browserMetrics": self.browser_audit.to_dict() if self.browser_audit else None,
            "github": self.repository.to_dict() if self.repository else None,
            "derived": self.derived_scores.to_dict(),
            "context": self.context,
            "ai": {"message": self.narrative},
            "probes": {name: outcome.to_dict() for name, outcome in self.probes.items()},
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
            "totalDuration": self.total_duration,
        }


class ProbeOrchestrator:
    """
    Coordinates the probe fan-out/fan-in and the deterministic scoring.

    Typical usage:
        orchestrator = ProbeOrchestrator()
        result = orchestrator.execute(request)

    The orchestrator holds no per-run state — all of it lives in the
    OrchestrationResult — so one instance can serve concurrent requests.
    """

    def __init__(
        self,
        load_probe: Optional[BaseProbe] = None,
        browser_probe: Optional[BaseProbe] = None,
        repository_probe: Optional[BaseProbe] = None,
        narrative_client: Optional[NarrativeClient] = None,
    ):
        self.probes: List[BaseProbe] = [
            load_probe or ALL_PROBES["load"](),
            browser_probe or ALL_PROBES["browser"](),
            repository_probe or ALL_PROBES["repository"](),
        ]
        self.narrative_client = narrative_client or NarrativeClient()

    def execute(self, request: ProbeRequest) -> OrchestrationResult:
        """
        Run the full audit for a request.

        Raises:
            InvalidProbeRequest if the request carries no target at all.
            Nothing else — every probe-level problem ends up in the result.
        """
        request.validate()
        total_start = time.monotonic()

        result = OrchestrationResult(target=request.target, started_at=now_utc())

        # --- 1. Fan out ---
        result.state = OrchestrationState.PROBES_RUNNING
        result.probes = self._run_probes(request)

        # --- 2. Aggregate ---
        result.state = OrchestrationState.AGGREGATING

        load = result.probes.get("load")
        if load is not None and load.ok:
            try:
                result.metrics = normalize(load.value, configured_vus=request.vus)
            except MalformedOutput as e:
                logger.warning(f"Load summary for {request.target} rejected: {e}")
                result.probes["load"] = ProbeOutcome.failure(e.reason, str(e))

        repo = result.probes.get("repository")
        if repo is not None and repo.ok and isinstance(repo.value, RepositorySignals):
            result.repository = repo.value
            result.repository.summary = summarize_repository(result.repository)
        elif repo is not None and repo.ok:
            logger.warning(f"Repository probe returned no signals for {request.target}")
            result.probes["repository"] = ProbeOutcome.failure(
                FailureReason.REPOSITORY_ANALYSIS_FAILED, "repository probe returned no signals"
            )

        browser = result.probes.get("browser")
        if browser is not None and browser.ok and isinstance(browser.value, BrowserAudit):
            result.browser_audit = browser.value
        elif browser is not None and browser.ok:
            logger.warning(f"Browser probe returned no audit for {request.target}")
            result.probes["browser"] = ProbeOutcome.failure(
                FailureReason.EXECUTION_FAILED, "browser probe returned no audit"
            )

        result.derived_scores = compute_derived_scores(result.metrics, result.repository)

        # --- 3. Narrative ---
        result.context = build_context(
            request.target,
            metrics=result.metrics,
            derived=result.derived_scores if result.metrics else None,
            repository=result.repository,
            browser=result.browser_audit,
        )
        result.narrative = generate_verdict(result.metrics, result.context, self.narrative_client)

        result.state = OrchestrationState.COMPLETE
        result.finished_at = now_utc()
        result.total_duration = round(time.monotonic() - total_start, 2)

        logger.info(
            f"Audit for {request.target} complete in {result.total_duration}s: "
            + ", ".join(
                f"{name}={'ok' if o.ok else o.reason.value}" for name, o in result.probes.items()
            )
        )
        return result

    def _run_probes(self, request: ProbeRequest) -> Dict[str, ProbeOutcome]:
        """Run every applicable probe in parallel and collect all outcomes."""
        outcomes: Dict[str, ProbeOutcome] = {}
        launched = [p for p in self.probes if p.can_run(request)]

        for probe in self.probes:
            if probe not in launched:
                outcomes[probe.name] = ProbeOutcome.failure(FailureReason.NOT_REQUESTED)

        if not launched:
            return outcomes

        with ThreadPoolExecutor(max_workers=len(launched)) as executor:
            futures: Dict[Future, BaseProbe] = {
                executor.submit(probe.run, request): probe for probe in launched
            }
            wait(futures)

            for future, probe in futures.items():
                try:
                    outcome = future.result()
                except Exception as e:
                    # run() already converts errors; this only guards a broken probe
                    logger.exception(f"Probe '{probe.name}' escaped its error boundary")
                    outcome = ProbeOutcome.failure(
                        probe.default_failure, f"{type(e).__name__}: {str(e)}"
                    )

                if outcome.ok:
                    logger.info(f"Probe '{probe.name}' completed in {outcome.duration_seconds}s")
                else:
                    logger.warning(
                        f"Probe '{probe.name}' failed ({outcome.reason.value}): {outcome.message}"
                    )
                outcomes[probe.name] = outcome

        return outcomes
