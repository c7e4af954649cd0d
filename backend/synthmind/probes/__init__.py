# synthmind/probes/__init__.py
"""
SynthMind probe orchestration & scoring engine.

Usage:
    from synthmind.probes import ProbeOrchestrator, ProbeRequest

    orchestrator = ProbeOrchestrator()
    result = orchestrator.execute(ProbeRequest(target_url="https://example.com"))

Architecture:
    Orchestrator
    ├── Probes (collect raw data, run concurrently)
    │   ├── LoadProbe        — k6 load test, raw end-of-test summary
    │   ├── BrowserProbe     — Playwright audit (simulated fallback)
    │   └── RepositoryProbe  — GitHub deployment-readiness signals
    │
    ├── Analyzers (pure, deterministic)
    │   ├── metrics.normalize          — raw k6 summary → UnifiedMetrics
    │   └── scoring.compute_derived_scores / summarize_repository
    │
    └── Narrative
        ├── context.build_context      — bounded plain-text briefing
        └── narrative.generate_verdict — text completion with fallbacks
"""

from synthmind.probes.base import InvalidProbeRequest, ProbeRequest
from synthmind.probes.orchestrator import (
    OrchestrationResult,
    OrchestrationState,
    ProbeOrchestrator,
)

__all__ = [
    "ProbeOrchestrator", "OrchestrationResult", "OrchestrationState",
    "ProbeRequest", "InvalidProbeRequest",
]
