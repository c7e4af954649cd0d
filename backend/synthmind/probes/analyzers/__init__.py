# synthmind/probes/analyzers/__init__.py
"""
Pure interpreters of raw probe data.
The normalizer maps raw k6 output onto UnifiedMetrics; the scoring module
derives business-risk indicators from it. Neither collects data.
"""
from synthmind.probes.analyzers.metrics import normalize, validate_summary
from synthmind.probes.analyzers.scoring import (
    compute_derived_scores,
    stability_grade,
    summarize_repository,
)

__all__ = [
    "normalize", "validate_summary",
    "compute_derived_scores", "summarize_repository", "stability_grade",
]
