# synthmind/models.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

from .extensions import db


def now_utc() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TestSession(db.Model):
    """
    One stored launch audit: the full result snapshot of an orchestration
    run. Everything except the target identifier is optional, since any
    probe may have failed.
    """
    __tablename__ = "test_session"
    __test__ = False  # not a pytest test class

    id = db.Column(db.Integer, primary_key=True)
    url = db.Column(db.String(2048), nullable=False, index=True)

    metrics = db.Column(db.JSON, nullable=True)          # UnifiedMetrics
    browser_metrics = db.Column(db.JSON, nullable=True)  # BrowserAudit
    github = db.Column(db.JSON, nullable=True)           # RepositorySignals + summary
    derived = db.Column(db.JSON, nullable=True)          # DerivedScores
    ai = db.Column(db.JSON, nullable=True)               # {"message": ...}
    probes = db.Column(db.JSON, nullable=True)           # per-probe outcome
    chat_history = db.Column(db.JSON, nullable=True)     # [{"role", "content", "timestamp"}]

    created_at = db.Column(db.DateTime, nullable=False, default=now_utc, index=True)

    @classmethod
    def from_result(cls, result) -> "TestSession":
        """Build a row from an OrchestrationResult snapshot."""
        snapshot = result.to_dict()
        return cls(
            url=result.target,
            metrics=snapshot["metrics"],
            browser_metrics=snapshot["browserMetrics"],
            github=snapshot["github"],
            derived=snapshot["derived"],
            ai=snapshot["ai"],
            probes=snapshot["probes"],
            chat_history=[{
                "role": "bot",
                "content": result.narrative,
                "timestamp": now_utc().isoformat(),
            }],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "url": self.url,
            "metrics": self.metrics,
            "browserMetrics": self.browser_metrics,
            "github": self.github,
            "derived": self.derived,
            "ai": self.ai,
            "probes": self.probes,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
