from __future__ import annotations

import pytest

from synthmind import create_app
from synthmind.extensions import db
from synthmind.probes import ProbeOrchestrator
from synthmind.probes.base import BrowserAudit, RepositorySignals, SignalPresence

from fakes import StaticProbe, StubNarrativeClient, k6_summary


@pytest.fixture
def browser_audit():
    return BrowserAudit(
        performance=82, accessibility=90, best_practices=100, seo=100,
        interactivity=87, load_time_ms=1800,
    )


@pytest.fixture
def repo_signals():
    return RepositorySignals(
        repository="acme/shop",
        default_branch="main",
        docker=SignalPresence(True, ["Dockerfile"]),
        cicd=SignalPresence(False),
        kubernetes=SignalPresence(True, ["k8s/deployment.yaml"]),
        has_start_script=True,
    )


@pytest.fixture
def orchestrator(browser_audit, repo_signals):
    return ProbeOrchestrator(
        load_probe=StaticProbe("load", value=k6_summary()),
        browser_probe=StaticProbe("browser", value=browser_audit),
        repository_probe=StaticProbe("repository", value=repo_signals, needs="repo"),
        narrative_client=StubNarrativeClient(),
    )


@pytest.fixture
def app(orchestrator):
    app = create_app({
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "TESTING": True,
        "PROBE_ORCHESTRATOR": orchestrator,
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()
