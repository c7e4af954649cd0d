import pytest

from synthmind.extensions import db
from synthmind.load_test.routes import build_request
from synthmind.models import TestSession
from synthmind.probes import InvalidProbeRequest


def _run(client, **body):
    return client.post("/api/load-test", json=body)


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "up and running"}


def test_missing_target_is_rejected(client):
    resp = _run(client)

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Provide testURL or githubRepo"
    assert TestSession.query.count() == 0


@pytest.mark.parametrize("body", [
    {"testURL": "https://shop.example.com", "vus": "lots"},
    {"testURL": "https://shop.example.com", "vus": 0},
    {"testURL": "https://shop.example.com", "vus": 2.5},
    {"testURL": "https://shop.example.com", "vus": True},
    {"testURL": "https://shop.example.com", "vus": "50"},
    {"testURL": "https://shop.example.com", "duration": "forever"},
])
def test_invalid_load_parameters_are_rejected(client, body):
    assert client.post("/api/load-test", json=body).status_code == 400


@pytest.mark.parametrize("body", [
    ["https://shop.example.com"],
    "https://shop.example.com",
    42,
])
def test_non_object_body_is_rejected(client, body):
    resp = client.post("/api/load-test", json=body)

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Request body must be a JSON object"


def test_run_stores_and_returns_session(client, orchestrator, monkeypatch):
    monkeypatch.delenv("LOAD_TEST_DURATION", raising=False)
    resp = _run(client, testURL="https://shop.example.com", githubRepo="acme/shop")

    assert resp.status_code == 200
    data = resp.get_json()
    assert data["success"] is True
    assert data["partialFailure"] is False
    assert data["metrics"]["vus"] == 200
    assert data["browserMetrics"]["performance"] == 82
    assert data["github"]["summary"]["devOpsScore"] == 70
    assert data["derived"]["collapsePointVUs"] == 300
    assert data["ai"]["message"].startswith("**SynthMind AI Verdict**")

    stored = db.session.get(TestSession, int(data["id"]))
    assert stored.url == "https://shop.example.com"
    assert stored.derived == data["derived"]
    assert stored.chat_history[0]["role"] == "bot"
    assert orchestrator.probes[0].calls[0].duration == "5s"


def test_latest_and_by_id(client):
    first = _run(client, testURL="https://one.example.com").get_json()["id"]
    second = _run(client, testURL="https://two.example.com").get_json()["id"]

    latest = client.get("/api/load-test/latest")
    assert latest.status_code == 200
    assert latest.get_json()["id"] == second
    assert latest.get_json()["url"] == "https://two.example.com"

    by_id = client.get(f"/api/load-test/{first}")
    assert by_id.status_code == 200
    assert by_id.get_json()["url"] == "https://one.example.com"
    assert by_id.get_json()["createdAt"]


def test_latest_without_history(client):
    resp = client.get("/api/load-test/latest")
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "No test history found"


def test_unknown_report(client):
    resp = client.get("/api/load-test/999")
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "Report not found"


def test_orchestrator_crash_returns_json_500(app, client, monkeypatch):
    def boom(request):
        raise RuntimeError("database on fire")

    monkeypatch.setattr(app.config["PROBE_ORCHESTRATOR"], "execute", boom)

    resp = _run(client, testURL="https://shop.example.com")

    assert resp.status_code == 500
    assert resp.get_json() == {"success": False, "error": "Load test execution failed"}


class TestBuildRequest:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("LOAD_TEST_VUS", raising=False)
        monkeypatch.delenv("LOAD_TEST_DURATION", raising=False)

        req = build_request({"testURL": " https://shop.example.com "})

        assert req.target_url == "https://shop.example.com"
        assert req.repository is None
        assert (req.vus, req.duration) == (200, "5s")

    def test_environment_defaults(self, monkeypatch):
        monkeypatch.setenv("LOAD_TEST_VUS", "25")
        monkeypatch.setenv("LOAD_TEST_DURATION", "30s")

        req = build_request({"githubRepo": "acme/shop"})

        assert (req.vus, req.duration) == (25, "30s")

    def test_body_wins(self, monkeypatch):
        monkeypatch.setenv("LOAD_TEST_VUS", "25")

        req = build_request({"testURL": "https://shop.example.com", "vus": 10, "duration": "1m"})

        assert (req.vus, req.duration) == (10, "1m")

    def test_empty_strings_are_no_target(self):
        with pytest.raises(InvalidProbeRequest):
            build_request({"testURL": "", "githubRepo": "   "})

    @pytest.mark.parametrize("vus", [2.5, True, "50"])
    def test_body_vus_is_not_coerced(self, vus):
        with pytest.raises(InvalidProbeRequest):
            build_request({"testURL": "https://shop.example.com", "vus": vus})

    def test_bad_environment_vus(self, monkeypatch):
        monkeypatch.setenv("LOAD_TEST_VUS", "many")
        with pytest.raises(InvalidProbeRequest):
            build_request({"testURL": "https://shop.example.com"})
