# synthmind/load_test/routes.py
"""
Launch audit endpoints.

    POST /api/load-test          — run an audit synchronously and store it
    GET  /api/load-test/latest   — most recent stored audit
    GET  /api/load-test/<id>     — stored audit by id

The audit itself (probes, scoring, narrative) lives in synthmind.probes;
this module only validates input, runs it, and persists the snapshot.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional

from flask import Blueprint, current_app, jsonify, request

from synthmind.extensions import db
from synthmind.models import TestSession
from synthmind.probes import InvalidProbeRequest, ProbeOrchestrator, ProbeRequest

logger = logging.getLogger(__name__)

load_test_bp = Blueprint("load_test", __name__, url_prefix="/api/load-test")

DEFAULT_VUS = 200
DEFAULT_DURATION = "5s"


def _orchestrator() -> ProbeOrchestrator:
    """App-configured orchestrator (tests inject one), else a default instance."""
    orchestrator = current_app.config.get("PROBE_ORCHESTRATOR")
    if orchestrator is None:
        orchestrator = ProbeOrchestrator()
        current_app.config["PROBE_ORCHESTRATOR"] = orchestrator
    return orchestrator


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    v = str(value).strip()
    return v or None


def _default_vus() -> int:
    raw = os.getenv("LOAD_TEST_VUS")
    if not raw:
        return DEFAULT_VUS
    try:
        return int(raw)
    except ValueError:
        raise InvalidProbeRequest(f"LOAD_TEST_VUS must be an integer, got {raw!r}")


def build_request(body: Any) -> ProbeRequest:
    """
    Map the JSON body onto a ProbeRequest. Raises InvalidProbeRequest.

    A body-supplied vus is passed through as-is, so floats, booleans and
    strings are rejected by ProbeRequest instead of being coerced.
    """
    if not isinstance(body, dict):
        raise InvalidProbeRequest("Request body must be a JSON object")

    vus = body["vus"] if body.get("vus") is not None else _default_vus()

    return ProbeRequest(
        target_url=_clean(body.get("testURL")),
        repository=_clean(body.get("githubRepo")),
        vus=vus,
        duration=_clean(body.get("duration")) or os.getenv("LOAD_TEST_DURATION", DEFAULT_DURATION),
    )


@load_test_bp.post("")
def run_load_test():
    body = request.get_json(silent=True)
    if body is None:
        body = {}

    try:
        probe_request = build_request(body)
    except InvalidProbeRequest as e:
        return jsonify(error=str(e)), 400

    logger.info(f"Starting launch audit for {probe_request.target}")
    result = _orchestrator().execute(probe_request)

    session = TestSession.from_result(result)
    db.session.add(session)
    db.session.commit()

    snapshot = result.to_dict()
    return jsonify(
        success=True,
        id=str(session.id),
        metrics=snapshot["metrics"],
        browserMetrics=snapshot["browserMetrics"],
        github=snapshot["github"],
        derived=snapshot["derived"],
        ai=snapshot["ai"],
        probes=snapshot["probes"],
        partialFailure=snapshot["partialFailure"],
    ), 200


@load_test_bp.get("/latest")
def latest_load_test():
    session = TestSession.query.order_by(TestSession.id.desc()).first()
    if not session:
        return jsonify(error="No test history found"), 404
    return jsonify(session.to_dict()), 200


@load_test_bp.get("/<int:session_id>")
def get_load_test(session_id: int):
    session = db.session.get(TestSession, session_id)
    if not session:
        return jsonify(error="Report not found"), 404
    return jsonify(session.to_dict()), 200
