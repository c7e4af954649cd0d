# synthmind/probes/engines/load_engine.py
"""
k6 load-generation probe.

Wraps Grafana's k6 binary to push a bounded number of virtual users at the
target for a bounded duration, and returns k6's machine-readable end-of-test
summary (``--summary-export``) as raw probe data.

Requirements:
    - k6 binary installed on the server (https://k6.io/docs/get-started/installation/)
    - the workload script (bundled as k6/test.js, override with K6_SCRIPT)

What this probe collects (the raw summary document, abridged):
    {
        "metrics": {
            "http_req_duration": {"avg": 182.4, "p(95)": 412.9, "max": 980.1, ...},
            "http_reqs":         {"count": 5120, "rate": 1017.3},
            "checks":            {"passes": 5050, "fails": 70, "value": 0.986},
            "http_req_failed":   {"passes": 70, "fails": 5050, "value": 0.0136},
            "server_errors":     {"passes": 12, "fails": 5108, "value": 0.0023},
            "vus_max":           {"value": 200, "min": 200, "max": 200},
            "iterations":        {"count": 5120, "rate": 1017.3}
        },
        "root_group": {...}
    }

Failure modes (each becomes a failed ProbeOutcome):
    EngineUnavailable  — k6 missing or `k6 version` does not run
    ExecutionFailed    — non-zero exit, timeout, or runaway console output
    OutputMissing      — k6 exited cleanly but wrote no summary file
    MalformedOutput    — summary file is not a k6 summary document

Config:
    K6_BINARY   — explicit path to k6 (default: PATH + common locations)
    K6_SCRIPT   — workload script path (default: bundled k6/test.js)
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
import tempfile
import time
import uuid
from typing import Any, Dict, List, Optional, Tuple

from synthmind.probes.analyzers.metrics import validate_summary
from synthmind.probes.base import (
    BaseProbe,
    EngineUnavailable,
    ExecutionFailed,
    MalformedOutput,
    OutputMissing,
    ProbeRequest,
)

logger = logging.getLogger(__name__)

DEFAULT_SCRIPT = os.path.join(os.path.dirname(os.path.abspath(__file__)), "k6", "test.js")

# Extra time on top of the requested duration before we kill k6.
GRACE_PERIOD_SECONDS = 60

# Console output beyond this is treated as a runaway process.
MAX_OUTPUT_BYTES = 10 * 1024 * 1024

VERSION_CHECK_TIMEOUT = 10

# How often a running k6 is checked for timeout and output size.
POLL_INTERVAL_SECONDS = 0.1


def _find_k6_binary() -> Optional[str]:
    """Find the k6 binary on the system."""
    configured = os.getenv("K6_BINARY")
    if configured:
        if os.path.isfile(configured) and os.access(configured, os.X_OK):
            return configured
        logger.warning(f"K6_BINARY={configured} is not an executable file")
        return None

    binary = shutil.which("k6")
    if binary:
        return binary

    common_paths = [
        "/usr/local/bin/k6",
        "/usr/bin/k6",
        os.path.expanduser("~/go/bin/k6"),
        os.path.expanduser("~/.local/bin/k6"),
    ]
    for path in common_paths:
        if os.path.isfile(path) and os.access(path, os.X_OK):
            return path

    return None


def _summary_path() -> str:
    """
    Unique per-invocation summary location. The file is NOT created here,
    so a run that never writes it can be told apart from one that wrote garbage.
    """
    return os.path.join(tempfile.gettempdir(), f"k6-summary-{uuid.uuid4().hex}.json")


class LoadProbe(BaseProbe):
    """
    Synthetic load test using k6.

    One k6 process per invocation, bounded by the requested duration plus a
    fixed grace period. Concurrent invocations never share a summary file.
    """

    def __init__(self, script_path: Optional[str] = None):
        self.script_path = script_path or os.getenv("K6_SCRIPT") or DEFAULT_SCRIPT

    @property
    def name(self) -> str:
        return "load"

    def execute(self, request: ProbeRequest) -> Dict[str, Any]:
        k6_bin = self._ensure_engine()

        timeout = request.duration_seconds + GRACE_PERIOD_SECONDS
        summary_file = _summary_path()
        cmd = self._build_command(
            k6_bin=k6_bin,
            target=request.target_url,
            vus=request.vus,
            duration=request.duration,
            summary_file=summary_file,
        )

        logger.info(
            f"Running k6 against {request.target_url} "
            f"(vus={request.vus}, duration={request.duration}, timeout={timeout:.0f}s)"
        )

        try:
            returncode, output_tail = self._run_bounded(cmd, timeout)

            if returncode != 0:
                raise ExecutionFailed(f"k6 exited with code {returncode}: {output_tail.strip()}")

            return self._read_summary(summary_file)

        finally:
            if os.path.exists(summary_file):
                try:
                    os.unlink(summary_file)
                except OSError as e:
                    logger.debug(f"Could not remove k6 summary {summary_file}: {e}")

    def _run_bounded(self, cmd: List[str], timeout: float) -> Tuple[int, str]:
        """
        Run k6 with its console output spooled to a temp file.

        k6 is killed as soon as it exceeds `timeout` or writes more than
        MAX_OUTPUT_BYTES. Returns (exit code, last 500 chars of output).
        """
        with tempfile.TemporaryFile() as output:
            try:
                proc = subprocess.Popen(
                    cmd,
                    stdout=output,
                    stderr=subprocess.STDOUT,
                    cwd=tempfile.gettempdir(),
                )
            except OSError as e:
                raise ExecutionFailed(f"k6 could not be started: {e}")

            deadline = time.monotonic() + timeout
            while True:
                finished = proc.poll() is not None
                output_size = os.fstat(output.fileno()).st_size

                if output_size > MAX_OUTPUT_BYTES:
                    self._kill(proc)
                    raise ExecutionFailed(
                        f"k6 produced more than {MAX_OUTPUT_BYTES} bytes of console output, run aborted"
                    )
                if finished:
                    break
                if time.monotonic() >= deadline:
                    self._kill(proc)
                    raise ExecutionFailed(f"k6 run timed out after {timeout:.0f}s")

                time.sleep(POLL_INTERVAL_SECONDS)

            output.seek(max(0, output_size - 500))
            tail = output.read().decode("utf-8", errors="replace")
            return proc.returncode, tail

    @staticmethod
    def _kill(proc: subprocess.Popen) -> None:
        if proc.poll() is None:
            proc.kill()
        try:
            proc.wait(timeout=VERSION_CHECK_TIMEOUT)
        except subprocess.TimeoutExpired:
            logger.warning(f"k6 process {proc.pid} did not exit after kill")

    def _ensure_engine(self) -> str:
        """Locate k6 and make sure it actually runs before starting a load test."""
        k6_bin = _find_k6_binary()
        if not k6_bin:
            raise EngineUnavailable(
                "k6 performance engine is not installed on the server environment. "
                "Install from: https://k6.io/docs/get-started/installation/"
            )

        try:
            proc = subprocess.run(
                [k6_bin, "version"],
                capture_output=True,
                text=True,
                timeout=VERSION_CHECK_TIMEOUT,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise EngineUnavailable(f"k6 binary at {k6_bin} is not runnable: {e}")

        if proc.returncode != 0:
            raise EngineUnavailable(
                f"k6 binary at {k6_bin} is not runnable (exit {proc.returncode})"
            )

        logger.debug(f"Using k6: {(proc.stdout or '').strip()}")
        return k6_bin

    def _build_command(
        self,
        k6_bin: str,
        target: str,
        vus: int,
        duration: str,
        summary_file: str,
    ) -> List[str]:
        """Build the k6 command-line arguments."""
        return [
            k6_bin,
            "run",
            "--quiet",                       # No progress bars
            "--no-color",
            f"--summary-export={summary_file}",
            "-e", f"TARGET_URL={target}",
            "-e", f"VUS={vus}",
            "-e", f"DURATION={duration}",
            self.script_path,
        ]

    def _read_summary(self, summary_file: str) -> Dict[str, Any]:
        """Load and shape-check the summary k6 exported."""
        if not os.path.exists(summary_file):
            raise OutputMissing(
                "k6 output file not found. The test may have crashed without output."
            )

        try:
            with open(summary_file, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (ValueError, UnicodeDecodeError) as e:
            raise MalformedOutput(f"k6 summary is not valid JSON: {e}")

        validate_summary(raw)
        return raw
