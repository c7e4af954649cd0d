import json
import os
import stat
import subprocess
import sys
import time

import pytest

from synthmind.probes.base import FailureReason, ProbeRequest
from synthmind.probes.engines import load_engine
from synthmind.probes.engines.load_engine import LoadProbe

from fakes import k6_summary

REQUEST = ProbeRequest(target_url="https://shop.example.com", vus=20, duration="2s")


def _summary_arg(cmd):
    for arg in cmd:
        if arg.startswith("--summary-export="):
            return arg.split("=", 1)[1]
    raise AssertionError("no --summary-export argument")


class FakeProcess:
    """Stands in for subprocess.Popen running `k6 run`."""

    def __init__(self, k6, cmd, stdout=None, stderr=None, cwd=None):
        self.k6 = k6
        self.pid = 4242
        self.returncode = None
        self.killed = False

        k6.runs.append(cmd)
        k6.processes.append(self)
        path = _summary_arg(cmd)
        k6.summary_files.append(path)

        if k6.write:
            with open(path, "w", encoding="utf-8") as f:
                f.write(k6.summary if isinstance(k6.summary, str) else json.dumps(k6.summary))
        if k6.output:
            stdout.write(k6.output)
            stdout.flush()

    def poll(self):
        if self.returncode is None and not self.k6.hang:
            self.returncode = self.k6.run_rc
        return self.returncode

    def kill(self):
        self.killed = True
        self.returncode = -9

    def wait(self, timeout=None):
        return self.returncode


class FakeK6:
    def __init__(self, version_rc=0, run_rc=0, summary=None, write=True, output=b"", hang=False, start_error=None):
        self.version_rc = version_rc
        self.run_rc = run_rc
        self.summary = k6_summary() if summary is None else summary
        self.write = write
        self.output = output
        self.hang = hang
        self.start_error = start_error
        self.runs = []
        self.processes = []
        self.summary_files = []

    def version(self, cmd, **kwargs):
        assert cmd[1] == "version"
        return subprocess.CompletedProcess(cmd, self.version_rc, stdout="k6 v0.50.0", stderr="")

    def popen(self, cmd, **kwargs):
        if self.start_error is not None:
            raise self.start_error
        return FakeProcess(self, cmd, **kwargs)


@pytest.fixture
def k6(monkeypatch):
    def install(**kwargs):
        fake = FakeK6(**kwargs)
        monkeypatch.setattr(load_engine, "_find_k6_binary", lambda: "/usr/local/bin/k6")
        monkeypatch.setattr(load_engine.subprocess, "run", fake.version)
        monkeypatch.setattr(load_engine.subprocess, "Popen", fake.popen)
        monkeypatch.setattr(load_engine, "POLL_INTERVAL_SECONDS", 0.01)
        return fake
    return install


def test_successful_run_returns_summary_and_removes_file(k6):
    fake = k6()

    outcome = LoadProbe(script_path="/opt/k6/test.js").run(REQUEST)

    assert outcome.ok
    assert outcome.value["metrics"]["http_reqs"]["count"] == 5000
    assert not os.path.exists(fake.summary_files[0])

    cmd = fake.runs[0]
    assert cmd[:2] == ["/usr/local/bin/k6", "run"]
    assert "TARGET_URL=https://shop.example.com" in cmd
    assert "VUS=20" in cmd
    assert "DURATION=2s" in cmd
    assert cmd[-1] == "/opt/k6/test.js"


def test_missing_binary_is_engine_unavailable(monkeypatch):
    monkeypatch.setattr(load_engine, "_find_k6_binary", lambda: None)

    outcome = LoadProbe().run(REQUEST)

    assert not outcome.ok
    assert outcome.reason is FailureReason.ENGINE_UNAVAILABLE


def test_broken_binary_is_engine_unavailable(k6):
    fake = k6(version_rc=1)

    outcome = LoadProbe().run(REQUEST)

    assert outcome.reason is FailureReason.ENGINE_UNAVAILABLE
    assert fake.runs == []


def test_non_zero_exit_is_execution_failed(k6):
    fake = k6(run_rc=99, output=b"level=error msg=\"script exception\"")

    outcome = LoadProbe().run(REQUEST)

    assert outcome.reason is FailureReason.EXECUTION_FAILED
    assert "99" in outcome.message
    assert "script exception" in outcome.message
    assert not os.path.exists(fake.summary_files[0])


def test_start_failure_is_execution_failed(k6):
    k6(start_error=PermissionError("permission denied"))

    outcome = LoadProbe().run(REQUEST)

    assert outcome.reason is FailureReason.EXECUTION_FAILED


def test_hung_run_is_killed_at_timeout(k6, monkeypatch):
    monkeypatch.setattr(load_engine, "GRACE_PERIOD_SECONDS", 0)
    fake = k6(hang=True)

    start = time.monotonic()
    outcome = LoadProbe().run(ProbeRequest(target_url="https://shop.example.com", duration="200ms"))

    assert outcome.reason is FailureReason.EXECUTION_FAILED
    assert "timed out" in outcome.message
    assert fake.processes[0].killed
    assert time.monotonic() - start < 5
    assert not os.path.exists(fake.summary_files[0])


def test_runaway_output_is_killed_while_running(k6):
    fake = k6(output=b"x" * (load_engine.MAX_OUTPUT_BYTES + 1), hang=True)

    outcome = LoadProbe().run(REQUEST)

    assert outcome.reason is FailureReason.EXECUTION_FAILED
    assert "console output" in outcome.message
    assert fake.processes[0].killed


@pytest.mark.skipif(sys.platform == "win32" or not os.path.exists("/bin/sh"), reason="needs a POSIX shell")
def test_flooding_process_is_stopped_at_the_limit(monkeypatch, tmp_path):
    script = tmp_path / "k6"
    script.write_text(
        "#!/bin/sh\n"
        "if [ \"$1\" = \"version\" ]; then echo 'k6 v0.50.0'; exit 0; fi\n"
        f"head -c {load_engine.MAX_OUTPUT_BYTES + 1024} /dev/zero\n"
        "sleep 10\n"
    )
    script.chmod(script.stat().st_mode | stat.S_IXUSR)
    monkeypatch.setenv("K6_BINARY", str(script))

    start = time.monotonic()
    outcome = LoadProbe().run(REQUEST)
    elapsed = time.monotonic() - start

    assert outcome.reason is FailureReason.EXECUTION_FAILED
    assert "console output" in outcome.message
    assert elapsed < 8


def test_no_summary_written_is_output_missing(k6):
    k6(write=False)

    outcome = LoadProbe().run(REQUEST)

    assert outcome.reason is FailureReason.OUTPUT_MISSING


@pytest.mark.parametrize("summary", ["{not json", json.dumps({"root_group": {}})])
def test_garbage_summary_is_malformed_output(k6, summary):
    fake = k6(summary=summary)

    outcome = LoadProbe().run(REQUEST)

    assert outcome.reason is FailureReason.MALFORMED_OUTPUT
    assert not os.path.exists(fake.summary_files[0])


def test_each_invocation_uses_its_own_summary_file(k6):
    fake = k6()
    probe = LoadProbe()

    probe.run(REQUEST)
    probe.run(REQUEST)

    assert len(set(fake.summary_files)) == 2


def test_configured_binary_must_be_executable(monkeypatch, tmp_path):
    monkeypatch.setenv("K6_BINARY", str(tmp_path / "missing-k6"))
    assert load_engine._find_k6_binary() is None


def test_script_path_from_environment(monkeypatch):
    monkeypatch.setenv("K6_SCRIPT", "/srv/scripts/soak.js")
    assert LoadProbe().script_path == "/srv/scripts/soak.js"

    monkeypatch.delenv("K6_SCRIPT")
    assert LoadProbe().script_path == load_engine.DEFAULT_SCRIPT
    assert os.path.isfile(load_engine.DEFAULT_SCRIPT)
