import logging
import subprocess
import threading
import time
from pathlib import Path

import pytest

from python_executor import DockerSandbox, ExecutorSettings
from python_executor.execution import docker_sandbox
from python_executor.execution.builder import build_command
from python_executor.execution.types import Workspace


def test_missing_docker_cli_reported(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(docker_sandbox.shutil, "which", lambda _: None)
    ok, reason = docker_sandbox.docker_is_available()

    assert ok is False
    assert "Docker CLI was not found" in (reason or "")


def test_unreachable_daemon_is_launch_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(docker_sandbox.shutil, "which", lambda _: "/usr/bin/docker")
    monkeypatch.setattr(
        docker_sandbox.subprocess,
        "run",
        lambda *a, **k: subprocess.CompletedProcess(a, 1, "", "Cannot connect"),
    )
    ws = Workspace(path=Path("/tmp/python_repl1"), script_name="script.py")
    raw = DockerSandbox().run(build_command(ws, [], ExecutorSettings()))

    assert raw.launch_error is not None
    assert "daemon is not running" in raw.launch_error


def test_availability_check_is_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    checks: list[float] = []

    def _check(self, timeout_seconds=10):
        checks.append(timeout_seconds)
        return True, None

    monkeypatch.setattr(DockerSandbox, "check", _check)
    monkeypatch.setattr(docker_sandbox, "supervise", lambda argv, **kwargs: argv)
    sandbox = DockerSandbox(docker_binary="podman")
    ws = Workspace(path=Path("/tmp/python_repl1"), script_name="script.py")
    first = sandbox.run(build_command(ws, [], ExecutorSettings()))
    sandbox.run(build_command(ws, [], ExecutorSettings()), timeout_seconds=3)

    assert checks == [10]
    assert first[:2] == ["podman", "run"]


def test_kill_rejects_unmanaged_container(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        DockerSandbox,
        "_run_docker",
        lambda self, args: subprocess.CompletedProcess(args, 0, "\n", ""),
    )
    with pytest.raises(ValueError, match="not managed by python-executor"):
        DockerSandbox().kill_container("abc123")


def test_list_containers_parses_rows(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[list[str]] = []

    def _fake(self, args):
        calls.append(args)
        return subprocess.CompletedProcess(
            args, 0, "abc|python-executor-python_repl1|img:tag|running|Up 3s\n\n", ""
        )

    monkeypatch.setattr(DockerSandbox, "_run_docker", _fake)
    containers = DockerSandbox().list_containers()

    assert [c.name for c in containers] == ["python-executor-python_repl1"]
    assert "label=python_executor.managed=true" in calls[0]


def _fake_docker(tmp_path: Path, body: str) -> str:
    path = tmp_path / "docker"
    path.write_text(body, encoding="utf-8")
    path.chmod(0o755)
    return str(path)


def test_hung_docker_cli_fails_within_run_deadline(tmp_path: Path) -> None:
    sandbox = DockerSandbox(docker_binary=_fake_docker(tmp_path, "#!/bin/sh\nexec sleep 30\n"))
    ws = Workspace(path=tmp_path / "python_repl1", script_name="script.py")
    started = time.monotonic()
    raw = sandbox.run(build_command(ws, [], ExecutorSettings()), timeout_seconds=1)

    assert time.monotonic() - started < 10
    assert raw.launch_error is not None
    assert "did not respond within 1s" in raw.launch_error


def test_unrunnable_docker_cli_is_reported(tmp_path: Path) -> None:
    ok, reason = docker_sandbox.docker_is_available(_fake_docker(tmp_path, "not a program\n"))

    assert ok is False
    assert "Docker CLI could not be run" in (reason or "")


def test_cancelled_before_launch_skips_docker(tmp_path: Path) -> None:
    cancel = threading.Event()
    cancel.set()
    sandbox = DockerSandbox(docker_binary=str(tmp_path / "missing-docker"))
    ws = Workspace(path=tmp_path / "python_repl1", script_name="script.py")
    raw = sandbox.run(build_command(ws, [], ExecutorSettings()), cancel_event=cancel)

    assert raw.cancelled is True
    assert raw.launch_error is None


def test_hung_container_removal_is_bounded(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    monkeypatch.setattr(DockerSandbox, "check", lambda self, timeout_seconds=10: (True, None))
    monkeypatch.setattr(docker_sandbox, "MANAGEMENT_TIMEOUT_SECONDS", 1)
    sandbox = DockerSandbox(docker_binary=_fake_docker(tmp_path, "#!/bin/sh\nexec sleep 30\n"))
    ws = Workspace(path=tmp_path / "python_repl1", script_name="script.py")
    started = time.monotonic()
    with caplog.at_level(logging.WARNING):
        raw = sandbox.run(build_command(ws, [], ExecutorSettings()), timeout_seconds=1)

    assert time.monotonic() - started < 15
    assert raw.timed_out is True
    assert raw.returncode == 124
    assert "Failed to remove container" in caplog.text
    assert "timed out after 1s" in caplog.text


def test_management_command_failure_is_a_completion(tmp_path: Path) -> None:
    sandbox = DockerSandbox(docker_binary=str(tmp_path / "missing-docker"))
    completed = sandbox._run_docker(["ps"])

    assert completed.returncode == 127
    assert completed.stderr


def test_cancel_during_hung_docker_check_is_bounded(tmp_path: Path) -> None:
    sandbox = DockerSandbox(docker_binary=_fake_docker(tmp_path, "#!/bin/sh\nexec sleep 30\n"))
    ws = Workspace(path=tmp_path / "python_repl1", script_name="script.py")
    cancel = threading.Event()
    timer = threading.Timer(0.5, cancel.set)
    timer.start()
    started = time.monotonic()
    try:
        raw = sandbox.run(build_command(ws, [], ExecutorSettings()), timeout_seconds=1, cancel_event=cancel)
    finally:
        timer.cancel()

    assert time.monotonic() - started < 10
    assert raw.cancelled is True
