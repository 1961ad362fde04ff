import os
import threading
import time
from pathlib import Path

import pytest

from python_executor.execution.process import supervise


def test_stdout_bytes_and_stderr_only_on_failure() -> None:
    ok = supervise(["sh", "-c", "printf 'a\\nb'; echo noise >&2"])
    failed = supervise(["sh", "-c", "echo out; echo boom >&2; exit 7"])

    assert ok.returncode == 0
    assert ok.stdout == b"a\nb"
    assert ok.stderr == ""
    assert failed.returncode == 7
    assert failed.stdout == b"out\n"
    assert failed.stderr == "boom\n"


def test_missing_binary_is_launch_error() -> None:
    raw = supervise(["/definitely/not/a/binary"])

    assert raw.launch_error is not None
    assert raw.returncode is None


def test_deadline_kills_whole_process_group() -> None:
    started = time.monotonic()
    raw = supervise(["sh", "-c", "sleep 60 & sleep 60; wait"], timeout_seconds=1)

    assert time.monotonic() - started < 30
    assert raw.timed_out is True
    assert raw.returncode == 124


def test_cancel_runs_abort_hook_first() -> None:
    cancel = threading.Event()
    aborted: list[str] = []
    cancel.set()
    raw = supervise(
        ["sh", "-c", "sleep 60"],
        cancel_event=cancel,
        on_abort=lambda: aborted.append("container"),
    )

    assert raw.cancelled is True
    assert aborted == ["container"]


def test_failing_abort_hook_still_kills_child(tmp_path: Path) -> None:
    pidfile = tmp_path / "pid"

    def _broken_hook() -> None:
        raise RuntimeError("rm failed")

    started = time.monotonic()
    with pytest.raises(RuntimeError, match="rm failed"):
        supervise(
            ["sh", "-c", f"echo $$ > {pidfile}; exec sleep 60"],
            timeout_seconds=1,
            on_abort=_broken_hook,
        )

    assert time.monotonic() - started < 30
    with pytest.raises(ProcessLookupError):
        os.kill(int(pidfile.read_text(encoding="utf-8")), 0)
