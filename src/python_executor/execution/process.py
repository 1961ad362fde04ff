from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
import time
from typing import Callable, Mapping, Sequence

from .types import RawOutcome

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 0.25
TIMEOUT_EXIT_CODE = 124


def _kill_process_group(proc: subprocess.Popen[bytes]) -> None:
    """Force-kill a child and every process in its session.

    Example:
        ```python
        _kill_process_group(proc)
        ```
    """
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        return
    except PermissionError:
        proc.kill()


def supervise(
    argv: Sequence[str],
    *,
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
    timeout_seconds: int | None = None,
    cancel_event: threading.Event | None = None,
    on_abort: Callable[[], None] | None = None,
) -> RawOutcome:
    """Launch a process, wait for it, and capture its output.

    Stdout is returned as raw bytes. Stderr is kept only for non-zero exits.
    When the deadline passes or `cancel_event` is set, `on_abort` runs first
    and then the process group is killed.

    Example:
        ```python
        raw = supervise(["sh", "-c", "echo hi"], timeout_seconds=5)
        ```
    """
    try:
        proc = subprocess.Popen(
            list(argv),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=cwd,
            env=dict(env) if env is not None else None,
            start_new_session=True,
        )
    except OSError as exc:
        return RawOutcome(launch_error=str(exc))

    deadline = time.monotonic() + timeout_seconds if timeout_seconds else None
    polling = deadline is not None or cancel_event is not None
    timed_out = False
    cancelled = False
    while True:
        wait: float | None = None
        if polling:
            wait = POLL_INTERVAL_SECONDS
            if deadline is not None:
                wait = max(0.0, min(wait, deadline - time.monotonic()))
        try:
            stdout, stderr = proc.communicate(timeout=wait)
            break
        except subprocess.TimeoutExpired:
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
            elif deadline is not None and time.monotonic() >= deadline:
                timed_out = True
            else:
                continue
        logger.info(
            "Aborting pid %s: %s",
            proc.pid,
            "cancelled by caller" if cancelled else f"deadline of {timeout_seconds}s exceeded",
        )
        try:
            if on_abort is not None:
                on_abort()
        finally:
            _kill_process_group(proc)
            stdout, stderr = proc.communicate()
        break

    returncode = proc.returncode
    if timed_out:
        returncode = TIMEOUT_EXIT_CODE
    return RawOutcome(
        stdout=stdout,
        stderr=stderr.decode("utf-8", errors="replace") if returncode != 0 else "",
        returncode=returncode,
        timed_out=timed_out,
        cancelled=cancelled,
        timeout_seconds=timeout_seconds,
    )
