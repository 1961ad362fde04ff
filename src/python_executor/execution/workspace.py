from __future__ import annotations

import contextlib
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Iterator

from ..settings import ExecutorSettings
from .types import Workspace

logger = logging.getLogger(__name__)


class WorkspaceError(RuntimeError):
    """Raised when a workspace cannot be allocated or written.

    Example:
        ```python
        raise WorkspaceError("Failed to create temp dir: disk full")
        ```
    """


def acquire_workspace(settings: ExecutorSettings) -> Workspace:
    """Create a fresh, uniquely named workspace directory.

    Example:
        ```python
        ws = acquire_workspace(ExecutorSettings())
        ```
    """
    try:
        created = tempfile.mkdtemp(prefix=settings.workspace_prefix, dir=settings.workspace_root)
    except OSError as exc:
        raise WorkspaceError(f"Failed to create temp dir: {exc}") from exc
    return Workspace(path=Path(created).resolve(), script_name=settings.script_name)


def release_workspace(ws: Workspace) -> None:
    """Remove a workspace directory and everything in it.

    Example:
        ```python
        release_workspace(ws)
        ```
    """
    try:
        shutil.rmtree(ws.path)
    except FileNotFoundError:
        logger.warning("Workspace %s was already removed", ws.path)
    except OSError as exc:
        logger.warning("Failed to remove workspace %s: %s", ws.path, exc)


@contextlib.contextmanager
def workspace(settings: ExecutorSettings) -> Iterator[Workspace]:
    """Yield a workspace that is released on every exit path.

    Example:
        ```python
        with workspace(ExecutorSettings()) as ws:
            write_script(ws, "print('hi')")
        ```
    """
    ws = acquire_workspace(settings)
    logger.debug("Acquired workspace %s", ws.path)
    try:
        yield ws
    finally:
        release_workspace(ws)
        logger.debug("Released workspace %s", ws.path)


def write_script(ws: Workspace, code: str) -> Path:
    """Write caller code verbatim to the workspace script file.

    Example:
        ```python
        path = write_script(ws, "print('hi')")
        ```
    """
    try:
        ws.script_path.write_bytes(code.encode("utf-8"))
    except (OSError, UnicodeEncodeError) as exc:
        raise WorkspaceError(f"Failed to write script to file: {exc}") from exc
    return ws.script_path
