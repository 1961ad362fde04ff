from __future__ import annotations

import shlex
from typing import Any, Sequence

from ..settings import ExecutorSettings
from .types import Mount, SandboxCommand, Workspace

CONTAINER_NAME_PREFIX = "python-executor"
MANAGED_LABEL_VALUE = "true"
MANAGED_LABELS_BASE = {
    "python_executor.managed": MANAGED_LABEL_VALUE,
    "python_executor.project": "python-executor",
}


def parse_dependencies(modules: Any) -> list[str]:
    """Split a comma-separated dependency string into an ordered list.

    Example:
        ```python
        deps = parse_dependencies("requests, beautifulsoup4")
        ```
    """
    if not isinstance(modules, str) or not modules:
        return []
    return [item.strip() for item in modules.split(",") if item.strip()]


def container_name(ws: Workspace) -> str:
    """Derive a unique container name from the workspace directory name.

    Example:
        ```python
        name = container_name(ws)
        ```
    """
    suffix = "".join(ch if ch.isalnum() or ch in "_.-" else "-" for ch in ws.path.name)
    return f"{CONTAINER_NAME_PREFIX}-{suffix}"


def install_command(dependencies: Sequence[str], settings: ExecutorSettings) -> str:
    """Return the shell text that installs every requested dependency.

    Example:
        ```python
        text = install_command(["requests"], ExecutorSettings())
        ```
    """
    return " ".join(
        [
            shlex.quote(settings.interpreter),
            "-m",
            shlex.quote(settings.package_manager),
            "install",
            "--quiet",
            *(shlex.quote(dep) for dep in dependencies),
        ]
    )


def run_command(settings: ExecutorSettings) -> str:
    """Return the shell text that runs the script from the mount point.

    Example:
        ```python
        text = run_command(ExecutorSettings())
        ```
    """
    return f"{shlex.quote(settings.interpreter)} {shlex.quote(settings.script_name)}"


def build_command(
    ws: Workspace,
    dependencies: Sequence[str],
    settings: ExecutorSettings,
) -> SandboxCommand:
    """Compose the isolated-run command for one workspace.

    The script path is resolved relative to the mount point, which is also the
    sandbox working directory. An install step, when present, gates the run
    step with `&&`.

    Example:
        ```python
        cmd = build_command(ws, ["requests"], ExecutorSettings())
        ```
    """
    steps = [run_command(settings)]
    if dependencies:
        steps.insert(0, install_command(dependencies, settings))
    return SandboxCommand(
        name=container_name(ws),
        image=settings.image,
        mounts=(Mount(source=ws.path, target=settings.mount_point),),
        workdir=settings.mount_point,
        shell_command=" && ".join(steps),
        labels=dict(MANAGED_LABELS_BASE),
    )
