from __future__ import annotations

import logging
import os
import threading

from .capabilities import LOCAL_CAPABILITIES
from .process import supervise
from .types import RawOutcome, SandboxCommand

logger = logging.getLogger(__name__)

PACKAGES_DIR = ".packages"


class LocalSandbox:
    """Run composed commands directly on the host, inside the workspace.

    The mount source becomes the working directory, so the script path
    resolves the same way it does in a container. Package installs land in the
    workspace and vanish with it.

    Example:
        ```python
        sandbox = LocalSandbox()
        ```
    """

    capabilities = LOCAL_CAPABILITIES

    def __init__(self, *, shell: str = "sh") -> None:
        """Initialize the host shell used to run inner commands.

        Example:
            ```python
            sandbox = LocalSandbox(shell="/bin/sh")
            ```
        """
        self._shell = shell

    def run(
        self,
        command: SandboxCommand,
        *,
        timeout_seconds: int | None = None,
        cancel_event: threading.Event | None = None,
    ) -> RawOutcome:
        """Run one command as a host subprocess.

        Example:
            ```python
            raw = sandbox.run(cmd, timeout_seconds=10)
            ```
        """
        mount = next((m for m in command.mounts if m.target == command.workdir), None)
        if mount is None:
            return RawOutcome(launch_error=f"No mount provides working directory {command.workdir}")
        if command.image:
            logger.debug("Local backend ignores image %s", command.image)
        return supervise(
            [self._shell, "-c", command.shell_command],
            cwd=str(mount.source),
            env=self._environment(mount.source / PACKAGES_DIR),
            timeout_seconds=timeout_seconds,
            cancel_event=cancel_event,
        )

    def _environment(self, packages_dir: os.PathLike[str]) -> dict[str, str]:
        """Build the child environment with installs redirected to the workspace.

        Example:
            ```python
            env = sandbox._environment(Path("/tmp/python_repl1/.packages"))
            ```
        """
        env = dict(os.environ)
        target = os.fspath(packages_dir)
        env["PIP_TARGET"] = target
        env["PIP_DISABLE_PIP_VERSION_CHECK"] = "1"
        env["PYTHONDONTWRITEBYTECODE"] = "1"
        existing = env.get("PYTHONPATH")
        env["PYTHONPATH"] = f"{target}{os.pathsep}{existing}" if existing else target
        return env
