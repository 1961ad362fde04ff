from __future__ import annotations

import logging
import shutil
import subprocess
import threading
from dataclasses import dataclass

from .builder import MANAGED_LABEL_VALUE
from .capabilities import DOCKER_CAPABILITIES
from .process import supervise
from .types import RawOutcome, SandboxCommand

logger = logging.getLogger(__name__)

CHECK_TIMEOUT_SECONDS = 10
MANAGEMENT_TIMEOUT_SECONDS = 10


@dataclass(frozen=True, slots=True)
class ContainerInfo:
    """Snapshot of a managed container returned by DockerSandbox.

    Example:
        ```python
        info = ContainerInfo("abc", "python-executor-python_repl1", "img:tag", "running", "Up 2m")
        ```
    """

    id: str
    name: str
    image: str
    state: str
    status: str


def docker_is_available(
    docker_binary: str = "docker",
    timeout_seconds: float = CHECK_TIMEOUT_SECONDS,
) -> tuple[bool, str | None]:
    """Check Docker CLI and daemon accessibility within a bounded time.

    Example:
        ```python
        ok, reason = docker_is_available(timeout_seconds=5)
        ```
    """
    if shutil.which(docker_binary) is None:
        return False, "Docker CLI was not found. Install Docker and ensure it is on PATH."
    try:
        info = subprocess.run(
            [docker_binary, "info"],
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout_seconds,
        )
    except subprocess.TimeoutExpired:
        return False, f"Docker did not respond within {timeout_seconds:g}s."
    except OSError as exc:
        return False, f"Docker CLI could not be run: {exc}"
    if info.returncode != 0:
        return False, "Docker is installed but the daemon is not running or not accessible."
    return True, None


def docker_run_args(command: SandboxCommand, docker_binary: str = "docker") -> list[str]:
    """Render a composed command as a `docker run` argument list.

    Example:
        ```python
        argv = docker_run_args(build_command(ws, ["requests"], ExecutorSettings()))
        ```
    """
    argv = [docker_binary, "run", "--rm", "--name", command.name]
    for key, value in command.labels.items():
        argv.extend(["--label", f"{key}={value}"])
    for mount in command.mounts:
        argv.extend(["-v", f"{mount.source}:{mount.target}"])
    argv.extend(["-w", command.workdir, command.image, "sh", "-c", command.shell_command])
    return argv


class DockerSandbox:
    """Run composed commands in throwaway Docker containers.

    Example:
        ```python
        sandbox = DockerSandbox()
        ```
    """

    capabilities = DOCKER_CAPABILITIES

    def __init__(self, *, docker_binary: str = "docker") -> None:
        """Initialize the Docker CLI target.

        Example:
            ```python
            sandbox = DockerSandbox(docker_binary="/usr/local/bin/docker")
            ```
        """
        self._docker_binary = docker_binary
        self._available = False
        self._lock = threading.Lock()

    def run(
        self,
        command: SandboxCommand,
        *,
        timeout_seconds: int | None = None,
        cancel_event: threading.Event | None = None,
    ) -> RawOutcome:
        """Run one command inside a remove-on-exit container.

        Example:
            ```python
            raw = sandbox.run(cmd, timeout_seconds=60)
            ```
        """
        if cancel_event is not None and cancel_event.is_set():
            return RawOutcome(cancelled=True, timeout_seconds=timeout_seconds)
        check_timeout: float = CHECK_TIMEOUT_SECONDS
        if timeout_seconds:
            check_timeout = min(check_timeout, timeout_seconds)
        reason = self._ensure_available(check_timeout)
        if cancel_event is not None and cancel_event.is_set():
            return RawOutcome(cancelled=True, timeout_seconds=timeout_seconds)
        if reason is not None:
            return RawOutcome(launch_error=reason)
        argv = docker_run_args(command, self._docker_binary)
        logger.debug("Launching container %s: %s", command.name, argv)
        return supervise(
            argv,
            timeout_seconds=timeout_seconds,
            cancel_event=cancel_event,
            on_abort=lambda: self._force_remove(command.name),
        )

    def check(self, timeout_seconds: float = CHECK_TIMEOUT_SECONDS) -> tuple[bool, str | None]:
        """Ask whether the Docker CLI and daemon are usable.

        Example:
            ```python
            ok, reason = sandbox.check(timeout_seconds=5)
            ```
        """
        return docker_is_available(self._docker_binary, timeout_seconds)

    def list_containers(self) -> list[ContainerInfo]:
        """List running containers started by this executor.

        Example:
            ```python
            containers = sandbox.list_containers()
            ```
        """
        fmt = "{{.ID}}|{{.Names}}|{{.Image}}|{{.State}}|{{.Status}}"
        out = self._run_docker(
            ["ps", "--filter", f"label=python_executor.managed={MANAGED_LABEL_VALUE}", "--format", fmt]
        )
        if out.returncode != 0:
            raise RuntimeError(f"Failed to list containers: {out.stderr.strip()}")
        items: list[ContainerInfo] = []
        for line in out.stdout.splitlines():
            if not line.strip():
                continue
            c_id, name, image, state, status = line.split("|", 4)
            items.append(ContainerInfo(c_id, name, image, state, status))
        return items

    def kill_container(self, container_id: str) -> None:
        """Force-kill a managed container.

        Example:
            ```python
            sandbox.kill_container("abc123")
            ```
        """
        self._ensure_managed_container(container_id)
        killed = self._run_docker(["kill", container_id])
        if killed.returncode != 0:
            raise RuntimeError(f"Failed to kill container: {killed.stderr.strip()}")

    def _ensure_available(self, timeout_seconds: float = CHECK_TIMEOUT_SECONDS) -> str | None:
        """Check Docker until it answers once, then remember the positive answer.

        The lock only guards the flag; concurrent first runs may each check.

        Example:
            ```python
            reason = sandbox._ensure_available(5)
            ```
        """
        with self._lock:
            if self._available:
                return None
        ok, reason = self.check(timeout_seconds)
        if ok:
            with self._lock:
                self._available = True
        return reason

    def _force_remove(self, name: str) -> None:
        """Kill and remove a container that outlived its run.

        Example:
            ```python
            sandbox._force_remove("python-executor-python_repl1")
            ```
        """
        removed = self._run_docker(["rm", "-f", name])
        if removed.returncode != 0:
            logger.warning("Failed to remove container %s: %s", name, removed.stderr.strip())

    def _ensure_managed_container(self, container_id: str) -> None:
        """Ensure a container is labeled as executor managed.

        Example:
            ```python
            sandbox._ensure_managed_container("abc123")
            ```
        """
        check = self._run_docker(
            [
                "inspect",
                "-f",
                "{{ index .Config.Labels \"python_executor.managed\" }}",
                container_id,
            ]
        )
        if check.returncode != 0 or check.stdout.strip() != MANAGED_LABEL_VALUE:
            raise ValueError(
                f"Container '{container_id}' is not managed by python-executor and cannot be modified"
            )

    def _run_docker(
        self,
        args: list[str],
        timeout_seconds: float | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run a Docker CLI management command with a bounded wait.

        A hung or unrunnable CLI is reported as a failed completion.

        Example:
            ```python
            completed = sandbox._run_docker(["ps"])
            ```
        """
        if timeout_seconds is None:
            timeout_seconds = MANAGEMENT_TIMEOUT_SECONDS
        argv = [self._docker_binary, *args]
        try:
            return subprocess.run(
                argv,
                capture_output=True,
                text=True,
                check=False,
                timeout=timeout_seconds,
            )
        except subprocess.TimeoutExpired:
            return subprocess.CompletedProcess(
                argv, 124, "", f"docker {args[0]} timed out after {timeout_seconds:g}s"
            )
        except OSError as exc:
            return subprocess.CompletedProcess(argv, 127, "", str(exc))
