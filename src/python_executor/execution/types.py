from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


@dataclass(frozen=True, slots=True)
class Workspace:
    """Ephemeral host directory owned by exactly one invocation.

    Example:
        ```python
        ws = Workspace(path=Path("/tmp/python_repl1234"), script_name="script.py")
        ```
    """

    path: Path
    script_name: str

    @property
    def script_path(self) -> Path:
        """Return the host path of the materialized script.

        Example:
            ```python
            path = ws.script_path
            ```
        """
        return self.path / self.script_name


@dataclass(frozen=True, slots=True)
class Mount:
    """Host-to-sandbox bind mount.

    Example:
        ```python
        mount = Mount(source=Path("/tmp/python_repl1234"), target="/app")
        ```
    """

    source: Path
    target: str


@dataclass(frozen=True, slots=True)
class SandboxCommand:
    """Fully composed isolated-run command handed to a sandbox backend.

    Example:
        ```python
        cmd = SandboxCommand(
            name="python-executor-1234",
            image="python:3.12-slim",
            mounts=(Mount(Path("/tmp/ws"), "/app"),),
            workdir="/app",
            shell_command="python script.py",
        )
        ```
    """

    name: str
    image: str
    mounts: tuple[Mount, ...]
    workdir: str
    shell_command: str
    labels: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class RawOutcome:
    """Unclassified process outcome returned by a sandbox backend.

    Example:
        ```python
        raw = RawOutcome(stdout=b"hi\\n", stderr="", returncode=0)
        ```
    """

    stdout: bytes = b""
    stderr: str = ""
    returncode: int | None = None
    timed_out: bool = False
    cancelled: bool = False
    launch_error: str | None = None
    timeout_seconds: int | None = None


class FailureKind(str, Enum):
    """Failure taxonomy exposed to callers.

    Example:
        ```python
        kind = FailureKind.EXECUTION_ERROR
        ```
    """

    INVALID_REQUEST = "invalid_request"
    WORKSPACE_ERROR = "workspace_error"
    EXECUTION_ERROR = "execution_error"


@dataclass(slots=True)
class ExecutionResult:
    """Terminal outcome of one invocation returned by `run_code`.

    Example:
        ```python
        result = ExecutionResult(ok=True, stdout="hi\\n")
        ```
    """

    ok: bool
    stdout: str = ""
    kind: FailureKind | None = None
    error: str | None = None
    stderr: str = ""
    exit_code: int | None = None
    timed_out: bool = False
    cancelled: bool = False

    @classmethod
    def failure(cls, kind: FailureKind, error: str, **extra: object) -> "ExecutionResult":
        """Build a failed result of the given kind.

        Example:
            ```python
            result = ExecutionResult.failure(FailureKind.INVALID_REQUEST, "Missing or invalid code argument")
            ```
        """
        return cls(ok=False, kind=kind, error=error, **extra)  # type: ignore[arg-type]
