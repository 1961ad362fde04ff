from .docker_sandbox import DockerSandbox
from .local_sandbox import LocalSandbox
from .sandbox import Sandbox
from .types import ExecutionResult, FailureKind, RawOutcome, SandboxCommand, Workspace

__all__ = [
    "DockerSandbox",
    "ExecutionResult",
    "FailureKind",
    "LocalSandbox",
    "RawOutcome",
    "Sandbox",
    "SandboxCommand",
    "Workspace",
]
