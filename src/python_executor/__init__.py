from .execution.docker_sandbox import DockerSandbox
from .execution.local_sandbox import LocalSandbox
from .execution.types import ExecutionResult, FailureKind
from .runner import build_sandbox, handle_tool_call, run_code
from .settings import ExecutorSettings

__all__ = [
    "DockerSandbox",
    "ExecutionResult",
    "ExecutorSettings",
    "FailureKind",
    "LocalSandbox",
    "build_sandbox",
    "handle_tool_call",
    "run_code",
]
