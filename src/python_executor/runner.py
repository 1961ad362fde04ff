from __future__ import annotations

import logging
import threading
import time
from typing import Any, Mapping, Sequence

from .execution.builder import build_command, parse_dependencies
from .execution.capabilities import preflight_validate_backend_capabilities
from .execution.classifier import classify
from .execution.docker_sandbox import DockerSandbox
from .execution.local_sandbox import LocalSandbox
from .execution.sandbox import Sandbox
from .execution.types import ExecutionResult, FailureKind, RawOutcome
from .execution.workspace import WorkspaceError, workspace, write_script
from .settings import ExecutorSettings

logger = logging.getLogger(__name__)

INVALID_CODE_MESSAGE = "Missing or invalid code argument"


def build_sandbox(settings: ExecutorSettings) -> Sandbox:
    """Create the sandbox backend selected by settings.

    Example:
        ```python
        sandbox = build_sandbox(ExecutorSettings(backend="local"))
        ```
    """
    if settings.backend == "local":
        return LocalSandbox()
    return DockerSandbox(docker_binary=settings.docker_binary)


def run_code(
    code: str,
    sandbox: Sandbox,
    dependencies: Sequence[str] | None = None,
    settings: ExecutorSettings | None = None,
    cancel_event: threading.Event | None = None,
) -> ExecutionResult:
    """Execute Python code in a fresh workspace through the given sandbox.

    Example:
        ```python
        from python_executor import DockerSandbox, run_code
        result = run_code("print('hi')", sandbox=DockerSandbox(), dependencies=["requests"])
        ```
    """
    resolved = settings or ExecutorSettings()
    deps = list(dependencies or [])
    preflight_validate_backend_capabilities(sandbox)
    started = time.monotonic()
    try:
        with workspace(resolved) as ws:
            write_script(ws, code)
            command = build_command(ws, deps, resolved)
            logger.info("Running %s with %d dependencies", ws.path, len(deps))
            logger.debug("Composed command: %s", command.shell_command)
            try:
                raw = sandbox.run(
                    command,
                    timeout_seconds=resolved.deadline_seconds,
                    cancel_event=cancel_event,
                )
            except Exception as exc:
                logger.exception("Sandbox %s failed to run %s", type(sandbox).__name__, ws.path)
                raw = RawOutcome(launch_error=str(exc) or type(exc).__name__)
            result = classify(raw)
    except WorkspaceError as exc:
        logger.warning("Workspace failure: %s", exc)
        return ExecutionResult.failure(FailureKind.WORKSPACE_ERROR, str(exc))
    logger.info(
        "Finished in %.2fs: ok=%s exit_code=%s",
        time.monotonic() - started,
        result.ok,
        result.exit_code,
    )
    return result


def handle_tool_call(
    arguments: Mapping[str, Any],
    sandbox: Sandbox,
    settings: ExecutorSettings | None = None,
    cancel_event: threading.Event | None = None,
) -> ExecutionResult:
    """Validate raw tool arguments and run them.

    `code` must be a string. `modules` (or its alias `dependencies`) is an
    optional comma-separated string.

    Example:
        ```python
        result = handle_tool_call({"code": "print(1)", "modules": "requests"}, sandbox=LocalSandbox())
        ```
    """
    code = arguments.get("code")
    if not isinstance(code, str):
        return ExecutionResult.failure(FailureKind.INVALID_REQUEST, INVALID_CODE_MESSAGE)
    modules = arguments.get("modules", arguments.get("dependencies"))
    return run_code(
        code,
        sandbox=sandbox,
        dependencies=parse_dependencies(modules),
        settings=settings,
        cancel_event=cancel_event,
    )
