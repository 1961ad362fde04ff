from __future__ import annotations

import logging
import threading
from functools import partial
from typing import Annotated, Any, Awaitable, Callable, Protocol

import anyio
from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from pydantic import Field

from .execution.sandbox import Sandbox
from .runner import handle_tool_call
from .settings import ExecutorSettings

logger = logging.getLogger(__name__)

SERVER_NAME = "python-executor"
TOOL_NAME = "execute-python"
TRANSPORTS = ("stdio", "sse", "streamable-http")
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 8080

TOOL_DESCRIPTION = (
    "Execute Python code in an isolated environment. Playwright and headless browser are "
    "available for web scraping. Use this tool when you need real-time information, don't "
    "have the information internally and no other tools can provide this information. Only "
    "output printed to stdout or stderr is returned so ALWAYS use print statements! Please "
    "note all code is run in an ephemeral container so modules and code do NOT persist!"
)
CODE_DESCRIPTION = "The Python code to execute"
MODULES_DESCRIPTION = (
    "Comma-separated list of Python modules your code requires. If your code requires "
    "external modules you MUST pass them here! These will installed automatically."
)

ToolHandler = Callable[..., Awaitable[str]]


class ToolRegistry(Protocol):
    def register(self, name: str, description: str, handler: ToolHandler) -> None:
        """Declare a callable tool to the host.

        Example:
            ```python
            registry.register("execute-python", TOOL_DESCRIPTION, handler)
            ```
        """
        ...


class FastMCPRegistry:
    """Tool registry backed by an MCP FastMCP server.

    Example:
        ```python
        registry = FastMCPRegistry(FastMCP("python-executor"))
        ```
    """

    def __init__(self, server: FastMCP) -> None:
        """Wrap an existing FastMCP server.

        Example:
            ```python
            registry = FastMCPRegistry(FastMCP("python-executor"))
            ```
        """
        self.server = server

    def register(self, name: str, description: str, handler: ToolHandler) -> None:
        """Register a handler whose signature becomes the tool schema.

        Example:
            ```python
            registry.register("execute-python", TOOL_DESCRIPTION, handler)
            ```
        """
        self.server.add_tool(handler, name=name, description=description)
        logger.debug("Registered tool %s", name)


def build_tool_handler(sandbox: Sandbox, settings: ExecutorSettings) -> ToolHandler:
    """Create the async `execute-python` handler bound to one engine setup.

    The blocking run happens on a worker thread. Cancelling the request sets
    the cancel token so the sandboxed process is killed and its workspace
    removed.

    Example:
        ```python
        handler = build_tool_handler(LocalSandbox(), ExecutorSettings(backend="local"))
        ```
    """

    async def execute_python(
        code: Annotated[Any, Field(description=CODE_DESCRIPTION, json_schema_extra={"type": "string"})],
        modules: Annotated[str, Field(description=MODULES_DESCRIPTION)] = "",
    ) -> str:
        """Run caller code and return its standard output.

        `code` is accepted untyped so a wrong type reaches request
        validation and fails with the engine's own message.

        Example:
            ```python
            text = await execute_python("print('hi')")
            ```
        """
        arguments: dict[str, Any] = {"code": code, "modules": modules}
        cancel_event = threading.Event()
        try:
            result = await anyio.to_thread.run_sync(
                partial(handle_tool_call, arguments, sandbox, settings, cancel_event),
                abandon_on_cancel=True,
            )
        finally:
            cancel_event.set()
        if not result.ok:
            raise ToolError(result.error or "Execution failed")
        return result.stdout

    return execute_python


def register_tools(registry: ToolRegistry, sandbox: Sandbox, settings: ExecutorSettings) -> None:
    """Register every tool this server exposes.

    Example:
        ```python
        register_tools(FastMCPRegistry(FastMCP("python-executor")), DockerSandbox(), ExecutorSettings())
        ```
    """
    registry.register(TOOL_NAME, TOOL_DESCRIPTION, build_tool_handler(sandbox, settings))


def build_server(
    sandbox: Sandbox,
    settings: ExecutorSettings,
    *,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> FastMCP:
    """Create the MCP server with the execution tool registered.

    Example:
        ```python
        server = build_server(DockerSandbox(), ExecutorSettings(), port=9000)
        ```
    """
    server = FastMCP(SERVER_NAME, host=host, port=port)
    register_tools(FastMCPRegistry(server), sandbox, settings)
    return server


def serve(server: FastMCP, transport: str = "stdio") -> None:
    """Run the server on the chosen transport until it exits.

    Example:
        ```python
        serve(build_server(DockerSandbox(), ExecutorSettings()), transport="sse")
        ```
    """
    if transport not in TRANSPORTS:
        raise ValueError(f"transport must be one of {', '.join(TRANSPORTS)}")
    if transport != "stdio":
        logger.info(
            "Starting %s server on %s:%s", transport, server.settings.host, server.settings.port
        )
    server.run(transport=transport)  # type: ignore[arg-type]
