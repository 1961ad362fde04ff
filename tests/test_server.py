import sys
import time
from pathlib import Path

import anyio
import pytest
from mcp.server.fastmcp.exceptions import ToolError

from python_executor import ExecutorSettings, LocalSandbox
from python_executor.server import (
    TOOL_DESCRIPTION,
    TOOL_NAME,
    build_server,
    build_tool_handler,
    register_tools,
    serve,
)

SANDBOX = LocalSandbox()


def _settings(root: Path) -> ExecutorSettings:
    return ExecutorSettings(backend="local", interpreter=sys.executable, workspace_root=str(root))


class _FakeRegistry:
    def __init__(self) -> None:
        self.tools: dict[str, tuple[str, object]] = {}

    def register(self, name, description, handler) -> None:
        self.tools[name] = (description, handler)


def test_register_tools_declares_execute_python(tmp_path: Path) -> None:
    registry = _FakeRegistry()
    register_tools(registry, SANDBOX, _settings(tmp_path))

    assert list(registry.tools) == ["execute-python"]
    description, handler = registry.tools[TOOL_NAME]
    assert description == TOOL_DESCRIPTION
    assert callable(handler)


def test_mcp_schema_requires_code(tmp_path: Path) -> None:
    server = build_server(SANDBOX, _settings(tmp_path))
    tools = anyio.run(server.list_tools)

    assert [tool.name for tool in tools] == [TOOL_NAME]
    schema = tools[0].inputSchema
    assert schema["required"] == ["code"]
    assert set(schema["properties"]) == {"code", "modules"}
    assert "Comma-separated" in schema["properties"]["modules"]["description"]
    assert "ephemeral container" in (tools[0].description or "")


def test_handler_returns_stdout(tmp_path: Path) -> None:
    handler = build_tool_handler(SANDBOX, _settings(tmp_path))

    assert anyio.run(handler, 'print("hi")') == "hi\n"


def test_handler_raises_tool_error_on_failure(tmp_path: Path) -> None:
    handler = build_tool_handler(SANDBOX, _settings(tmp_path))

    with pytest.raises(ToolError, match="Python exited with code 1"):
        anyio.run(handler, 'raise ValueError("x")')


def test_cancelled_request_cleans_up_workspace(tmp_path: Path) -> None:
    handler = build_tool_handler(SANDBOX, _settings(tmp_path))

    async def _cancel_soon() -> None:
        with anyio.move_on_after(0.5):
            await handler("import time\ntime.sleep(60)")

    anyio.run(_cancel_soon)
    deadline = time.monotonic() + 10
    while list(tmp_path.iterdir()) and time.monotonic() < deadline:
        time.sleep(0.05)
    assert list(tmp_path.iterdir()) == []


def test_serve_rejects_unknown_transport(tmp_path: Path) -> None:
    server = build_server(SANDBOX, _settings(tmp_path))
    with pytest.raises(ValueError, match="transport must be one of"):
        serve(server, transport="websocket")


def test_non_string_code_gets_invalid_code_message(tmp_path: Path) -> None:
    handler = build_tool_handler(SANDBOX, _settings(tmp_path))

    with pytest.raises(ToolError, match="Missing or invalid code argument"):
        anyio.run(handler, 42)
    assert list(tmp_path.iterdir()) == []


def test_mcp_call_with_non_string_code_gets_invalid_code_message(tmp_path: Path) -> None:
    server = build_server(SANDBOX, _settings(tmp_path))

    with pytest.raises(ToolError, match="Missing or invalid code argument"):
        anyio.run(server.call_tool, TOOL_NAME, {"code": 42})
    assert list(tmp_path.iterdir()) == []


def test_schema_still_advertises_code_as_string(tmp_path: Path) -> None:
    server = build_server(SANDBOX, _settings(tmp_path))
    tools = anyio.run(server.list_tools)

    assert tools[0].inputSchema["properties"]["code"]["type"] == "string"
