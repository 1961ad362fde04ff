from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from functools import partial
from pathlib import Path
from typing import Any, Never, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich_argparse import RawTextRichHelpFormatter
from python_executor import DockerSandbox, ExecutorSettings, build_sandbox, run_code
from python_executor.execution.builder import parse_dependencies
from python_executor.server import DEFAULT_HOST, DEFAULT_PORT, TRANSPORTS, build_server, serve
from python_executor.settings import BACKENDS, DEFAULT_INTERPRETER

_CONSOLE = Console(no_color=False)
_ERR_CONSOLE = Console(stderr=True)


class _CLIHelpFormatter(RawTextRichHelpFormatter):
    """Rich formatter with explicit high-contrast CLI styles.

    Example:
        ```python
        parser = argparse.ArgumentParser(formatter_class=_CLIHelpFormatter)
        ```
    """

    styles = {
        "argparse.args": "bold cyan",
        "argparse.groups": "bold magenta",
        "argparse.help": "white",
        "argparse.metavar": "bold yellow",
        "argparse.prog": "bold bright_blue",
        "argparse.syntax": "bold bright_white",
        "argparse.text": "bright_white",
    }


_HELP_FORMATTER = partial(
    _CLIHelpFormatter,
    max_help_position=34,
    width=120,
)


class _RichArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that renders errors via Rich.

    Example:
        ```python
        parser = _RichArgumentParser(prog="python -m pyexec")
        ```
    """

    def error(self, message: str) -> Never:
        """Render parse errors with Rich and exit.

        Example:
            ```python
            # parser.error("invalid usage")
            ```
        """
        _ERR_CONSOLE.print(Panel.fit(f"[bold red]Error:[/bold red] {message}", border_style="red"))
        self.print_usage(file=sys.stderr)
        raise SystemExit(2)


def configure_logging(level: str) -> None:
    """Send log records to stderr; stdout is reserved for the stdio transport.

    Example:
        ```python
        configure_logging("DEBUG")
        ```
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser for the python-executor server and tools.

    Example:
        ```python
        parser = build_parser()
        ```
    """
    parser = _RichArgumentParser(
        prog="python -m pyexec",
        description=(
            "python-executor CLI\n"
            "Run caller-supplied Python in throwaway sandboxes and serve it as an MCP tool."
        ),
        epilog=(
            "Quick Examples:\n"
            "  python -m pyexec serve\n"
            "  python -m pyexec serve --sse --port 8080\n"
            "  python -m pyexec run script.py --modules requests,beautifulsoup4\n"
            "  python -m pyexec check\n"
            "  python -m pyexec list containers\n"
            "  python -m pyexec kill container <id>\n\n"
            "Config Examples:\n"
            "  python -m pyexec --config executor.toml serve\n"
            "  python -m pyexec --backend local run script.py\n"
            "  python -m pyexec --image python:3.12-slim --timeout-seconds 60 serve"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    parser.add_argument(
        "--config",
        help="TOML settings file. Keys go in an [executor] table or at top level.",
    )
    parser.add_argument(
        "--backend",
        choices=sorted(BACKENDS),
        help="Sandbox backend (default: docker). 'local' runs on the host without isolation.",
    )
    parser.add_argument(
        "--image",
        help="Container image for each run (docker backend only).",
    )
    parser.add_argument(
        "--timeout-seconds",
        type=int,
        help="Deadline per run; 0 disables it (default: 300).",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Log level written to stderr (default: INFO).",
    )

    sub = parser.add_subparsers(
        dest="command",
        required=True,
        parser_class=_RichArgumentParser,
    )

    serve_cmd = sub.add_parser(
        "serve",
        help="Start the MCP server.",
        description=(
            "Serve the execute-python tool over MCP.\n"
            "Uses stdio unless --sse or --transport selects a network listener."
        ),
        formatter_class=_HELP_FORMATTER,
    )
    serve_cmd.add_argument(
        "--sse",
        action="store_true",
        help="Run in SSE mode instead of stdio mode.",
    )
    serve_cmd.add_argument(
        "--transport",
        choices=TRANSPORTS,
        help="Transport to serve on (default: stdio).",
    )
    serve_cmd.add_argument("--host", default=DEFAULT_HOST, help=f"Listen host (default: {DEFAULT_HOST}).")
    serve_cmd.add_argument(
        "--port", type=int, default=DEFAULT_PORT, help=f"Listen port (default: {DEFAULT_PORT})."
    )

    run_cmd = sub.add_parser(
        "run",
        help="Execute one script file and print its output.",
        description="Execute a script through the engine exactly as the MCP tool would.",
        epilog=(
            "Examples:\n"
            "  python -m pyexec run scrape.py --modules requests"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    run_cmd.add_argument("file", help="Python file to execute.")
    run_cmd.add_argument(
        "--modules",
        default="",
        help="Comma-separated dependencies installed before the script runs.",
    )

    sub.add_parser(
        "check",
        help="Check that the configured backend is usable.",
        description="Check the Docker CLI and daemon for the docker backend.",
        formatter_class=_HELP_FORMATTER,
    )

    list_cmd = sub.add_parser(
        "list",
        help="List managed containers.",
        description="List running containers started by python-executor.",
        formatter_class=_HELP_FORMATTER,
    )
    list_cmd_sub = list_cmd.add_subparsers(
        dest="resource",
        required=True,
        parser_class=_RichArgumentParser,
    )
    list_cmd_sub.add_parser(
        "containers",
        help="List running managed containers.",
        description="Show managed containers with id, name, image, state, and status.",
        formatter_class=_HELP_FORMATTER,
    )

    kill_cmd = sub.add_parser(
        "kill",
        help="Force kill managed container resources.",
        description=(
            "Kill commands operate only on managed containers.\n"
            "Use `pyexec kill container <id>` to stop a hung run."
        ),
        formatter_class=_HELP_FORMATTER,
    )
    kill_cmd_sub = kill_cmd.add_subparsers(
        dest="resource",
        required=True,
        parser_class=_RichArgumentParser,
    )
    kill_container = kill_cmd_sub.add_parser(
        "container",
        help="Force kill one managed container by id.",
        description="Force kill a managed container immediately.",
        formatter_class=_HELP_FORMATTER,
    )
    kill_container.add_argument("container_id")

    return parser


def build_settings(args: argparse.Namespace) -> ExecutorSettings:
    """Resolve settings from the config file and global CLI flags.

    Example:
        ```python
        settings = build_settings(args)
        ```
    """
    settings = ExecutorSettings.from_file(args.config) if args.config else ExecutorSettings()
    overrides: dict[str, Any] = {}
    if args.backend is not None:
        overrides["backend"] = args.backend
    if args.image is not None:
        overrides["image"] = args.image
    if args.timeout_seconds is not None:
        overrides["timeout_seconds"] = args.timeout_seconds
    if overrides:
        settings = dataclasses.replace(settings, **overrides)
    if settings.backend == "local" and settings.interpreter == DEFAULT_INTERPRETER:
        settings = dataclasses.replace(settings, interpreter=sys.executable)
    return settings


def _print_containers(rows: list[Any]) -> None:
    """Render managed containers in a rich table.

    Example:
        ```python
        _print_containers(sandbox.list_containers())
        ```
    """
    table = Table(title="Managed Containers")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="magenta")
    table.add_column("Image")
    table.add_column("State")
    table.add_column("Status")
    for row in rows:
        table.add_row(row.id, row.name, row.image, row.state, row.status)
    _CONSOLE.print(table)


def _run_file(path: str, modules: str, settings: ExecutorSettings) -> int:
    """Run one script file and print its output or failure.

    Example:
        ```python
        code = _run_file("script.py", "requests", ExecutorSettings())
        ```
    """
    try:
        code = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        _ERR_CONSOLE.print(Panel.fit(f"Cannot read {path}: {exc}", style="bold red"))
        return 1
    result = run_code(
        code,
        sandbox=build_sandbox(settings),
        dependencies=parse_dependencies(modules),
        settings=settings,
    )
    if not result.ok:
        title = result.kind.value if result.kind else "error"
        _ERR_CONSOLE.print(Panel.fit(result.error or "Execution failed", title=title, border_style="red"))
        return 1
    sys.stdout.write(result.stdout)
    sys.stdout.flush()
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the `pyexec` CLI command handler.

    Example:
        ```python
        code = main(["run", "script.py"])
        ```
    """
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    configure_logging(args.log_level)
    try:
        settings = build_settings(args)
    except ValueError as exc:
        parser.error(str(exc))

    if args.command == "serve":
        transport = args.transport or ("sse" if args.sse else "stdio")
        server = build_server(build_sandbox(settings), settings, host=args.host, port=args.port)
        serve(server, transport=transport)
        return 0
    if args.command == "run":
        return _run_file(args.file, args.modules, settings)
    if args.command == "check":
        if settings.backend == "local":
            _CONSOLE.print(Panel.fit("Local backend needs no daemon.", style="bold yellow"))
            return 0
        ok, reason = DockerSandbox(docker_binary=settings.docker_binary).check()
        if not ok:
            _CONSOLE.print(Panel.fit(reason or "Docker is unavailable", style="bold red"))
            return 1
        _CONSOLE.print(Panel.fit(f"Docker is ready. Image: {settings.image}", style="bold green"))
        return 0
    if args.command == "list" and args.resource == "containers":
        _print_containers(DockerSandbox(docker_binary=settings.docker_binary).list_containers())
        return 0
    if args.command == "kill" and args.resource == "container":
        DockerSandbox(docker_binary=settings.docker_binary).kill_container(args.container_id)
        _CONSOLE.print(Panel.fit(f"Killed container {args.container_id}", style="bold yellow"))
        return 0

    parser.error("Unhandled command")
    return 2
