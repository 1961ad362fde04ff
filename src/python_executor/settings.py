from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

BACKENDS = {"docker", "local"}


def _default_settings_path() -> Path:
    """Return bundled default settings TOML path.

    Example:
        ```python
        path = _default_settings_path()
        ```
    """
    return Path(__file__).with_name("default_settings.toml")


def _read_settings_toml(path: Path) -> dict[str, Any]:
    """Read settings TOML and return the executor table.

    Example:
        ```python
        raw = _read_settings_toml(Path("/tmp/executor.toml"))
        ```
    """
    if not path.exists():
        return {
            "backend": "docker",
            "image": "mcr.microsoft.com/playwright/python:v1.49.1-noble",
            "interpreter": "python",
            "package_manager": "pip",
            "mount_point": "/app",
            "script_name": "script.py",
            "timeout_seconds": 300,
            "workspace_prefix": "python_repl",
            "docker_binary": "docker",
        }
    raw = tomllib.loads(path.read_text(encoding="utf-8"))
    settings_obj = raw.get("executor", raw)
    if not isinstance(settings_obj, dict):
        raise ValueError("Executor config must be a TOML table")
    return settings_obj


def _optional_str(value: Any, field_name: str) -> str | None:
    """Validate an optional string settings field.

    Example:
        ```python
        root = _optional_str("/var/tmp", "workspace_root")
        ```
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"'{field_name}' must be a string")
    return value


_DEFAULT_SETTINGS_RAW = _read_settings_toml(_default_settings_path())
DEFAULT_BACKEND = str(_DEFAULT_SETTINGS_RAW.get("backend", "docker"))
DEFAULT_IMAGE = str(
    _DEFAULT_SETTINGS_RAW.get("image", "mcr.microsoft.com/playwright/python:v1.49.1-noble")
)
DEFAULT_INTERPRETER = str(_DEFAULT_SETTINGS_RAW.get("interpreter", "python"))
DEFAULT_PACKAGE_MANAGER = str(_DEFAULT_SETTINGS_RAW.get("package_manager", "pip"))
DEFAULT_MOUNT_POINT = str(_DEFAULT_SETTINGS_RAW.get("mount_point", "/app"))
DEFAULT_SCRIPT_NAME = str(_DEFAULT_SETTINGS_RAW.get("script_name", "script.py"))
DEFAULT_TIMEOUT_SECONDS = int(_DEFAULT_SETTINGS_RAW.get("timeout_seconds", 300))
DEFAULT_WORKSPACE_PREFIX = str(_DEFAULT_SETTINGS_RAW.get("workspace_prefix", "python_repl"))
DEFAULT_DOCKER_BINARY = str(_DEFAULT_SETTINGS_RAW.get("docker_binary", "docker"))


@dataclass(slots=True)
class ExecutorSettings:
    """Engine configuration injected at startup.

    Example:
        ```python
        settings = ExecutorSettings(image="python:3.12-slim", timeout_seconds=30)
        ```
    """

    backend: str = DEFAULT_BACKEND
    image: str = DEFAULT_IMAGE
    interpreter: str = DEFAULT_INTERPRETER
    package_manager: str = DEFAULT_PACKAGE_MANAGER
    mount_point: str = DEFAULT_MOUNT_POINT
    script_name: str = DEFAULT_SCRIPT_NAME
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    workspace_root: str | None = None
    workspace_prefix: str = DEFAULT_WORKSPACE_PREFIX
    docker_binary: str = DEFAULT_DOCKER_BINARY
    config_path: str | None = None

    def __post_init__(self) -> None:
        """Validate field values after dataclass initialization.

        Example:
            ```python
            ExecutorSettings(backend="local")
            ```
        """
        if self.backend not in BACKENDS:
            raise ValueError("backend must be 'docker' or 'local'")
        for name in ("image", "interpreter", "package_manager", "script_name", "docker_binary"):
            if not str(getattr(self, name)).strip():
                raise ValueError(f"'{name}' must be a non-empty string")
        if not self.mount_point.startswith("/"):
            raise ValueError("mount_point must be an absolute container path")
        if "/" in self.script_name or "\\" in self.script_name:
            raise ValueError("script_name must be a bare file name")
        if self.timeout_seconds < 0:
            raise ValueError("timeout_seconds must be zero (no deadline) or positive")

    @property
    def deadline_seconds(self) -> int | None:
        """Return the run deadline, or None when runs are unbounded.

        Example:
            ```python
            assert ExecutorSettings(timeout_seconds=0).deadline_seconds is None
            ```
        """
        return self.timeout_seconds or None

    @classmethod
    def from_file(cls, config_path: str) -> "ExecutorSettings":
        """Create settings from a TOML file.

        Example:
            ```python
            settings = ExecutorSettings.from_file("/etc/python-executor.toml")
            ```
        """
        path = Path(config_path)
        if not path.exists():
            raise ValueError(f"Config file not found: {config_path}")
        raw = _read_settings_toml(path)
        return cls(
            backend=str(raw.get("backend", DEFAULT_BACKEND)),
            image=str(raw.get("image", DEFAULT_IMAGE)),
            interpreter=str(raw.get("interpreter", DEFAULT_INTERPRETER)),
            package_manager=str(raw.get("package_manager", DEFAULT_PACKAGE_MANAGER)),
            mount_point=str(raw.get("mount_point", DEFAULT_MOUNT_POINT)),
            script_name=str(raw.get("script_name", DEFAULT_SCRIPT_NAME)),
            timeout_seconds=int(raw.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)),
            workspace_root=_optional_str(raw.get("workspace_root"), "workspace_root"),
            workspace_prefix=str(raw.get("workspace_prefix", DEFAULT_WORKSPACE_PREFIX)),
            docker_binary=str(raw.get("docker_binary", DEFAULT_DOCKER_BINARY)),
            config_path=config_path,
        )
