from __future__ import annotations

import threading
from typing import Protocol

from .types import RawOutcome, SandboxCommand


class Sandbox(Protocol):
    def run(
        self,
        command: SandboxCommand,
        *,
        timeout_seconds: int | None = None,
        cancel_event: threading.Event | None = None,
    ) -> RawOutcome:
        """Run one composed command and return its raw process outcome.

        Example:
            ```python
            raw = sandbox.run(build_command(ws, [], ExecutorSettings()), timeout_seconds=30)
            ```
        """
        ...
