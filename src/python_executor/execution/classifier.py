from __future__ import annotations

from .types import ExecutionResult, FailureKind, RawOutcome


def classify(raw: RawOutcome) -> ExecutionResult:
    """Map a raw process outcome onto a caller-facing result.

    Example:
        ```python
        result = classify(RawOutcome(stdout=b"hi\\n", returncode=0))
        ```
    """
    if raw.launch_error is not None:
        return ExecutionResult.failure(
            FailureKind.EXECUTION_ERROR,
            f"Execution failed: {raw.launch_error}",
        )
    if raw.cancelled:
        return ExecutionResult.failure(
            FailureKind.EXECUTION_ERROR,
            "Execution cancelled",
            stderr=raw.stderr,
            exit_code=raw.returncode,
            cancelled=True,
        )
    if raw.timed_out:
        return ExecutionResult.failure(
            FailureKind.EXECUTION_ERROR,
            f"Execution timed out after {raw.timeout_seconds}s",
            stderr=raw.stderr,
            exit_code=raw.returncode,
            timed_out=True,
        )
    if raw.returncode != 0:
        return ExecutionResult.failure(
            FailureKind.EXECUTION_ERROR,
            f"Python exited with code {raw.returncode}: {raw.stderr}",
            stderr=raw.stderr,
            exit_code=raw.returncode,
        )
    return ExecutionResult(
        ok=True,
        stdout=raw.stdout.decode("utf-8", errors="replace"),
        exit_code=0,
    )
