"""
Pure-function outcome classification for one command execution.

The watched server has no way to report "I was killed by the port reaper",
so the outcome is inferred from the exit status and from marker text in
the build tool's output. Precedence, first match wins:

  1. compile-error marker in output       → COMPILE_ERROR
  2. killed by SIGKILL/SIGTERM/SIGINT      → SUCCESS  (reaped, the expected case)
  3. build-failure marker in output       → SUCCESS  (the tool reports a kill as a failed build)
  4. anything else                        → TRANSIENT_FAILURE

A compile error always wins, even if the process was also killed.
"""
import signal
from enum import Enum
from typing import Optional


class Outcome(str, Enum):
    UNKNOWN = "unknown"
    SUCCESS = "success"
    TRANSIENT_FAILURE = "transient_failure"
    COMPILE_ERROR = "compile_error"


_KILL_SIGNALS = (signal.SIGKILL, signal.SIGTERM, signal.SIGINT)

# subprocess reports a direct kill as -N; a shell reports its killed child as 128+N
_KILLED_RETURNCODES = frozenset(
    [-int(s) for s in _KILL_SIGNALS] + [128 + int(s) for s in _KILL_SIGNALS]
)


def killed_by_signal(returncode: Optional[int]) -> bool:
    return returncode is not None and returncode in _KILLED_RETURNCODES


def classify(
    output: str,
    returncode: Optional[int] = None,
    *,
    compile_error_marker: str = "COMPILATION ERROR",
    build_failure_marker: str = "BUILD FAILURE",
    use_exit_status: bool = True,
) -> Outcome:
    if compile_error_marker and compile_error_marker in output:
        return Outcome.COMPILE_ERROR
    if use_exit_status and killed_by_signal(returncode):
        return Outcome.SUCCESS
    if build_failure_marker and build_failure_marker in output:
        return Outcome.SUCCESS
    return Outcome.TRANSIENT_FAILURE


def error_context(output: str, marker: str, max_lines: int = 6) -> list[str]:
    """Lines starting at the first ``marker`` hit, at most ``max_lines`` of them."""
    lines = output.splitlines()
    for i, line in enumerate(lines):
        if marker in line:
            return lines[i:i + max_lines]
    return []
