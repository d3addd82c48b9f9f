"""
Run loop: keep a build-and-run command alive, restarting it whenever it exits.

Each iteration walks the same states:

    ANNOUNCE → EXECUTE → CLASSIFY → REACT → ANNOUNCE ...
                                       └→ PAUSED → (confirmation) → REACT

EXECUTE blocks for the whole life of the server process. The port reaper
ending that process is the normal way an iteration finishes; repeated
compile errors back off linearly and then park the loop in PAUSED until a
human confirms.
"""
import logging
import os
import shutil
import subprocess
import sys
import tempfile
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

import psutil

from errors import StartupError
from notify.base import Notification, Notifier, Urgency
from runner.classify import Outcome, classify, error_context

logger = logging.getLogger(__name__)

_ALIAS_PRELUDE = (
    "shopt -s expand_aliases\n"
    "[ -f ~/.bash_aliases ] && . ~/.bash_aliases\n"
)
_CLEAR_SCREEN = "\033[2J\033[H"
_TERMINATE_TIMEOUT = 5


class RunState(str, Enum):
    ANNOUNCE = "announce"
    EXECUTE = "execute"
    CLASSIFY = "classify"
    REACT = "react"
    PAUSED = "paused"


@dataclass
class RunSession:
    command: str
    working_directory: Path
    consecutive_errors: int = 0
    last_outcome: Outcome = Outcome.UNKNOWN
    last_build_successful: bool = False
    delay_seconds: float = 0.0
    state: RunState = RunState.ANNOUNCE

    @property
    def name(self) -> str:
        return self.working_directory.name


@dataclass(frozen=True)
class CapturedOutput:
    """Combined stdout/stderr of one execution, spooled to a scratch file."""
    path: Path
    returncode: Optional[int]

    def read(self) -> str:
        return self.path.read_text(encoding="utf-8", errors="replace")


def confirm_from_terminal() -> None:
    input("Press Enter to continue or Ctrl+C to exit...")


def _stop_process_tree(proc: subprocess.Popen) -> None:
    """Terminate the shell and everything it started, killing what outlives the timeout.

    The command runs under a shell, so the server is a grandchild; terminating
    only the shell would orphan it with the port still bound.
    """
    try:
        children = psutil.Process(proc.pid).children(recursive=True)
    except psutil.NoSuchProcess:
        children = []

    proc.terminate()
    for child in children:
        try:
            child.terminate()
        except psutil.NoSuchProcess:
            pass

    _, alive = psutil.wait_procs(children, timeout=_TERMINATE_TIMEOUT)
    for child in alive:
        try:
            child.kill()
        except psutil.NoSuchProcess:
            pass
    psutil.wait_procs(alive, timeout=_TERMINATE_TIMEOUT)

    try:
        proc.wait(timeout=_TERMINATE_TIMEOUT)
    except subprocess.TimeoutExpired:
        proc.kill()
        proc.wait()


class RunLoop:
    def __init__(
        self,
        command: str,
        working_directory: str | Path | None,
        settings,
        notifier: Notifier,
        *,
        sleep: Callable[[float], None] = time.sleep,
        confirm: Callable[[], None] = confirm_from_terminal,
        stream=None,
    ):
        self._command = command
        self._working_directory = working_directory
        self._settings = settings
        self._notifier = notifier
        self._sleep = sleep
        self._confirm = confirm
        self._stream = stream
        self._original_dir: Optional[str] = None
        self._proc: Optional[subprocess.Popen] = None
        self._scratch: Optional[Path] = None
        self._closed = False
        self.session: Optional[RunSession] = None

    # ── startup / shutdown ────────────────────────────────────────────────────

    def initialize(self) -> RunSession:
        """Validate the command and directory, then move into the directory."""
        if not self._command or not self._command.strip():
            raise StartupError("Command is required.")

        if self._working_directory:
            wd = Path(self._working_directory).expanduser()
            if not wd.is_dir():
                raise StartupError(f"Directory '{self._working_directory}' does not exist.")
            wd = wd.resolve()
        else:
            wd = Path.cwd()

        self._original_dir = os.getcwd()
        logger.info("Changing to directory: %s", wd)
        os.chdir(wd)
        self.session = RunSession(command=self._command, working_directory=wd)
        return self.session

    def run(self) -> None:
        """Loop forever. Cleanup runs however the loop is left."""
        try:
            if self.session is None:
                self.initialize()
            self._print_banner()
            while True:
                self.iterate()
        finally:
            self.close()

    def close(self) -> None:
        """Stop a running child, drop the scratch file, restore the original cwd."""
        if self._closed:
            return
        self._closed = True
        logger.info("Cleaning up and exiting...")

        proc, self._proc = self._proc, None
        if proc is not None and proc.poll() is None:
            _stop_process_tree(proc)

        if self._scratch is not None:
            self._scratch.unlink(missing_ok=True)
            self._scratch = None

        if self._original_dir is not None:
            try:
                os.chdir(self._original_dir)
            except OSError as e:
                logger.warning("Could not return to %s: %s", self._original_dir, e)

    def _print_banner(self) -> None:
        s = self.session
        print("==============================================")
        print("Continuous Build Loop Utility")
        print("==============================================")
        print(f"Directory: {s.working_directory}")
        print(f"Command: {s.command}")
        print(f"Delay between runs: {self._settings.delay_interval:g} seconds")
        print(f"Max consecutive errors: {self._settings.max_consecutive_errors}")
        if self._settings.log_file:
            print(f"Log file: {s.working_directory / self._settings.log_file}")
        print("==============================================")
        logger.info("Starting continuous build loop in directory: %s", s.working_directory)
        logger.info(
            "Will continuously run '%s' with a delay of %g seconds between runs.",
            s.command,
            self._settings.delay_interval,
        )

    # ── state machine ─────────────────────────────────────────────────────────

    def iterate(self) -> Outcome:
        """One full ANNOUNCE → EXECUTE → CLASSIFY → REACT pass."""
        s = self.session

        s.state = RunState.ANNOUNCE
        self._notify("Building", "Building and running the current project.", Urgency.LOW)

        s.state = RunState.EXECUTE
        captured = self.execute()

        s.state = RunState.CLASSIFY
        try:
            output = captured.read()
            outcome = self.classify(output, captured.returncode)
        finally:
            self._discard(captured)

        s.state = RunState.REACT
        self.react(outcome, output)
        s.state = RunState.ANNOUNCE
        return outcome

    def execute(self) -> CapturedOutput:
        """Run the command to completion, echoing and spooling its output."""
        s = self.session
        out = self._stream or sys.stdout
        if self._settings.clear_screen and out.isatty():
            out.write(_CLEAR_SCREEN)
            out.flush()

        logger.info("Running command in %s: %s", s.name, s.command)
        fd, name = tempfile.mkstemp(prefix="hotloop-", suffix=".out")
        self._scratch = Path(name)

        with os.fdopen(fd, "w", encoding="utf-8") as scratch:
            proc = subprocess.Popen(
                **self._popen_args(s.command),
                cwd=s.working_directory,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                bufsize=1,
            )
            self._proc = proc
            try:
                for line in proc.stdout:
                    out.write(line)
                    out.flush()
                    scratch.write(line)
            finally:
                proc.stdout.close()
            returncode = proc.wait()
            self._proc = None

        logger.debug("Command exited with status %s", returncode)
        return CapturedOutput(path=self._scratch, returncode=returncode)

    def classify(self, output: str, returncode: Optional[int] = None) -> Outcome:
        return classify(
            output,
            returncode,
            compile_error_marker=self._settings.compile_error_marker,
            build_failure_marker=self._settings.build_failure_marker,
            use_exit_status=self._settings.classify_by_exit_status,
        )

    def react(self, outcome: Outcome, output: str = "") -> float:
        """Update the session for ``outcome`` and wait. Returns the delay applied."""
        s = self.session
        s.last_outcome = outcome

        if outcome is Outcome.COMPILE_ERROR:
            return self._on_compile_error(output)

        if outcome is Outcome.SUCCESS:
            self._on_success()
        else:
            logger.warning("Command completed with potential issues in %s.", s.name)
            s.last_build_successful = False

        return self._wait(self._settings.delay_interval, "before next run")

    def pause(self) -> None:
        """Enter PAUSED and block until a human confirms, then resume."""
        s = self.session
        s.state = RunState.PAUSED
        self._notify(
            "Build Process Paused",
            f"Too many consecutive errors in {s.name}. Waiting for your input to continue.",
            Urgency.CRITICAL,
        )
        try:
            self._confirm()
        except EOFError:
            logger.error(
                "Standard input closed while paused in %s; cannot wait for confirmation. Stopping.",
                s.name,
            )
            raise
        self.resume()

    def resume(self) -> None:
        s = self.session
        if s.state is not RunState.PAUSED:
            raise RuntimeError(f"Cannot resume from state {s.state.value!r}")
        s.consecutive_errors = 0
        s.state = RunState.REACT
        logger.info("Continuing auto-run in %s. Error counter reset.", s.name)

    # ── outcome handlers ──────────────────────────────────────────────────────

    def _on_compile_error(self, output: str) -> float:
        s = self.session
        cfg = self._settings
        s.consecutive_errors += 1
        s.last_build_successful = False

        logger.error(
            "Build error detected in %s. Consecutive errors: %d/%d",
            s.name,
            s.consecutive_errors,
            cfg.max_consecutive_errors,
        )
        for line in error_context(output, cfg.compile_error_marker, cfg.error_context_lines):
            logger.error("  %s", line)

        self._notify("Build Error", "Compilation error detected. Check your code.", Urgency.NORMAL)

        if s.consecutive_errors >= cfg.max_consecutive_errors:
            logger.warning(
                "Maximum consecutive errors (%d) reached in %s. Pausing auto-run.",
                cfg.max_consecutive_errors,
                s.name,
            )
            self.pause()
            return self._wait(cfg.delay_interval, "before next run")

        return self._wait(cfg.delay_interval * s.consecutive_errors, "before next attempt")

    def _on_success(self) -> None:
        s = self.session
        if s.consecutive_errors > 0:
            logger.info("Build successful in %s. Resetting error counter.", s.name)
            self._notify("Build Successful", "Previous errors have been resolved.", Urgency.LOW)
            s.consecutive_errors = 0
        elif not s.last_build_successful:
            # First success after startup or after a non-success
            logger.info("Build successful in %s.", s.name)
        else:
            logger.info("Command completed successfully in %s!", s.name)
        s.last_build_successful = True

    # ── helpers ───────────────────────────────────────────────────────────────

    def _wait(self, seconds: float, reason: str) -> float:
        self.session.delay_seconds = seconds
        logger.info("Waiting %g seconds %s...", seconds, reason)
        self._sleep(seconds)
        return seconds

    def _notify(self, title: str, message: str, urgency: Urgency) -> None:
        s = self.session
        self._notifier.send(
            Notification(
                title=f"[{s.name}] {title}",
                message=f"{message}\nDirectory: {s.working_directory}",
                urgency=urgency,
                timeout_ms=self._settings.notification_timeout_ms,
            )
        )

    def _popen_args(self, command: str) -> dict:
        if self._settings.load_aliases:
            bash = shutil.which("bash")
            if bash is not None:
                # Aliases only expand on lines parsed after shopt, hence the newline prelude
                return {"args": [bash, "-c", _ALIAS_PRELUDE + command]}
            logger.debug("bash not found, running without alias expansion")
        return {"args": command, "shell": True}

    def _discard(self, captured: CapturedOutput) -> None:
        captured.path.unlink(missing_ok=True)
        if self._scratch == captured.path:
            self._scratch = None
