"""
Port reaper: kill whatever listens on a port whenever a directory tree changes.

Paired with the run loop, this is what produces the hot-reload effect: the
loop's command blocks while its server holds the port, the reaper kills that
server after a source change, and the loop starts the command again.
"""
import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator, Optional

from errors import StartupError, WatcherUnavailable, WatchRootLost
from reaper.ports import find_port_owner, kill_process

logger = logging.getLogger(__name__)


class CycleResult(str, Enum):
    CHANGED = "changed"
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass(frozen=True)
class WatchSession:
    watch_root: Path
    target_port: int
    poll_timeout: float


class PortReaper:
    def __init__(
        self,
        port: int,
        directory: str | Path,
        settings,
        *,
        watch: Optional[Callable[..., Iterator[set]]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._port = port
        self._directory = directory
        self._settings = settings
        self._watch = watch
        self._sleep = sleep
        self._changes: Optional[Iterator[set]] = None
        self.session: Optional[WatchSession] = None

    # ── startup ───────────────────────────────────────────────────────────────

    def initialize(self) -> WatchSession:
        """Validate the port, the watch root and the watch facility."""
        if self._port <= 0:
            raise StartupError(f"Port must be a positive integer, got {self._port}.")

        root = Path(self._directory).expanduser()
        if not root.is_dir():
            raise StartupError(f"Directory '{self._directory}' does not exist.")

        if self._watch is None:
            try:
                from watchfiles import watch
            except ImportError as e:
                raise WatcherUnavailable(
                    "watchfiles not found. Please install it: pip install watchfiles"
                ) from e
            self._watch = watch

        self.session = WatchSession(
            watch_root=root.resolve(),
            target_port=self._port,
            poll_timeout=self._settings.poll_timeout,
        )
        return self.session

    def _print_banner(self) -> None:
        s = self.session
        print(f"Watching directory: {s.watch_root} for file changes...")
        print(f"Will kill process running on port: {s.target_port} (if owned by you) after each change.")
        print(f"Waiting {self._settings.reap_cooldown:g} seconds between executions...")

    # ── watch loop ────────────────────────────────────────────────────────────

    def run(self) -> None:
        """Watch forever. Only returns by raising (WatchRootLost, KeyboardInterrupt)."""
        if self.session is None:
            self.initialize()
        self._print_banner()
        try:
            while True:
                self.watch_cycle()
                self.check_watch_root()
        finally:
            self._reset_watch()

    def watch_cycle(self) -> CycleResult:
        """Wait for one batch of filesystem events or one poll timeout."""
        s = self.session
        try:
            if self._changes is None:
                self._changes = self._watch(
                    str(s.watch_root),
                    watch_filter=None,
                    recursive=True,
                    rust_timeout=int(s.poll_timeout * 1000),
                    yield_on_timeout=True,
                )
            changes = next(self._changes)
        except StopIteration:
            logger.warning("Watcher stopped unexpectedly. Restarting watch...")
            return self._recover()
        except (OSError, RuntimeError) as e:
            logger.warning("Watcher encountered an issue (%s). Restarting watch...", e)
            return self._recover()

        if not changes:
            logger.info(
                "No file changes detected in the last %g seconds. Continuing to watch...",
                s.poll_timeout,
            )
            return CycleResult.TIMEOUT

        logger.debug("Changes: %s", sorted(path for _, path in changes))
        self.reap_port(s.target_port)

        # Drop whatever piles up during the cooldown; the next cycle starts clean
        self._reset_watch()
        self._sleep(self._settings.reap_cooldown)
        return CycleResult.CHANGED

    def reap_port(self, port: int) -> Optional[int]:
        """Kill the process listening on ``port``. Returns the killed pid, if any."""
        pid = find_port_owner(port)
        if pid is None:
            logger.info("Detected change: no process found on port %d.", port)
            return None

        logger.info("Detected change: killing process %d on port %d...", pid, port)
        if not kill_process(pid):
            logger.info("Process %d on port %d was already gone.", pid, port)
            return None
        return pid

    def check_watch_root(self) -> None:
        root = self.session.watch_root
        if root.is_dir():
            return

        logger.error("Watch directory no longer exists. Waiting for it to become available...")
        self._reset_watch()
        self._sleep(self._settings.watch_root_grace)
        if not root.is_dir():
            raise WatchRootLost(f"Watch directory {root} is permanently unavailable.")
        logger.info("Watch directory %s is back.", root)

    # ── helpers ───────────────────────────────────────────────────────────────

    def _recover(self) -> CycleResult:
        self._reset_watch()
        self._sleep(self._settings.watch_error_backoff)
        return CycleResult.ERROR

    def _reset_watch(self) -> None:
        if self._changes is not None:
            close = getattr(self._changes, "close", None)
            if close is not None:
                close()
            self._changes = None
