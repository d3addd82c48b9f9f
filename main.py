"""hotloop - hot-reload for long-running dev servers.

Run the two halves in separate terminals:

    hotloop run --path ~/src/api 'mvn clean spring-boot:run'
    hotloop watch 8080 ~/src/api/src
"""
import argparse
import logging
import signal
import sys
from pathlib import Path

from config import settings
from errors import HotloopError, StartupError
from notify import get_notifier
from reaper import PortReaper
from runner import RunLoop

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        format=_LOG_FORMAT,
        datefmt=_DATE_FORMAT,
        level=logging.DEBUG if verbose else logging.INFO,
        stream=sys.stdout,
    )
    # Keep httpx request lines out of the build log
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _add_log_file(path: Path) -> None:
    """Mirror log records into ``path``. A file that can't be opened is only a warning."""
    try:
        handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    except OSError as e:
        logger.warning("Cannot write log file %s: %s", path, e)
        return
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, _DATE_FORMAT))
    logging.getLogger().addHandler(handler)


def _exit_on_sigterm(signum, _frame) -> None:
    # Unwinds through the run loops' finally blocks like Ctrl+C does
    raise SystemExit(0)


def _positive_int(value: str) -> int:
    n = int(value)
    if n <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return n


def _non_negative_float(value: str) -> float:
    n = float(value)
    if n < 0:
        raise argparse.ArgumentTypeError(f"must not be negative, got {value}")
    return n


def _positive_float(value: str) -> float:
    n = float(value)
    if n <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {value}")
    return n


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hotloop",
        description="Hot-reload long-running dev servers: a restart loop plus a port-killing watcher.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="subcommand", required=True)

    run = sub.add_parser(
        "run",
        help="run a command continuously, restarting it whenever it exits",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "examples:\n"
            "  hotloop run 'mvn clean spring-boot:run'\n"
            "  hotloop run --path /path/to/project 'npm start'"
        ),
    )
    run.add_argument("-p", "--path", metavar="DIRECTORY",
                     help="directory the command runs in (default: current directory)")
    run.add_argument("--delay", type=_non_negative_float, dest="delay_interval",
                     help="seconds between runs")
    run.add_argument("--max-errors", type=_positive_int, dest="max_consecutive_errors",
                     help="consecutive compile errors before pausing")
    run.add_argument("--no-notify", action="store_false", dest="enable_notifications",
                     default=None, help="disable desktop notifications")
    run.add_argument("--no-clear", action="store_false", dest="clear_screen",
                     default=None, help="do not clear the terminal before each run")
    log = run.add_mutually_exclusive_group()
    log.add_argument("--log-file", metavar="NAME", help="log file name under the directory")
    log.add_argument("--no-log-file", action="store_const", const="", dest="log_file",
                     help="do not write a log file")
    run.add_argument("command", help="command to run continuously")
    run.set_defaults(handler=_cmd_run)

    watch = sub.add_parser(
        "watch",
        help="kill the process on PORT whenever DIRECTORY changes",
    )
    watch.add_argument("port", type=_positive_int)
    watch.add_argument("directory", nargs="?", default=".",
                       help="directory to watch recursively (default: current directory)")
    watch.add_argument("--timeout", type=_positive_float, dest="poll_timeout",
                       help="seconds without changes before logging a heartbeat")
    watch.set_defaults(handler=_cmd_watch)
    return parser


_OVERRIDABLE = (
    "delay_interval",
    "max_consecutive_errors",
    "enable_notifications",
    "clear_screen",
    "log_file",
    "poll_timeout",
)


def _apply_overrides(base, args: argparse.Namespace):
    update = {
        key: getattr(args, key)
        for key in _OVERRIDABLE
        if getattr(args, key, None) is not None
    }
    return base.model_copy(update=update) if update else base


def _cmd_run(args: argparse.Namespace, cfg) -> int:
    try:
        notifier = get_notifier(cfg)
    except ValueError as e:
        raise StartupError(str(e)) from e

    loop = RunLoop(args.command, args.path, cfg, notifier)
    loop.initialize()
    if cfg.log_file:
        _add_log_file(loop.session.working_directory / cfg.log_file)

    signal.signal(signal.SIGTERM, _exit_on_sigterm)
    try:
        loop.run()
    except KeyboardInterrupt:
        print()
    except EOFError:
        # stdin closed while paused; nobody can confirm, so stop instead of spinning
        return 1
    return 0


def _cmd_watch(args: argparse.Namespace, cfg) -> int:
    reaper = PortReaper(args.port, args.directory, cfg)
    reaper.initialize()

    signal.signal(signal.SIGTERM, _exit_on_sigterm)
    try:
        reaper.run()
    except KeyboardInterrupt:
        print()
        logger.info("Stopped watching.")
    return 0


def cli(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    cfg = _apply_overrides(settings, args)
    try:
        return args.handler(args, cfg)
    except HotloopError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return e.exit_code


def main() -> None:
    sys.exit(cli())


if __name__ == "__main__":
    main()
