class HotloopError(Exception):
    """Base for conditions that end the process with a non-zero status."""

    exit_code = 1

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __repr__(self):
        return f"{type(self).__name__}({self.message!r})"


class StartupError(HotloopError):
    """Invalid invocation or environment detected before any loop starts."""


class WatcherUnavailable(StartupError):
    pass


class WatchRootLost(HotloopError):
    """The watched directory vanished and did not come back within the grace period."""
