import pytest

from config import Settings
from notify.base import Notification, Notifier


class RecordingNotifier(Notifier):
    def __init__(self):
        self.sent: list[Notification] = []

    def send(self, notification: Notification) -> bool:
        self.sent.append(notification)
        return True

    @property
    def titles(self) -> list[str]:
        return [n.title for n in self.sent]


class SleepRecorder:
    def __init__(self):
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def make_settings():
    def _make(**overrides):
        values = dict(
            delay_interval=5,
            max_consecutive_errors=3,
            clear_screen=False,
            load_aliases=False,
            enable_notifications=True,
            log_file="",
        )
        values.update(overrides)
        return Settings(_env_file=None, **values)
    return _make


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def sleeper():
    return SleepRecorder()
