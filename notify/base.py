from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class Urgency(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Notification:
    title: str
    message: str
    urgency: Urgency = Urgency.NORMAL
    timeout_ms: int = 10000


class Notifier(ABC):
    """Abstract base for all notification backends.

    Notifications are best effort: implementations log their own failures
    and never raise into the caller's control flow.
    """

    @abstractmethod
    def send(self, notification: Notification) -> bool:
        """Deliver a notification. Returns True if the backend accepted it."""
        ...


class NullNotifier(Notifier):
    def send(self, notification: Notification) -> bool:
        return False


class CompositeNotifier(Notifier):
    def __init__(self, notifiers: list[Notifier]):
        self._notifiers = list(notifiers)

    def send(self, notification: Notification) -> bool:
        delivered = False
        for notifier in self._notifiers:
            delivered = notifier.send(notification) or delivered
        return delivered
