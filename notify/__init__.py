from notify.base import Notification, Notifier, Urgency
from notify.factory import get_notifier

__all__ = ["Notification", "Notifier", "Urgency", "get_notifier"]
