"""Desktop notifications through the freedesktop ``notify-send`` binary."""
import logging
import shutil
import subprocess

from notify.base import Notification, Notifier

logger = logging.getLogger(__name__)

_NOTIFY_SEND = "notify-send"
_SEND_TIMEOUT = 5  # seconds; notify-send returns immediately on a healthy session


class DesktopNotifier(Notifier):
    def __init__(self, binary: str = _NOTIFY_SEND):
        self._binary = binary

    def send(self, notification: Notification) -> bool:
        path = shutil.which(self._binary)
        if path is None:
            logger.warning(
                "%s command not found. Cannot display desktop notifications.", self._binary
            )
            return False

        cmd = [
            path,
            f"--urgency={notification.urgency.value}",
            f"--expire-time={notification.timeout_ms}",
            notification.title,
            notification.message,
        ]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=_SEND_TIMEOUT)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning("Desktop notification failed: %s", e)
            return False

        if result.returncode != 0:
            logger.warning(
                "Desktop notification failed (exit %d): %s",
                result.returncode,
                result.stderr.strip(),
            )
            return False

        logger.info("Notification sent: %s - %s", notification.title, notification.message)
        return True
