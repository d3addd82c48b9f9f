"""Push notifications to a Telegram chat through the Bot API."""
import logging

import httpx

from notify.base import Notification, Notifier, Urgency

logger = logging.getLogger(__name__)

_API_BASE = "https://api.telegram.org"
_REQUEST_TIMEOUT = 10

_URGENCY_ICONS = {
    Urgency.LOW: "ℹ️",
    Urgency.NORMAL: "⚠️",
    Urgency.CRITICAL: "🛑",
}


class TelegramNotifier(Notifier):
    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        api_base: str = _API_BASE,
        transport: httpx.BaseTransport | None = None,
    ):
        self._url = f"{api_base}/bot{bot_token}/sendMessage"
        self._chat_id = chat_id
        self._transport = transport

    def send(self, notification: Notification) -> bool:
        icon = _URGENCY_ICONS.get(notification.urgency, "")
        text = f"{icon} {notification.title}\n\n{notification.message}".strip()
        try:
            with httpx.Client(timeout=_REQUEST_TIMEOUT, transport=self._transport) as client:
                r = client.post(
                    self._url,
                    json={
                        "chat_id": self._chat_id,
                        "text": text,
                        # Low urgency arrives silently on the phone
                        "disable_notification": notification.urgency == Urgency.LOW,
                    },
                )
                r.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("Telegram notification failed: %s", e)
            return False
        return True
