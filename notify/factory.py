from notify.base import CompositeNotifier, Notifier, NullNotifier


def get_notifier(settings) -> Notifier:
    if not settings.enable_notifications:
        return NullNotifier()

    from notify.desktop_notifier import DesktopNotifier
    notifiers: list[Notifier] = [DesktopNotifier()]

    if settings.telegram_bot_token and settings.telegram_chat_id:
        from notify.telegram_notifier import TelegramNotifier
        notifiers.append(
            TelegramNotifier(
                bot_token=settings.telegram_bot_token,
                chat_id=settings.telegram_chat_id,
            )
        )
    elif settings.telegram_bot_token or settings.telegram_chat_id:
        raise ValueError(
            "Telegram notifications need both HOTLOOP_TELEGRAM_BOT_TOKEN "
            "and HOTLOOP_TELEGRAM_CHAT_ID."
        )

    if len(notifiers) == 1:
        return notifiers[0]
    return CompositeNotifier(notifiers)
