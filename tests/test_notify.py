import json

import httpx

import notify.desktop_notifier as desktop_mod
from notify import Notification, Urgency, get_notifier
from notify.base import CompositeNotifier, NullNotifier
from notify.desktop_notifier import DesktopNotifier
from notify.telegram_notifier import TelegramNotifier

import pytest


NOTE = Notification("[api] Build Error", "Check your code.", Urgency.NORMAL, 10000)


def test_disabled_notifications(make_settings):
    assert isinstance(get_notifier(make_settings(enable_notifications=False)), NullNotifier)


def test_desktop_only_by_default(make_settings):
    assert isinstance(get_notifier(make_settings()), DesktopNotifier)


def test_telegram_added_when_configured(make_settings):
    n = get_notifier(make_settings(telegram_bot_token="123:abc", telegram_chat_id="42"))
    assert isinstance(n, CompositeNotifier)


def test_half_configured_telegram_is_rejected(make_settings):
    with pytest.raises(ValueError):
        get_notifier(make_settings(telegram_bot_token="123:abc"))


def test_missing_notify_send_is_not_fatal(monkeypatch, caplog):
    monkeypatch.setattr(desktop_mod.shutil, "which", lambda name: None)
    assert DesktopNotifier().send(NOTE) is False
    assert "not found" in caplog.text


def test_notify_send_arguments(monkeypatch):
    calls = []

    class Done:
        returncode = 0
        stderr = ""

    def run(cmd, **kwargs):
        calls.append(cmd)
        return Done()

    monkeypatch.setattr(desktop_mod.shutil, "which", lambda name: "/usr/bin/notify-send")
    monkeypatch.setattr(desktop_mod.subprocess, "run", run)

    assert DesktopNotifier().send(NOTE) is True
    assert calls == [[
        "/usr/bin/notify-send",
        "--urgency=normal",
        "--expire-time=10000",
        "[api] Build Error",
        "Check your code.",
    ]]


def test_telegram_posts_message():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    n = TelegramNotifier("123:abc", "42", transport=httpx.MockTransport(handler))
    assert n.send(NOTE) is True

    assert seen[0].url.path == "/bot123:abc/sendMessage"
    body = json.loads(seen[0].content)
    assert body["chat_id"] == "42"
    assert "[api] Build Error" in body["text"]
    assert body["disable_notification"] is False


def test_telegram_failure_is_swallowed():
    def handler(request):
        return httpx.Response(500)

    n = TelegramNotifier("123:abc", "42", transport=httpx.MockTransport(handler))
    assert n.send(NOTE) is False


def test_composite_reports_any_delivery(notifier):
    assert CompositeNotifier([NullNotifier(), notifier]).send(NOTE) is True
    assert notifier.sent == [NOTE]


def test_telegram_bad_token_does_not_raise(caplog):
    n = TelegramNotifier("123:a\nbc", "42", transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    assert n.send(NOTE) is False
    assert "Telegram notification failed" in caplog.text
