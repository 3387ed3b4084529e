"""Admin notification tests."""
from __future__ import annotations

import pytest

from pixotchi_bot.alerting import AdminNotifier


@pytest.mark.asyncio
async def test_notify_messages_every_admin():
    sent = []

    async def send_direct(user_id, text):
        sent.append((user_id, text))

    notifier = AdminNotifier([1, 2, 3], send_direct)

    delivered = await notifier.notify("report failed")

    assert delivered == 3
    assert sent == [(1, "report failed"), (2, "report failed"), (3, "report failed")]


@pytest.mark.asyncio
async def test_failed_delivery_is_logged_and_skipped(caplog):
    sent = []

    async def send_direct(user_id, text):
        if user_id == 2:
            raise RuntimeError("DMs closed")
        sent.append(user_id)

    notifier = AdminNotifier([1, 2, 3], send_direct)

    delivered = await notifier.notify("report failed")

    assert delivered == 2
    assert sent == [1, 3]
    assert "Failed to notify admin 2" in caplog.text


@pytest.mark.asyncio
async def test_webhook_receives_payload(monkeypatch):
    posted = []

    def fake_post(self, payload, url):
        posted.append((url, payload.event, payload.message))
        return True

    monkeypatch.setattr(AdminNotifier, "_post_webhook", fake_post)
    notifier = AdminNotifier([], webhook_url="https://hooks.example/admin")

    delivered = await notifier.notify("burn report failed", event="burn_failed")

    assert delivered == 1
    assert posted == [("https://hooks.example/admin", "burn_failed", "burn report failed")]


@pytest.mark.asyncio
async def test_nothing_configured_only_logs(caplog):
    notifier = AdminNotifier([1])

    assert await notifier.notify("lost") == 0
    assert "not delivered anywhere" in caplog.text


def test_is_admin():
    notifier = AdminNotifier([10, 20])

    assert notifier.is_admin(10)
    assert not notifier.is_admin(30)
    assert not notifier.is_admin(None)
    assert notifier.admin_ids == [10, 20]
