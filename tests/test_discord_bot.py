"""Discord adapter tests that run without a gateway connection."""
from __future__ import annotations

from types import SimpleNamespace

import pytest

from pixotchi_bot.discord_bot import (
    DiscordReportSender,
    PageNavigator,
    build_bot,
    page_custom_id,
    parse_page_custom_id,
)


class FakeChannel:
    def __init__(self):
        self.sent = []

    async def send(self, content, **kwargs):
        self.sent.append((content, kwargs))


class FakeBot:
    def __init__(self, channel):
        self.channel = channel

    def get_channel(self, channel_id):
        return self.channel if channel_id == 999 else None

    async def fetch_channel(self, channel_id):
        raise LookupError(channel_id)


async def _ignore(interaction, page):
    return None


def test_page_ids_round_trip_and_reject_foreign_ids():
    assert parse_page_custom_id(page_custom_id(4)) == 4
    assert parse_page_custom_id("pixotchi:page:current") is None
    assert parse_page_custom_id("other:2") is None
    assert parse_page_custom_id(None) is None


@pytest.mark.asyncio
async def test_navigator_buttons_for_middle_page():
    view = PageNavigator(2, 3, _ignore)

    labels = [item.label for item in view.children]
    ids = [item.custom_id for item in view.children]

    assert labels == ["⬅️ Prev", "2/3", "Next ➡️"]
    assert ids[0] == page_custom_id(1)
    assert ids[2] == page_custom_id(3)
    assert view.children[1].disabled is True


@pytest.mark.asyncio
async def test_navigator_hides_buttons_at_the_edges():
    first = PageNavigator(1, 3, _ignore)
    last = PageNavigator(3, 3, _ignore)

    assert [item.label for item in first.children] == ["1/3", "Next ➡️"]
    assert [item.label for item in last.children] == ["⬅️ Prev", "3/3"]


@pytest.mark.asyncio
async def test_navigation_button_routes_to_handler():
    requested = []

    async def handler(interaction, page):
        requested.append((interaction, page))

    view = PageNavigator(1, 3, handler)
    next_button = view.children[-1]
    interaction = SimpleNamespace(channel_id=999)

    await next_button.callback(interaction)

    assert requested == [(interaction, 2)]
    assert view.is_finished()


@pytest.mark.asyncio
async def test_sender_attaches_navigation_only_for_multi_page_reports():
    channel = FakeChannel()
    sender = DiscordReportSender(FakeBot(channel), _ignore)

    await sender.send_report(999, "single", page=1, total_pages=1)
    await sender.send_report(999, "paged", page=1, total_pages=2)
    await sender.send_text(999, "x" * 3000)

    assert channel.sent[0] == ("single", {})
    assert isinstance(channel.sent[1][1]["view"], PageNavigator)
    assert len(channel.sent[2][0]) == 1900


@pytest.mark.asyncio
async def test_sender_propagates_unknown_channel():
    sender = DiscordReportSender(FakeBot(FakeChannel()), _ignore)

    with pytest.raises(LookupError):
        await sender.send_text(123, "hello")


@pytest.mark.asyncio
async def test_build_bot_registers_commands(bot_config, settings):
    bot = build_bot(bot_config, settings)

    names = {command.name for command in bot.tree.get_commands()}
    admin = bot.tree.get_command("admin")

    assert names == {"help", "activities", "seedburn", "admin"}
    assert {command.name for command in admin.commands} == {
        "help",
        "interval",
        "seed_interval",
        "status",
        "test",
        "force",
        "seed_force",
        "restart",
    }
    assert bot.report_service.activity_scheduler.interval_minutes == 180


class FakeMessage:
    id = 42

    def __init__(self):
        self.edits = []

    async def edit(self, **kwargs):
        self.edits.append(kwargs)


@pytest.mark.asyncio
async def test_navigator_buttons_expire_and_are_stripped():
    view = PageNavigator(1, 3, _ignore, timeout=120)
    view.message = FakeMessage()

    await view.on_timeout()

    assert view.timeout == 120
    assert view.message.edits == [{"view": None}]


@pytest.mark.asyncio
async def test_sender_uses_configured_button_lifetime():
    sender = DiscordReportSender(FakeBot(FakeChannel()), _ignore, view_timeout=60)

    view = sender.page_view(1, 2)

    assert view.timeout == 60
    assert sender.page_view(1, 1) is None


@pytest.mark.asyncio
async def test_build_bot_reads_button_lifetime_from_settings(bot_config, settings):
    bot = build_bot(bot_config, settings)

    assert settings.page_buttons_timeout_seconds == 900.0
    assert bot.report_service.sender.page_view(1, 2).timeout == 900.0
