"""Report service tests with in-memory collaborators."""
from __future__ import annotations

import asyncio
import dataclasses
import time

import pytest

from pixotchi_bot.alerting import AdminNotifier
from pixotchi_bot.burn_tracker import BurnRateTracker
from pixotchi_bot.errors import ActivityFetchError, NoReportError, SupplyFetchError
from pixotchi_bot.models import ItemConsumedEvent, MintEvent
from pixotchi_bot.pagination import PaginationStateStore
from pixotchi_bot.scheduler import ReportScheduler
from pixotchi_bot.services.reports import ReportService


class FakeBackend:
    def __init__(self):
        self.jobs = {}

    def add_job(self, func, trigger, **kwargs):
        self.jobs[kwargs["id"]] = kwargs

    def remove_job(self, job_id):
        del self.jobs[job_id]


class FakeActivityClient:
    def __init__(self, events=None, error=None):
        self.events = events or []
        self.error = error
        self.fetches = 0

    async def fetch_events(self):
        self.fetches += 1
        if self.error is not None:
            raise self.error
        return list(self.events)

    async def test_connection(self):
        return self.error is None


class FakeItemNames:
    def __init__(self):
        self.shop = {"1": "Fence"}
        self.garden = {"1": "Water"}
        self.refreshes = 0

    async def refresh(self):
        self.refreshes += 1


class RecordingSender:
    def __init__(self, fail_reports=False):
        self.reports = []
        self.texts = []
        self.fail_reports = fail_reports

    async def send_report(self, chat_id, text, *, page, total_pages):
        if self.fail_reports:
            raise RuntimeError("channel gone")
        self.reports.append((chat_id, text, page, total_pages))

    async def send_text(self, chat_id, text):
        self.texts.append((chat_id, text))


class Supply:
    def __init__(self, *values):
        self.values = list(values)

    async def __call__(self):
        value = self.values.pop(0) if len(self.values) > 1 else self.values[0]
        if isinstance(value, Exception):
            raise value
        return value


def _recent_mints(count):
    now = int(time.time())
    return [MintEvent(id=f"m{index:02d}", timestamp=str(now - index), nft_id=str(index)) for index in range(count)]


@pytest.fixture
def build(settings, bot_config):
    def _build(events=None, activity_error=None, supply=None, sender=None):
        dms = []

        async def send_direct(user_id, text):
            dms.append((user_id, text))

        service = ReportService(
            config=bot_config,
            settings=dataclasses.replace(settings, restart_delay_seconds=0),
            activity_client=FakeActivityClient(events, activity_error),
            item_names=FakeItemNames(),
            tracker=BurnRateTracker(supply or Supply(999_000.0), bot_config.seed_total_supply),
            pagination=PaginationStateStore(settings.page_size),
            sender=sender or RecordingSender(),
            notifier=AdminNotifier(bot_config.admin_user_ids, send_direct),
            activity_scheduler=ReportScheduler("activity", 180, backend=FakeBackend()),
            burn_scheduler=ReportScheduler("seed_burn", 60, backend=FakeBackend()),
        )
        return service, dms

    return _build


@pytest.mark.asyncio
async def test_manual_activity_sends_first_page_with_navigation(build):
    service, _ = build(events=_recent_mints(13))

    assert await service.run_manual_activity(42) is True

    chat_id, text, page, total_pages = service.sender.reports[0]
    assert (chat_id, page, total_pages) == (42, 1, 3)
    assert text.startswith("🪴 **Activity Report (3h)**")
    assert "Plant #0 was born!" in text
    assert service.pagination.get(42).interval_minutes == 180
    assert service.item_names.refreshes == 1


@pytest.mark.asyncio
async def test_consumptions_are_bundled_in_the_report(build):
    now = str(int(time.time()))
    events = [
        ItemConsumedEvent(id=f"c{index}", timestamp=now, nft_id="7", nft_name="Fern", item_id="1")
        for index in range(3)
    ]
    service, _ = build(events=events)

    await service.run_manual_activity(42)

    _, text, _, total_pages = service.sender.reports[0]
    assert total_pages == 1
    assert "Fern consumed 3x Water!" in text


@pytest.mark.asyncio
async def test_quiet_period_sends_plain_message(build):
    service, _ = build(events=[])

    assert await service.run_manual_activity(42) is True

    assert service.sender.reports == []
    assert "quiet" in service.sender.texts[0][1]


@pytest.mark.asyncio
async def test_manual_fetch_failure_sends_notice_without_alerting_admins(build):
    service, dms = build(activity_error=ActivityFetchError("Error fetching activity data"))

    assert await service.run_manual_activity(42) is False

    assert service.sender.texts == [
        (42, "❌ Error: Error fetching activity data\n\nPlease try again later or contact an admin.")
    ]
    assert dms == []


@pytest.mark.asyncio
async def test_scheduled_failure_notifies_channel_and_admins(build, bot_config):
    service, dms = build(activity_error=ActivityFetchError("indexer down"))

    await service.run_scheduled_activity(120)

    assert service.sender.texts[0][0] == bot_config.target_channel_id
    assert [user for user, _ in dms] == [111, 222]
    assert "indexer down" in dms[0][1]


@pytest.mark.asyncio
async def test_scheduled_activity_goes_to_target_channel(build, bot_config):
    service, dms = build(events=_recent_mints(2))

    await service.run_scheduled_activity(60)

    assert service.sender.reports[0][0] == bot_config.target_channel_id
    assert "(1h)" in service.sender.reports[0][1]
    assert dms == []


@pytest.mark.asyncio
async def test_send_failure_is_contained(build):
    service, dms = build(events=_recent_mints(2), sender=RecordingSender(fail_reports=True))

    await service.run_scheduled_activity(60)

    assert "Failed to send activity report" in service.sender.texts[0][1]
    assert "channel gone" in dms[0][1]


@pytest.mark.asyncio
async def test_show_page_renders_stored_report(build):
    service, _ = build(events=_recent_mints(13))
    await service.run_manual_activity(42)

    rendered = service.show_page(42, 3)

    assert (rendered.page, rendered.total_pages) == (3, 3)
    assert "Plant #12 was born!" in rendered.text
    with pytest.raises(NoReportError):
        service.show_page(7, 1)


@pytest.mark.asyncio
async def test_manual_burn_report(build):
    service, _ = build(supply=Supply(999_000.0))

    assert await service.run_manual_burn(42) is True

    chat_id, text = service.sender.texts[0]
    assert chat_id == 42
    assert "SEED Burn Report (1h)" in text
    assert "Total Burned: 19.00M SEED" in text


@pytest.mark.asyncio
async def test_scheduled_burn_failure_alerts_admins(build, bot_config):
    service, dms = build(supply=Supply(SupplyFetchError("Unable to fetch SEED supply from contract")))

    await service.run_scheduled_burn(60)

    chat_id, text = service.sender.texts[0]
    assert chat_id == bot_config.target_channel_id
    assert "Contract connection issue" in text
    assert len(dms) == 2
    assert "SEED burn report failed" in dms[0][1]


@pytest.mark.asyncio
async def test_change_burn_interval_reinitializes_baseline(build):
    service, _ = build(supply=Supply(1_000_000.0))

    interval = await service.change_burn_interval(3)

    assert interval == 5
    assert service.burn_scheduler.interval_minutes == 5
    assert service.tracker.baseline(5).last_supply == 1_000_000.0


@pytest.mark.asyncio
async def test_change_burn_interval_survives_baseline_failure(build, caplog):
    service, _ = build(supply=Supply(SupplyFetchError("down")))

    assert await service.change_burn_interval(90) == 90
    assert service.tracker.baseline(90) is None
    assert "Failed to initialize SEED burn baseline" in caplog.text


@pytest.mark.asyncio
async def test_start_initializes_baseline_and_schedulers(build):
    service, _ = build(supply=Supply(1_000_000.0))

    await service.start()

    assert service.activity_scheduler.running
    assert service.burn_scheduler.running
    assert service.tracker.baseline(60) is not None


@pytest.mark.asyncio
async def test_start_tolerates_baseline_failure(build):
    service, _ = build(supply=Supply(SupplyFetchError("down")))

    await service.start()

    assert service.activity_scheduler.running
    assert service.burn_scheduler.running


@pytest.mark.asyncio
async def test_forced_report_runs_through_scheduler_listener(build, bot_config):
    service, _ = build(events=_recent_mints(1))
    await service.start()

    service.force_activity()
    for _ in range(5):
        await asyncio.sleep(0)

    assert service.sender.reports[0][0] == bot_config.target_channel_id


@pytest.mark.asyncio
async def test_restart_leaves_both_schedulers_running(build):
    service, _ = build()
    await service.start()

    await service.restart_schedulers()

    assert service.activity_scheduler.running
    assert service.burn_scheduler.running


@pytest.mark.asyncio
async def test_status_and_connection_checks(build):
    service, _ = build(activity_error=ActivityFetchError("down"))

    status = service.status()
    results = await service.test_connections()

    assert "📊 **Bot Status**" in status
    assert "❌ Stopped" in status
    assert results == {"📊 Indexer": False, "🔥 SEED Contract": True}


def test_interval_controls(build):
    service, _ = build()

    assert service.change_activity_interval(2000) == 1440
    assert service.activity_scheduler.interval_minutes == 1440
