"""Report orchestration: builds, sends and pages activity and burn reports."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from ..aggregator import aggregate
from ..alerting import AdminNotifier
from ..burn_tracker import BurnRateTracker
from ..config import BotConfig, Settings
from ..errors import ReportFetchError
from ..formatters import (
    ActivityFormatter,
    render_burn_error,
    render_burn_report,
    render_error,
    render_no_activity,
    render_status,
)
from ..pagination import PaginationStateStore
from ..scheduler import ReportScheduler
from .activity import ActivityClient, ItemNameCache

logger = logging.getLogger(__name__)


class ReportSender(Protocol):
    """Outbound message delivery used by :class:`ReportService`."""

    async def send_report(self, chat_id: int, text: str, *, page: int, total_pages: int) -> None:
        ...

    async def send_text(self, chat_id: int, text: str) -> None:
        ...


@dataclass(frozen=True)
class RenderedPage:
    text: str
    page: int
    total_pages: int


class ReportService:
    """Generates reports for scheduled ticks, forced triggers and commands.

    Fetch failures stop at this layer: the chat gets an error notice,
    scheduled failures also go to the admins, and the schedulers keep
    running.
    """

    def __init__(
        self,
        *,
        config: BotConfig,
        settings: Settings,
        activity_client: ActivityClient,
        item_names: ItemNameCache,
        tracker: BurnRateTracker,
        pagination: PaginationStateStore,
        sender: ReportSender,
        notifier: AdminNotifier,
        activity_scheduler: ReportScheduler,
        burn_scheduler: ReportScheduler,
    ) -> None:
        self.config = config
        self.settings = settings
        self.activity_client = activity_client
        self.item_names = item_names
        self.tracker = tracker
        self.pagination = pagination
        self.sender = sender
        self.notifier = notifier
        self.activity_scheduler = activity_scheduler
        self.burn_scheduler = burn_scheduler
        self._wired = False

    def _formatter(self) -> ActivityFormatter:
        return ActivityFormatter(
            self.settings,
            shop_items=self.item_names.shop,
            garden_items=self.item_names.garden,
        )

    async def _send_notice(self, chat_id: int, text: str) -> None:
        try:
            await self.sender.send_text(chat_id, text)
        except Exception:
            logger.exception("Failed to send error notice to chat %s", chat_id)

    # Activity reports -----------------------------------------------------

    async def _activity_report(self, chat_id: int, interval_minutes: int) -> Optional[str]:
        """Build and send one activity report; return an error description on failure."""

        try:
            await self.item_names.refresh()
            raw_events = await self.activity_client.fetch_events()
            events = aggregate(raw_events, interval_minutes)
            logger.info("Found %d activities in the last %d minutes", len(events), interval_minutes)
            state = self.pagination.record(chat_id, events, interval_minutes)
            if not events:
                await self.sender.send_text(chat_id, render_no_activity(interval_minutes))
            else:
                page = self.pagination.navigate(chat_id, 1)
                text = self._formatter().render_page(page.items, interval_minutes=interval_minutes)
                await self.sender.send_report(chat_id, text, page=1, total_pages=state.total_pages)
        except ReportFetchError as exc:
            logger.error("Failed to fetch activity for chat %s: %s", chat_id, exc)
            await self._send_notice(chat_id, render_error(str(exc)))
            return str(exc)
        except Exception as exc:
            logger.exception("Failed to send activity report to chat %s", chat_id)
            await self._send_notice(chat_id, render_error("Failed to send activity report"))
            return str(exc) or type(exc).__name__
        logger.info("Activity report sent to chat %s", chat_id)
        return None

    async def run_scheduled_activity(self, interval_minutes: int) -> None:
        logger.info("Generating scheduled activity report (%dm interval)", interval_minutes)
        error = await self._activity_report(self.config.target_channel_id, interval_minutes)
        if error is not None:
            await self.notifier.notify(f"❌ Scheduled activity report failed: {error}")

    async def run_manual_activity(self, chat_id: int) -> bool:
        logger.info("Manual activity report requested for chat %s", chat_id)
        window = self.settings.manual_activity_window_minutes
        return await self._activity_report(chat_id, window) is None

    def show_page(self, chat_id: int, page: int) -> RenderedPage:
        """Render ``page`` of the chat's stored report; raises ``NoReportError``."""

        view = self.pagination.navigate(chat_id, page)
        text = self._formatter().render_page(view.items, interval_minutes=view.interval_minutes)
        return RenderedPage(text=text, page=view.page, total_pages=view.total_pages)

    # SEED burn reports ----------------------------------------------------

    async def _burn_report(self, chat_id: int, interval_minutes: int) -> Optional[str]:
        try:
            burn = await self.tracker.get_burn_data(interval_minutes)
            logger.info(
                "SEED burn data: %.2f burned in %dm, total %.2f",
                burn.burned_in_period,
                interval_minutes,
                burn.total_burned,
            )
            await self.sender.send_text(chat_id, render_burn_report(burn, self.tracker.total_supply))
        except ReportFetchError as exc:
            logger.error("Failed to fetch SEED burn data for chat %s: %s", chat_id, exc)
            await self._send_notice(chat_id, render_burn_error(str(exc)))
            return str(exc)
        except Exception as exc:
            logger.exception("Failed to send SEED burn report to chat %s", chat_id)
            await self._send_notice(chat_id, render_burn_error("Failed to send SEED burn report"))
            return str(exc) or type(exc).__name__
        logger.info("SEED burn report sent to chat %s", chat_id)
        return None

    async def run_scheduled_burn(self, interval_minutes: int) -> None:
        logger.info("Generating scheduled SEED burn report (%dm interval)", interval_minutes)
        error = await self._burn_report(self.config.target_channel_id, interval_minutes)
        if error is not None:
            await self.notifier.notify(f"❌ Scheduled SEED burn report failed: {error}")

    async def run_manual_burn(self, chat_id: int) -> bool:
        logger.info("Manual SEED burn report requested for chat %s", chat_id)
        window = self.settings.manual_burn_window_minutes
        return await self._burn_report(chat_id, window) is None

    async def initialize_burn_baseline(self, interval_minutes: int) -> bool:
        try:
            await self.tracker.initialize_baseline(interval_minutes)
        except ReportFetchError as exc:
            logger.warning(
                "Failed to initialize SEED burn baseline for %dm interval; first burn report may be inaccurate: %s",
                interval_minutes,
                exc,
            )
            return False
        return True

    # Scheduler control ----------------------------------------------------

    def change_activity_interval(self, minutes: int) -> int:
        return self.activity_scheduler.set_interval(minutes)

    async def change_burn_interval(self, minutes: int) -> int:
        interval = self.burn_scheduler.set_interval(minutes)
        await self.initialize_burn_baseline(interval)
        return interval

    def force_activity(self) -> None:
        self.activity_scheduler.force_fire()

    def force_burn(self) -> None:
        self.burn_scheduler.force_fire()

    async def restart_schedulers(self) -> None:
        self.activity_scheduler.stop()
        self.burn_scheduler.stop()
        await asyncio.sleep(self.settings.restart_delay_seconds)
        self.activity_scheduler.start()
        self.burn_scheduler.start()
        logger.info("Both report schedulers restarted")

    async def start(self) -> None:
        if not self._wired:
            self.activity_scheduler.add_listener(self.run_scheduled_activity)
            self.burn_scheduler.add_listener(self.run_scheduled_burn)
            self._wired = True
        await self.initialize_burn_baseline(self.burn_scheduler.interval_minutes)
        self.activity_scheduler.start()
        self.burn_scheduler.start()

    def stop(self) -> None:
        self.activity_scheduler.stop()
        self.burn_scheduler.stop()

    # Diagnostics ----------------------------------------------------------

    def status(self) -> str:
        return render_status(
            self.activity_scheduler.get_status(),
            self.burn_scheduler.get_status(),
            target_channel_id=self.config.target_channel_id,
            shop_item_count=len(self.item_names.shop),
            garden_item_count=len(self.item_names.garden),
            api_url=self.config.ponder_api_url,
            contract_address=self.config.seed_contract_address,
        )

    async def test_connections(self) -> Dict[str, bool]:
        indexer, contract = await asyncio.gather(
            self.activity_client.test_connection(),
            self.tracker.test_connectivity(),
        )
        logger.info("Connection test: indexer=%s seed_contract=%s", indexer, contract)
        return {"📊 Indexer": indexer, "🔥 SEED Contract": contract}


__all__ = ["RenderedPage", "ReportSender", "ReportService"]
