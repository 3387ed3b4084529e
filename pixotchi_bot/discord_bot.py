"""Discord bot entry point for the Pixotchi report bot."""

import atexit
import logging
import os
from typing import Awaitable, Callable, Iterable, Optional

import discord
from discord import app_commands
from discord.ext import commands

from .alerting import AdminNotifier
from .burn_tracker import BurnRateTracker
from .command_tracking import track_command
from .config import BotConfig, Settings, get_settings
from .errors import NoReportError
from .formatters import format_interval, render_connection_results
from .pagination import PaginationStateStore
from .scheduler import ReportScheduler, create_backend
from .services.activity import ActivityClient, ItemNameCache
from .services.reports import ReportService
from .services.supply import SupplyReader

logger = logging.getLogger(__name__)

PAGE_ID_PREFIX = "pixotchi:page:"
PageHandler = Callable[[discord.Interaction, int], Awaitable[None]]

_MAX_MESSAGE_LENGTH = 1900


def _clamp_text(text: str) -> str:
    """Ensure Discord-compatible message length."""

    if len(text) <= _MAX_MESSAGE_LENGTH:
        return text
    return text[: _MAX_MESSAGE_LENGTH - 1].rstrip() + "…"


def _format_message(lines: Iterable[str]) -> str:
    return _clamp_text("\n".join(line for line in lines if line is not None))


def page_custom_id(page: int) -> str:
    return f"{PAGE_ID_PREFIX}{page}"


def parse_page_custom_id(custom_id: Optional[str]) -> Optional[int]:
    """Return the page encoded in a navigation button id, or ``None``."""

    if not custom_id or not custom_id.startswith(PAGE_ID_PREFIX):
        return None
    try:
        return int(custom_id[len(PAGE_ID_PREFIX):])
    except ValueError:
        return None


class PageNavigator(discord.ui.View):
    """Prev / ``n/N`` / Next buttons under a paginated activity report.

    The buttons expire after ``timeout`` seconds and are then stripped from
    the message. A view stops once one of its buttons is used; navigation
    attaches a fresh view to the edited message.
    """

    def __init__(
        self,
        page: int,
        total_pages: int,
        on_navigate: PageHandler,
        *,
        timeout: Optional[float] = 900.0,
    ) -> None:
        super().__init__(timeout=timeout)
        self._on_navigate = on_navigate
        self.message: Optional[discord.Message] = None
        if page > 1:
            self._add_nav_button("⬅️ Prev", page - 1)
        self.add_item(
            discord.ui.Button(
                label=f"{page}/{total_pages}",
                style=discord.ButtonStyle.secondary,
                custom_id=f"{PAGE_ID_PREFIX}current",
                disabled=True,
            )
        )
        if page < total_pages:
            self._add_nav_button("Next ➡️", page + 1)

    def _add_nav_button(self, label: str, target_page: int) -> None:
        button = discord.ui.Button(
            label=label,
            style=discord.ButtonStyle.primary,
            custom_id=page_custom_id(target_page),
        )

        async def _callback(interaction: discord.Interaction) -> None:
            page = parse_page_custom_id(button.custom_id)
            if page is not None:
                await self._on_navigate(interaction, page)
                self.stop()

        button.callback = _callback
        self.add_item(button)

    async def on_timeout(self) -> None:
        if self.message is None:
            return
        try:
            await self.message.edit(view=None)
        except discord.HTTPException as exc:
            logger.warning("Failed to remove expired page buttons from message %s: %s", self.message.id, exc)


class DiscordReportSender:
    """Delivers reports to Discord channels and admin DMs."""

    def __init__(
        self,
        bot: commands.Bot,
        on_navigate: PageHandler,
        *,
        view_timeout: Optional[float] = 900.0,
    ) -> None:
        self._bot = bot
        self._on_navigate = on_navigate
        self._view_timeout = view_timeout

    async def _channel(self, chat_id: int):
        channel = self._bot.get_channel(chat_id)
        if channel is None:
            channel = await self._bot.fetch_channel(chat_id)
        return channel

    def page_view(self, page: int, total_pages: int) -> Optional[PageNavigator]:
        if total_pages <= 1:
            return None
        return PageNavigator(page, total_pages, self._on_navigate, timeout=self._view_timeout)

    async def send_report(self, chat_id: int, text: str, *, page: int, total_pages: int) -> None:
        channel = await self._channel(chat_id)
        view = self.page_view(page, total_pages)
        if view is None:
            await channel.send(_clamp_text(text))
        else:
            view.message = await channel.send(_clamp_text(text), view=view)

    async def send_text(self, chat_id: int, text: str) -> None:
        channel = await self._channel(chat_id)
        await channel.send(_clamp_text(text))

    async def send_direct(self, user_id: int, text: str) -> None:
        user = self._bot.get_user(user_id)
        if user is None:
            user = await self._bot.fetch_user(user_id)
        await user.send(_clamp_text(text))


def welcome_text() -> str:
    return _format_message(
        [
            "🔥 **Pixotchi Activity Bot**",
            "",
            "I monitor the Pixotchi game and SEED token burns, reporting at regular intervals.",
            "",
            "**Available Commands:**",
            "• `/activities` - Show current activity report",
            "• `/seedburn` - Show current SEED burn report",
            "• `/help` - Show this welcome message",
            "",
            "Admins can use `/admin help` for additional commands.",
        ]
    )


def admin_help_text(service: ReportService) -> str:
    activity = service.activity_scheduler.get_status()
    burn = service.burn_scheduler.get_status()
    return _format_message(
        [
            "🔧 **Admin Commands**",
            "",
            "**Activity Reports:**",
            "`/admin interval <minutes>` - Set activity interval (5-1440 minutes)",
            "`/admin force` - Force immediate activity report",
            "",
            "**SEED Burn Reports:**",
            "`/admin seed_interval <minutes>` - Set SEED burn interval (5-1440 minutes)",
            "`/admin seed_force` - Force immediate SEED burn report",
            "",
            "**System:**",
            "`/admin status` - Show bot status and settings",
            "`/admin test` - Test all connections",
            "`/admin restart` - Restart both schedulers",
            "",
            "📊 **Current Settings**",
            f"• Target channel: {service.config.target_channel_id}",
            f"• Activity interval: {format_interval(activity.interval_minutes)}",
            f"• SEED burn interval: {format_interval(burn.interval_minutes)}",
            f"• Status: {'Running' if activity.running else 'Stopped'}",
        ]
    )


def build_bot(
    config: BotConfig,
    settings: Optional[Settings] = None,
    intents: Optional[discord.Intents] = None,
) -> commands.Bot:
    settings = settings or get_settings()
    intents = intents or discord.Intents.default()
    bot = commands.Bot(command_prefix="/", intents=intents)

    backend = create_backend()
    activity_scheduler = ReportScheduler("activity", config.default_interval_minutes, backend=backend)
    burn_scheduler = ReportScheduler("seed_burn", config.default_seed_burn_interval_minutes, backend=backend)
    activity_client = ActivityClient(
        config.ponder_api_url,
        timeout=settings.http_timeout_seconds,
        garden_fallback=settings.garden_item_fallback,
    )
    supply_reader = SupplyReader(
        config.seed_contract_address,
        config.rpc_urls,
        timeout=settings.http_timeout_seconds,
    )
    tracker = BurnRateTracker(supply_reader.read_total_supply, config.seed_total_supply)

    async def _navigate(interaction: discord.Interaction, page: int) -> None:
        chat_id = interaction.channel_id
        try:
            rendered = service.show_page(chat_id, page)
        except NoReportError:
            await interaction.response.send_message(
                "❌ No activity data available. Please generate a new report.",
                ephemeral=True,
            )
            return
        view = sender.page_view(rendered.page, rendered.total_pages)
        if view is not None:
            view.message = interaction.message
        await interaction.response.edit_message(content=_clamp_text(rendered.text), view=view)

    sender = DiscordReportSender(bot, _navigate, view_timeout=settings.page_buttons_timeout_seconds)
    notifier = AdminNotifier(
        config.admin_user_ids,
        sender.send_direct,
        webhook_url=config.admin_webhook_url,
    )
    service = ReportService(
        config=config,
        settings=settings,
        activity_client=activity_client,
        item_names=ItemNameCache(activity_client, ttl_seconds=settings.item_cache_seconds),
        tracker=tracker,
        pagination=PaginationStateStore(settings.page_size, max_chats=config.pagination_max_chats),
        sender=sender,
        notifier=notifier,
        activity_scheduler=activity_scheduler,
        burn_scheduler=burn_scheduler,
    )
    setattr(bot, "report_service", service)
    started = False

    def _shutdown_scheduler() -> None:  # pragma: no cover - process shutdown hook
        service.stop()
        if backend.running:
            backend.shutdown(wait=False)

    atexit.register(_shutdown_scheduler)

    def _is_admin(interaction: discord.Interaction) -> bool:
        return notifier.is_admin(interaction.user.id)

    def _allowed_here(interaction: discord.Interaction) -> bool:
        return interaction.channel_id == config.target_channel_id or _is_admin(interaction)

    async def _deny_admin(interaction: discord.Interaction) -> bool:
        if _is_admin(interaction):
            return False
        await interaction.response.send_message(
            "❌ Access denied. Admin privileges required.",
            ephemeral=True,
        )
        return True

    async def _deny_public(interaction: discord.Interaction) -> bool:
        if _allowed_here(interaction):
            return False
        await interaction.response.send_message(
            "❌ This command can only be used in the configured channel or by admins.",
            ephemeral=True,
        )
        return True

    @bot.event
    async def on_ready() -> None:
        nonlocal started
        logger.info("Pixotchi report bot connected as %s", bot.user)
        try:
            synced = await bot.tree.sync()
            logger.info("Synced %d commands", len(synced))
        except Exception as exc:  # pragma: no cover - logging only
            logger.exception("Failed to sync commands: %s", exc)
        if started:
            return
        if bot.get_channel(config.target_channel_id) is None:
            logger.warning(
                "Cannot see target channel %s; make sure the bot has been added to it",
                config.target_channel_id,
            )
        if not backend.running:
            backend.start()
        await service.start()
        started = True
        logger.info("Pixotchi report bot is running")

    @app_commands.command(name="help", description="Show what this bot does")
    @track_command
    async def help_command(interaction: discord.Interaction) -> None:
        await interaction.response.send_message(welcome_text())

    @app_commands.command(name="activities", description="Show the current activity report")
    @track_command
    async def activities(interaction: discord.Interaction) -> None:
        if await _deny_public(interaction):
            return
        await interaction.response.send_message("🔄 Generating activity report...", ephemeral=True)
        await service.run_manual_activity(interaction.channel_id)

    @app_commands.command(name="seedburn", description="Show the current SEED burn report")
    @track_command
    async def seedburn(interaction: discord.Interaction) -> None:
        if await _deny_public(interaction):
            return
        await interaction.response.send_message("🔄 Generating SEED burn report...", ephemeral=True)
        await service.run_manual_burn(interaction.channel_id)

    admin = app_commands.Group(
        name="admin",
        description="Administrative commands for the report bot",
    )

    @admin.command(name="help", description="List admin commands and current settings")
    @track_command
    async def admin_help(interaction: discord.Interaction) -> None:
        if await _deny_admin(interaction):
            return
        await interaction.response.send_message(admin_help_text(service), ephemeral=True)

    @admin.command(name="interval", description="Set the activity report interval")
    @track_command
    @app_commands.describe(minutes="Interval in minutes (5-1440)")
    async def admin_interval(
        interaction: discord.Interaction,
        minutes: app_commands.Range[int, 5, 1440],
    ) -> None:
        if await _deny_admin(interaction):
            return
        interval = service.change_activity_interval(minutes)
        logger.info("Admin %s changed activity interval to %dm", interaction.user.id, interval)
        await interaction.response.send_message(
            f"✅ Reporting interval updated to {format_interval(interval)}."
        )

    @admin.command(name="seed_interval", description="Set the SEED burn report interval")
    @track_command
    @app_commands.describe(minutes="Interval in minutes (5-1440)")
    async def admin_seed_interval(
        interaction: discord.Interaction,
        minutes: app_commands.Range[int, 5, 1440],
    ) -> None:
        if await _deny_admin(interaction):
            return
        await interaction.response.defer(thinking=True)
        interval = await service.change_burn_interval(minutes)
        logger.info("Admin %s changed SEED burn interval to %dm", interaction.user.id, interval)
        await interaction.followup.send(
            f"✅ SEED burn reporting interval updated to {format_interval(interval)}."
        )

    @admin.command(name="status", description="Show scheduler and system status")
    @track_command
    async def admin_status(interaction: discord.Interaction) -> None:
        if await _deny_admin(interaction):
            return
        await interaction.response.send_message(_clamp_text(service.status()), ephemeral=True)

    @admin.command(name="test", description="Test indexer and SEED contract connections")
    @track_command
    async def admin_test(interaction: discord.Interaction) -> None:
        if await _deny_admin(interaction):
            return
        await interaction.response.defer(thinking=True, ephemeral=True)
        results = await service.test_connections()
        await interaction.followup.send(render_connection_results(results), ephemeral=True)

    @admin.command(name="force", description="Force an immediate activity report")
    @track_command
    async def admin_force(interaction: discord.Interaction) -> None:
        if await _deny_admin(interaction):
            return
        await interaction.response.send_message("🔄 Generating immediate activity report...", ephemeral=True)
        service.force_activity()
        logger.info("Admin %s forced an activity report", interaction.user.id)

    @admin.command(name="seed_force", description="Force an immediate SEED burn report")
    @track_command
    async def admin_seed_force(interaction: discord.Interaction) -> None:
        if await _deny_admin(interaction):
            return
        await interaction.response.send_message("🔄 Generating immediate SEED burn report...", ephemeral=True)
        service.force_burn()
        logger.info("Admin %s forced a SEED burn report", interaction.user.id)

    @admin.command(name="restart", description="Restart both report schedulers")
    @track_command
    async def admin_restart(interaction: discord.Interaction) -> None:
        if await _deny_admin(interaction):
            return
        await interaction.response.send_message("🔄 Restarting both schedulers...", ephemeral=True)
        await service.restart_schedulers()
        await interaction.followup.send("✅ Both schedulers restarted successfully!", ephemeral=True)
        logger.info("Admin %s restarted both schedulers", interaction.user.id)

    bot.tree.add_command(help_command)
    bot.tree.add_command(activities)
    bot.tree.add_command(seedburn)
    bot.tree.add_command(admin)
    return bot


def main() -> None:
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = BotConfig.from_env()
    bot = build_bot(config)
    bot.run(config.token, log_handler=None)


__all__ = [
    "DiscordReportSender",
    "PageNavigator",
    "build_bot",
    "main",
    "page_custom_id",
    "parse_page_custom_id",
]
