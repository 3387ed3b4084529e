"""Discord message rendering for activity and SEED burn reports."""
from __future__ import annotations

import time
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .config import Settings
from .models import (
    AttackEvent,
    BuildingUpgradeEvent,
    BundledConsumption,
    BurnData,
    EventKind,
    ItemConsumedEvent,
    KilledEvent,
    LandNameChangedEvent,
    ProcessedEvent,
    QuestFinalizedEvent,
    QuestStartedEvent,
    SchedulerStatus,
    VillageProductionClaimedEvent,
    event_time,
)

EVENT_EMOJIS: Dict[EventKind, str] = {
    EventKind.ATTACK: "⚔️",
    EventKind.KILLED: "💀",
    EventKind.MINT: "🌱",
    EventKind.PLAYED: "🎮",
    EventKind.ITEM_CONSUMED: "🪴",
    EventKind.SHOP_ITEM_PURCHASED: "🛒",
    EventKind.LAND_TRANSFER: "🏠",
    EventKind.LAND_MINTED: "🆕",
    EventKind.LAND_NAME_CHANGED: "✏️",
    EventKind.VILLAGE_UPGRADED: "⚒️",
    EventKind.VILLAGE_SPEED_UP: "⚡",
    EventKind.TOWN_UPGRADED: "⚒️",
    EventKind.TOWN_SPEED_UP: "⚡",
    EventKind.QUEST_STARTED: "⏳",
    EventKind.QUEST_FINALIZED: "✅",
    EventKind.VILLAGE_PRODUCTION_CLAIMED: "✅",
}

WEI = 10**18


def format_interval(minutes: int) -> str:
    """Render an interval as ``45m``, ``3h`` or ``1h 30m``."""

    if minutes < 60:
        return f"{minutes}m"
    hours, rest = divmod(minutes, 60)
    return f"{hours}h {rest}m" if rest else f"{hours}h"


def format_number(value: float, max_decimals: int = 2) -> str:
    text = f"{value:,.{max_decimals}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_large_number(value: float) -> str:
    if value >= 1_000_000:
        return f"{value / 1_000_000:.2f}M"
    if value >= 1_000:
        return f"{value / 1_000:.1f}K"
    return format_number(value)


def _to_float(raw: object) -> float:
    try:
        return float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0


def format_score(score: object) -> str:
    """Plant points are stored with 12 decimals."""

    return format_number(_to_float(score) / 1e12)


def format_time_ago(timestamp: int, now: Optional[float] = None) -> str:
    current = time.time() if now is None else now
    seconds = max(0, int(current) - int(timestamp))
    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"


def format_message(lines: Iterable[Optional[str]]) -> str:
    return "\n".join(line for line in lines if line is not None)


class ActivityFormatter:
    """Renders processed events into report lines.

    ``RENDERERS`` maps every :class:`EventKind` to a method name; a kind
    without an entry renders as an unknown event.
    """

    RENDERERS: Dict[EventKind, str] = {
        EventKind.ATTACK: "_attack",
        EventKind.KILLED: "_killed",
        EventKind.MINT: "_mint",
        EventKind.PLAYED: "_played",
        EventKind.ITEM_CONSUMED: "_item_consumed",
        EventKind.SHOP_ITEM_PURCHASED: "_shop_purchase",
        EventKind.LAND_TRANSFER: "_land_transfer",
        EventKind.LAND_MINTED: "_land_minted",
        EventKind.LAND_NAME_CHANGED: "_land_renamed",
        EventKind.VILLAGE_UPGRADED: "_building_upgrade",
        EventKind.VILLAGE_SPEED_UP: "_building_speed_up",
        EventKind.TOWN_UPGRADED: "_building_upgrade",
        EventKind.TOWN_SPEED_UP: "_building_speed_up",
        EventKind.QUEST_STARTED: "_quest_started",
        EventKind.QUEST_FINALIZED: "_quest_finalized",
        EventKind.VILLAGE_PRODUCTION_CLAIMED: "_production_claimed",
    }

    TOWN_KINDS = frozenset({EventKind.TOWN_UPGRADED, EventKind.TOWN_SPEED_UP})

    def __init__(
        self,
        settings: Settings,
        *,
        shop_items: Optional[Mapping[str, str]] = None,
        garden_items: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._settings = settings
        self.shop_items: Mapping[str, str] = shop_items or {}
        self.garden_items: Mapping[str, str] = garden_items or {}

    def building_name(self, building_id: int, *, town: bool) -> str:
        names = self._settings.town_buildings if town else self._settings.village_buildings
        return names.get(int(building_id), f"Building {building_id}")

    def quest_difficulty(self, difficulty: int) -> str:
        return self._settings.quest_difficulties.get(int(difficulty), f"Level {difficulty}")

    def quest_reward(self, reward_type: int, amount: str) -> str:
        name = self._settings.quest_rewards.get(int(reward_type), "rewards")
        value = _to_float(amount)
        if reward_type in (0, 1):
            return f"{value / WEI:.2f} {name}"
        if reward_type == 2:
            return f"{value / 3600:.1f}H TOD"
        if reward_type == 3:
            return f"{format_score(value)} {name}"
        if reward_type == 4:
            return f"{value / WEI:.0f} {name}"
        return f"{amount} {name}"

    def render_event(self, event: ProcessedEvent, *, now: Optional[float] = None) -> str:
        emoji = EVENT_EMOJIS.get(event.kind, "❓")
        method_name = self.RENDERERS.get(event.kind)
        text = getattr(self, method_name)(event) if method_name else "Unknown event occurred"
        try:
            age = format_time_ago(event_time(event), now)
        except ValueError:
            age = ""
        return f"{emoji} {text} {age}".rstrip()

    def _attack(self, event: AttackEvent) -> str:
        won = event.attacker == event.winner
        opponent = event.loser_name if won else event.winner_name
        outcome = "won" if won else "lost"
        return f"{event.attacker_name} attacked {opponent} and {outcome} {format_score(event.scores_won)} PTS!"

    def _killed(self, event: KilledEvent) -> str:
        winner = event.winner_name or f"Plant #{event.killer}"
        loser = event.loser_name or f"Plant #{event.dead_id}"
        return f"{winner} killed {loser} and claimed a star!"

    def _mint(self, event) -> str:
        return f"Plant #{event.nft_id} was born!"

    def _played(self, event) -> str:
        return f"{event.nft_name} played {event.game_name} and got {format_score(event.points)} PTS!"

    def _item_consumed(self, event) -> str:
        if isinstance(event, BundledConsumption):
            name, item_id, count = event.subject_name, event.item_id, event.count
        else:
            assert isinstance(event, ItemConsumedEvent)
            name, item_id, count = event.nft_name, event.item_id, 1
        item = self.garden_items.get(str(item_id)) or f"Item #{item_id}"
        quantity = f"{count}x " if count > 1 else ""
        return f"{name} consumed {quantity}{item}!"

    def _shop_purchase(self, event) -> str:
        item = self.shop_items.get(str(event.item_id)) or f"Item #{event.item_id}"
        return f"{event.nft_name} bought {item} from the shop!"

    def _land_transfer(self, event) -> str:
        return f"Land #{event.token_id} was transferred!"

    def _land_minted(self, event) -> str:
        return f"A new land, Land #{event.token_id}, was minted!"

    def _land_renamed(self, event: LandNameChangedEvent) -> str:
        return f'Land #{event.token_id} was renamed to "{event.name}"!'

    def _building_upgrade(self, event: BuildingUpgradeEvent) -> str:
        building = self.building_name(event.building_id, town=event.kind in self.TOWN_KINDS)
        return f"Land #{event.land_id} started upgrading {building}!"

    def _building_speed_up(self, event: BuildingUpgradeEvent) -> str:
        building = self.building_name(event.building_id, town=event.kind in self.TOWN_KINDS)
        return f"Land #{event.land_id} sped up {building} construction!"

    def _quest_started(self, event: QuestStartedEvent) -> str:
        return f"Land #{event.land_id} started a {self.quest_difficulty(event.difficulty)} quest!"

    def _quest_finalized(self, event: QuestFinalizedEvent) -> str:
        reward = self.quest_reward(int(event.reward_type), event.amount)
        return f"Land #{event.land_id} completed a quest and earned {reward}!"

    def _production_claimed(self, event: VillageProductionClaimedEvent) -> str:
        building = self.building_name(event.building_id, town=False)
        return f"Land #{event.land_id} claimed production from {building}!"

    def render_page(
        self,
        events: Sequence[ProcessedEvent],
        *,
        interval_minutes: int,
        now: Optional[float] = None,
    ) -> str:
        lines: List[str] = [activity_header(interval_minutes)]
        if events:
            lines.append("")
            lines.extend(self.render_event(event, now=now) for event in events)
        return format_message(lines)


def activity_header(interval_minutes: int) -> str:
    return f"🪴 **Activity Report ({format_interval(interval_minutes)})** 🪴"


def render_no_activity(interval_minutes: int) -> str:
    return format_message(
        [activity_header(interval_minutes), "", "😴 It's been quiet in the Pixotchi world!"]
    )


def render_error(message: str) -> str:
    return f"❌ Error: {message}\n\nPlease try again later or contact an admin."


def render_burn_report(burn: BurnData, total_supply: float) -> str:
    circulating = total_supply - burn.total_burned
    return format_message(
        [
            f"🔥 **SEED Burn Report ({format_interval(burn.period_minutes)})** 🔥",
            "",
            f"Burned: {format_large_number(burn.burned_in_period)} SEED",
            f"Total Burned: {format_large_number(burn.total_burned)} SEED",
            f"Circulating Supply: {format_large_number(circulating)} SEED",
        ]
    )


def render_burn_error(message: str, *, now: Optional[datetime] = None) -> str:
    stamp = (now or datetime.now()).strftime("%H:%M")
    return format_message(
        [
            "🔥 **SEED Burn Report**",
            f"Error • {stamp}",
            "",
            f"❌ {message}",
            "",
            "Contract connection issue - will retry next interval",
        ]
    )


def _status_lines(label: str, icon: str, status: SchedulerStatus) -> List[str]:
    lines = [
        f"**{label}:**",
        f"{icon} Status: {'✅ Running' if status.running else '❌ Stopped'}",
        f"⏰ Interval: {format_interval(status.interval_minutes)}",
    ]
    if status.next_fire_estimate is not None:
        lines.append(f"📅 Next run (approx.): {status.next_fire_estimate.strftime('%Y-%m-%d %H:%M UTC')}")
    return lines


def render_status(
    activity: SchedulerStatus,
    burn: SchedulerStatus,
    *,
    target_channel_id: int,
    shop_item_count: int,
    garden_item_count: int,
    api_url: str,
    contract_address: str,
) -> str:
    lines = ["📊 **Bot Status**", ""]
    lines += _status_lines("Activity Reports", "🔄", activity)
    lines.append("")
    lines += _status_lines("SEED Burn Reports", "🔥", burn)
    lines += [
        "",
        "**System:**",
        f"🎯 Target channel: {target_channel_id}",
        f"📦 Shop items: {shop_item_count}",
        f"📦 Garden items: {garden_item_count}",
        f"🌐 API: {api_url}",
        f"🔗 SEED Contract: {contract_address[:8]}...",
    ]
    return format_message(lines)


def render_connection_results(results: Mapping[str, bool]) -> str:
    lines = ["**Connection Test Results:**", ""]
    for name, ok in results.items():
        lines.append(f"{name}: {'✅ Connected' if ok else '❌ Failed'}")
    lines.append("")
    if all(results.values()):
        lines.append("✅ All connections successful!")
    else:
        lines.append("⚠️ Some connections failed. Check logs for details.")
    return format_message(lines)


__all__ = [
    "ActivityFormatter",
    "EVENT_EMOJIS",
    "activity_header",
    "format_interval",
    "format_large_number",
    "format_number",
    "format_score",
    "format_time_ago",
    "render_burn_error",
    "render_burn_report",
    "render_connection_results",
    "render_error",
    "render_no_activity",
    "render_status",
]
