"""Core data models for the Pixotchi report bot."""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Type, Union

MIN_INTERVAL_MINUTES = 5
MAX_INTERVAL_MINUTES = 1440


def clamp_interval(minutes: int) -> int:
    """Clamp a report interval to the supported [5, 1440] minute range."""

    return max(MIN_INTERVAL_MINUTES, min(MAX_INTERVAL_MINUTES, int(minutes)))


class EventKind(str, Enum):
    """Indexer event kinds; values match the GraphQL ``__typename``."""

    ATTACK = "Attack"
    KILLED = "Killed"
    MINT = "Mint"
    PLAYED = "Played"
    ITEM_CONSUMED = "ItemConsumed"
    SHOP_ITEM_PURCHASED = "ShopItemPurchased"
    LAND_TRANSFER = "LandTransferEvent"
    LAND_MINTED = "LandMintedEvent"
    LAND_NAME_CHANGED = "LandNameChangedEvent"
    VILLAGE_UPGRADED = "VillageUpgradedWithLeafEvent"
    VILLAGE_SPEED_UP = "VillageSpeedUpWithSeedEvent"
    TOWN_UPGRADED = "TownUpgradedWithLeafEvent"
    TOWN_SPEED_UP = "TownSpeedUpWithSeedEvent"
    QUEST_STARTED = "QuestStartedEvent"
    QUEST_FINALIZED = "QuestFinalizedEvent"
    VILLAGE_PRODUCTION_CLAIMED = "VillageProductionClaimedEvent"


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


@dataclass(frozen=True)
class ActivityEvent:
    """Base class for raw indexer events.

    ``timestamp`` is kept as the numeric string the indexer returns; use
    :func:`event_time` to read it as unix seconds.
    """

    KIND: ClassVar[EventKind]

    id: str
    timestamp: str

    @property
    def kind(self) -> EventKind:
        return self.KIND

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ActivityEvent":
        values: Dict[str, Any] = {}
        for item in fields(cls):
            alias = item.metadata.get("alias", _camel(item.name))
            if alias in payload and payload[alias] is not None:
                values[item.name] = payload[alias]
        values["id"] = str(values.get("id", ""))
        values["timestamp"] = str(values.get("timestamp", ""))
        return cls(**values)


@dataclass(frozen=True)
class AttackEvent(ActivityEvent):
    KIND: ClassVar[EventKind] = EventKind.ATTACK

    attacker: str = ""
    winner: str = ""
    loser: str = ""
    scores_won: str = "0"
    attacker_name: str = ""
    winner_name: str = ""
    loser_name: str = ""


@dataclass(frozen=True)
class KilledEvent(ActivityEvent):
    KIND: ClassVar[EventKind] = EventKind.KILLED

    nft_id: str = ""
    dead_id: str = ""
    killer: str = ""
    winner_name: str = ""
    loser_name: str = ""
    reward: str = "0"


@dataclass(frozen=True)
class MintEvent(ActivityEvent):
    KIND: ClassVar[EventKind] = EventKind.MINT

    nft_id: str = ""


@dataclass(frozen=True)
class PlayedEvent(ActivityEvent):
    KIND: ClassVar[EventKind] = EventKind.PLAYED

    nft_id: str = ""
    nft_name: str = ""
    points: str = "0"
    time_extension: str = "0"
    game_name: str = ""


@dataclass(frozen=True)
class ItemConsumedEvent(ActivityEvent):
    KIND: ClassVar[EventKind] = EventKind.ITEM_CONSUMED

    nft_id: str = ""
    nft_name: str = ""
    giver: str = ""
    item_id: str = ""


@dataclass(frozen=True)
class ShopItemPurchasedEvent(ActivityEvent):
    KIND: ClassVar[EventKind] = EventKind.SHOP_ITEM_PURCHASED

    nft_id: str = ""
    nft_name: str = ""
    giver: str = ""
    item_id: str = ""


@dataclass(frozen=True)
class LandTransferEvent(ActivityEvent):
    KIND: ClassVar[EventKind] = EventKind.LAND_TRANSFER

    from_address: str = field(default="", metadata={"alias": "from"})
    to: str = ""
    token_id: str = ""
    block_height: str = ""


@dataclass(frozen=True)
class LandMintedEvent(ActivityEvent):
    KIND: ClassVar[EventKind] = EventKind.LAND_MINTED

    to: str = ""
    token_id: str = ""
    mint_price: str = "0"
    block_height: str = ""


@dataclass(frozen=True)
class LandNameChangedEvent(ActivityEvent):
    KIND: ClassVar[EventKind] = EventKind.LAND_NAME_CHANGED

    token_id: str = ""
    name: str = ""
    block_height: str = ""


@dataclass(frozen=True)
class BuildingUpgradeEvent(ActivityEvent):
    """Shared shape of village/town upgrade and speed-up events."""

    KIND: ClassVar[EventKind]

    land_id: str = ""
    building_id: int = 0
    xp: str = "0"
    block_height: str = ""


@dataclass(frozen=True)
class VillageUpgradedWithLeafEvent(BuildingUpgradeEvent):
    KIND: ClassVar[EventKind] = EventKind.VILLAGE_UPGRADED

    upgrade_cost: str = "0"


@dataclass(frozen=True)
class VillageSpeedUpWithSeedEvent(BuildingUpgradeEvent):
    KIND: ClassVar[EventKind] = EventKind.VILLAGE_SPEED_UP

    speed_up_cost: str = "0"


@dataclass(frozen=True)
class TownUpgradedWithLeafEvent(BuildingUpgradeEvent):
    KIND: ClassVar[EventKind] = EventKind.TOWN_UPGRADED

    upgrade_cost: str = "0"


@dataclass(frozen=True)
class TownSpeedUpWithSeedEvent(BuildingUpgradeEvent):
    KIND: ClassVar[EventKind] = EventKind.TOWN_SPEED_UP

    speed_up_cost: str = "0"


@dataclass(frozen=True)
class QuestStartedEvent(ActivityEvent):
    KIND: ClassVar[EventKind] = EventKind.QUEST_STARTED

    land_id: str = ""
    farmer_slot_id: str = ""
    difficulty: int = 0
    start_block: str = ""
    end_block: str = ""
    block_height: str = ""


@dataclass(frozen=True)
class QuestFinalizedEvent(ActivityEvent):
    KIND: ClassVar[EventKind] = EventKind.QUEST_FINALIZED

    land_id: str = ""
    farmer_slot_id: str = ""
    player: str = ""
    reward_type: int = 0
    amount: str = "0"
    block_height: str = ""


@dataclass(frozen=True)
class VillageProductionClaimedEvent(ActivityEvent):
    KIND: ClassVar[EventKind] = EventKind.VILLAGE_PRODUCTION_CLAIMED

    land_id: str = ""
    building_id: int = 0
    block_height: str = ""


EVENT_TYPES: Dict[EventKind, Type[ActivityEvent]] = {
    cls.KIND: cls
    for cls in (
        AttackEvent,
        KilledEvent,
        MintEvent,
        PlayedEvent,
        ItemConsumedEvent,
        ShopItemPurchasedEvent,
        LandTransferEvent,
        LandMintedEvent,
        LandNameChangedEvent,
        VillageUpgradedWithLeafEvent,
        VillageSpeedUpWithSeedEvent,
        TownUpgradedWithLeafEvent,
        TownSpeedUpWithSeedEvent,
        QuestStartedEvent,
        QuestFinalizedEvent,
        VillageProductionClaimedEvent,
    )
}


def event_from_payload(payload: Mapping[str, Any]) -> ActivityEvent:
    """Build a typed event from one indexer item.

    Raises ``ValueError`` for an unknown ``__typename``.
    """

    typename = payload.get("__typename")
    try:
        kind = EventKind(typename)
    except ValueError:
        raise ValueError(f"Unknown activity event type: {typename!r}") from None
    return EVENT_TYPES[kind].from_payload(payload)


@dataclass(frozen=True)
class BundledConsumption:
    """Item-consumption events merged by (subject, timestamp, item)."""

    KIND: ClassVar[EventKind] = EventKind.ITEM_CONSUMED

    id: str
    timestamp: str
    subject_id: str
    item_id: str
    count: int = 1
    subject_name: str = ""
    giver: str = ""

    @property
    def kind(self) -> EventKind:
        return self.KIND

    @property
    def bundle_key(self) -> Tuple[str, str, str]:
        return (self.subject_id, self.timestamp, self.item_id)


ProcessedEvent = Union[ActivityEvent, BundledConsumption]


def event_time(event: ProcessedEvent) -> int:
    """Return the event timestamp as unix seconds; ``ValueError`` if malformed.

    Numeric text with a fractional part (``"1699999995.0"``) is truncated.
    """

    text = str(event.timestamp).strip()
    try:
        return int(Decimal(text))
    except (InvalidOperation, OverflowError) as exc:
        raise ValueError(f"malformed timestamp {text!r}") from exc


@dataclass
class IntervalBaseline:
    interval_minutes: int
    last_supply: float
    last_checked_at: datetime


@dataclass(frozen=True)
class BurnData:
    current_supply: float
    total_burned: float
    burned_in_period: float
    period_minutes: int
    timestamp: datetime


@dataclass
class ChatPaginationState:
    chat_id: int
    page: int
    total_pages: int
    frozen_sequence: Tuple[ProcessedEvent, ...]
    interval_minutes: int
    last_updated_at: datetime


@dataclass(frozen=True)
class SchedulerStatus:
    name: str
    running: bool
    interval_minutes: int
    next_fire_estimate: Optional[datetime] = None


__all__ = [
    "ActivityEvent",
    "AttackEvent",
    "BuildingUpgradeEvent",
    "BundledConsumption",
    "BurnData",
    "ChatPaginationState",
    "EVENT_TYPES",
    "EventKind",
    "IntervalBaseline",
    "ItemConsumedEvent",
    "KilledEvent",
    "LandMintedEvent",
    "LandNameChangedEvent",
    "LandTransferEvent",
    "MAX_INTERVAL_MINUTES",
    "MIN_INTERVAL_MINUTES",
    "MintEvent",
    "PlayedEvent",
    "ProcessedEvent",
    "QuestFinalizedEvent",
    "QuestStartedEvent",
    "SchedulerStatus",
    "ShopItemPurchasedEvent",
    "TownSpeedUpWithSeedEvent",
    "TownUpgradedWithLeafEvent",
    "VillageProductionClaimedEvent",
    "VillageSpeedUpWithSeedEvent",
    "VillageUpgradedWithLeafEvent",
    "clamp_interval",
    "event_from_payload",
    "event_time",
]
