"""Activity aggregation: window filtering, consumption bundling and ordering."""
from __future__ import annotations

import logging
import re
import time
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

from .models import (
    ActivityEvent,
    BundledConsumption,
    EventKind,
    ItemConsumedEvent,
    ProcessedEvent,
    event_time,
)

logger = logging.getLogger(__name__)


BUNDLED_KINDS: FrozenSet[EventKind] = frozenset({EventKind.ITEM_CONSUMED})
PASS_THROUGH_KINDS: FrozenSet[EventKind] = frozenset(
    {
        EventKind.ATTACK,
        EventKind.KILLED,
        EventKind.MINT,
        EventKind.PLAYED,
        EventKind.SHOP_ITEM_PURCHASED,
        EventKind.LAND_TRANSFER,
        EventKind.LAND_MINTED,
        EventKind.LAND_NAME_CHANGED,
        EventKind.VILLAGE_UPGRADED,
        EventKind.VILLAGE_SPEED_UP,
        EventKind.TOWN_UPGRADED,
        EventKind.TOWN_SPEED_UP,
        EventKind.QUEST_STARTED,
        EventKind.QUEST_FINALIZED,
        EventKind.VILLAGE_PRODUCTION_CLAIMED,
    }
)

BundleKey = Tuple[str, str, str]

_DIGITS = re.compile(r"(\d+)")


def id_order(event_id: str) -> Tuple[Union[str, int], ...]:
    """Sort key for event ids that compares digit runs numerically (``c2`` < ``c10``)."""

    parts = _DIGITS.split(str(event_id))
    return tuple(int(part) if index % 2 else part for index, part in enumerate(parts))


def _sort_key(item: Tuple[int, ProcessedEvent]) -> Tuple[int, str, Tuple[Union[str, int], ...], str]:
    ts, event = item
    return (-ts, event.kind.value, id_order(event.id), event.id)


def _as_bundle(event: ProcessedEvent) -> BundledConsumption:
    if isinstance(event, BundledConsumption):
        return event
    assert isinstance(event, ItemConsumedEvent)
    return BundledConsumption(
        id=event.id,
        timestamp=event.timestamp,
        subject_id=event.nft_id,
        item_id=event.item_id,
        count=1,
        subject_name=event.nft_name,
        giver=event.giver,
    )


def _merge(existing: BundledConsumption, incoming: BundledConsumption) -> BundledConsumption:
    first = min(existing, incoming, key=lambda bundle: (id_order(bundle.id), bundle.id))
    return BundledConsumption(
        id=first.id,
        timestamp=existing.timestamp,
        subject_id=existing.subject_id,
        item_id=existing.item_id,
        count=existing.count + incoming.count,
        subject_name=first.subject_name or existing.subject_name or incoming.subject_name,
        giver=first.giver or existing.giver or incoming.giver,
    )


def aggregate(
    events: Iterable[ProcessedEvent],
    window_minutes: int,
    *,
    now: Optional[float] = None,
) -> List[ProcessedEvent]:
    """Filter, bundle and order a batch of indexer events.

    Keeps events no older than ``window_minutes`` before ``now`` (unix
    seconds, defaults to the wall clock), merges item-consumption events that
    share (subject, timestamp, item) into one :class:`BundledConsumption`
    carrying the lowest event id, and returns everything newest first. Ties
    are ordered by kind and event id so repeated calls on the same input give
    the same order. Event ids compare with digit runs as numbers (see
    :func:`id_order`).

    Events with a non-numeric timestamp or an unhandled kind are dropped and
    logged; the rest of the batch is still processed. The input is never
    modified, and already-bundled entries keep their counts, so aggregating an
    aggregated list is a no-op.
    """

    current = time.time() if now is None else now
    cutoff = int(current) - int(window_minutes) * 60

    bundles: Dict[BundleKey, Tuple[int, BundledConsumption]] = {}
    passed: List[Tuple[int, ProcessedEvent]] = []
    dropped = 0

    for event in events:
        try:
            ts = event_time(event)
        except (TypeError, ValueError):
            dropped += 1
            logger.warning(
                "Dropping %s event %s with malformed timestamp %r",
                getattr(event, "kind", "unknown"),
                getattr(event, "id", "?"),
                getattr(event, "timestamp", None),
            )
            continue
        if ts < cutoff:
            continue

        kind = getattr(event, "kind", None)
        if kind in BUNDLED_KINDS:
            bundle = _as_bundle(event)
            key = bundle.bundle_key
            if key in bundles:
                bundles[key] = (ts, _merge(bundles[key][1], bundle))
            else:
                bundles[key] = (ts, bundle)
        elif kind in PASS_THROUGH_KINDS:
            passed.append((ts, event))
        else:
            dropped += 1
            logger.warning("Dropping event %s of unhandled kind %r", getattr(event, "id", "?"), kind)

    merged = passed + list(bundles.values())
    merged.sort(key=_sort_key)

    if dropped:
        logger.info("Aggregation dropped %d malformed or unhandled events", dropped)
    return [event for _, event in merged]


__all__ = ["BUNDLED_KINDS", "PASS_THROUGH_KINDS", "aggregate", "id_order"]
