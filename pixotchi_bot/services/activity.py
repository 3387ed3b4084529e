"""GraphQL client for the Pixotchi activity indexer."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import aiohttp

from ..errors import ActivityFetchError
from ..models import ActivityEvent, event_from_payload

logger = logging.getLogger(__name__)


ACTIVITY_COLLECTIONS: Sequence[Tuple[str, Sequence[str]]] = (
    ("attacks", ("attacker", "winner", "loser", "attackerName", "winnerName", "loserName", "scoresWon")),
    ("killeds", ("nftId", "deadId", "killer", "winnerName", "loserName", "reward")),
    ("mints", ("nftId",)),
    ("playeds", ("nftId", "nftName", "gameName", "points", "timeExtension")),
    ("itemConsumeds", ("nftId", "nftName", "giver", "itemId")),
    ("shopItemPurchaseds", ("nftId", "nftName", "giver", "itemId")),
    ("landTransferEvents", ("from", "to", "tokenId", "blockHeight")),
    ("landMintedEvents", ("to", "tokenId", "mintPrice", "blockHeight")),
    ("landNameChangedEvents", ("tokenId", "name", "blockHeight")),
    ("villageUpgradedWithLeafEvents", ("landId", "buildingId", "upgradeCost", "xp", "blockHeight")),
    ("villageSpeedUpWithSeedEvents", ("landId", "buildingId", "speedUpCost", "xp", "blockHeight")),
    ("townUpgradedWithLeafEvents", ("landId", "buildingId", "upgradeCost", "xp", "blockHeight")),
    ("townSpeedUpWithSeedEvents", ("landId", "buildingId", "speedUpCost", "xp", "blockHeight")),
    ("questStartedEvents", ("landId", "farmerSlotId", "difficulty", "startBlock", "endBlock", "blockHeight")),
    ("questFinalizedEvents", ("landId", "farmerSlotId", "player", "rewardType", "amount", "blockHeight")),
    ("villageProductionClaimedEvents", ("landId", "buildingId", "blockHeight")),
)

COLLECTION_LIMIT = 100

SHOP_ITEMS_QUERY = "query GetShopItems { shopItems { id name price effectTime description category } }"
GARDEN_ITEMS_QUERY = (
    "query GetGardenItems { gardenItems { id name price points timeExtension description category } }"
)


def build_activity_query(limit: int = COLLECTION_LIMIT) -> str:
    """Build the query that fetches the newest ``limit`` rows of every collection."""

    blocks = []
    for collection, extra in ACTIVITY_COLLECTIONS:
        selection = " ".join(("__typename", "id", "timestamp", *extra))
        blocks.append(
            f'{collection}(orderBy: "timestamp", orderDirection: "desc", limit: {limit}) '
            f"{{ items {{ {selection} }} }}"
        )
    return "query GetAllActivity { " + " ".join(blocks) + " }"


def parse_activity_data(data: Mapping[str, Any]) -> List[ActivityEvent]:
    """Turn a GraphQL ``data`` block into typed events.

    Rows with an unknown ``__typename`` or an unexpected shape are skipped.
    """

    events: List[ActivityEvent] = []
    for collection, _ in ACTIVITY_COLLECTIONS:
        block = data.get(collection) or {}
        for item in block.get("items") or []:
            try:
                events.append(event_from_payload(item))
            except (TypeError, ValueError, AttributeError) as exc:
                logger.warning("Skipping %s row: %s", collection, exc)
    return events


class ActivityClient:
    """Fetches raw activity and item catalogues from the indexer."""

    def __init__(
        self,
        api_url: str,
        *,
        timeout: float = 15.0,
        garden_fallback: Optional[Mapping[str, str]] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.api_url = api_url
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._garden_fallback = dict(garden_fallback or {})
        self._session = session

    async def _post_query(self, query: str) -> Dict[str, Any]:
        payload = {"query": query}
        try:
            if self._session is not None:
                async with self._session.post(self.api_url, json=payload, timeout=self._timeout) as resp:
                    return await self._read_response(resp)
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.post(self.api_url, json=payload) as resp:
                    return await self._read_response(resp)
        except ActivityFetchError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise ActivityFetchError(f"GraphQL request failed: {exc}") from exc

    @staticmethod
    async def _read_response(resp: aiohttp.ClientResponse) -> Dict[str, Any]:
        if resp.status >= 400:
            raise ActivityFetchError(f"GraphQL request failed: HTTP {resp.status} {resp.reason}")
        body = await resp.json(content_type=None)
        if not isinstance(body, dict):
            raise ActivityFetchError("GraphQL response was not a JSON object")
        return body

    async def fetch_events(self) -> List[ActivityEvent]:
        body = await self._post_query(build_activity_query())
        if body.get("errors"):
            logger.error("GraphQL errors: %s", body["errors"])
            raise ActivityFetchError("Error fetching activity data")
        events = parse_activity_data(body.get("data") or {})
        logger.debug("Fetched %d raw activity events", len(events))
        return events

    async def _fetch_item_map(self, query: str, key: str) -> Dict[str, str]:
        body = await self._post_query(query)
        rows = (body.get("data") or {}).get(key) or []
        return {str(row["id"]): str(row.get("name") or "") for row in rows if "id" in row}

    async def fetch_shop_items(self) -> Dict[str, str]:
        try:
            return await self._fetch_item_map(SHOP_ITEMS_QUERY, "shopItems")
        except ActivityFetchError:
            logger.exception("Failed to fetch shop items")
            return {}

    async def fetch_garden_items(self) -> Dict[str, str]:
        try:
            items = await self._fetch_item_map(GARDEN_ITEMS_QUERY, "gardenItems")
        except ActivityFetchError:
            logger.exception("Failed to fetch garden items; using fallback names")
            return dict(self._garden_fallback)
        if not items:
            logger.info("Indexer returned no garden items; using fallback names")
            return dict(self._garden_fallback)
        return items

    async def test_connection(self) -> bool:
        try:
            await self.fetch_events()
        except ActivityFetchError:
            logger.exception("Indexer connection test failed")
            return False
        return True


class ItemNameCache:
    """Caches shop and garden item names for ``ttl_seconds``."""

    def __init__(
        self,
        client: ActivityClient,
        *,
        ttl_seconds: float = 300.0,
        clock=time.monotonic,
    ) -> None:
        self._client = client
        self._ttl = ttl_seconds
        self._clock = clock
        self._last_refresh: Optional[float] = None
        self.shop: Dict[str, str] = {}
        self.garden: Dict[str, str] = {}

    async def refresh(self) -> None:
        now = self._clock()
        if self._last_refresh is not None and now - self._last_refresh < self._ttl:
            return
        try:
            shop = await self._client.fetch_shop_items()
            garden = await self._client.fetch_garden_items()
        except Exception:
            logger.exception("Failed to update item maps; keeping cached names")
            return
        self.shop = shop
        self.garden = garden
        self._last_refresh = now
        logger.info("Updated item maps: %d shop items, %d garden items", len(shop), len(garden))
        if not garden:
            logger.warning("No garden items loaded; consumption will show as Item #ID")

    async def force_refresh(self) -> None:
        self._last_refresh = None
        await self.refresh()


__all__ = [
    "ACTIVITY_COLLECTIONS",
    "ActivityClient",
    "ItemNameCache",
    "build_activity_query",
    "parse_activity_data",
]
