"""JSON-RPC reader for the SEED token total supply."""
from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from ..errors import SupplyFetchError

logger = logging.getLogger(__name__)

TOTAL_SUPPLY_SELECTOR = "0x18160ddd"
SEED_DECIMALS = 18


def decode_uint256(result: Any, decimals: int = SEED_DECIMALS) -> float:
    """Convert an ``eth_call`` hex result into a token amount."""

    if not isinstance(result, str) or not result.startswith("0x") or len(result) <= 2:
        raise ValueError(f"Unexpected eth_call result: {result!r}")
    raw = int(result, 16)
    return float(Decimal(raw) / (Decimal(10) ** decimals))


class SupplyReader:
    """Reads ``totalSupply()`` from the SEED contract.

    Endpoints are tried in order; the first one that answers wins.
    """

    def __init__(
        self,
        contract_address: str,
        rpc_urls: Sequence[str],
        *,
        timeout: float = 15.0,
        decimals: int = SEED_DECIMALS,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        urls = [url for url in rpc_urls if url]
        if not urls:
            raise ValueError("At least one RPC URL is required")
        self.contract_address = contract_address
        self.rpc_urls: List[str] = urls
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._decimals = decimals
        self._session = session
        self._request_id = 1

    def _payload(self) -> Dict[str, Any]:
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": "eth_call",
            "params": [{"to": self.contract_address, "data": TOTAL_SUPPLY_SELECTOR}, "latest"],
        }
        self._request_id += 1
        return payload

    async def _call(self, session: aiohttp.ClientSession, url: str) -> Any:
        async with session.post(url, json=self._payload(), timeout=self._timeout) as resp:
            if resp.status >= 400:
                raise SupplyFetchError(f"RPC {url} returned HTTP {resp.status}")
            data = await resp.json(content_type=None)
        if not isinstance(data, dict):
            raise SupplyFetchError(f"RPC {url} returned a non-object response")
        if data.get("error"):
            raise SupplyFetchError(f"RPC error from {url}: {data['error']}")
        return data.get("result")

    async def _read_with(self, session: aiohttp.ClientSession) -> float:
        last_error: Optional[BaseException] = None
        for url in self.rpc_urls:
            try:
                result = await self._call(session, url)
                return decode_uint256(result, self._decimals)
            except (SupplyFetchError, aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
                last_error = exc
                logger.warning("SEED supply read via %s failed: %s", url, exc)
        raise SupplyFetchError("Unable to fetch SEED supply from contract") from last_error

    async def read_total_supply(self) -> float:
        if self._session is not None:
            return await self._read_with(self._session)
        async with aiohttp.ClientSession(timeout=self._timeout) as session:
            return await self._read_with(session)


__all__ = ["SEED_DECIMALS", "SupplyReader", "TOTAL_SUPPLY_SELECTOR", "decode_uint256"]
