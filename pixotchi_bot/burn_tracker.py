"""SEED burn tracking with per-interval baselines and single-flight reads."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, Optional

from .errors import SupplyFetchError
from .models import BurnData, IntervalBaseline, clamp_interval

logger = logging.getLogger(__name__)

SupplyRead = Callable[[], Awaitable[float]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BurnRateTracker:
    """Computes how much SEED was burned per report interval.

    One baseline (last supply and when it was read) is kept per interval
    value. Concurrent requests for the same interval share a single supply
    read; different intervals read independently.
    """

    def __init__(
        self,
        read_supply: SupplyRead,
        total_supply: float,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._read_supply = read_supply
        self._total_supply = float(total_supply)
        self._clock = clock
        self._baselines: Dict[int, IntervalBaseline] = {}
        self._in_flight: Dict[int, asyncio.Task] = {}

    @property
    def total_supply(self) -> float:
        return self._total_supply

    def baseline(self, interval_minutes: int) -> Optional[IntervalBaseline]:
        current = self._baselines.get(clamp_interval(interval_minutes))
        if current is None:
            return None
        return IntervalBaseline(current.interval_minutes, current.last_supply, current.last_checked_at)

    def in_flight(self, interval_minutes: int) -> bool:
        return clamp_interval(interval_minutes) in self._in_flight

    async def _current_supply(self) -> float:
        try:
            return float(await self._read_supply())
        except SupplyFetchError:
            raise
        except Exception as exc:
            raise SupplyFetchError(f"Unable to fetch SEED supply: {exc}") from exc

    async def get_burn_data(self, interval_minutes: int) -> BurnData:
        return await self._shared_read(clamp_interval(interval_minutes))

    async def _shared_read(self, interval: int) -> BurnData:
        task = self._in_flight.get(interval)
        if task is None:
            task = asyncio.ensure_future(self._compute(interval))
            self._in_flight[interval] = task
            task.add_done_callback(lambda done, key=interval: self._clear_in_flight(key, done))
        else:
            logger.debug("Joining in-flight SEED burn read for %dm interval", interval)
        return await asyncio.shield(task)

    def _clear_in_flight(self, interval: int, task: asyncio.Task) -> None:
        if self._in_flight.get(interval) is task:
            del self._in_flight[interval]
        if not task.cancelled() and task.exception() is not None:
            logger.debug("SEED burn read for %dm interval failed", interval)

    async def _compute(self, interval: int) -> BurnData:
        current_supply = await self._current_supply()
        now = self._clock()
        total_burned = self._total_supply - current_supply

        burned_in_period = 0.0
        previous = self._baselines.get(interval)
        if previous is not None:
            elapsed = now - previous.last_checked_at
            if elapsed <= timedelta(minutes=interval * 2):
                burned_in_period = max(0.0, previous.last_supply - current_supply)
            else:
                logger.info(
                    "SEED baseline for %dm interval is stale (%s old); reporting zero period burn",
                    interval,
                    elapsed,
                )

        self._baselines[interval] = IntervalBaseline(interval, current_supply, now)
        return BurnData(
            current_supply=current_supply,
            total_burned=total_burned,
            burned_in_period=burned_in_period,
            period_minutes=interval,
            timestamp=now,
        )

    async def initialize_baseline(self, interval_minutes: int) -> IntervalBaseline:
        """Seed the baseline for ``interval_minutes`` with the current supply.

        Shares the interval's in-flight read when one is running, since every
        completed read already replaces the baseline.
        """

        interval = clamp_interval(interval_minutes)
        logger.info("Initializing SEED burn baseline for %dm interval", interval)
        burn = await self._shared_read(interval)
        logger.info(
            "SEED burn baseline initialized: %.2f SEED supply at %s",
            burn.current_supply,
            burn.timestamp.isoformat(),
        )
        return IntervalBaseline(interval, burn.current_supply, burn.timestamp)

    def reset(self, interval_minutes: Optional[int] = None) -> None:
        if interval_minutes is None:
            self._baselines.clear()
            self._in_flight.clear()
            return
        interval = clamp_interval(interval_minutes)
        self._baselines.pop(interval, None)
        self._in_flight.pop(interval, None)

    async def test_connectivity(self) -> bool:
        try:
            await self._current_supply()
        except SupplyFetchError:
            logger.exception("SEED contract connection test failed")
            return False
        return True


__all__ = ["BurnRateTracker", "SupplyRead"]
