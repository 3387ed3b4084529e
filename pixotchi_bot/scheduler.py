"""Interval schedulers that trigger activity and SEED burn reports."""
from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, Set

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from .models import SchedulerStatus, clamp_interval

logger = logging.getLogger(__name__)

ReportListener = Callable[[int], Any]


def create_backend() -> AsyncIOScheduler:
    """Build the APScheduler instance shared by the report schedulers."""

    return AsyncIOScheduler(timezone=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReportScheduler:
    """Fires registered listeners every ``interval_minutes``.

    Each fire hands the current interval to every listener. Coroutine
    listeners are started as independent tasks, so a slow report never
    delays or swallows the next tick; callers that need exclusivity must
    provide it themselves.
    """

    def __init__(
        self,
        name: str,
        interval_minutes: int,
        *,
        backend: Optional[AsyncIOScheduler] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.name = name
        self._interval = clamp_interval(interval_minutes)
        self._backend = backend if backend is not None else create_backend()
        self._clock = clock
        self._running = False
        self._listeners: List[ReportListener] = []
        self._tasks: Set[asyncio.Future] = set()

    @property
    def job_id(self) -> str:
        return f"report:{self.name}"

    @property
    def interval_minutes(self) -> int:
        return self._interval

    @property
    def running(self) -> bool:
        return self._running

    def add_listener(self, listener: ReportListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ReportListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def start(self) -> None:
        if self._running:
            logger.info("%s scheduler is already running", self.name)
            return
        self._backend.add_job(
            self._on_tick,
            "interval",
            minutes=self._interval,
            id=self.job_id,
            replace_existing=True,
            coalesce=True,
        )
        self._running = True
        logger.info("%s scheduler started with %dm interval", self.name, self._interval)

    def stop(self) -> None:
        if self._running:
            try:
                self._backend.remove_job(self.job_id)
            except LookupError:
                # APScheduler raises JobLookupError (a KeyError) once the job is gone.
                logger.debug("%s scheduler job already removed", self.name)
        self._running = False
        logger.info("%s scheduler stopped", self.name)

    def set_interval(self, minutes: int) -> int:
        new_interval = clamp_interval(minutes)
        if new_interval == self._interval:
            return self._interval
        self._interval = new_interval
        if self._running:
            self.stop()
            self.start()
        logger.info("%s scheduler interval updated to %dm", self.name, self._interval)
        return self._interval

    def force_fire(self) -> None:
        logger.info("Forcing immediate %s report", self.name)
        self._emit()

    def get_status(self) -> SchedulerStatus:
        """Return the scheduler state.

        ``next_fire_estimate`` is ``now + interval`` while running, not the
        registered job deadline, so it drifts after ``force_fire`` or a
        mid-cycle ``set_interval``.
        """

        estimate = None
        if self._running:
            estimate = self._clock() + timedelta(minutes=self._interval)
        return SchedulerStatus(
            name=self.name,
            running=self._running,
            interval_minutes=self._interval,
            next_fire_estimate=estimate,
        )

    async def _on_tick(self) -> None:
        logger.info("Scheduled %s report triggered (%dm interval)", self.name, self._interval)
        self._emit()

    def _emit(self) -> None:
        interval = self._interval
        for listener in list(self._listeners):
            try:
                result = listener(interval)
            except Exception:
                logger.exception("%s report listener failed", self.name)
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Future) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("%s report task failed", self.name, exc_info=exc)


__all__ = ["ReportListener", "ReportScheduler", "create_backend"]
