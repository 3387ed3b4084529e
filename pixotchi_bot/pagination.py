"""Per-chat pagination over frozen activity reports."""
from __future__ import annotations

import logging
import math
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Tuple

from .errors import NoReportError
from .models import ChatPaginationState, ProcessedEvent

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 6


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PageView:
    """One page of a chat's frozen report."""

    chat_id: int
    page: int
    total_pages: int
    interval_minutes: int
    items: Tuple[ProcessedEvent, ...]
    total_items: int


class PaginationStateStore:
    """Keeps the last report sent to each chat so it can be paged through.

    Pages always come from the sequence captured by :meth:`record`; paging
    never refetches. Entries live until replaced or cleared unless
    ``max_chats`` is set, in which case the least recently used chat is
    evicted.
    """

    def __init__(
        self,
        page_size: int = DEFAULT_PAGE_SIZE,
        *,
        max_chats: Optional[int] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        if max_chats is not None and max_chats < 1:
            raise ValueError("max_chats must be at least 1")
        self.page_size = page_size
        self._max_chats = max_chats
        self._clock = clock
        self._states: "OrderedDict[int, ChatPaginationState]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._states)

    def total_pages_for(self, item_count: int) -> int:
        return max(1, math.ceil(item_count / self.page_size))

    def record(
        self,
        chat_id: int,
        sequence: Iterable[ProcessedEvent],
        interval_minutes: int,
    ) -> ChatPaginationState:
        frozen = tuple(sequence)
        state = ChatPaginationState(
            chat_id=chat_id,
            page=1,
            total_pages=self.total_pages_for(len(frozen)),
            frozen_sequence=frozen,
            interval_minutes=interval_minutes,
            last_updated_at=self._clock(),
        )
        self._states[chat_id] = state
        self._states.move_to_end(chat_id)
        self._evict()
        return state

    def navigate(self, chat_id: int, requested_page: int) -> PageView:
        state = self._states.get(chat_id)
        if state is None or not state.frozen_sequence:
            raise NoReportError(f"No activities to navigate for chat {chat_id}")
        page = max(1, min(int(requested_page), state.total_pages))
        state.page = page
        self._states.move_to_end(chat_id)
        start = (page - 1) * self.page_size
        return PageView(
            chat_id=chat_id,
            page=page,
            total_pages=state.total_pages,
            interval_minutes=state.interval_minutes,
            items=state.frozen_sequence[start : start + self.page_size],
            total_items=len(state.frozen_sequence),
        )

    def get(self, chat_id: int) -> Optional[ChatPaginationState]:
        return self._states.get(chat_id)

    def clear(self, chat_id: Optional[int] = None) -> None:
        if chat_id is None:
            self._states.clear()
        else:
            self._states.pop(chat_id, None)

    def _evict(self) -> None:
        if self._max_chats is None:
            return
        while len(self._states) > self._max_chats:
            evicted, _ = self._states.popitem(last=False)
            logger.debug("Evicted pagination state for chat %s", evicted)


__all__ = ["DEFAULT_PAGE_SIZE", "PageView", "PaginationStateStore"]
