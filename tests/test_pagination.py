"""Pagination state store tests."""
from __future__ import annotations

import pytest

from pixotchi_bot.errors import NoReportError
from pixotchi_bot.models import MintEvent
from pixotchi_bot.pagination import PaginationStateStore


def _events(count):
    return [MintEvent(id=f"m{index}", timestamp="1700000000", nft_id=str(index)) for index in range(count)]


def test_thirteen_events_make_three_pages():
    store = PaginationStateStore(6)

    state = store.record(42, _events(13), 180)

    assert state.page == 1
    assert state.total_pages == 3
    assert state.interval_minutes == 180


def test_navigate_returns_the_requested_slice():
    store = PaginationStateStore(6)
    store.record(42, _events(13), 180)

    view = store.navigate(42, 2)

    assert view.page == 2
    assert [event.id for event in view.items] == [f"m{index}" for index in range(6, 12)]
    assert view.total_items == 13
    assert store.get(42).page == 2


@pytest.mark.parametrize("requested, expected", [(99, 3), (0, 1), (-4, 1), (3, 3)])
def test_navigate_clamps_out_of_range_pages(requested, expected):
    store = PaginationStateStore(6)
    store.record(42, _events(13), 180)

    view = store.navigate(42, requested)

    assert view.page == expected


def test_last_page_holds_the_remainder():
    store = PaginationStateStore(6)
    store.record(42, _events(13), 180)

    assert [event.id for event in store.navigate(42, 3).items] == ["m12"]


def test_navigate_without_report_raises():
    store = PaginationStateStore(6)

    with pytest.raises(NoReportError):
        store.navigate(42, 1)


def test_empty_report_has_one_page_but_nothing_to_navigate():
    store = PaginationStateStore(6)

    state = store.record(42, [], 60)

    assert state.total_pages == 1
    with pytest.raises(NoReportError):
        store.navigate(42, 1)


def test_recorded_sequence_is_frozen():
    store = PaginationStateStore(6)
    events = _events(2)
    store.record(42, events, 60)

    events.append(MintEvent(id="late", timestamp="1700000001"))

    assert len(store.get(42).frozen_sequence) == 2


def test_new_report_replaces_previous_state():
    store = PaginationStateStore(6)
    store.record(42, _events(13), 180)
    store.navigate(42, 3)

    state = store.record(42, _events(2), 60)

    assert state.page == 1
    assert store.get(42).total_pages == 1
    assert len(store) == 1


def test_chats_are_independent():
    store = PaginationStateStore(6)
    store.record(1, _events(13), 180)
    store.record(2, _events(3), 60)

    assert store.navigate(1, 2).page == 2
    assert store.navigate(2, 2).page == 1


def test_max_chats_evicts_least_recently_used():
    store = PaginationStateStore(6, max_chats=2)
    store.record(1, _events(1), 60)
    store.record(2, _events(1), 60)
    store.navigate(1, 1)

    store.record(3, _events(1), 60)

    assert store.get(2) is None
    assert store.get(1) is not None
    assert store.get(3) is not None


def test_clear_removes_state():
    store = PaginationStateStore(6)
    store.record(1, _events(1), 60)
    store.record(2, _events(1), 60)

    store.clear(1)
    assert store.get(1) is None
    store.clear()
    assert len(store) == 0


def test_invalid_page_size_is_rejected():
    with pytest.raises(ValueError):
        PaginationStateStore(0)
