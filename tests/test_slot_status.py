"""Slot status resolution: priority order, horizon and overlap boundaries."""

from datetime import date, datetime, timezone

import pytest

from slotsync.domain.availability import HourAvailabilityMap
from slotsync.domain.models import Booking
from slotsync.domain.slot_status import (
    OPERATING_HOURS,
    is_bookable_date,
    resolve_slot,
    resolve_slot_status,
    slot_bounds,
)

DAY = date(2026, 4, 1)
BEFORE_OPENING = datetime(2026, 4, 1, 6, 0, tzinfo=timezone.utc)
FREE_AT_10 = HourAvailabilityMap({10: {"room-a"}})


def _booking(start_hour: int, end_hour: int, status: str = "Active", resource_id: str = "room-a") -> Booking:
    return Booking(
        id=f"booking-{start_hour}",
        user_id="user-1",
        resource_id=resource_id,
        start_utc=datetime(2026, 4, 1, start_hour, tzinfo=timezone.utc),
        end_utc=datetime(2026, 4, 1, end_hour, tzinfo=timezone.utc),
        status=status,
        created_at_utc=BEFORE_OPENING,
    )


def test_operating_hours_are_twelve_slots():
    assert list(OPERATING_HOURS) == list(range(7, 19))


def test_slot_bounds_are_one_utc_hour():
    start, end = slot_bounds(DAY, 10)
    assert start == datetime(2026, 4, 1, 10, tzinfo=timezone.utc)
    assert end == datetime(2026, 4, 1, 11, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Priority
# ---------------------------------------------------------------------------


def test_available():
    assert resolve_slot_status("room-a", 10, DAY, [], FREE_AT_10, True, BEFORE_OPENING) == "available"


def test_unavailable_when_not_in_map():
    assert resolve_slot_status("room-a", 11, DAY, [], FREE_AT_10, True, BEFORE_OPENING) == "unavailable"


def test_past_wins_over_everything():
    now = datetime(2026, 4, 1, 11, 0, tzinfo=timezone.utc)
    assert resolve_slot_status("room-a", 10, DAY, [_booking(10, 11)], FREE_AT_10, False, now) == "past"


def test_slot_in_progress_is_not_past():
    now = datetime(2026, 4, 1, 10, 30, tzinfo=timezone.utc)
    assert resolve_slot_status("room-a", 10, DAY, [], FREE_AT_10, True, now) == "available"


def test_disabled_outside_horizon_even_if_yours():
    status = resolve_slot_status("room-a", 10, DAY, [_booking(10, 11)], FREE_AT_10, False, BEFORE_OPENING)
    assert status == "disabled"


def test_own_booking_is_yours_never_available():
    info = resolve_slot("room-a", 10, DAY, [_booking(10, 11)], FREE_AT_10, True, BEFORE_OPENING)
    assert info.status == "yours"
    assert info.booking_id == "booking-10"


def test_cancelled_booking_is_ignored():
    status = resolve_slot_status(
        "room-a", 10, DAY, [_booking(10, 11, status="Cancelled")], FREE_AT_10, True, BEFORE_OPENING
    )
    assert status == "available"


def test_booking_on_other_resource_is_ignored():
    status = resolve_slot_status(
        "room-a", 10, DAY, [_booking(10, 11, resource_id="room-b")], FREE_AT_10, True, BEFORE_OPENING
    )
    assert status == "available"


def test_multi_hour_booking_marks_each_hour():
    booking = _booking(9, 12)
    for hour in (9, 10, 11):
        assert resolve_slot_status("room-a", hour, DAY, [booking], FREE_AT_10, True, BEFORE_OPENING) == "yours"
    assert resolve_slot_status("room-a", 12, DAY, [booking], FREE_AT_10, True, BEFORE_OPENING) == "unavailable"


def test_resolver_is_pure():
    args = ("room-a", 10, DAY, [_booking(10, 11)], FREE_AT_10, True, BEFORE_OPENING)
    assert resolve_slot(*args) == resolve_slot(*args)


# ---------------------------------------------------------------------------
# Horizon
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "offset, expected",
    [(-1, False), (0, True), (1, True), (3, True), (4, False)],
)
def test_booking_horizon(offset, expected):
    today = date(2026, 4, 1)
    assert is_bookable_date(date.fromordinal(today.toordinal() + offset), today) is expected


# ---------------------------------------------------------------------------
# Overlap
# ---------------------------------------------------------------------------


def test_identical_intervals_overlap():
    start, end = slot_bounds(DAY, 10)
    assert _booking(10, 11).overlaps(start, end)


def test_adjacent_intervals_do_not_overlap():
    start, end = slot_bounds(DAY, 11)
    assert not _booking(10, 11).overlaps(start, end)
    start, end = slot_bounds(DAY, 9)
    assert not _booking(10, 11).overlaps(start, end)
