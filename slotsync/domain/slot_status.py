"""
Slot status resolution and the booking-horizon policy.

Pure functions: the same inputs always give the same status.  The only
ambient input is the clock, and both `now` and `today` can be passed in.

Slot instants are built in UTC from the calendar date and the hour, while
the horizon compares local calendar dates.  The two are deliberately kept
independent: "today" stays bookable all day even as its hours turn past.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Literal

from slotsync.domain.availability import HourAvailabilityMap
from slotsync.domain.models import Booking

SlotStatus = Literal["available", "yours", "unavailable", "past", "disabled"]

OPERATING_START_HOUR = 7
OPERATING_END_HOUR = 19
OPERATING_HOURS = range(OPERATING_START_HOUR, OPERATING_END_HOUR)
SLOT_MINUTES = 60
BOOKING_HORIZON_DAYS = 3


@dataclass(frozen=True)
class SlotInfo:
    status: SlotStatus
    booking_id: str | None = None   # set when status == "yours"


def slot_bounds(day: date, hour: int) -> tuple[datetime, datetime]:
    """Half-open UTC interval [day hour:00, day hour+1:00)."""
    start = datetime(day.year, day.month, day.day, tzinfo=timezone.utc) + timedelta(hours=hour)
    return start, start + timedelta(minutes=SLOT_MINUTES)


def is_bookable_date(day: date, today: date | None = None) -> bool:
    """True iff day is between today and today + 3, inclusive, on local dates."""
    today = today or date.today()
    diff = (day - today).days
    return 0 <= diff <= BOOKING_HORIZON_DAYS


def resolve_slot(
    resource_id: str,
    hour: int,
    day: date,
    user_bookings: Iterable[Booking],
    availability: HourAvailabilityMap,
    is_bookable: bool,
    now: datetime | None = None,
) -> SlotInfo:
    now = now or datetime.now(timezone.utc)
    slot_start, slot_end = slot_bounds(day, hour)

    if slot_end <= now:
        return SlotInfo("past")

    if not is_bookable:
        return SlotInfo("disabled")

    # Own bookings before availability: a slot is never both free and yours.
    for booking in user_bookings:
        if (
            booking.resource_id == resource_id
            and booking.is_active
            and booking.overlaps(slot_start, slot_end)
        ):
            return SlotInfo("yours", booking_id=booking.id)

    if availability.is_available(resource_id, hour):
        return SlotInfo("available")

    return SlotInfo("unavailable")


def resolve_slot_status(
    resource_id: str,
    hour: int,
    day: date,
    user_bookings: Iterable[Booking],
    availability: HourAvailabilityMap,
    is_bookable: bool,
    now: datetime | None = None,
) -> SlotStatus:
    return resolve_slot(
        resource_id, hour, day, user_bookings, availability, is_bookable, now
    ).status
