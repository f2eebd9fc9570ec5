"""Helpers for the "my bookings" listing."""

from datetime import datetime, timezone
from typing import Iterable, Literal

from slotsync.domain.models import Booking, Page, Resource

BookingFilter = Literal["all", "active", "cancelled", "past"]


def filter_bookings(
    bookings: Iterable[Booking],
    which: BookingFilter = "all",
    now: datetime | None = None,
) -> list[Booking]:
    """
    active    — not cancelled and not yet over
    past      — not cancelled but already over
    cancelled — cancelled, whenever it was
    """
    now = now or datetime.now(timezone.utc)
    if which == "active":
        return [b for b in bookings if b.is_active and b.end_utc >= now]
    if which == "past":
        return [b for b in bookings if b.is_active and b.end_utc < now]
    if which == "cancelled":
        return [b for b in bookings if b.status == "Cancelled"]
    return list(bookings)


def resource_names(pages: Iterable[Page[Resource] | None]) -> dict[str, str]:
    """id → display name across every cached catalog page."""
    names: dict[str, str] = {}
    for page in pages:
        if page is None:
            continue
        for resource in page.items:
            names[resource.id] = resource.name
    return names
