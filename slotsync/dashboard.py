"""Day grid: one row per resource, one cell per operating hour."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable

from slotsync.domain.availability import HourAvailabilityMap
from slotsync.domain.models import Booking, Resource, ResourceType
from slotsync.domain.slot_status import (
    OPERATING_HOURS,
    SlotStatus,
    is_bookable_date,
    resolve_slot,
)


@dataclass(frozen=True)
class SlotCell:
    hour: int
    status: SlotStatus
    booking_id: str | None = None

    @property
    def label(self) -> str:
        return f"{self.hour:02d}:00"


@dataclass
class ResourceRow:
    resource: Resource
    cells: list[SlotCell] = field(default_factory=list)

    def cell(self, hour: int) -> SlotCell | None:
        return next((c for c in self.cells if c.hour == hour), None)

    @property
    def available_hours(self) -> list[int]:
        return [c.hour for c in self.cells if c.status == "available"]


@dataclass
class DayGrid:
    day: date
    bookable: bool
    rows: list[ResourceRow] = field(default_factory=list)

    def row(self, resource_id: str) -> ResourceRow | None:
        return next((r for r in self.rows if r.resource.id == resource_id), None)

    def render(self) -> str:
        """Plain-text rendering, one character per hour."""
        marks = {"available": ".", "yours": "Y", "unavailable": "x", "past": "-", "disabled": " "}
        width = max((len(r.resource.name) for r in self.rows), default=0)
        header = " " * width + "  " + "".join(str(h % 10) for h in OPERATING_HOURS)
        lines = [f"{self.day.isoformat()}", header]
        for row in self.rows:
            lines.append(
                f"{row.resource.name:<{width}}  " + "".join(marks[c.status] for c in row.cells)
            )
        return "\n".join(lines)


def build_day_grid(
    resources: Iterable[Resource],
    user_bookings: Iterable[Booking],
    availability: HourAvailabilityMap,
    day: date,
    now: datetime | None = None,
    today: date | None = None,
) -> DayGrid:
    bookings = list(user_bookings)
    bookable = is_bookable_date(day, today)
    rows = []
    for resource in resources:
        cells = []
        for hour in OPERATING_HOURS:
            info = resolve_slot(resource.id, hour, day, bookings, availability, bookable, now)
            cells.append(SlotCell(hour, info.status, info.booking_id))
        rows.append(ResourceRow(resource, cells))
    return DayGrid(day=day, bookable=bookable, rows=rows)


async def load_day_grid(
    engine,
    resource_type: ResourceType,
    day: date,
    now: datetime | None = None,
    today: date | None = None,
) -> DayGrid:
    """
    Fetch (or reuse) the catalog, availability and ledger, then build the grid.

    Every ledger page is read, since an older booking on this day can sit
    behind a full page of later ones.
    """
    page = await engine.catalog.get(resource_type)
    availability = await engine.availability.get(resource_type, day)
    bookings: list[Booking] = []
    user = engine.session.user
    if user is not None:
        page_number = 1
        while True:
            ledger = await engine.ledger.get(user.user_id, page_number)
            bookings.extend(ledger.items)
            if not ledger.has_next_page:
                break
            page_number += 1
    return build_day_grid(page.items, bookings, availability, day, now, today)
