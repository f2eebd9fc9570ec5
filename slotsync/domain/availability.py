"""
Reduction of slot-granularity availability into an hour → resource-ids map.

The map is a disposable cache value: rebuilt wholesale from every fetch,
never patched.
"""

import re
from datetime import datetime, timezone
from typing import Iterable, Iterator

from slotsync.domain.models import ResourceAvailability

_HH_MM = re.compile(r"(\d{2}):\d{2}")


class HourAvailabilityMap:
    """Which resources are free at each hour of one day."""

    def __init__(self, hours: dict[int, set[str]] | None = None):
        self._hours: dict[int, frozenset[str]] = {
            h: frozenset(ids) for h, ids in (hours or {}).items() if ids
        }

    def is_available(self, resource_id: str, hour: int) -> bool:
        return resource_id in self._hours.get(hour, frozenset())

    def resources_at(self, hour: int) -> frozenset[str]:
        return self._hours.get(hour, frozenset())

    def hours(self) -> list[int]:
        return sorted(self._hours)

    def pairs(self) -> Iterator[tuple[str, int]]:
        """Every (resource_id, hour) that is free."""
        for hour in self.hours():
            for resource_id in sorted(self._hours[hour]):
                yield resource_id, hour

    def __len__(self) -> int:
        return len(self._hours)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, HourAvailabilityMap) and self._hours == other._hours

    def __repr__(self) -> str:
        hours = {h: sorted(ids) for h, ids in sorted(self._hours.items())}
        return f"HourAvailabilityMap({hours})"


def parse_slot_hour(value: str) -> int | None:
    """
    Hour component of a slot boundary.

    Accepts "HH:MM" or any timestamp containing it (the hour is taken as
    written); other ISO forms fall back to the UTC hour.  Returns None when
    nothing usable is found.
    """
    m = _HH_MM.search(value or "")
    if m:
        return int(m.group(1))
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.hour


def reduce_availability(resources: Iterable[ResourceAvailability]) -> HourAvailabilityMap:
    hours: dict[int, set[str]] = {}
    for item in resources:
        for slot in item.time_slots:
            if slot.status != "available":
                continue
            start_hour = parse_slot_hour(slot.start_time)
            end_hour = parse_slot_hour(slot.end_time)
            if start_hour is None or end_hour is None:
                continue
            for hour in range(start_hour, end_hour):
                hours.setdefault(hour, set()).add(item.resource.id)
    return HourAvailabilityMap(hours)
