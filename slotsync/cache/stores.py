"""
Typed caches over the list endpoints of the booking authority.

Each store owns a KeyedCache with its own key type and de-dup interval and
exposes invalidation by the parameters that matter for it.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable

from slotsync.api import BookingApi
from slotsync.cache.invalidation import RESOURCES, InvalidationBus
from slotsync.cache.keyed_cache import KeyedCache
from slotsync.domain.availability import HourAvailabilityMap, reduce_availability
from slotsync.domain.models import (
    RESOURCE_TYPES,
    AvailableResource,
    Booking,
    Page,
    Resource,
    ResourceType,
)
from slotsync.domain.slot_status import OPERATING_END_HOUR, OPERATING_START_HOUR, SLOT_MINUTES

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourcesKey:
    resource_type: ResourceType
    page_size: int = 100


@dataclass(frozen=True)
class AvailabilityKey:
    resource_type: ResourceType
    day: date


@dataclass(frozen=True)
class LedgerKey:
    user_id: str
    page_number: int = 1
    page_size: int = 20


@dataclass(frozen=True)
class AvailableResourcesKey:
    resource_type: ResourceType
    start_utc: datetime
    end_utc: datetime


class ResourceCatalogCache:
    """Per-type resource listing, refreshed by "resources" bus signals."""

    def __init__(self, api: BookingApi, bus: InvalidationBus, dedupe_interval: float = 30.0, **options):
        self._api = api
        self.cache: KeyedCache[ResourcesKey, Page[Resource]] = KeyedCache(
            self._fetch, name="resources", dedupe_interval=dedupe_interval, **options
        )
        bus.subscribe(RESOURCES, self._on_signal)

    async def _fetch(self, key: ResourcesKey) -> Page[Resource]:
        return await self._api.get_resources(key.resource_type, 1, key.page_size)

    def _on_signal(self, topic: str) -> None:
        _, _, resource_type = topic.partition(":")
        self.invalidate(resource_type or None)

    async def get(self, resource_type: ResourceType, page_size: int = 100) -> Page[Resource]:
        return await self.cache.get(ResourcesKey(resource_type, page_size))

    async def revalidate(self, resource_type: ResourceType, page_size: int = 100) -> Page[Resource]:
        return await self.cache.revalidate(ResourcesKey(resource_type, page_size))

    def peek(self, resource_type: ResourceType, page_size: int = 100) -> Page[Resource] | None:
        entry = self.cache.peek(ResourcesKey(resource_type, page_size))
        return entry.value if entry else None

    def invalidate(self, resource_type: ResourceType | None = None) -> list[ResourcesKey]:
        return self.cache.invalidate(
            lambda k: resource_type is None or k.resource_type == resource_type
        )

    def counts(self, page_size: int = 100) -> dict[ResourceType, int]:
        """Resources per type from cached pages; 0 while unknown."""
        counts: dict[ResourceType, int] = {}
        for resource_type in RESOURCE_TYPES:
            page = self.peek(resource_type, page_size)
            counts[resource_type] = page.total_count if page else 0
        return counts

    def find(self, resource_id: str) -> Resource | None:
        """Look a resource up in whatever pages are cached."""
        for key in self.cache.keys():
            entry = self.cache.peek(key)
            if entry and entry.value:
                for resource in entry.value.items:
                    if resource.id == resource_id:
                        return resource
        return None


class AvailabilityCache:
    """(type, day) → HourAvailabilityMap over the operating window."""

    def __init__(self, api: BookingApi, dedupe_interval: float = 10.0, **options):
        self._api = api
        self.cache: KeyedCache[AvailabilityKey, HourAvailabilityMap] = KeyedCache(
            self._fetch, name="availability", dedupe_interval=dedupe_interval, **options
        )

    async def _fetch(self, key: AvailabilityKey) -> HourAvailabilityMap:
        resources = await self._api.get_resources_availability(
            key.resource_type,
            key.day,
            start_time=f"{OPERATING_START_HOUR:02d}:00",
            end_time=f"{OPERATING_END_HOUR:02d}:00",
            slot_duration=SLOT_MINUTES,
        )
        return reduce_availability(resources)

    async def get(self, resource_type: ResourceType, day: date) -> HourAvailabilityMap:
        return await self.cache.get(AvailabilityKey(resource_type, day))

    async def revalidate(self, resource_type: ResourceType, day: date) -> HourAvailabilityMap:
        return await self.cache.revalidate(AvailabilityKey(resource_type, day))

    def schedule_revalidation(self, key: AvailabilityKey) -> asyncio.Task:
        """Fire-and-forget revalidation of one key."""
        return self.cache.schedule(key)

    def peek(self, resource_type: ResourceType, day: date) -> HourAvailabilityMap | None:
        entry = self.cache.peek(AvailabilityKey(resource_type, day))
        return entry.value if entry else None

    def invalidate(
        self, resource_type: ResourceType | None = None, day: date | None = None
    ) -> list[AvailabilityKey]:
        return self.cache.invalidate(
            lambda k: (resource_type is None or k.resource_type == resource_type)
            and (day is None or k.day == day)
        )

    def add_listener(self, listener: Callable[[AvailabilityKey, HourAvailabilityMap], None]):
        return self.cache.add_listener(listener)


class BookingLedgerCache:
    """Per-user booking pages (active and historical)."""

    def __init__(self, api: BookingApi, dedupe_interval: float = 5.0, **options):
        self._api = api
        self.cache: KeyedCache[LedgerKey, Page[Booking]] = KeyedCache(
            self._fetch, name="user-bookings", dedupe_interval=dedupe_interval, **options
        )

    async def _fetch(self, key: LedgerKey) -> Page[Booking]:
        return await self._api.get_user_bookings(key.user_id, key.page_number, key.page_size)

    async def get(self, user_id: str, page_number: int = 1, page_size: int = 20) -> Page[Booking]:
        return await self.cache.get(LedgerKey(user_id, page_number, page_size))

    async def revalidate(self, user_id: str, page_number: int = 1, page_size: int = 20) -> Page[Booking]:
        return await self.cache.revalidate(LedgerKey(user_id, page_number, page_size))

    def peek(self, user_id: str, page_number: int = 1, page_size: int = 20) -> Page[Booking] | None:
        entry = self.cache.peek(LedgerKey(user_id, page_number, page_size))
        return entry.value if entry else None

    def invalidate(self, user_id: str | None = None) -> list[LedgerKey]:
        return self.cache.invalidate(lambda k: user_id is None or k.user_id == user_id)

    def forget_user(self, user_id: str) -> list[LedgerKey]:
        return self.cache.forget(lambda k: k.user_id == user_id)

    def add_listener(self, listener: Callable[[LedgerKey, Page[Booking]], None]):
        return self.cache.add_listener(listener)


class AvailableResourcesCache:
    """Coarse "free for the whole interval" listing (GET /resources/available)."""

    def __init__(self, api: BookingApi, dedupe_interval: float = 10.0, **options):
        self._api = api
        self.cache: KeyedCache[AvailableResourcesKey, list[AvailableResource]] = KeyedCache(
            self._fetch, name="available-resources", dedupe_interval=dedupe_interval, **options
        )

    async def _fetch(self, key: AvailableResourcesKey) -> list[AvailableResource]:
        return await self._api.get_available_resources(key.resource_type, key.start_utc, key.end_utc)

    async def get(
        self, resource_type: ResourceType, start_utc: datetime, end_utc: datetime
    ) -> list[AvailableResource]:
        return await self.cache.get(AvailableResourcesKey(resource_type, start_utc, end_utc))

    def invalidate(self) -> list[AvailableResourcesKey]:
        return self.cache.invalidate(lambda k: True)
