"""
Booking and cancellation as cache-invalidating transactions.

Each flow calls the authority first.  Only a confirmed success fans out
invalidation; a rejected call (conflict, validation, expired session)
propagates its ApiError untouched and no cache is modified.  Revalidation
is scheduled, not awaited: callers must tolerate a short window where their
own change is not yet visible.

Flows do not de-duplicate submissions; disabling the trigger while a flow
is in flight is the caller's job.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from slotsync.api import BookingApi
from slotsync.cache.invalidation import InvalidationBus, resources_topic
from slotsync.cache.stores import (
    AvailabilityCache,
    AvailableResourcesCache,
    BookingLedgerCache,
    ResourceCatalogCache,
)
from slotsync.domain.errors import ApiError
from slotsync.domain.models import Booking, CancelResult, ResourceType
from slotsync.domain.slot_status import SLOT_MINUTES

log = logging.getLogger(__name__)


@dataclass
class FlowCaches:
    catalog: ResourceCatalogCache
    availability: AvailabilityCache
    ledger: BookingLedgerCache
    available_resources: AvailableResourcesCache


class BookingFlows:

    def __init__(self, api: BookingApi, caches: FlowCaches, bus: InvalidationBus):
        self._api = api
        self._caches = caches
        self._bus = bus

    async def create_booking(
        self,
        resource_id: str,
        user_id: str,
        hour_start: datetime,
        resource_type: ResourceType | None = None,
    ) -> Booking:
        """Book [hour_start, hour_start + 1h) for user_id."""
        if hour_start.tzinfo is None:
            raise ValueError("hour_start must be timezone-aware")
        start = hour_start.astimezone(timezone.utc)
        if start.minute or start.second or start.microsecond:
            raise ValueError(f"hour_start must be on a UTC hour, got {hour_start.isoformat()}")
        end = start + timedelta(minutes=SLOT_MINUTES)

        if resource_type is None:
            resource = self._caches.catalog.find(resource_id)
            resource_type = resource.type if resource else None

        log.info("Booking %s for user=%s %s → %s", resource_id, user_id, start, end)
        try:
            booking = await self._api.create_booking(resource_id, user_id, start, end)
        except ApiError as exc:
            log.info("Booking %s rejected: %d %s", resource_id, exc.status, exc.message)
            raise

        log.info("Booking %s confirmed (%s)", booking.id, booking.status)
        self._caches.ledger.invalidate(user_id)
        # Unknown type: every cached date of every type may be affected.
        self._caches.availability.invalidate(resource_type)
        self._caches.available_resources.invalidate()
        self._bus.publish(resources_topic(resource_type))
        return booking

    async def cancel_booking(self, booking_id: str, user_id: str) -> CancelResult:
        log.info("Cancelling booking %s for user=%s", booking_id, user_id)
        try:
            result = await self._api.cancel_booking(booking_id, user_id)
        except ApiError as exc:
            log.info("Cancellation of %s rejected: %d %s", booking_id, exc.status, exc.message)
            raise

        log.info("Booking %s cancelled", booking_id)
        self._caches.ledger.invalidate(user_id)
        # The booking's resource type is not known here.
        self._caches.availability.invalidate()
        self._caches.available_resources.invalidate()
        self._bus.publish(resources_topic())
        return result
