"""
Engine: wires every port to the caches, flows and sync channel.

The engine owns one session, one client and one set of caches.  Cache
revalidation triggers flow in from three places:

  * the sync channel (push events or polling ticks) → availability of the
    watched (type, day);
  * "resources" bus signals → catalog (subscribed by the catalog itself) and
    availability of the watched (type, day);
  * every applied ledger fetch → the channel's booking-count guard.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable

from slotsync.adapters.ports import NotificationStream, Transport
from slotsync.api import AuthenticatedClient, BookingApi
from slotsync.auth import AuthService
from slotsync.cache.invalidation import RESOURCES, InvalidationBus
from slotsync.cache.stores import (
    AvailabilityCache,
    AvailabilityKey,
    AvailableResourcesCache,
    BookingLedgerCache,
    LedgerKey,
    ResourceCatalogCache,
)
from slotsync.domain.models import Booking, Page, ResourceType
from slotsync.domain.session import Session, SessionStorage
from slotsync.flows import BookingFlows, FlowCaches
from slotsync.sync_channel import DEFAULT_POLL_INTERVAL, RealTimeSyncChannel, SyncScope

log = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    transport: Transport
    stream_factory: Callable[[], NotificationStream]
    session_storage: SessionStorage
    poll_interval: float = DEFAULT_POLL_INTERVAL
    is_visible: Callable[[], bool] = lambda: True
    catalog_dedupe: float = 30.0
    availability_dedupe: float = 10.0
    ledger_dedupe: float = 5.0
    error_retry_interval: float = 0.5


class BookingEngine:

    def __init__(self, config: EngineConfig):
        self._cfg = config
        retry = {"error_retry_interval": config.error_retry_interval}

        self.session = Session(config.session_storage)
        self.client = AuthenticatedClient(config.transport, self.session)
        self.api = BookingApi(self.client)
        self.bus = InvalidationBus()

        self.catalog = ResourceCatalogCache(
            self.api, self.bus, dedupe_interval=config.catalog_dedupe, **retry
        )
        self.availability = AvailabilityCache(
            self.api, dedupe_interval=config.availability_dedupe, **retry
        )
        self.ledger = BookingLedgerCache(self.api, dedupe_interval=config.ledger_dedupe, **retry)
        self.available_resources = AvailableResourcesCache(
            self.api, dedupe_interval=config.availability_dedupe, **retry
        )

        self.flows = BookingFlows(
            self.api,
            FlowCaches(self.catalog, self.availability, self.ledger, self.available_resources),
            self.bus,
        )
        self.auth = AuthService(self.api, self.session)
        self.sync = RealTimeSyncChannel(
            stream_factory=config.stream_factory,
            on_change=self._refresh_availability,
            poll_interval=config.poll_interval,
            is_visible=config.is_visible,
        )

        self._unsubscribe = [
            self.ledger.add_listener(self._on_ledger),
            self.bus.subscribe(RESOURCES, self._on_resources_signal),
        ]

    async def watch(self, resource_type: ResourceType, day: date, today: date | None = None) -> bool:
        """Load the catalog for resource_type and keep (resource_type, day) in sync."""
        page = await self.catalog.get(resource_type)
        scope = SyncScope(AvailabilityKey(resource_type, day), page.total_count)
        started = self.sync.start(scope, today)
        log.info(
            "Watching %s on %s (%d resources) → %s",
            resource_type, day, page.total_count, self.sync.state,
        )
        return started

    def unwatch(self) -> None:
        self.sync.stop()

    def close(self) -> None:
        self.sync.stop()
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []

    def _refresh_availability(self, key: AvailabilityKey) -> None:
        self.availability.schedule_revalidation(key)

    def _on_ledger(self, key: LedgerKey, page: Page[Booking]) -> None:
        self.sync.observe_ledger_count(page.total_count)

    def _on_resources_signal(self, topic: str) -> None:
        key = self.sync.key
        if key is not None:
            self._refresh_availability(key)
