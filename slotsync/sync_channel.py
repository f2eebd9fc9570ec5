"""
Real-time sync channel: keeps the availability of one (type, day) fresh.

State machine:

    disconnected ──start()──▶ connecting ──open ok──▶ streaming
                                   │                      │
                              open failed           stream error / end
                                   ▼                      ▼
                                polling ◀─────────────────┘

    any state ──stop()──▶ disconnected

While streaming, every pushed event triggers on_change(key).  While
polling, on_change(key) fires immediately and then every poll_interval
seconds, but only while the host reports itself visible.  A broken stream
is not retried within the same scope.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Literal

from slotsync.adapters.ports import NotificationStream, StreamError
from slotsync.cache.stores import AvailabilityKey
from slotsync.domain.slot_status import is_bookable_date

log = logging.getLogger(__name__)

SyncState = Literal["disconnected", "connecting", "streaming", "polling"]

DEFAULT_POLL_INTERVAL = 30.0


@dataclass(frozen=True)
class SyncScope:
    key: AvailabilityKey
    resource_count: int

    def is_active(self, today: date | None = None) -> bool:
        """Worth syncing: there are resources and the day can still be booked."""
        return self.resource_count > 0 and is_bookable_date(self.key.day, today)


class RealTimeSyncChannel:

    def __init__(
        self,
        stream_factory: Callable[[], NotificationStream],
        on_change: Callable[[AvailabilityKey], None],
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        is_visible: Callable[[], bool] = lambda: True,
    ):
        self._stream_factory = stream_factory
        self._on_change = on_change
        self._poll_interval = poll_interval
        self._is_visible = is_visible
        self._state: SyncState = "disconnected"
        self._key: AvailabilityKey | None = None
        self._stream: NotificationStream | None = None
        self._stream_task: asyncio.Task | None = None
        self._poll_task: asyncio.Task | None = None
        self._last_ledger_count: int | None = None

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def key(self) -> AvailabilityKey | None:
        return self._key

    def start(self, scope: SyncScope, today: date | None = None) -> bool:
        """Enter a new scope. Returns False (and stays disconnected) when out of scope."""
        self.stop()
        if not scope.is_active(today):
            log.debug("Sync scope %s inactive, not connecting", scope.key)
            return False
        self._key = scope.key
        self._set_state("connecting")
        self._stream_task = asyncio.ensure_future(self._run_stream(scope.key))
        return True

    def stop(self) -> None:
        """Leave the current scope: cancel timers, close the stream. Always safe."""
        for task in (self._stream_task, self._poll_task):
            if task is not None and not task.done():
                task.cancel()
        self._stream_task = None
        self._poll_task = None
        self._close_stream()
        self._key = None
        self._set_state("disconnected")

    def observe_ledger_count(self, count: int | None) -> bool:
        """
        Feed the latest size of the user's booking list.

        Triggers one revalidation when the count actually changed since the
        previous observation; the first observation only records it.
        """
        previous = self._last_ledger_count
        self._last_ledger_count = count
        if previous is None or count == previous or self._key is None:
            return False
        log.info("Booking count changed %s → %s, refreshing availability", previous, count)
        self._on_change(self._key)
        return True

    # -- internals -----------------------------------------------------------

    def _set_state(self, state: SyncState) -> None:
        if state != self._state:
            log.info("Sync %s → %s", self._state, state)
            self._state = state

    def _close_stream(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None

    async def _run_stream(self, key: AvailabilityKey) -> None:
        stream = self._stream_factory()
        self._stream = stream
        try:
            await stream.open()
        except StreamError as exc:
            log.info("Notification stream unavailable (%s), falling back to polling", exc)
            self._start_polling(key)
            return

        self._set_state("streaming")
        try:
            async for _ in stream.events():
                self._on_change(key)
        except StreamError as exc:
            log.info("Notification stream error (%s), falling back to polling", exc)
        self._start_polling(key)

    def _start_polling(self, key: AvailabilityKey) -> None:
        self._close_stream()
        self._set_state("polling")
        self._poll_task = asyncio.ensure_future(self._poll(key))

    async def _poll(self, key: AvailabilityKey) -> None:
        while True:
            if self._is_visible():
                self._on_change(key)
            else:
                log.debug("Host not visible, skipping poll tick")
            await asyncio.sleep(self._poll_interval)
