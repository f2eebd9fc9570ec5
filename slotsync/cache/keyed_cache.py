"""
Generic keyed cache with stale-while-revalidate and single-flight fetches.

Keys are frozen dataclasses (one type per logical kind of data), so bulk
invalidation is a plain predicate over typed fields instead of a match on
ad-hoc tuples.

Semantics:
  * get()        — fresh value within the de-dup interval; otherwise the
                   cached value is returned at once and a revalidation is
                   scheduled; a miss waits for the fetch.
  * revalidate() — waits for a fetch, joining the one in flight if any.
  * invalidate() — marks matching entries stale and schedules their
                   revalidation without waiting (fire-and-forget).  A fetch
                   that was already running is followed by one more, however
                   many invalidations arrive meanwhile.
  * forget()     — drops entries; fetches already in flight for them finish
                   but their results are never applied.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, Hashable, TypeVar

from slotsync.domain.errors import TransportError

log = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass
class CacheEntry(Generic[V]):
    value: V | None = None
    has_value: bool = False
    error: Exception | None = None
    is_stale: bool = False
    fetched_at: float | None = None
    in_flight: asyncio.Task | None = field(default=None, repr=False)
    # Bumped by every invalidation; a fetch that started on an older
    # generation is followed by exactly one more.
    generation: int = field(default=0, repr=False)

    @property
    def is_loading(self) -> bool:
        return self.in_flight is not None


class KeyedCache(Generic[K, V]):

    def __init__(
        self,
        fetcher: Callable[[K], Awaitable[V]],
        *,
        name: str = "cache",
        dedupe_interval: float = 0.0,
        error_retry_count: int = 2,
        error_retry_interval: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self._fetcher = fetcher
        self._dedupe_interval = dedupe_interval
        self._error_retry_count = error_retry_count
        self._error_retry_interval = error_retry_interval
        self._clock = clock
        self._entries: dict[K, CacheEntry[V]] = {}
        self._listeners: list[Callable[[K, V], None]] = []

    # -- reads ---------------------------------------------------------------

    def peek(self, key: K) -> CacheEntry[V] | None:
        return self._entries.get(key)

    def keys(self) -> list[K]:
        return list(self._entries)

    async def get(self, key: K) -> V:
        entry = self._entries.get(key)
        if entry is not None and entry.has_value:
            age = self._clock() - (entry.fetched_at or 0.0)
            if not entry.is_stale and age < self._dedupe_interval:
                log.debug("%s hit %s", self.name, key)
                return entry.value  # type: ignore[return-value]
            self._schedule(key, entry)
            return entry.value  # type: ignore[return-value]
        return await self.revalidate(key)

    def schedule(self, key: K) -> asyncio.Task:
        """
        Signal that key changed and refresh it without waiting.

        A fetch already running when the signal arrives is followed by one
        more fetch once it finishes.
        """
        entry = self._entries.setdefault(key, CacheEntry())
        entry.generation += 1
        return self._schedule(key, entry)

    async def revalidate(self, key: K) -> V:
        entry = self._entries.setdefault(key, CacheEntry())
        task = self._schedule(key, entry)
        # shield: a cancelled waiter must not cancel the fetch others share.
        return await asyncio.shield(task)

    # -- invalidation --------------------------------------------------------

    def invalidate(self, predicate: Callable[[K], bool]) -> list[K]:
        matched = [k for k in self._entries if predicate(k)]
        for key in matched:
            entry = self._entries[key]
            entry.is_stale = True
            entry.generation += 1
            self._schedule(key, entry)
        if matched:
            log.debug("%s invalidated %d key(s)", self.name, len(matched))
        return matched

    def forget(self, predicate: Callable[[K], bool]) -> list[K]:
        matched = [k for k in self._entries if predicate(k)]
        for key in matched:
            del self._entries[key]
        return matched

    def clear(self) -> None:
        self._entries.clear()

    def add_listener(self, listener: Callable[[K, V], None]) -> Callable[[], None]:
        """listener(key, value) after every applied fetch. Returns an unsubscribe."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    # -- fetching ------------------------------------------------------------

    def _schedule(self, key: K, entry: CacheEntry[V]) -> asyncio.Task:
        if entry.in_flight is None:
            task = asyncio.ensure_future(self._fetch(key, entry))
            task.add_done_callback(self._log_failure)
            entry.in_flight = task
        return entry.in_flight

    async def _fetch(self, key: K, entry: CacheEntry[V]) -> V:
        log.debug("%s fetch %s", self.name, key)
        attempt = 0
        generation = entry.generation
        try:
            while True:
                generation = entry.generation
                try:
                    value = await self._fetcher(key)
                    break
                except TransportError as exc:
                    if attempt < self._error_retry_count:
                        attempt += 1
                        log.warning(
                            "%s fetch %s failed (%s), retry %d/%d",
                            self.name, key, exc, attempt, self._error_retry_count,
                        )
                        await asyncio.sleep(self._error_retry_interval)
                        continue
                    self._record_error(key, entry, exc)
                    raise
                except Exception as exc:
                    self._record_error(key, entry, exc)
                    raise
        finally:
            entry.in_flight = None
            if entry.generation != generation and self._entries.get(key) is entry:
                log.debug("%s %s changed during fetch, fetching again", self.name, key)
                self._schedule(key, entry)

        if self._entries.get(key) is not entry:
            log.debug("%s discarding result for forgotten key %s", self.name, key)
            return value

        entry.value = value
        entry.has_value = True
        entry.error = None
        entry.is_stale = entry.in_flight is not None
        entry.fetched_at = self._clock()
        for listener in list(self._listeners):
            listener(key, value)
        return value

    def _record_error(self, key: K, entry: CacheEntry[V], exc: Exception) -> None:
        # The previous value stays readable; only the error is recorded.
        if self._entries.get(key) is entry:
            entry.error = exc

    def _log_failure(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error("%s revalidation failed: %s", self.name, exc)
