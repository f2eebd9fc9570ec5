import asyncio
from typing import AsyncIterator

from .ports import NotificationStream, StreamError
from .simulator_authority import SimulatorBookingAuthority


class SimulatorNotificationStream(NotificationStream):
    """
    Push subscription fed by SimulatorBookingAuthority.

    Opening fails while authority.stream_available is False;
    authority.break_streams() breaks every open subscription.
    """

    def __init__(self, authority: SimulatorBookingAuthority):
        self._authority = authority
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self.is_open = False
        self.closed = False

    async def open(self) -> None:
        await asyncio.sleep(0)
        if not self._authority.stream_available:
            raise StreamError("notification stream unavailable")
        if self.closed:
            raise StreamError("stream closed while opening")
        self._authority.add_listener(self._queue.put_nowait)
        self.is_open = True

    async def events(self) -> AsyncIterator[str]:
        while True:
            payload = await self._queue.get()
            if payload is None:
                raise StreamError("stream dropped")
            yield payload

    def close(self) -> None:
        self._authority.remove_listener(self._queue.put_nowait)
        self.is_open = False
        self.closed = True
