"""
Server-Sent Events subscription over requests.

Reads GET /notifications/resources with stream=True and dispatches one
event per blank-line-terminated block of "data:" lines.
"""

import asyncio
import logging
from typing import AsyncIterator

import requests

from .ports import NotificationStream, StreamError
from .requests_transport import DEFAULT_BASE_URL, normalize_base_url

log = logging.getLogger(__name__)

NOTIFICATIONS_PATH = "/notifications/resources"


class RequestsNotificationStream(NotificationStream):

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        connect_timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        self.url = f"{normalize_base_url(base_url)}{NOTIFICATIONS_PATH}"
        self.connect_timeout = connect_timeout
        self.session = session or requests.Session()
        self._response: requests.Response | None = None
        self._closed = False

    async def open(self) -> None:
        try:
            resp = await asyncio.to_thread(
                self.session.get,
                self.url,
                stream=True,
                headers={"Accept": "text/event-stream", "Cache-Control": "no-cache"},
                # No read timeout: the server may stay silent for a long time.
                timeout=(self.connect_timeout, None),
            )
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise StreamError(f"could not open {self.url}: {exc}") from exc
        if self._closed:
            resp.close()
            raise StreamError("stream closed while opening")
        self._response = resp
        log.debug("Notification stream open: %s", self.url)

    async def events(self) -> AsyncIterator[str]:
        if self._response is None:
            raise StreamError("stream is not open")
        lines = self._response.iter_lines(decode_unicode=True)
        data: list[str] = []
        while True:
            try:
                line = await asyncio.to_thread(next, lines, None)
            except requests.RequestException as exc:
                raise StreamError(f"stream broke: {exc}") from exc
            if line is None:
                raise StreamError("stream closed by server")
            if not line:
                if data:
                    yield "\n".join(data)
                    data = []
                continue
            if line.startswith(":"):
                continue  # comment / keep-alive
            name, _, value = line.partition(":")
            if value.startswith(" "):
                value = value[1:]
            if name == "data":
                data.append(value)

    def close(self) -> None:
        self._closed = True
        if self._response is not None:
            self._response.close()
            self._response = None
