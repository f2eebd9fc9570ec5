"""
Server-Sent Events parsing in RequestsNotificationStream.

The requests.Session is replaced by a small in-process fake that replays
canned lines, so no server is needed.
"""

import pytest
import requests

from slotsync.adapters.ports import StreamError
from slotsync.adapters.requests_stream import RequestsNotificationStream


class FakeResponse:

    def __init__(self, lines: list[str], status: int = 200):
        self._lines = lines
        self.status_code = status
        self.closed = False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def iter_lines(self, decode_unicode: bool = False):
        return iter(self._lines)

    def close(self):
        self.closed = True


class FakeSession:

    def __init__(self, response: FakeResponse | None = None, error: Exception | None = None):
        self.response = response
        self.error = error
        self.requests: list[tuple[str, dict]] = []

    def get(self, url, **kwargs):
        self.requests.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


async def _collect(stream) -> tuple[list[str], Exception | None]:
    events = []
    try:
        async for event in stream.events():
            events.append(event)
    except StreamError as exc:
        return events, exc
    return events, None


@pytest.mark.asyncio
async def test_open_requests_event_stream():
    session = FakeSession(FakeResponse([]))
    stream = RequestsNotificationStream("https://booking.example", session=session)
    await stream.open()

    url, kwargs = session.requests[0]
    assert url == "https://booking.example/api/notifications/resources"
    assert kwargs["stream"] is True
    assert kwargs["headers"]["Accept"] == "text/event-stream"


@pytest.mark.asyncio
async def test_data_lines_are_joined_per_event():
    lines = ["data: first", "data: second", "", ": keep-alive", "", "event: change", "data: third", ""]
    stream = RequestsNotificationStream(session=FakeSession(FakeResponse(lines)))
    await stream.open()

    events, error = await _collect(stream)

    assert events == ["first\nsecond", "third"]
    assert isinstance(error, StreamError)


@pytest.mark.asyncio
async def test_connection_failure_is_stream_error():
    stream = RequestsNotificationStream(session=FakeSession(error=requests.ConnectionError("refused")))
    with pytest.raises(StreamError):
        await stream.open()


@pytest.mark.asyncio
async def test_http_error_is_stream_error():
    stream = RequestsNotificationStream(session=FakeSession(FakeResponse([], status=503)))
    with pytest.raises(StreamError):
        await stream.open()


@pytest.mark.asyncio
async def test_close_releases_response():
    response = FakeResponse(["data: x", ""])
    stream = RequestsNotificationStream(session=FakeSession(response))
    await stream.open()
    stream.close()
    stream.close()
    assert response.closed
    with pytest.raises(StreamError):
        await stream.events().__anext__()
