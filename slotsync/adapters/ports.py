from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Literal

HttpMethod = Literal["GET", "POST", "DELETE"]


@dataclass(frozen=True)
class ApiRequest:
    """One call to the booking authority, relative to the API base URL."""

    method: HttpMethod
    path: str                                   # e.g. "/bookings/user/u-1"
    params: dict[str, Any] = field(default_factory=dict)
    body: dict[str, Any] | None = None
    authenticated: bool = False                 # attach bearer + renew on 401


@dataclass(frozen=True)
class RawResponse:
    """What came back over the wire, before any interpretation."""

    status: int
    text: str = ""
    reason: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class Transport(ABC):
    """
    Port: how requests reach the booking authority.

    The engine depends ONLY on this interface.  It doesn't know or care
    whether requests go over HTTP or into an in-memory simulator.
    """

    @abstractmethod
    async def send(self, request: ApiRequest, bearer: str | None = None) -> RawResponse:
        """
        Deliver the request and return the raw response, whatever its status.
        Raise TransportError when no response could be obtained.
        """
        ...


class StreamError(Exception):
    """The push subscription could not be opened or broke while streaming."""


class NotificationStream(ABC):
    """
    Port: a push subscription to /notifications/resources.

    Each event is a bare "something changed" signal; the payload is
    passed through but never interpreted.
    """

    @abstractmethod
    async def open(self) -> None:
        """Open the subscription. Raise StreamError on failure."""
        ...

    @abstractmethod
    def events(self) -> AsyncIterator[str]:
        """
        Yield event payloads as they arrive.
        Raise StreamError when the stream breaks or is closed by the server.
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Close the subscription. Must be safe to call more than once."""
        ...
