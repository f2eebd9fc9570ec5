"""
Domain records exchanged with the booking authority.

Everything here is a plain dataclass parsed from the remote JSON payloads.
The client never mutates these; a changed booking arrives as a new record
from the server.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Generic, Literal, TypeVar

ResourceType = Literal["Room", "Desk", "ParkingSpot"]
BookingStatus = Literal["Active", "Cancelled"]

RESOURCE_TYPES: tuple[ResourceType, ...] = ("Room", "Desk", "ParkingSpot")

T = TypeVar("T")


def parse_utc(value: str) -> datetime:
    """Parse an ISO timestamp; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_utc(value: datetime) -> str:
    """Render a UTC instant the way the authority expects: 2026-02-20T07:00:00Z."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class Resource:
    """A bookable room, desk or parking spot."""

    id: str
    name: str
    type: ResourceType
    location: str = ""
    capacity: int = 1
    is_active: bool = True


@dataclass(frozen=True)
class AvailableResource:
    """Entry of the coarse GET /resources/available listing."""

    id: str
    name: str


@dataclass(frozen=True)
class TimeSlot:
    """One server-reported slot for a resource."""

    start_time: str   # "07:00" or "2026-02-20T07:00:00"
    end_time: str
    status: str       # "available", "booked", ...
    booking_id: str | None = None
    is_user_booking: bool | None = None


@dataclass(frozen=True)
class ResourceAvailability:
    resource: Resource
    time_slots: list[TimeSlot] = field(default_factory=list)


@dataclass(frozen=True)
class Booking:
    id: str
    user_id: str
    resource_id: str
    start_utc: datetime
    end_utc: datetime
    status: BookingStatus
    created_at_utc: datetime
    cancelled_at_utc: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == "Active"

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Half-open overlap test against [start, end)."""
        return self.start_utc < end and self.end_utc > start


@dataclass(frozen=True)
class Page(Generic[T]):
    """A page of a paginated listing."""

    items: list[T]
    page_number: int = 1
    page_size: int = 0
    total_count: int = 0
    total_pages: int = 1
    has_previous_page: bool = False
    has_next_page: bool = False


@dataclass(frozen=True)
class UserProfile:
    user_id: str
    email: str
    name: str


@dataclass(frozen=True)
class AuthTokens:
    """Response of POST /auth/login and POST /auth/refresh."""

    user_id: str
    email: str
    name: str
    access_token: str
    refresh_token: str
    refresh_token_expires_at: datetime | None = None

    @property
    def profile(self) -> UserProfile:
        return UserProfile(user_id=self.user_id, email=self.email, name=self.name)


@dataclass(frozen=True)
class SignUpResult:
    user_id: str
    email: str
    name: str
    created_at_utc: datetime | None = None


@dataclass(frozen=True)
class CancelResult:
    id: str
    status: str
    cancelled_at_utc: datetime | None = None
