"""
Authenticated request client and typed endpoint wrappers.

AuthenticatedClient is the only place that talks to the Transport.  It
attaches the bearer token, performs one transparent renewal on 401, and
turns every response into either Success or Failure so callers never
have to sniff response shapes.

BookingApi maps each authority endpoint to a typed call returning the
records from slotsync.domain.models.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from slotsync.adapters.ports import ApiRequest, RawResponse, Transport
from slotsync.domain.errors import (
    ApiError,
    SessionExpired,
    SessionStorageError,
    TransportError,
)
from slotsync.domain.models import (
    AuthTokens,
    AvailableResource,
    Booking,
    CancelResult,
    Page,
    Resource,
    ResourceAvailability,
    ResourceType,
    SignUpResult,
    TimeSlot,
    format_utc,
    parse_utc,
)
from slotsync.domain.session import Session

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Success:
    status: int
    data: Any


@dataclass(frozen=True)
class Failure:
    status: int
    error: ApiError


ApiResponse = Success | Failure


def classify(raw: RawResponse) -> ApiResponse:
    """Turn a raw response into Success or Failure."""
    try:
        payload = json.loads(raw.text) if raw.text else None
    except ValueError:
        payload = None

    if raw.ok:
        return Success(status=raw.status, data=payload if payload is not None else {})
    return Failure(status=raw.status, error=ApiError.from_payload(raw.status, payload, raw.reason))


class AuthenticatedClient:

    def __init__(self, transport: Transport, session: Session):
        self._transport = transport
        self._session = session
        self._renewal: asyncio.Task | None = None

    @property
    def session(self) -> Session:
        return self._session

    async def send(self, request: ApiRequest) -> Success:
        """Send a request; return Success or raise the normalized ApiError."""
        response = classify(await self._send_once(request))

        if (
            isinstance(response, Failure)
            and response.status == 401
            and request.authenticated
        ):
            log.info("%s %s got 401, renewing session", request.method, request.path)
            await self._renew()
            response = classify(await self._send_once(request))

        if isinstance(response, Failure):
            log.debug(
                "%s %s failed: %d %s", request.method, request.path,
                response.status, response.error.message,
            )
            raise response.error
        return response

    async def _send_once(self, request: ApiRequest) -> RawResponse:
        bearer = self._session.access_token if request.authenticated else None
        return await self._transport.send(request, bearer)

    async def _renew(self) -> None:
        # Concurrent 401s share one renewal; the refresh token is single-use.
        if self._renewal is None or self._renewal.done():
            self._renewal = asyncio.ensure_future(self._renew_once())
        renewal = self._renewal
        try:
            await asyncio.shield(renewal)
        finally:
            if renewal.done() and self._renewal is renewal:
                self._renewal = None

    async def _renew_once(self) -> None:
        refresh_token = self._session.refresh_token
        if not refresh_token:
            raise self._expire()

        request = ApiRequest("POST", "/auth/refresh", body={"refreshToken": refresh_token})
        try:
            response = classify(await self._transport.send(request))
        except TransportError as exc:
            log.warning("Session renewal failed: %s", exc)
            raise self._expire() from exc

        if isinstance(response, Failure):
            log.warning("Session renewal rejected: %d %s", response.status, response.error.message)
            raise self._expire()

        try:
            self._session.update_tokens(
                response.data["accessToken"], response.data["refreshToken"]
            )
        except (KeyError, TypeError) as exc:
            raise self._expire() from exc
        except SessionStorageError as exc:
            log.error("Could not persist renewed session: %s", exc)
            raise self._expire() from exc
        log.info("Session renewed")

    def _expire(self) -> SessionExpired:
        try:
            self._session.clear()
        except SessionStorageError as exc:
            log.error("Could not clear stored session: %s", exc)
        return SessionExpired()


# ---------------------------------------------------------------------------
# Payload parsing
# ---------------------------------------------------------------------------


def _opt_utc(value: str | None) -> datetime | None:
    return parse_utc(value) if value else None


def parse_resource(d: dict) -> Resource:
    return Resource(
        id=d["id"],
        name=d.get("name", ""),
        type=d.get("type", "Room"),
        location=d.get("location") or "",
        capacity=int(d.get("capacity") or 1),
        is_active=bool(d.get("isActive", True)),
    )


def parse_booking(d: dict) -> Booking:
    return Booking(
        id=d["id"],
        user_id=d.get("userId", ""),
        resource_id=d["resourceId"],
        start_utc=parse_utc(d["startUtc"]),
        end_utc=parse_utc(d["endUtc"]),
        status=d.get("status", "Active"),
        created_at_utc=parse_utc(d["createdAtUtc"]),
        cancelled_at_utc=_opt_utc(d.get("cancelledAtUtc")),
    )


def parse_resource_availability(d: dict) -> ResourceAvailability:
    return ResourceAvailability(
        resource=parse_resource(d),
        time_slots=[
            TimeSlot(
                start_time=ts.get("startTime", ""),
                end_time=ts.get("endTime", ""),
                status=ts.get("status", ""),
                booking_id=ts.get("bookingId"),
                is_user_booking=ts.get("isUserBooking"),
            )
            for ts in d.get("timeSlots") or []
        ],
    )


def _parse_page(data: dict, parse_item) -> Page:
    return Page(
        items=[parse_item(item) for item in data.get("items", [])],
        page_number=data.get("pageNumber", 1),
        page_size=data.get("pageSize", 0),
        total_count=data.get("totalCount", 0),
        total_pages=data.get("totalPages", 1),
        has_previous_page=data.get("hasPreviousPage", False),
        has_next_page=data.get("hasNextPage", False),
    )


def parse_tokens(d: dict) -> AuthTokens:
    return AuthTokens(
        user_id=d["userId"],
        email=d.get("email", ""),
        name=d.get("name", ""),
        access_token=d["accessToken"],
        refresh_token=d["refreshToken"],
        refresh_token_expires_at=_opt_utc(d.get("refreshTokenExpiresAtUtc")),
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


class BookingApi:
    """Typed wrappers over every endpoint of the booking authority."""

    def __init__(self, client: AuthenticatedClient):
        self._client = client

    # -- auth ----------------------------------------------------------------

    async def signup(self, name: str, email: str, password: str) -> SignUpResult:
        resp = await self._client.send(ApiRequest(
            "POST", "/auth/signup",
            body={"name": name, "email": email, "password": password},
        ))
        d = resp.data
        return SignUpResult(
            user_id=d["userId"],
            email=d.get("email", email),
            name=d.get("name", name),
            created_at_utc=_opt_utc(d.get("createdAtUtc")),
        )

    async def login(self, email: str, password: str) -> AuthTokens:
        resp = await self._client.send(ApiRequest(
            "POST", "/auth/login", body={"email": email, "password": password},
        ))
        return parse_tokens(resp.data)

    # -- resources -----------------------------------------------------------

    async def get_resources(
        self,
        resource_type: ResourceType | None = None,
        page_number: int = 1,
        page_size: int = 100,
    ) -> Page[Resource]:
        params: dict[str, Any] = {"pageNumber": page_number, "pageSize": page_size}
        if resource_type:
            params["type"] = resource_type
        resp = await self._client.send(ApiRequest("GET", "/resources", params=params))
        return _parse_page(resp.data, parse_resource)

    async def get_available_resources(
        self, resource_type: ResourceType, start_utc: datetime, end_utc: datetime
    ) -> list[AvailableResource]:
        resp = await self._client.send(ApiRequest(
            "GET", "/resources/available",
            params={
                "type": resource_type,
                "startUtc": format_utc(start_utc),
                "endUtc": format_utc(end_utc),
            },
        ))
        return [
            AvailableResource(id=r["id"], name=r.get("name", ""))
            for r in resp.data.get("resources") or []
        ]

    async def get_resources_availability(
        self,
        resource_type: ResourceType,
        day: date,
        start_time: str = "07:00",
        end_time: str = "19:00",
        slot_duration: int = 60,
    ) -> list[ResourceAvailability]:
        resp = await self._client.send(ApiRequest(
            "GET", "/resources/availability",
            params={
                "type": resource_type,
                "date": day.isoformat(),
                "startTime": start_time,
                "endTime": end_time,
                "slotDuration": slot_duration,
            },
        ))
        return [parse_resource_availability(r) for r in resp.data.get("resources") or []]

    # -- bookings ------------------------------------------------------------

    async def create_booking(
        self, resource_id: str, user_id: str, start_utc: datetime, end_utc: datetime
    ) -> Booking:
        resp = await self._client.send(ApiRequest(
            "POST", "/bookings",
            body={
                "resourceId": resource_id,
                "userId": user_id,
                "startUtc": format_utc(start_utc),
                "endUtc": format_utc(end_utc),
            },
            authenticated=True,
        ))
        return parse_booking(resp.data)

    async def get_booking(self, booking_id: str) -> Booking:
        resp = await self._client.send(
            ApiRequest("GET", f"/bookings/{booking_id}", authenticated=True)
        )
        return parse_booking(resp.data)

    async def get_user_bookings(
        self, user_id: str, page_number: int = 1, page_size: int = 20
    ) -> Page[Booking]:
        resp = await self._client.send(ApiRequest(
            "GET", f"/bookings/user/{user_id}",
            params={"pageNumber": page_number, "pageSize": page_size},
            authenticated=True,
        ))
        return _parse_page(resp.data, parse_booking)

    async def cancel_booking(self, booking_id: str, user_id: str) -> CancelResult:
        resp = await self._client.send(ApiRequest(
            "DELETE", f"/bookings/{booking_id}/cancel",
            body={"userId": user_id},
            authenticated=True,
        ))
        d = resp.data
        return CancelResult(
            id=d.get("id", booking_id),
            status=d.get("status", "Cancelled"),
            cancelled_at_utc=_opt_utc(d.get("cancelledAtUtc")),
        )
