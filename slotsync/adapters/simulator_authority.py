import asyncio
import itertools
import json
import re
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable

from slotsync.domain.errors import TransportError
from slotsync.domain.models import Booking, Resource, format_utc, parse_utc

from .ports import ApiRequest, RawResponse, Transport

_REASONS = {
    200: "OK", 201: "Created", 204: "No Content", 400: "Bad Request",
    401: "Unauthorized", 403: "Forbidden", 404: "Not Found", 409: "Conflict",
    500: "Internal Server Error",
}


def _json(status: int, payload: Any) -> RawResponse:
    return RawResponse(status=status, text=json.dumps(payload), reason=_REASONS.get(status, ""))


def _error(status: int, title: str, detail: str) -> RawResponse:
    return _json(status, {"title": title, "status": status, "detail": detail})


def _booking_json(b: Booking) -> dict:
    return {
        "id": b.id,
        "userId": b.user_id,
        "resourceId": b.resource_id,
        "startUtc": format_utc(b.start_utc),
        "endUtc": format_utc(b.end_utc),
        "createdAtUtc": format_utc(b.created_at_utc),
        "status": b.status,
        "cancelledAtUtc": format_utc(b.cancelled_at_utc) if b.cancelled_at_utc else None,
    }


def _resource_json(r: Resource) -> dict:
    return {
        "id": r.id,
        "name": r.name,
        "type": r.type,
        "location": r.location,
        "capacity": r.capacity,
        "isActive": r.is_active,
    }


def _page_json(items: list[dict], page_number: int, page_size: int) -> dict:
    total = len(items)
    total_pages = max(1, -(-total // page_size)) if page_size else 1
    start = (page_number - 1) * page_size
    return {
        "items": items[start:start + page_size],
        "pageNumber": page_number,
        "pageSize": page_size,
        "totalCount": total,
        "totalPages": total_pages,
        "hasPreviousPage": page_number > 1,
        "hasNextPage": page_number < total_pages,
    }


class SimulatorBookingAuthority(Transport):
    """
    In-memory fake of the booking authority. No mocking framework needed.

    Behaves like the real server at the wire level: JSON bodies, structured
    {title, status, detail} errors, bearer tokens, server-side conflict
    detection.

    Test helpers:
        register_user()          — create an account directly
        add_resource()           — add a resource to the catalog
        add_booking()            — book on behalf of any user (e.g. someone else)
        expire_access_tokens()   — every outstanding access token now gets 401
        revoke_refresh_tokens()  — every refresh token is rejected
        fail_next(n)             — the next n sends raise TransportError
        respond_next(status, text) — the next send returns this raw response
        hold()                   — returns an Event; sends wait until it is set
        calls / count_calls()    — every request received
        bearers                  — bearer token seen on each request
        stream_available         — whether notification streams may open
        slot_time_format         — "hh:mm" or "iso" slot boundary encoding
    """

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._ids = itertools.count(1)
        self._users: dict[str, dict] = {}             # email -> user record
        self._access: dict[str, str] = {}             # token -> user_id
        self._refresh: dict[str, str] = {}            # token -> user_id
        self._resources: list[Resource] = []
        self._bookings: dict[str, Booking] = {}
        self._listeners: list[Callable[[str | None], None]] = []
        self._failures = 0
        self._forced: list[RawResponse] = []
        self._gate: asyncio.Event | None = None
        self.calls: list[ApiRequest] = []
        self.bearers: list[str | None] = []
        self.stream_available = True
        self.slot_time_format = "hh:mm"

    # -- test helpers --------------------------------------------------------

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def register_user(self, name: str, email: str, password: str) -> str:
        user_id = self._next_id("user")
        self._users[email] = {
            "userId": user_id,
            "email": email,
            "name": name,
            "password": password,
            "createdAtUtc": format_utc(self.clock()),
        }
        return user_id

    def add_resource(self, resource: Resource) -> Resource:
        self._resources.append(resource)
        return resource

    def add_booking(
        self, user_id: str, resource_id: str, start: datetime, end: datetime
    ) -> Booking:
        booking = Booking(
            id=self._next_id("booking"),
            user_id=user_id,
            resource_id=resource_id,
            start_utc=start,
            end_utc=end,
            status="Active",
            created_at_utc=self.clock(),
        )
        self._bookings[booking.id] = booking
        self.notify_changed()
        return booking

    def get_booking(self, booking_id: str) -> Booking | None:
        return self._bookings.get(booking_id)

    def expire_access_tokens(self) -> None:
        self._access.clear()

    def revoke_refresh_tokens(self) -> None:
        self._refresh.clear()

    def fail_next(self, times: int = 1) -> None:
        self._failures += times

    def respond_next(self, status: int, text: str = "", reason: str = "") -> None:
        self._forced.append(RawResponse(status=status, text=text, reason=reason))

    def hold(self) -> asyncio.Event:
        self._gate = asyncio.Event()
        return self._gate

    def count_calls(self, method: str, path_prefix: str) -> int:
        return sum(
            1 for c in self.calls
            if c.method == method and c.path.startswith(path_prefix)
        )

    # -- notifications -------------------------------------------------------

    def add_listener(self, listener: Callable[[str | None], None]) -> None:
        """listener(payload) on every change; listener(None) when streams break."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[str | None], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def notify_changed(self) -> None:
        for listener in list(self._listeners):
            listener("resources-changed")

    def break_streams(self) -> None:
        for listener in list(self._listeners):
            listener(None)

    # -- Transport -----------------------------------------------------------

    async def send(self, request: ApiRequest, bearer: str | None = None) -> RawResponse:
        self.calls.append(request)
        self.bearers.append(bearer)
        if self._gate is not None:
            await self._gate.wait()
        else:
            await asyncio.sleep(0)
        if self._failures:
            self._failures -= 1
            raise TransportError("simulated network failure")
        if self._forced:
            return self._forced.pop(0)
        return self._route(request, bearer)

    def _route(self, request: ApiRequest, bearer: str | None) -> RawResponse:
        method, path = request.method, request.path
        params, body = request.params, request.body or {}

        if method == "POST" and path == "/auth/signup":
            return self._signup(body)
        if method == "POST" and path == "/auth/login":
            return self._login(body)
        if method == "POST" and path == "/auth/refresh":
            return self._refresh_tokens(body)
        if method == "GET" and path == "/resources":
            return self._list_resources(params)
        if method == "GET" and path == "/resources/available":
            return self._available(params)
        if method == "GET" and path == "/resources/availability":
            return self._availability(params, self._access.get(bearer or ""))

        # Everything below requires a valid bearer token.
        user_id = self._access.get(bearer or "")
        if user_id is None:
            return _error(401, "Unauthorized", "Missing or expired access token.")

        if method == "POST" and path == "/bookings":
            return self._create_booking(user_id, body)
        m = re.fullmatch(r"/bookings/user/([^/]+)", path)
        if method == "GET" and m:
            return self._user_bookings(user_id, m.group(1), params)
        m = re.fullmatch(r"/bookings/([^/]+)/cancel", path)
        if method == "DELETE" and m:
            return self._cancel(user_id, m.group(1), body)
        m = re.fullmatch(r"/bookings/([^/]+)", path)
        if method == "GET" and m:
            booking = self._bookings.get(m.group(1))
            if booking is None:
                return _error(404, "Not Found", f"Booking {m.group(1)} was not found.")
            return _json(200, _booking_json(booking))

        return _error(404, "Not Found", f"No route for {method} {path}.")

    # -- auth ----------------------------------------------------------------

    def _issue_tokens(self, user: dict) -> dict:
        access = self._next_id("access")
        refresh = self._next_id("refresh")
        self._access[access] = user["userId"]
        self._refresh[refresh] = user["userId"]
        return {
            "userId": user["userId"],
            "email": user["email"],
            "name": user["name"],
            "accessToken": access,
            "refreshToken": refresh,
            "refreshTokenExpiresAtUtc": format_utc(self.clock() + timedelta(days=7)),
        }

    def _signup(self, body: dict) -> RawResponse:
        name, email, password = body.get("name"), body.get("email"), body.get("password")
        if not name or not email or not password:
            return _error(400, "Validation Failed", "Name, email and password are required.")
        if email in self._users:
            return _error(409, "Conflict", "An account with this email already exists.")
        self.register_user(name, email, password)
        user = self._users[email]
        return _json(201, {k: user[k] for k in ("userId", "email", "name", "createdAtUtc")})

    def _login(self, body: dict) -> RawResponse:
        user = self._users.get(body.get("email", ""))
        if user is None or user["password"] != body.get("password"):
            return _error(401, "Unauthorized", "Invalid email or password.")
        return _json(200, self._issue_tokens(user))

    def _refresh_tokens(self, body: dict) -> RawResponse:
        user_id = self._refresh.pop(body.get("refreshToken", ""), None)
        if user_id is None:
            return _error(401, "Unauthorized", "Invalid refresh token.")
        user = next(u for u in self._users.values() if u["userId"] == user_id)
        return _json(200, self._issue_tokens(user))

    # -- resources -----------------------------------------------------------

    def _of_type(self, resource_type: str | None) -> list[Resource]:
        return [
            r for r in self._resources
            if r.is_active and (not resource_type or r.type == resource_type)
        ]

    def _blocking_booking(self, resource_id: str, start: datetime, end: datetime) -> Booking | None:
        """Return the blocking booking, or None if [start, end) is free."""
        for b in self._bookings.values():
            if b.resource_id == resource_id and b.is_active and b.overlaps(start, end):
                return b
        return None

    def _list_resources(self, params: dict) -> RawResponse:
        page_number = int(params.get("pageNumber", 1))
        page_size = int(params.get("pageSize", 100))
        items = [_resource_json(r) for r in self._of_type(params.get("type"))]
        return _json(200, _page_json(items, page_number, page_size))

    def _available(self, params: dict) -> RawResponse:
        try:
            start = parse_utc(params["startUtc"])
            end = parse_utc(params["endUtc"])
        except (KeyError, ValueError):
            return _error(400, "Validation Failed", "startUtc and endUtc are required.")
        free = [
            {"id": r.id, "name": r.name}
            for r in self._of_type(params.get("type"))
            if self._blocking_booking(r.id, start, end) is None
        ]
        return _json(200, {"resources": free})

    def _availability(self, params: dict, caller: str | None) -> RawResponse:
        try:
            day = date.fromisoformat(params["date"])
            first = datetime.strptime(params.get("startTime", "07:00"), "%H:%M")
            last = datetime.strptime(params.get("endTime", "19:00"), "%H:%M")
            step = timedelta(minutes=int(params.get("slotDuration", 60)))
        except (KeyError, ValueError):
            return _error(400, "Validation Failed", "Invalid availability query.")

        day_start = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
        cursor = day_start + timedelta(hours=first.hour, minutes=first.minute)
        stop = day_start + timedelta(hours=last.hour, minutes=last.minute)
        windows = []
        while cursor + step <= stop:
            windows.append((cursor, cursor + step))
            cursor += step

        resources = []
        for r in self._of_type(params.get("type")):
            slots = []
            for start, end in windows:
                blocking = self._blocking_booking(r.id, start, end)
                slots.append({
                    "startTime": self._slot_time(start),
                    "endTime": self._slot_time(end),
                    "status": "booked" if blocking else "available",
                    "bookingId": blocking.id if blocking else None,
                    "isUserBooking": bool(blocking and blocking.user_id == caller),
                })
            resources.append({**_resource_json(r), "timeSlots": slots})
        return _json(200, {"date": day.isoformat(), "resources": resources})

    def _slot_time(self, instant: datetime) -> str:
        if self.slot_time_format == "iso":
            return instant.strftime("%Y-%m-%dT%H:%M:%S")
        return instant.strftime("%H:%M")

    # -- bookings ------------------------------------------------------------

    def _create_booking(self, caller: str, body: dict) -> RawResponse:
        if body.get("userId") != caller:
            return _error(403, "Forbidden", "You can only book for yourself.")
        resource_id = body.get("resourceId", "")
        if not any(r.id == resource_id for r in self._resources):
            return _error(404, "Not Found", f"Resource {resource_id} was not found.")
        try:
            start = parse_utc(body["startUtc"])
            end = parse_utc(body["endUtc"])
        except (KeyError, ValueError):
            return _error(400, "Validation Failed", "startUtc and endUtc are required.")
        if end <= start:
            return _error(400, "Validation Failed", "endUtc must be after startUtc.")
        if self._blocking_booking(resource_id, start, end) is not None:
            return _error(409, "Conflict", "The resource is already booked for the requested time.")
        booking = self.add_booking(caller, resource_id, start, end)
        return _json(201, _booking_json(booking))

    def _user_bookings(self, caller: str, user_id: str, params: dict) -> RawResponse:
        if user_id != caller:
            return _error(403, "Forbidden", "You can only list your own bookings.")
        page_number = int(params.get("pageNumber", 1))
        page_size = int(params.get("pageSize", 20))
        mine = sorted(
            (b for b in self._bookings.values() if b.user_id == user_id),
            key=lambda b: b.start_utc,
            reverse=True,
        )
        return _json(200, _page_json([_booking_json(b) for b in mine], page_number, page_size))

    def _cancel(self, caller: str, booking_id: str, body: dict) -> RawResponse:
        booking = self._bookings.get(booking_id)
        if booking is None:
            return _error(404, "Not Found", f"Booking {booking_id} was not found.")
        if booking.user_id != caller or body.get("userId") != caller:
            return _error(403, "Forbidden", "You can only cancel your own bookings.")
        if not booking.is_active:
            return _error(400, "Validation Failed", "Booking is already cancelled.")
        cancelled = replace(booking, status="Cancelled", cancelled_at_utc=self.clock())
        self._bookings[booking_id] = cancelled
        self.notify_changed()
        return _json(200, {
            "id": cancelled.id,
            "status": cancelled.status,
            "cancelledAtUtc": format_utc(cancelled.cancelled_at_utc),
        })
