#!/usr/bin/env python3
"""
Booking CLI — list resources, book and cancel hourly slots.

Usage (from project root):
    python scripts/book.py                                  # list Room resources
    python scripts/book.py list Desk                        # list resources of a type
    python scripts/book.py grid Room 2026-04-01             # day grid
    python scripts/book.py book <resourceId> 2026-04-01 10  # book 10:00-11:00 UTC
    python scripts/book.py cancel <bookingId>               # cancel a booking
    python scripts/book.py mine [all|active|cancelled|past] # your bookings

Credentials come from BOOKING_EMAIL / BOOKING_PASSWORD unless a stored
session is still valid.
"""

import asyncio
import os
import sys
from datetime import date

# Allow running as `python scripts/book.py` from project root.
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from slotsync.adapters.factory import create_backend, create_session_storage
from slotsync.dashboard import load_day_grid
from slotsync.domain.errors import ApiError
from slotsync.domain.ledger import filter_bookings, resource_names
from slotsync.domain.models import RESOURCE_TYPES
from slotsync.domain.slot_status import OPERATING_HOURS, slot_bounds
from slotsync.engine import BookingEngine, EngineConfig


def _engine() -> BookingEngine:
    transport, stream_factory = create_backend()
    return BookingEngine(EngineConfig(
        transport=transport,
        stream_factory=stream_factory,
        session_storage=create_session_storage(),
    ))


async def _login(engine: BookingEngine) -> bool:
    if engine.session.is_authenticated:
        return True
    email = os.environ.get("BOOKING_EMAIL")
    password = os.environ.get("BOOKING_PASSWORD")
    if not email or not password:
        print("Not logged in: set BOOKING_EMAIL and BOOKING_PASSWORD.")
        return False
    await engine.auth.login(email, password)
    return True


async def list_resources(engine: BookingEngine, resource_type: str) -> None:
    page = await engine.catalog.get(resource_type)
    if not page.items:
        print(f"No {resource_type} resources.")
        return

    print(f"\n{'ID':<38}  {'Name':<24}  {'Location':<20}  Cap.")
    print("-" * 90)
    for r in page.items:
        print(f"{r.id:<38}  {r.name:<24}  {r.location:<20}  {r.capacity:>4}")
    print()


async def show_grid(engine: BookingEngine, resource_type: str, day: date) -> None:
    grid = await load_day_grid(engine, resource_type, day)
    print()
    print(grid.render())
    print("\n  . available   Y yours   x unavailable   - past   (blank) outside booking window\n")


async def book(engine: BookingEngine, resource_id: str, day: date, hour: int) -> None:
    if hour not in OPERATING_HOURS:
        print(f"Hour must be between {OPERATING_HOURS.start} and {OPERATING_HOURS.stop - 1}.")
        return
    user = engine.session.user
    start, _ = slot_bounds(day, hour)
    try:
        booking = await engine.flows.create_booking(resource_id, user.user_id, start)
    except ApiError as exc:
        print(f"Booking failed: {exc.message}")
        if exc.is_conflict:
            print("Someone else got this slot first; refresh the grid and pick another.")
        return
    print(f"Booked {booking.id}: {booking.start_utc:%Y-%m-%d %H:%M} → {booking.end_utc:%H:%M} UTC")


async def cancel(engine: BookingEngine, booking_id: str) -> None:
    user = engine.session.user
    try:
        await engine.flows.cancel_booking(booking_id, user.user_id)
    except ApiError as exc:
        print(f"Cancellation failed: {exc.message}")
        return
    print(f"Booking {booking_id} cancelled.")


async def my_bookings(engine: BookingEngine, which: str) -> None:
    user = engine.session.user
    page = await engine.ledger.get(user.user_id)
    for resource_type in RESOURCE_TYPES:
        await engine.catalog.get(resource_type)
    names = resource_names(engine.catalog.peek(t) for t in RESOURCE_TYPES)

    bookings = filter_bookings(page.items, which)
    if not bookings:
        print(f"No {which} bookings.")
        return

    print(f"\n{'ID':<38}  {'Resource':<24}  {'When (UTC)':<22}  Status")
    print("-" * 100)
    for b in bookings:
        when = f"{b.start_utc:%Y-%m-%d %H:%M}-{b.end_utc:%H:%M}"
        print(f"{b.id:<38}  {names.get(b.resource_id, b.resource_id):<24}  {when:<22}  {b.status}")
    print()


async def main() -> None:
    engine = _engine()
    args = sys.argv[1:]
    cmd = args[0] if args else "list"

    try:
        if cmd == "list":
            await list_resources(engine, args[1] if len(args) >= 2 else "Room")
        elif cmd == "grid" and len(args) >= 3 and await _login(engine):
            await show_grid(engine, args[1], date.fromisoformat(args[2]))
        elif cmd == "book" and len(args) >= 4 and await _login(engine):
            await book(engine, args[1], date.fromisoformat(args[2]), int(args[3]))
        elif cmd == "cancel" and len(args) >= 2 and await _login(engine):
            await cancel(engine, args[1])
        elif cmd == "mine" and await _login(engine):
            await my_bookings(engine, args[1] if len(args) >= 2 else "active")
        else:
            print(__doc__)
    finally:
        engine.close()


if __name__ == "__main__":
    asyncio.run(main())
