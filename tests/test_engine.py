"""
Engine wiring: sync channel, bus signals and ledger guard all reach the
availability cache.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from slotsync.adapters.simulator_authority import SimulatorBookingAuthority
from slotsync.adapters.simulator_session_storage import InMemorySessionStorage
from slotsync.adapters.simulator_stream import SimulatorNotificationStream
from slotsync.domain.models import Resource
from slotsync.engine import BookingEngine, EngineConfig

EMAIL = "alice@example.com"
PASSWORD = "s3cret!"
TODAY = datetime.now(timezone.utc).date()
DAY = TODAY + timedelta(days=1)
TEN = datetime(DAY.year, DAY.month, DAY.day, 10, tzinfo=timezone.utc)


async def _settle():
    for _ in range(20):
        await asyncio.sleep(0)


def _availability_calls(authority) -> int:
    return authority.count_calls("GET", "/resources/availability")


@pytest.fixture
def authority():
    sim = SimulatorBookingAuthority()
    sim.register_user("Alice", EMAIL, PASSWORD)
    sim.add_resource(Resource("room-1", "Blue Room", "Room", "Floor 1", 6))
    return sim


@pytest.fixture
def visibility():
    return {"visible": True}


@pytest.fixture
def engine(authority, visibility):
    return BookingEngine(EngineConfig(
        transport=authority,
        stream_factory=lambda: SimulatorNotificationStream(authority),
        session_storage=InMemorySessionStorage(),
        poll_interval=3600,
        is_visible=lambda: visibility["visible"],
        error_retry_interval=0,
    ))


@pytest_asyncio.fixture
async def user(engine):
    return await engine.auth.login(EMAIL, PASSWORD)


@pytest.mark.asyncio
async def test_watch_streams_and_refreshes_on_push(engine, user, authority):
    assert await engine.watch("Room", DAY, today=TODAY)
    await engine.availability.get("Room", DAY)
    await _settle()
    assert engine.sync.state == "streaming"

    authority.add_booking("someone-else", "room-1", TEN, TEN + timedelta(hours=1))
    await _settle()

    assert not engine.availability.peek("Room", DAY).is_available("room-1", 10)
    engine.close()


@pytest.mark.asyncio
async def test_watch_without_resources_stays_disconnected(engine, user):
    assert not await engine.watch("Desk", DAY, today=TODAY)
    assert engine.sync.state == "disconnected"


@pytest.mark.asyncio
async def test_watch_past_day_stays_disconnected(engine, user):
    assert not await engine.watch("Room", TODAY - timedelta(days=1), today=TODAY)
    assert engine.sync.state == "disconnected"


@pytest.mark.asyncio
async def test_polling_fallback_refreshes_immediately(engine, user, authority):
    authority.stream_available = False
    await engine.watch("Room", DAY, today=TODAY)
    await _settle()
    assert engine.sync.state == "polling"
    assert _availability_calls(authority) == 1
    engine.close()


@pytest.mark.asyncio
async def test_bus_signal_refreshes_watched_availability(engine, user, authority, visibility):
    visibility["visible"] = False
    authority.stream_available = False
    await engine.watch("Room", DAY, today=TODAY)
    await _settle()
    assert _availability_calls(authority) == 0

    engine.bus.publish("resources:Room")
    await _settle()

    assert _availability_calls(authority) == 1
    engine.close()


@pytest.mark.asyncio
async def test_ledger_count_change_refreshes_availability(engine, user, authority, visibility):
    visibility["visible"] = False
    authority.stream_available = False
    await engine.watch("Room", DAY, today=TODAY)
    await engine.ledger.get(user.user_id)
    await _settle()
    assert _availability_calls(authority) == 0

    # Booked from another device: no push reaches this engine.
    authority.add_booking(user.user_id, "room-1", TEN, TEN + timedelta(hours=1))
    await engine.ledger.revalidate(user.user_id)
    await _settle()

    assert _availability_calls(authority) == 1
    engine.close()


@pytest.mark.asyncio
async def test_unwatch_disconnects(engine, user):
    await engine.watch("Room", DAY, today=TODAY)
    await _settle()
    engine.unwatch()
    assert engine.sync.state == "disconnected"
    assert engine.sync.key is None


@pytest.mark.asyncio
async def test_close_unsubscribes_everything(engine, user, authority):
    authority.stream_available = False
    await engine.watch("Room", DAY, today=TODAY)
    await _settle()
    calls = _availability_calls(authority)

    engine.close()
    engine.bus.publish("resources")
    await _settle()

    assert engine.sync.state == "disconnected"
    assert _availability_calls(authority) == calls
