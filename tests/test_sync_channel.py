"""
RealTimeSyncChannel state machine against the simulator's notification stream.
"""

import asyncio
from datetime import date

import pytest

from slotsync.adapters.simulator_authority import SimulatorBookingAuthority
from slotsync.adapters.simulator_stream import SimulatorNotificationStream
from slotsync.cache.stores import AvailabilityKey
from slotsync.sync_channel import RealTimeSyncChannel, SyncScope

TODAY = date(2026, 4, 1)
KEY = AvailabilityKey("Room", date(2026, 4, 2))


async def _settle():
    for _ in range(10):
        await asyncio.sleep(0)


class Harness:

    def __init__(self, poll_interval: float = 3600.0):
        self.authority = SimulatorBookingAuthority()
        self.streams: list[SimulatorNotificationStream] = []
        self.changes: list[AvailabilityKey] = []
        self.visible = True
        self.channel = RealTimeSyncChannel(
            stream_factory=self._new_stream,
            on_change=self.changes.append,
            poll_interval=poll_interval,
            is_visible=lambda: self.visible,
        )

    def _new_stream(self) -> SimulatorNotificationStream:
        stream = SimulatorNotificationStream(self.authority)
        self.streams.append(stream)
        return stream


@pytest.fixture
def harness():
    return Harness()


@pytest.mark.asyncio
async def test_starts_disconnected(harness):
    assert harness.channel.state == "disconnected"
    assert harness.channel.key is None


@pytest.mark.asyncio
async def test_no_resources_means_no_connection(harness):
    assert not harness.channel.start(SyncScope(KEY, 0), TODAY)
    assert harness.channel.state == "disconnected"
    assert harness.streams == []


@pytest.mark.asyncio
async def test_day_outside_horizon_means_no_connection(harness):
    far = AvailabilityKey("Room", date(2026, 4, 10))
    assert not harness.channel.start(SyncScope(far, 3), TODAY)
    assert harness.channel.state == "disconnected"


@pytest.mark.asyncio
async def test_connects_then_streams(harness):
    assert harness.channel.start(SyncScope(KEY, 3), TODAY)
    assert harness.channel.state == "connecting"
    await _settle()
    assert harness.channel.state == "streaming"
    assert harness.channel.key == KEY


@pytest.mark.asyncio
async def test_each_event_triggers_revalidation(harness):
    harness.channel.start(SyncScope(KEY, 3), TODAY)
    await _settle()
    harness.authority.notify_changed()
    harness.authority.notify_changed()
    await _settle()
    assert harness.changes == [KEY, KEY]


@pytest.mark.asyncio
async def test_open_failure_falls_back_to_polling(harness):
    harness.authority.stream_available = False
    harness.channel.start(SyncScope(KEY, 3), TODAY)
    await _settle()
    assert harness.channel.state == "polling"
    # First tick is immediate.
    assert harness.changes == [KEY]


@pytest.mark.asyncio
async def test_stream_break_falls_back_to_polling(harness):
    harness.channel.start(SyncScope(KEY, 3), TODAY)
    await _settle()
    harness.authority.break_streams()
    await _settle()
    assert harness.channel.state == "polling"
    assert harness.streams[0].closed
    assert len(harness.streams) == 1


@pytest.mark.asyncio
async def test_polling_skips_ticks_while_hidden(harness):
    harness.visible = False
    harness.authority.stream_available = False
    harness.channel.start(SyncScope(KEY, 3), TODAY)
    await _settle()
    assert harness.channel.state == "polling"
    assert harness.changes == []


@pytest.mark.asyncio
async def test_polling_repeats():
    h = Harness(poll_interval=0)
    h.authority.stream_available = False
    h.channel.start(SyncScope(KEY, 3), TODAY)
    await _settle()
    h.channel.stop()
    assert len(h.changes) >= 2
    assert set(h.changes) == {KEY}


@pytest.mark.asyncio
async def test_stop_closes_stream_and_silences_events(harness):
    harness.channel.start(SyncScope(KEY, 3), TODAY)
    await _settle()
    harness.channel.stop()
    assert harness.channel.state == "disconnected"
    assert harness.streams[0].closed
    harness.authority.notify_changed()
    await _settle()
    assert harness.changes == []


@pytest.mark.asyncio
async def test_stop_is_always_safe(harness):
    harness.channel.stop()
    harness.channel.stop()
    assert harness.channel.state == "disconnected"


@pytest.mark.asyncio
async def test_new_scope_tears_down_previous(harness):
    harness.channel.start(SyncScope(KEY, 3), TODAY)
    await _settle()
    other = AvailabilityKey("Desk", date(2026, 4, 3))
    harness.channel.start(SyncScope(other, 2), TODAY)
    await _settle()
    assert harness.streams[0].closed
    assert harness.channel.key == other
    harness.authority.notify_changed()
    await _settle()
    assert harness.changes == [other]


@pytest.mark.asyncio
async def test_ledger_count_change_triggers_once(harness):
    harness.channel.start(SyncScope(KEY, 3), TODAY)
    await _settle()
    assert not harness.channel.observe_ledger_count(2)
    assert not harness.channel.observe_ledger_count(2)
    assert harness.channel.observe_ledger_count(3)
    assert harness.changes == [KEY]


@pytest.mark.asyncio
async def test_ledger_count_ignored_without_scope(harness):
    harness.channel.observe_ledger_count(1)
    assert not harness.channel.observe_ledger_count(2)
    assert harness.changes == []
