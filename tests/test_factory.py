import pytest

from slotsync.adapters.factory import create_backend, create_session_storage
from slotsync.adapters.requests_stream import RequestsNotificationStream
from slotsync.adapters.requests_transport import RequestsTransport
from slotsync.adapters.simulator_authority import SimulatorBookingAuthority
from slotsync.adapters.simulator_session_storage import InMemorySessionStorage
from slotsync.adapters.simulator_stream import SimulatorNotificationStream
from slotsync.adapters.sqlite_session_storage import SqliteSessionStorage


def test_simulator_backend_shares_one_authority():
    transport, stream_factory = create_backend("simulator")
    assert isinstance(transport, SimulatorBookingAuthority)
    stream = stream_factory()
    assert isinstance(stream, SimulatorNotificationStream)
    assert stream._authority is transport


def test_backend_read_from_env(monkeypatch):
    monkeypatch.setenv("BOOKING_BACKEND", "simulator")
    transport, _ = create_backend()
    assert isinstance(transport, SimulatorBookingAuthority)


def test_http_backend_uses_env_url(monkeypatch):
    monkeypatch.setenv("BOOKING_API_URL", "https://booking.example/")
    monkeypatch.setenv("BOOKING_API_TIMEOUT", "3")
    transport, stream_factory = create_backend("http")
    assert isinstance(transport, RequestsTransport)
    assert transport.base_url == "https://booking.example/api"
    assert transport.timeout == 3.0
    stream = stream_factory()
    assert isinstance(stream, RequestsNotificationStream)
    assert stream.url == "https://booking.example/api/notifications/resources"


def test_unknown_backend():
    with pytest.raises(ValueError):
        create_backend("carrier-pigeon")


def test_memory_session_storage():
    assert isinstance(create_session_storage(":memory:"), InMemorySessionStorage)


def test_sqlite_session_storage_creates_directory(tmp_path, monkeypatch):
    path = tmp_path / "nested" / "session.db"
    monkeypatch.setenv("SESSION_DB_PATH", str(path))
    storage = create_session_storage()
    assert isinstance(storage, SqliteSessionStorage)
    assert path.parent.is_dir()
