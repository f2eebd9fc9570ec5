import os
from typing import Callable

from slotsync.domain.session import SessionStorage

from .ports import NotificationStream, Transport


def create_backend(
    backend: str | None = None,
) -> tuple[Transport, Callable[[], NotificationStream]]:
    """
    Factory: the transport and the notification stream factory for one backend.

    The backend can be passed explicitly or read from the BOOKING_BACKEND
    env var ("http" or "simulator"). Defaults to "http".  Both halves talk
    to the same authority, so they are always created together.
    """
    backend = backend or os.environ.get("BOOKING_BACKEND", "http")

    if backend == "http":
        from .requests_stream import RequestsNotificationStream
        from .requests_transport import DEFAULT_BASE_URL, RequestsTransport

        base_url = os.environ.get("BOOKING_API_URL", DEFAULT_BASE_URL)
        timeout = float(os.environ.get("BOOKING_API_TIMEOUT", "10"))
        transport = RequestsTransport(base_url=base_url, timeout=timeout)
        return transport, lambda: RequestsNotificationStream(
            base_url=base_url, connect_timeout=timeout, session=transport.session
        )

    if backend == "simulator":
        from .simulator_authority import SimulatorBookingAuthority
        from .simulator_stream import SimulatorNotificationStream

        authority = SimulatorBookingAuthority()
        return authority, lambda: SimulatorNotificationStream(authority)

    raise ValueError(f"Unknown booking backend: {backend!r}")


def create_session_storage(db_path: str | None = None) -> SessionStorage:
    """
    SQLite storage at db_path (or SESSION_DB_PATH, default data/session.db).

    ":memory:" gives a process-local in-memory store.
    """
    db_path = db_path or os.environ.get("SESSION_DB_PATH", "data/session.db")

    if db_path == ":memory:":
        from .simulator_session_storage import InMemorySessionStorage

        return InMemorySessionStorage()

    from .sqlite_session_storage import SqliteSessionStorage

    directory = os.path.dirname(db_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    return SqliteSessionStorage(db_path=db_path)
