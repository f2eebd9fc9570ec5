"""
Local watcher for one resource type and day.

Logs in, watches the availability of RESOURCE_TYPE on the given day
(default: today) over the notification stream, falls back to polling
every POLL_INTERVAL seconds when the stream is unavailable, and prints the
day grid after every availability update.

Usage:
    source .env && python scripts/run.py [YYYY-MM-DD]

Environment variables (all required unless noted):
    BOOKING_EMAIL        - account e-mail
    BOOKING_PASSWORD     - account password
    BOOKING_BACKEND      - "http" or "simulator" (default: http)
    BOOKING_API_URL      - authority base URL (default: https://localhost:7110)
    BOOKING_API_TIMEOUT  - request timeout in seconds (default: 10)
    RESOURCE_TYPE        - Room, Desk or ParkingSpot (default: Room)
    POLL_INTERVAL        - seconds between polls when not streaming (default: 30)
    SESSION_DB_PATH      - SQLite session path (default: data/session.db)
"""

import asyncio
import logging
import os
import sys
from datetime import date

# Make sure project root is on sys.path when run as a script
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from slotsync.adapters.factory import create_backend, create_session_storage
from slotsync.cache.stores import AvailabilityKey
from slotsync.dashboard import load_day_grid
from slotsync.domain.availability import HourAvailabilityMap
from slotsync.domain.errors import ApiError
from slotsync.domain.models import RESOURCE_TYPES
from slotsync.engine import BookingEngine, EngineConfig

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-7s  %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
log = logging.getLogger(__name__)


def _require_env(name: str) -> str:
    value = os.environ.get(name)
    if not value:
        print(f"ERROR: environment variable {name!r} is not set.", file=sys.stderr)
        sys.exit(1)
    return value


def build_engine() -> BookingEngine:
    transport, stream_factory = create_backend()
    config = EngineConfig(
        transport=transport,
        stream_factory=stream_factory,
        session_storage=create_session_storage(),
        poll_interval=float(os.environ.get("POLL_INTERVAL", "30")),
    )
    return BookingEngine(config)


async def ensure_logged_in(engine: BookingEngine) -> None:
    if engine.session.is_authenticated:
        log.info("Resuming session for %s", engine.session.user.email)
        return
    await engine.auth.login(_require_env("BOOKING_EMAIL"), _require_env("BOOKING_PASSWORD"))


async def print_grid(engine: BookingEngine, key: AvailabilityKey) -> None:
    try:
        grid = await load_day_grid(engine, key.resource_type, key.day)
    except ApiError as exc:
        log.error("Could not build grid: %s", exc.message)
        return
    print(grid.render(), flush=True)


async def main() -> None:
    resource_type = os.environ.get("RESOURCE_TYPE", "Room")
    if resource_type not in RESOURCE_TYPES:
        print(f"ERROR: unknown RESOURCE_TYPE {resource_type!r}.", file=sys.stderr)
        sys.exit(1)
    day = date.fromisoformat(sys.argv[1]) if len(sys.argv) > 1 else date.today()

    engine = build_engine()
    await ensure_logged_in(engine)

    def on_update(key: AvailabilityKey, _: HourAvailabilityMap) -> None:
        asyncio.ensure_future(print_grid(engine, key))

    engine.availability.add_listener(on_update)

    if not await engine.watch(resource_type, day):
        log.info("Nothing to watch: no %s resources or %s is outside the booking window", resource_type, day)
        await print_grid(engine, AvailabilityKey(resource_type, day))
        return

    log.info("Watcher started — type=%s  day=%s", resource_type, day)
    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        engine.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        log.info("Watcher stopped.")
