"""
SQLite adapter for SessionStorage.

Use ":memory:" for tests, a file path for production.
"""

import sqlite3
from datetime import datetime, timezone

from slotsync.domain.errors import SessionStorageError
from slotsync.domain.models import UserProfile
from slotsync.domain.session import SessionCredentials, SessionStorage

_SCHEMA = """
CREATE TABLE IF NOT EXISTS session (
    id              INTEGER PRIMARY KEY CHECK (id = 1),
    access_token    TEXT NOT NULL,
    refresh_token   TEXT NOT NULL,
    user_id         TEXT,
    email           TEXT,
    name            TEXT,
    updated_at      TEXT NOT NULL
);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SqliteSessionStorage(SessionStorage):

    def __init__(self, db_path: str = "session.db"):
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)

    def load(self) -> SessionCredentials | None:
        try:
            row = self._conn.execute("SELECT * FROM session WHERE id = 1").fetchone()
        except sqlite3.Error as exc:
            raise SessionStorageError(f"could not read session: {exc}") from exc
        if not row:
            return None
        user = None
        if row["user_id"]:
            user = UserProfile(
                user_id=row["user_id"],
                email=row["email"] or "",
                name=row["name"] or "",
            )
        return SessionCredentials(
            access_token=row["access_token"],
            refresh_token=row["refresh_token"],
            user=user,
        )

    def save(self, credentials: SessionCredentials) -> None:
        user = credentials.user
        try:
            # Connection as context manager: commit on success, rollback on error.
            with self._conn:
                self._conn.execute(
                    "INSERT OR REPLACE INTO session"
                    " (id, access_token, refresh_token, user_id, email, name, updated_at)"
                    " VALUES (1, ?, ?, ?, ?, ?, ?)",
                    (
                        credentials.access_token,
                        credentials.refresh_token,
                        user.user_id if user else None,
                        user.email if user else None,
                        user.name if user else None,
                        _now(),
                    ),
                )
        except sqlite3.Error as exc:
            raise SessionStorageError(f"could not save session: {exc}") from exc

    def clear(self) -> None:
        try:
            with self._conn:
                self._conn.execute("DELETE FROM session")
        except sqlite3.Error as exc:
            raise SessionStorageError(f"could not clear session: {exc}") from exc
