"""
In-memory SessionStorage for testing — no database required.
"""

from slotsync.domain.errors import SessionStorageError
from slotsync.domain.session import SessionCredentials, SessionStorage


class InMemorySessionStorage(SessionStorage):
    """
    Test helpers:
        fail_next_save()   — make the next save() raise SessionStorageError
        fail_next_clear()  — make the next clear() raise SessionStorageError
        saves              — number of successful save() calls
    """

    def __init__(self, initial: SessionCredentials | None = None):
        self._stored = initial
        self._fail_next = False
        self._fail_next_clear = False
        self.saves = 0

    def fail_next_save(self) -> None:
        self._fail_next = True

    def fail_next_clear(self) -> None:
        self._fail_next_clear = True

    def load(self) -> SessionCredentials | None:
        return self._stored

    def save(self, credentials: SessionCredentials) -> None:
        if self._fail_next:
            self._fail_next = False
            raise SessionStorageError("simulated storage failure")
        self._stored = credentials
        self.saves += 1

    def clear(self) -> None:
        if self._fail_next_clear:
            self._fail_next_clear = False
            raise SessionStorageError("simulated storage failure")
        self._stored = None
