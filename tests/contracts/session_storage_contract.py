"""
Adapter contract for SessionStorage.

Any implementation (in-memory, SQLite, ...) must pass these tests.
"""

from abc import ABC, abstractmethod

from slotsync.domain.models import UserProfile
from slotsync.domain.session import Session, SessionCredentials, SessionStorage

ALICE = UserProfile(user_id="user-1", email="alice@example.com", name="Alice")


class SessionStorageContract(ABC):

    @abstractmethod
    def create_storage(self) -> SessionStorage:
        """Return a fresh, empty storage instance."""
        ...

    def test_empty_storage_loads_none(self):
        storage = self.create_storage()
        assert storage.load() is None

    def test_save_and_load(self):
        storage = self.create_storage()
        storage.save(SessionCredentials("access-1", "refresh-1", ALICE))
        loaded = storage.load()
        assert loaded is not None
        assert loaded.access_token == "access-1"
        assert loaded.refresh_token == "refresh-1"
        assert loaded.user == ALICE

    def test_save_without_user(self):
        storage = self.create_storage()
        storage.save(SessionCredentials("access-1", "refresh-1"))
        loaded = storage.load()
        assert loaded is not None
        assert loaded.user is None

    def test_overwrite_replaces_everything(self):
        storage = self.create_storage()
        storage.save(SessionCredentials("access-1", "refresh-1", ALICE))
        bob = UserProfile(user_id="user-2", email="bob@example.com", name="Bob")
        storage.save(SessionCredentials("access-2", "refresh-2", bob))
        loaded = storage.load()
        assert loaded.access_token == "access-2"
        assert loaded.refresh_token == "refresh-2"
        assert loaded.user == bob

    def test_clear_removes_tokens_and_profile(self):
        storage = self.create_storage()
        storage.save(SessionCredentials("access-1", "refresh-1", ALICE))
        storage.clear()
        assert storage.load() is None

    def test_clear_on_empty_storage_is_safe(self):
        storage = self.create_storage()
        storage.clear()
        assert storage.load() is None

    def test_session_restores_from_storage(self):
        storage = self.create_storage()
        storage.save(SessionCredentials("access-1", "refresh-1", ALICE))
        session = Session(storage)
        assert session.is_authenticated
        assert session.user == ALICE

    def test_update_tokens_keeps_user(self):
        storage = self.create_storage()
        session = Session(storage)
        session.update(SessionCredentials("access-1", "refresh-1", ALICE))
        session.update_tokens("access-2", "refresh-2")
        loaded = storage.load()
        assert loaded.access_token == "access-2"
        assert loaded.refresh_token == "refresh-2"
        assert loaded.user == ALICE
        assert session.access_token == "access-2"

    def test_session_clear_clears_storage(self):
        storage = self.create_storage()
        session = Session(storage)
        session.update(SessionCredentials("access-1", "refresh-1", ALICE))
        session.clear()
        assert not session.is_authenticated
        assert session.user is None
        assert storage.load() is None
