"""
Session port and the process-wide Session object.

The Session holds the current access/refresh tokens and the signed-in
user.  It is created once and passed to whoever needs it; there are no
module-level token globals.  Every write goes to durable storage first,
then to the in-memory copy, so the two never diverge.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace

from slotsync.domain.models import UserProfile

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionCredentials:
    access_token: str
    refresh_token: str
    user: UserProfile | None = None


class SessionStorage(ABC):
    """
    Port: durable storage for the session credentials.

    Survives process restarts.  Tokens and profile are saved and cleared
    together; an implementation must never persist half of them.
    """

    @abstractmethod
    def load(self) -> SessionCredentials | None:
        """Return the persisted credentials, or None if signed out."""
        ...

    @abstractmethod
    def save(self, credentials: SessionCredentials) -> None:
        """Persist credentials atomically. Raise SessionStorageError on failure."""
        ...

    @abstractmethod
    def clear(self) -> None:
        """Remove tokens and profile together."""
        ...


class Session:
    """In-memory view of the credentials, kept in lockstep with storage."""

    def __init__(self, storage: SessionStorage):
        self._storage = storage
        self._credentials = storage.load()
        if self._credentials is not None:
            log.debug("Session restored from storage")

    @property
    def credentials(self) -> SessionCredentials | None:
        return self._credentials

    @property
    def access_token(self) -> str | None:
        return self._credentials.access_token if self._credentials else None

    @property
    def refresh_token(self) -> str | None:
        return self._credentials.refresh_token if self._credentials else None

    @property
    def user(self) -> UserProfile | None:
        return self._credentials.user if self._credentials else None

    @property
    def is_authenticated(self) -> bool:
        return self._credentials is not None and bool(self._credentials.access_token)

    def update(self, credentials: SessionCredentials) -> None:
        # Storage first: if it raises, the in-memory copy is left as it was.
        self._storage.save(credentials)
        self._credentials = credentials

    def update_tokens(self, access_token: str, refresh_token: str) -> None:
        """Swap the tokens, keeping the signed-in user."""
        if self._credentials is None:
            credentials = SessionCredentials(access_token, refresh_token)
        else:
            credentials = replace(
                self._credentials,
                access_token=access_token,
                refresh_token=refresh_token,
            )
        self.update(credentials)

    def clear(self) -> None:
        # Storage first, as in update(): a failed clear leaves both copies set.
        self._storage.clear()
        self._credentials = None
        log.info("Session cleared")
