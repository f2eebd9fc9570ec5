"""Sign-up, login and logout against the identity endpoints."""

import logging

from slotsync.api import BookingApi
from slotsync.domain.models import UserProfile
from slotsync.domain.session import Session, SessionCredentials

log = logging.getLogger(__name__)


class AuthService:

    def __init__(self, api: BookingApi, session: Session):
        self._api = api
        self._session = session

    @property
    def user(self) -> UserProfile | None:
        return self._session.user

    async def login(self, email: str, password: str) -> UserProfile:
        tokens = await self._api.login(email, password)
        self._session.update(SessionCredentials(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            user=tokens.profile,
        ))
        log.info("Logged in as %s", tokens.email)
        return tokens.profile

    async def signup(self, name: str, email: str, password: str) -> UserProfile:
        """Create the account, then log straight in."""
        await self._api.signup(name, email, password)
        log.info("Account created for %s", email)
        return await self.login(email, password)

    def logout(self) -> None:
        self._session.clear()
