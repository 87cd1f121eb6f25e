# ruff: noqa: TC003
from __future__ import annotations

import logging
import secrets
import uuid
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import bcrypt

from leavedesk.config import get_settings
from leavedesk.exceptions import NotFound, Unauthenticated
from leavedesk.models.base import now_utc
from leavedesk.models.enums import IdentityStatus
from leavedesk.schemas.auth import AuthSession, IdentityState
from leavedesk.schemas.employee import EmployeeResponse

if TYPE_CHECKING:
    from collections.abc import Callable

    from leavedesk.models.employee import Employee
    from leavedesk.services.store import LeaveStore

logger = logging.getLogger(__name__)


@runtime_checkable
class IdentityProvider(Protocol):
    """Interface for the session-based identity provider."""

    async def sign_in(self, email: str, password: str) -> AuthSession:
        """Exchange credentials for a session. Raises Unauthenticated."""
        ...

    async def sign_out(self, token: str) -> None:
        """Invalidate a session. Unknown tokens are ignored."""
        ...

    async def refresh(self, token: str) -> AuthSession:
        """Replace a live session with a new token. Raises Unauthenticated."""
        ...

    async def get_session(self, token: str) -> AuthSession | None:
        """Look up a live session. Returns None if unknown or expired."""
        ...


class _Account:
    __slots__ = ("email", "password_hash", "user_id")

    def __init__(self, user_id: uuid.UUID, email: str, password_hash: bytes) -> None:
        self.user_id = user_id
        self.email = email
        self.password_hash = password_hash


class InMemoryIdentityProvider:
    """In-memory stub implementation for development and tests."""

    def __init__(
        self,
        session_ttl: timedelta | None = None,
        clock: Callable[[], datetime] = now_utc,
        hash_rounds: int = 12,
    ) -> None:
        self._accounts: dict[str, _Account] = {}
        self._sessions: dict[str, AuthSession] = {}
        self._session_ttl = session_ttl
        self._clock = clock
        self._hash_rounds = hash_rounds

    @property
    def session_ttl(self) -> timedelta:
        if self._session_ttl is not None:
            return self._session_ttl
        return timedelta(minutes=get_settings().session_ttl_minutes)

    def register(self, email: str, password: str, user_id: uuid.UUID) -> None:
        """Seed an account. The user id must match the employee profile id."""
        password_hash = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self._hash_rounds))
        self._accounts[email.lower()] = _Account(user_id, email, password_hash)

    def _prune_expired(self) -> None:
        now = self._clock()
        for token in [t for t, s in self._sessions.items() if s.expires_at <= now]:
            del self._sessions[token]

    def _issue(self, account: _Account) -> AuthSession:
        self._prune_expired()
        session = AuthSession(
            token=secrets.token_urlsafe(32),
            user_id=account.user_id,
            email=account.email,
            expires_at=self._clock() + self.session_ttl,
        )
        self._sessions[session.token] = session
        return session

    async def sign_in(self, email: str, password: str) -> AuthSession:
        account = self._accounts.get(email.lower())
        if account is None or not bcrypt.checkpw(password.encode("utf-8"), account.password_hash):
            logger.info("Failed sign-in for %s", email)
            raise Unauthenticated("Invalid login credentials")
        return self._issue(account)

    async def sign_out(self, token: str) -> None:
        self._sessions.pop(token, None)

    async def refresh(self, token: str) -> AuthSession:
        session = await self.get_session(token)
        if session is None:
            raise Unauthenticated("Session is invalid or has expired")
        del self._sessions[token]
        return self._issue(self._accounts[session.email.lower()])

    async def get_session(self, token: str) -> AuthSession | None:
        session = self._sessions.get(token)
        if session is None:
            return None
        if session.expires_at <= self._clock():
            del self._sessions[token]
            return None
        return session


_identity_provider: IdentityProvider = InMemoryIdentityProvider()


def get_identity_provider() -> IdentityProvider:
    """FastAPI dependency for the identity provider."""
    return _identity_provider


def set_identity_provider(provider: IdentityProvider) -> None:
    """Override the provider (for testing or production wiring)."""
    global _identity_provider
    _identity_provider = provider


class IdentityResolver:
    """Maps a session token to the employee profile behind it."""

    def __init__(self, provider: IdentityProvider, store: LeaveStore) -> None:
        self.provider = provider
        self.store = store

    async def resolve(self, token: str | None) -> Employee:
        """Return the signed-in employee.

        Raises Unauthenticated without a live session and NotFound when the
        session has no employee profile behind it.
        """
        if not token:
            raise Unauthenticated("Not signed in")
        session = await self.provider.get_session(token)
        if session is None:
            raise Unauthenticated("Session is invalid or has expired")
        employee = await self.store.get_employee(session.user_id)
        if employee is None:
            raise NotFound("No employee profile for this account")
        return employee


class IdentityContext:
    """Per-client identity state that follows session changes.

    Every change drops the previously resolved employee and reports LOADING
    before re-resolving, so nothing downstream ever acts on a stale identity.
    """

    def __init__(self, resolver: IdentityResolver) -> None:
        self._resolver = resolver
        self._token: str | None = None
        self._employee: Employee | None = None
        self._state = IdentityState(status=IdentityStatus.ANONYMOUS)

    @property
    def state(self) -> IdentityState:
        return self._state

    @property
    def employee(self) -> Employee | None:
        return self._employee

    @property
    def token(self) -> str | None:
        return self._token

    def _discard(self) -> None:
        self._employee = None
        self._state = IdentityState(status=IdentityStatus.LOADING)

    async def on_session_change(self, token: str | None) -> IdentityState:
        """Re-resolve identity for a new (or absent) session token."""
        self._discard()
        self._token = token
        if token is None:
            self._state = IdentityState(status=IdentityStatus.ANONYMOUS)
            return self._state
        try:
            employee = await self._resolver.resolve(token)
        except Unauthenticated as exc:
            self._token = None
            self._state = IdentityState(status=IdentityStatus.ANONYMOUS, detail=exc.message)
        except NotFound as exc:
            self._state = IdentityState(status=IdentityStatus.NO_PROFILE, detail=exc.message)
        else:
            self._employee = employee
            self._state = IdentityState(
                status=IdentityStatus.AUTHENTICATED,
                employee=EmployeeResponse.model_validate(employee, from_attributes=True),
            )
        return self._state

    async def sign_in(self, email: str, password: str) -> IdentityState:
        session = await self._resolver.provider.sign_in(email, password)
        return await self.on_session_change(session.token)

    async def refresh(self) -> IdentityState:
        if self._token is None:
            raise Unauthenticated("Not signed in")
        try:
            session = await self._resolver.provider.refresh(self._token)
        except Unauthenticated as exc:
            self._discard()
            self._token = None
            self._state = IdentityState(status=IdentityStatus.ANONYMOUS, detail=exc.message)
            raise
        return await self.on_session_change(session.token)

    async def sign_out(self) -> IdentityState:
        token = self._token
        self._discard()
        self._token = None
        if token is not None:
            await self._resolver.provider.sign_out(token)
        self._state = IdentityState(status=IdentityStatus.ANONYMOUS)
        return self._state
