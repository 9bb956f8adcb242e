"""Session store: the single holder of the authenticated session.

Lifecycle: init -> restore (or empty) -> active <-> {login, logout, expire}.
"""

from __future__ import annotations

import json
import math
import time
from typing import Any, Awaitable, Callable, List, Optional

from core.errors import (
    AuthenticationError,
    AuthorizationError,
    RemoteError,
    SessionExpiredError,
    ValidationError,
)
from gateway.api import to_user
from gateway.models import Session
from utils.logger import get_logger
from utils.state import StoreState

_logger = get_logger(__name__)

EXPIRED_MESSAGE = "Your session has expired, please sign in again."
LOGIN_REQUIRED_MESSAGE = "Please sign in first."

Notifier = Callable[[str, str], None]  # (severity, message)
SessionListener = Callable[[Optional[Session]], Awaitable[None]]


def _log_notifier(severity: str, message: str) -> None:
    _logger.info(f"({severity}) {message}")


def parse_expiry(value: Any) -> Optional[int]:
    """Epoch seconds as an int, None when absent. Raises ValueError otherwise."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"invalid expiry {value!r}")
    try:
        seconds = float(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValueError(f"invalid expiry {value!r}") from exc
    if not math.isfinite(seconds):
        raise ValueError(f"invalid expiry {value!r}")
    return int(seconds)


def session_from_login(payload: Any) -> Session:
    """Map a login payload onto a Session, rejecting unusable ones."""
    if not isinstance(payload, dict):
        raise AuthenticationError("Invalid login response.")
    token = payload.get("access_token")
    user_payload = payload.get("user")
    if not isinstance(token, str) or not token or not isinstance(user_payload, dict):
        raise AuthenticationError("Invalid login response.")
    try:
        user = to_user(user_payload)
        expires_at = parse_expiry(payload.get("expires_at"))
    except (KeyError, TypeError, ValueError) as exc:
        raise AuthenticationError("Invalid login response.") from exc
    return Session(
        access_token=token,
        token_type=payload.get("token_type") or "Bearer",
        expires_at=expires_at,
        user=user,
    )


def session_to_record(session: Session) -> str:
    return json.dumps(
        {
            "accessToken": session.access_token,
            "tokenType": session.token_type,
            "expiresAt": session.expires_at,
            "user": {
                "id": session.user.id,
                "name": session.user.name,
                "email": session.user.email,
                "role": session.user.role,
            },
        }
    )


def session_from_record(raw: str) -> Session:
    """Parse a persisted record; raises ValueError if it breaks the session invariant."""
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("session record is not an object")
    token = data.get("accessToken")
    if not isinstance(token, str) or not token:
        raise ValueError("session record has no access token")
    user_payload = data.get("user")
    if not isinstance(user_payload, dict):
        raise ValueError("session record has no user")
    try:
        user = to_user(user_payload)
    except KeyError as exc:
        raise ValueError(f"session record user lacks {exc}") from exc
    return Session(
        access_token=token,
        token_type=data.get("tokenType") or "Bearer",
        expires_at=parse_expiry(data.get("expiresAt")),
        user=user,
    )


class SessionStore:
    def __init__(
        self,
        gateway,
        records,
        state: StoreState,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._gateway = gateway
        self._records = records
        self._state = state
        self._notify = notifier or _log_notifier
        self._clock = clock
        self._listeners: List[SessionListener] = []

    @property
    def current(self) -> Optional[Session]:
        return self._state.session

    def subscribe(self, listener: SessionListener) -> None:
        """Register a coroutine called with the new session on every change."""
        self._listeners.append(listener)

    async def _publish(self, session: Optional[Session]) -> None:
        for listener in list(self._listeners):
            await listener(session)

    async def restore(self) -> Optional[Session]:
        """
        Load the persisted session, if any. A malformed record is erased and
        treated as absent; an expired one goes through the normal expiry logout.
        """
        raw = await self._records.load()
        if raw is None:
            return None
        try:
            session = session_from_record(raw)
        except (TypeError, ValueError) as exc:
            _logger.warning(f"Discarding malformed session record: {exc}")
            await self._records.erase()
            return None

        self._state.replace_session(session)
        if await self.check_expiry():
            return None
        _logger.info(f"Restored session for user {session.user.id} ({session.user.role})")
        await self._publish(session)
        return session

    async def login(self, email: str, password: str) -> Session:
        email = (email or "").strip()
        if not email or not password:
            raise ValidationError("Email and password are required.")
        try:
            payload = await self._gateway.login(email, password)
        except RemoteError as exc:
            raise AuthenticationError(exc.message) from exc

        session = session_from_login(payload)
        await self._records.save(session_to_record(session))
        self._state.replace_session(session)
        _logger.info(f"User {session.user.id} signed in as {session.user.role}")
        await self._publish(session)
        return session

    async def logout(self, reason: Optional[str] = None) -> None:
        """
        Clear the session and its persisted record. Voluntary and forced
        logouts take the same path; reason is shown to the user if given.
        """
        previous = self._state.session
        self._state.replace_session(None)
        await self._publish(None)
        await self._records.erase()
        if previous is not None:
            _logger.info(f"User {previous.user.id} signed out")
        if reason:
            self._notify("information", reason)

    def is_expired(self) -> bool:
        session = self._state.session
        if session is None or session.expires_at is None:
            return False
        return self._clock() >= session.expires_at

    async def check_expiry(self) -> bool:
        """Log out if the session has expired; True when that happened."""
        if not self.is_expired():
            return False
        _logger.info("Session expired, forcing logout")
        await self.logout(EXPIRED_MESSAGE)
        return True

    async def ensure_active(self) -> Session:
        """Return the live session for a protected action, enforcing expiry first."""
        if await self.check_expiry():
            raise SessionExpiredError(EXPIRED_MESSAGE)
        session = self._state.session
        if session is None:
            raise AuthorizationError(LOGIN_REQUIRED_MESSAGE)
        return session
