"""Request credential strategies producing an authentication verdict."""

from __future__ import annotations

import base64
import binascii
import logging
from concurrent.futures import Executor, Future
from typing import Any, Protocol

from pydantic import ValidationError

from fresh.auth.models import (
    AuthCredentials,
    AuthVerdict,
    CredentialBundle,
    Session,
    UserRoles,
)
from fresh.auth.repository import UserRepository
from fresh.auth.sessions import SessionStore
from fresh.core.security import decode_signed_token

LOGGER = logging.getLogger(__name__)


def _parse_bearer(token: str, secret_key: str, algorithm: str) -> CredentialBundle | None:
    try:
        claims = decode_signed_token(token, secret_key, algorithm)
    except ValueError:
        return None
    session = claims.get("session")
    if not isinstance(session, dict):
        return None
    session_id = str(session.get("id") or "")
    session_key = str(session.get("key") or "")
    if not session_id or not session_key:
        return None
    return CredentialBundle(
        scheme="bearer",
        session_id=session_id,
        session_key=session_key,
        claims=claims,
    )


def _parse_basic(value: str) -> CredentialBundle | None:
    try:
        decoded = base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    session_id, sep, session_key = decoded.partition(":")
    if not sep or not session_id or not session_key:
        return None
    return CredentialBundle(scheme="basic", session_id=session_id, session_key=session_key)


def parse_authorization(
    authorization: str | None, *, secret_key: str, algorithm: str = "HS256"
) -> CredentialBundle | None:
    """Extract session credentials from a ``Bearer`` or ``Basic`` header."""
    parts = (authorization or "").strip().split(" ", 1)
    if len(parts) != 2 or not parts[1].strip():
        return None
    scheme, value = parts[0].lower(), parts[1].strip()
    if scheme == "bearer":
        return _parse_bearer(value, secret_key, algorithm)
    if scheme == "basic":
        return _parse_basic(value)
    return None


def basic_auth_header(session_id: str, key: str) -> str:
    raw = f"{session_id}:{key}".encode("utf-8")
    return f"Basic {base64.b64encode(raw).decode('ascii')}"


class AuthStrategy(Protocol):
    def validate(self, bundle: CredentialBundle) -> AuthVerdict: ...


class SessionStrategy:
    """Accept any bundle naming a live session with a matching key.

    Bearer bundles are trusted for their signed claims. Basic bundles carry
    no claims, so the owning user is loaded instead.
    """

    def __init__(
        self,
        sessions: SessionStore,
        users: UserRepository,
        *,
        executor: Executor | None = None,
    ) -> None:
        self._sessions = sessions
        self._users = users
        self._executor = executor

    def _touch(self, session: Session) -> None:
        # Fire-and-forget: the verdict never waits on the activity write.
        if self._executor is None:
            try:
                self._sessions.touch_last_active(session)
            except Exception:
                LOGGER.exception("session_touch_failed", extra={"session_id": session.id})
            return
        future = self._executor.submit(self._sessions.touch_last_active, session)
        future.add_done_callback(_log_touch_failure)

    def _find_session(self, bundle: CredentialBundle) -> Session | None:
        session = self._sessions.find_by_credentials(bundle.session_id, bundle.session_key)
        if session is not None:
            self._touch(session)
        return session

    def _verdict_for_user(self, session: Session) -> AuthVerdict:
        user = self._users.find_by_id(session.user_id)
        if user is None or not user.is_active:
            return AuthVerdict.invalid()
        return AuthVerdict(
            is_valid=True,
            credentials=AuthCredentials(
                session=session,
                user_id=user.id,
                username=user.username,
                email_verified=user.verify is None,
                roles=user.roles,
                scope=user.scope,
                user=user,
            ),
        )

    def validate(self, bundle: CredentialBundle) -> AuthVerdict:
        session = self._find_session(bundle)
        if session is None:
            return AuthVerdict.invalid()
        if bundle.scheme != "bearer":
            return self._verdict_for_user(session)
        return AuthVerdict(is_valid=True, credentials=_credentials_from_claims(session, bundle.claims))


class UserSessionStrategy(SessionStrategy):
    """Like :class:`SessionStrategy` but always re-checks the owning user."""

    def validate(self, bundle: CredentialBundle) -> AuthVerdict:
        session = self._find_session(bundle)
        if session is None:
            return AuthVerdict.invalid()
        return self._verdict_for_user(session)


def _credentials_from_claims(session: Session, claims: dict[str, Any]) -> AuthCredentials:
    user_claims = claims.get("user") if isinstance(claims.get("user"), dict) else {}
    try:
        roles = UserRoles.model_validate(claims.get("roles") or {})
    except ValidationError:
        roles = UserRoles()
    return AuthCredentials(
        session=session,
        user_id=session.user_id,
        username=str(user_claims.get("username") or ""),
        email_verified=user_claims.get("email_verified") is True,
        roles=roles,
        scope=roles.kinds(),
    )


def _log_touch_failure(future: Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        LOGGER.error("session_touch_failed", exc_info=exc)
