"""Authentication service for signup, login, logout and password flows."""

from __future__ import annotations

import logging
import time
from typing import Any

from fresh.api.errors import ApiError, ApiErrorCode, conflict, not_found
from fresh.auth.models import (
    AuthCredentials,
    LoginResult,
    PendingToken,
    Session,
    SessionGrant,
    SignupResult,
    User,
    UserSummary,
)
from fresh.auth.rate_limiter import AuthAttemptGuard
from fresh.auth.repository import PendingField, UserRepository
from fresh.auth.sessions import SessionStore
from fresh.auth.strategies import basic_auth_header
from fresh.core.config import AuthConfig, MailerConfig
from fresh.core.mailer import Mailer
from fresh.core.models import now_ts
from fresh.core.security import build_signed_token, generate_key, hash_secret, verify_secret
from fresh.core.storage import DuplicateDocumentError
from fresh.roles.linking import LinkEnforcer
from fresh.roles.models import Account, Name
from fresh.roles.repository import AccountRepository

LOGGER = logging.getLogger(__name__)


def _invalid_key() -> ApiError:
    return ApiError(
        status_code=400,
        error_code=ApiErrorCode.AUTH_INVALID_KEY,
        message="Invalid email or key.",
    )


def _duplicate_to_conflict(exc: DuplicateDocumentError) -> ApiError:
    if exc.field == "email":
        return conflict(ApiErrorCode.EMAIL_IN_USE, "Email already in use.")
    return conflict(ApiErrorCode.USERNAME_IN_USE, "Username already in use.")


class AuthService:
    """Authentication domain service."""

    def __init__(
        self,
        *,
        users: UserRepository,
        sessions: SessionStore,
        guard: AuthAttemptGuard,
        accounts: AccountRepository,
        linker: LinkEnforcer,
        mailer: Mailer,
        config: AuthConfig,
        mailer_config: MailerConfig,
    ) -> None:
        """Initialize service dependencies."""
        self._users = users
        self._sessions = sessions
        self._guard = guard
        self._accounts = accounts
        self._linker = linker
        self._mailer = mailer
        self._config = config
        self._mailer_config = mailer_config

    @property
    def enabled(self) -> bool:
        """Return whether auth checks should be enforced."""
        return self._config.enabled

    def signup(
        self,
        *,
        name: str,
        email: str,
        username: str,
        password: str,
        ip: str,
        user_agent: str | None = None,
    ) -> SignupResult:
        """Create a user with a linked account and log them in."""
        if self._users.find_by_username(username) is not None:
            raise conflict(ApiErrorCode.USERNAME_IN_USE, "Username already in use.")
        if self._users.find_by_email(email) is not None:
            raise conflict(ApiErrorCode.EMAIL_IN_USE, "Email already in use.")

        verify_key = hash_secret(generate_key())
        try:
            user = self._users.create(
                username,
                password,
                email,
                verify=PendingToken(
                    token=verify_key.hash,
                    expires=now_ts() + self._config.verify_token_ttl_seconds,
                ),
            )
        except DuplicateDocumentError as exc:
            raise _duplicate_to_conflict(exc) from exc

        account = self._accounts.create(name)
        self._linker.link_account(account.id, user.username)
        user = self._users.find_by_id(user.id) or user

        project = self._mailer_config.project_name
        self._send_email(
            to=user.email,
            subject=f"Your {project} account",
            template="welcome",
            context={"name": name, "username": user.username, "email": user.email},
        )
        self._send_verification_email(user.email, verify_key.secret)

        grant = self._sessions.create(user.id, ip, user_agent)
        LOGGER.info("user_signed_up", extra={"user_id": user.id, "ip": ip})
        return SignupResult(
            user=UserSummary.from_user(user),
            session=grant.session.public_dict(),
            session_key=grant.key,
            auth_header=basic_auth_header(grant.session.id, grant.key),
            authorization=self._sign(user, grant),
        )

    def login(
        self, username: str, password: str, *, ip: str, user_agent: str | None = None
    ) -> LoginResult:
        """Authenticate credentials and issue a signed session token."""
        normalized = username.strip().lower()
        invalid = ApiError(
            status_code=401,
            error_code=ApiErrorCode.AUTH_INVALID_CREDENTIALS,
            message="Credentials are invalid or account is inactive.",
        )
        if not normalized:
            raise invalid
        self._guard.assert_allowed(ip, normalized)

        user = self._users.find_by_credentials(normalized, password)
        if user is None:
            self._guard.record_failure(ip, normalized)
            raise invalid

        grant = self._sessions.create(user.id, ip, user_agent)
        return LoginResult(
            authorization=self._sign(user, grant),
            session_id=grant.session.id,
            user=UserSummary.from_user(user),
        )

    def logout(self, credentials: AuthCredentials | None) -> None:
        """Delete the current session when the request is authenticated."""
        if credentials is None:
            return
        self._sessions.delete_by_id(credentials.session.id)

    def forgot_password(self, email: str) -> None:
        """Email a reset key; unknown addresses succeed silently."""
        user = self._users.find_by_email(email)
        if user is None:
            return
        reset_key = hash_secret(generate_key())
        self._users.set_pending(
            user.id,
            "reset_password",
            PendingToken(
                token=reset_key.hash,
                expires=now_ts() + self._config.reset_token_ttl_seconds,
            ),
        )
        self._send_email(
            to=user.email,
            subject=f"Reset your {self._mailer_config.project_name} password",
            template="forgot-password",
            context={"key": reset_key.secret},
        )

    def reset_password(self, email: str, key: str, password: str) -> None:
        """Set a new password given a valid emailed reset key."""
        user = self._check_pending(email, key, "reset_password")
        self._users.set_password(user.id, password)
        self._sessions.delete_all_for_user(user.id)

    def verify_email(self, email: str, key: str) -> None:
        user = self._check_pending(email, key, "verify")
        self._users.clear_pending(user.id, "verify")

    def resend_verification(self, email: str) -> None:
        """Issue a fresh verification key once the previous one expired."""
        user = self._users.find_with_pending(email, "verify", expired=True)
        if user is None:
            return
        verify_key = hash_secret(generate_key())
        self._users.set_pending(
            user.id,
            "verify",
            PendingToken(
                token=verify_key.hash,
                expires=now_ts() + self._config.verify_token_ttl_seconds,
            ),
        )
        self._send_verification_email(user.email, verify_key.secret)

    def change_password(self, user_id: str, password: str) -> User:
        user = self._users.set_password(user_id, password)
        if user is None:
            raise not_found(ApiErrorCode.USER_NOT_FOUND, "User not found.")
        return user

    def my_user(self, credentials: AuthCredentials) -> User:
        user = self._users.find_by_id(credentials.user_id)
        if user is None:
            raise not_found(ApiErrorCode.USER_NOT_FOUND, "User not found.")
        return user

    def update_my_identity(
        self, credentials: AuthCredentials, *, username: str, email: str
    ) -> User:
        """Rename the caller; sessions stay valid."""
        return self._linker.update_identity(
            credentials.user_id, username=username, email=email
        )

    def my_account(self, credentials: AuthCredentials) -> Account:
        account = self._accounts.find_by_id(self._my_account_id(credentials))
        if account is None:
            raise not_found(ApiErrorCode.ACCOUNT_NOT_FOUND, "Account not found.")
        return account

    def update_my_account(
        self, credentials: AuthCredentials, *, first: str, last: str
    ) -> Account:
        account = self._accounts.set_name(
            self._my_account_id(credentials), Name(first=first.strip(), last=last.strip())
        )
        if account is None:
            raise not_found(ApiErrorCode.ACCOUNT_NOT_FOUND, "Account not found.")
        return account

    def my_sessions(self, credentials: AuthCredentials) -> list[Session]:
        return self._sessions.list_for_user(credentials.user_id)

    def delete_my_session(self, credentials: AuthCredentials, session_id: str) -> None:
        """Revoke another of the caller's own sessions."""
        if credentials.session.id == session_id:
            raise ApiError(
                status_code=400,
                error_code=ApiErrorCode.SESSION_CURRENT,
                message="Cannot destroy your current session. Also see logout.",
            )
        self._sessions.delete_for_user(session_id, credentials.user_id)

    @staticmethod
    def _my_account_id(credentials: AuthCredentials) -> str:
        link = credentials.roles.account
        if link is None:
            raise not_found(ApiErrorCode.ACCOUNT_NOT_FOUND, "Account not found.")
        return link.id

    def _check_pending(self, email: str, key: str, field: PendingField) -> User:
        user = self._users.find_with_pending(email, field)
        if user is None:
            raise _invalid_key()
        pending = getattr(user, field)
        if pending is None or not verify_secret(key, pending.token):
            raise _invalid_key()
        return user

    def _sign(self, user: User, grant: SessionGrant) -> str:
        payload: dict[str, Any] = {
            "scope": user.scope,
            "roles": user.roles.model_dump(mode="json", exclude_none=True),
            "session": {"id": grant.session.id, "key": grant.key},
            "user": {
                "id": user.id,
                "username": user.username,
                "is_active": user.is_active,
                "email_verified": user.verify is None,
            },
            "iat": int(time.time()),
        }
        return build_signed_token(payload, self._config.secret_key, self._config.algorithm)

    def _send_verification_email(self, email: str, key: str) -> None:
        self._send_email(
            to=email,
            subject=f"Verify your {self._mailer_config.project_name} account",
            template="verify",
            context={"key": key},
        )

    def _send_email(
        self, *, to: str, subject: str, template: str, context: dict[str, Any]
    ) -> None:
        try:
            self._mailer.send_email(to=to, subject=subject, template=template, context=context)
        except Exception:
            LOGGER.exception("mailer_failed template=%s", template)
