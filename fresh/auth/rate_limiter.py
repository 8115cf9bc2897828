"""Login brute-force protection backed by the auth attempts collection."""

from __future__ import annotations

import logging
from typing import Callable

from fresh.api.errors import ApiError, ApiErrorCode
from fresh.auth.models import AuthAttempt
from fresh.core.config import AuthAttemptsConfig
from fresh.core.models import now_ts
from fresh.core.repository import DocumentRepository
from fresh.core.storage import AUTH_ATTEMPTS, DocumentStore

LOGGER = logging.getLogger(__name__)


class AuthAttemptRepository(DocumentRepository[AuthAttempt]):
    model = AuthAttempt
    collection_name = AUTH_ATTEMPTS


class AuthAttemptGuard:
    """Throttle logins by source ip and by (ip, username) within a window.

    A block lifts only when qualifying attempts age out of the window.
    """

    def __init__(
        self,
        store: DocumentStore,
        config: AuthAttemptsConfig,
        *,
        clock: Callable[[], float] = now_ts,
    ) -> None:
        """Initialize limiter storage and policy parameters."""
        self._attempts = AuthAttemptRepository(store)
        self._for_ip = max(1, int(config.for_ip))
        self._for_ip_and_user = max(1, int(config.for_ip_and_user))
        self._window_seconds = float(config.duration_of_blocking_hours) * 60 * 60
        self._clock = clock

    @staticmethod
    def _keys(ip: str, username: str) -> tuple[str, str]:
        key_ip = (ip or "").strip()
        key_username = (username or "").strip().lower()
        if not key_ip:
            raise ValueError("Missing ip argument.")
        if not key_username:
            raise ValueError("Missing username argument.")
        return key_ip, key_username

    def record_failure(self, ip: str, username: str) -> AuthAttempt:
        """Append a failed login attempt."""
        key_ip, key_username = self._keys(ip, username)
        attempt = self._attempts.insert(
            AuthAttempt(ip=key_ip, username=key_username, time_created=self._clock())
        )
        LOGGER.info("auth_attempt_failed", extra={"ip": key_ip})
        return attempt

    def is_blocked(self, ip: str, username: str) -> bool:
        """Return whether either threshold has been reached inside the window."""
        key_ip, key_username = self._keys(ip, username)
        since = {"$gt": self._clock() - self._window_seconds}
        count_by_ip = self._attempts.count({"ip": key_ip, "time_created": since})
        count_by_ip_and_user = self._attempts.count(
            {"ip": key_ip, "username": key_username, "time_created": since}
        )
        return count_by_ip >= self._for_ip or count_by_ip_and_user >= self._for_ip_and_user

    def assert_allowed(self, ip: str, username: str) -> None:
        """Raise 429 when login attempts are currently blocked for the principal."""
        if self.is_blocked(ip, username):
            LOGGER.warning("auth_attempts_blocked", extra={"ip": ip})
            raise ApiError(
                status_code=429,
                error_code=ApiErrorCode.AUTH_RATE_LIMITED,
                message="Maximum number of auth attempts reached.",
            )

    def purge_expired(self) -> int:
        """Delete attempts that fell out of the blocking window."""
        cutoff = self._clock() - self._window_seconds
        return self._attempts.delete_many({"time_created": {"$lte": cutoff}})
