from __future__ import annotations

from pathlib import Path

import pytest

from fresh.api.errors import ApiError
from fresh.auth.rate_limiter import AuthAttemptGuard
from fresh.core.storage import AUTH_ATTEMPTS, DocumentStore
from tests.factories import Clock, attempts_config


def _guard(tmp_path: Path, clock: Clock, **limits) -> AuthAttemptGuard:
    return AuthAttemptGuard(DocumentStore.local(tmp_path), attempts_config(**limits), clock=clock)


def test_guard_blocks_identity_after_per_user_threshold(tmp_path: Path) -> None:
    guard = _guard(tmp_path, Clock())

    for _ in range(6):
        guard.record_failure("10.0.0.1", "Alice")
    assert guard.is_blocked("10.0.0.1", "alice") is False

    guard.record_failure("10.0.0.1", "alice")

    with pytest.raises(ApiError) as exc:
        guard.assert_allowed("10.0.0.1", "ALICE")
    assert exc.value.status_code == 429
    assert "AUTH_RATE_LIMITED" in str(exc.value.detail)
    assert guard.is_blocked("10.0.0.1", "bob") is False
    assert guard.is_blocked("10.0.0.2", "alice") is False


def test_guard_blocks_ip_across_usernames(tmp_path: Path) -> None:
    guard = _guard(tmp_path, Clock())

    for index in range(49):
        guard.record_failure("10.0.0.9", f"user{index}")
    assert guard.is_blocked("10.0.0.9", "fresh-name") is False

    guard.record_failure("10.0.0.9", "user49")

    assert guard.is_blocked("10.0.0.9", "fresh-name") is True
    assert guard.is_blocked("10.0.0.10", "user1") is False


def test_guard_block_lifts_when_attempts_age_out(tmp_path: Path) -> None:
    clock = Clock()
    guard = _guard(tmp_path, clock, for_ip_and_user=2, hours=1)

    guard.record_failure("1.1.1.1", "carol")
    clock.advance(1800)
    guard.record_failure("1.1.1.1", "carol")
    assert guard.is_blocked("1.1.1.1", "carol") is True

    clock.advance(1801)
    assert guard.is_blocked("1.1.1.1", "carol") is False
    guard.assert_allowed("1.1.1.1", "carol")


def test_guard_purges_expired_attempts(tmp_path: Path) -> None:
    clock = Clock()
    store = DocumentStore.local(tmp_path)
    guard = AuthAttemptGuard(store, attempts_config(), clock=clock)

    guard.record_failure("1.1.1.1", "dave")
    clock.advance(3 * 3600)
    guard.record_failure("1.1.1.1", "dave")

    assert guard.purge_expired() == 1
    assert store.collection(AUTH_ATTEMPTS).count() == 1


@pytest.mark.parametrize("ip,username", [("", "alice"), ("1.1.1.1", ""), ("  ", "x")])
def test_guard_requires_ip_and_username(tmp_path: Path, ip: str, username: str) -> None:
    guard = _guard(tmp_path, Clock())

    with pytest.raises(ValueError):
        guard.record_failure(ip, username)
    with pytest.raises(ValueError):
        guard.is_blocked(ip, username)
