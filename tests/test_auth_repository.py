from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from fresh.auth.models import PendingToken, RoleKind, RoleLink, User
from fresh.auth.repository import UserRepository
from fresh.core.models import now_ts
from fresh.core.storage import USERS, DocumentStore, DuplicateDocumentError


def test_user_repository_create_normalizes_and_hashes(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("MONGODB_URI", raising=False)
    store = DocumentStore.local(tmp_path)
    repo = UserRepository(store)

    user = repo.create("Alice", "pw-123", "Alice@Fresh.Test")
    stored = store.collection(USERS).find_by_id(user.id)

    assert user.username == "alice"
    assert user.email == "alice@fresh.test"
    assert stored["password_hash"] != "pw-123"
    assert stored["is_active"] is True
    assert repo.find_by_username("ALICE").id == user.id
    assert repo.find_by_email("alice@FRESH.test").id == user.id


def test_user_repository_rejects_duplicates(tmp_path: Path) -> None:
    repo = UserRepository(DocumentStore.local(tmp_path))
    repo.create("alice", "pw", "alice@fresh.test")

    with pytest.raises(DuplicateDocumentError) as exc:
        repo.create("ALICE", "pw", "other@fresh.test")
    assert exc.value.field == "username"

    with pytest.raises(DuplicateDocumentError) as exc:
        repo.create("bob", "pw", "Alice@fresh.test")
    assert exc.value.field == "email"


def test_find_by_credentials_accepts_username_or_email(tmp_path: Path) -> None:
    repo = UserRepository(DocumentStore.local(tmp_path))
    user = repo.create("alice", "pw-123", "alice@fresh.test")

    assert repo.find_by_credentials("alice", "pw-123").id == user.id
    assert repo.find_by_credentials("ALICE@fresh.test", "pw-123").id == user.id
    assert repo.find_by_credentials("alice", "wrong") is None
    assert repo.find_by_credentials("nobody", "pw-123") is None

    repo.set_active(user.id, False)
    assert repo.find_by_credentials("alice", "pw-123") is None


def test_pending_tokens_respect_expiry(tmp_path: Path) -> None:
    repo = UserRepository(DocumentStore.local(tmp_path))
    user = repo.create("alice", "pw", "alice@fresh.test")

    repo.set_pending(user.id, "verify", PendingToken(token="h", expires=now_ts() + 60))
    assert repo.find_with_pending("alice@fresh.test", "verify").id == user.id
    assert repo.find_with_pending("alice@fresh.test", "verify", expired=True) is None

    repo.set_pending(user.id, "verify", PendingToken(token="h", expires=now_ts() - 60))
    assert repo.find_with_pending("alice@fresh.test", "verify") is None
    assert repo.find_with_pending("alice@fresh.test", "verify", expired=True).id == user.id

    assert repo.clear_pending(user.id, "verify").verify is None


def test_set_password_clears_reset_token(tmp_path: Path) -> None:
    repo = UserRepository(DocumentStore.local(tmp_path))
    user = repo.create("alice", "old-pw", "alice@fresh.test")
    repo.set_pending(
        user.id, "reset_password", PendingToken(token="h", expires=now_ts() + 60)
    )

    updated = repo.set_password(user.id, "new-pw")

    assert updated.reset_password is None
    assert repo.find_by_credentials("alice", "new-pw") is not None
    assert repo.find_by_credentials("alice", "old-pw") is None


def test_role_slots_link_and_unlink(tmp_path: Path) -> None:
    repo = UserRepository(DocumentStore.local(tmp_path))
    user = repo.create("alice", "pw", "alice@fresh.test")

    linked = repo.link_role(user.id, RoleLink(kind=RoleKind.ADMIN, id="a1", name="Ada"))
    assert linked.can_play_role(RoleKind.ADMIN)
    assert linked.scope == ["admin"]

    unlinked = repo.unlink_role(user.id, RoleKind.ADMIN)
    assert unlinked.roles.admin is None
    assert unlinked.scope == []


def test_user_roles_reject_mismatched_slot() -> None:
    with pytest.raises(ValidationError):
        User(
            username="alice",
            email="alice@fresh.test",
            password_hash="h",
            roles={"admin": {"kind": "account", "id": "a1"}},
        )

    user = User(
        username="alice",
        email="alice@fresh.test",
        password_hash="h",
        roles={"account": {"id": "c1", "name": "Ada"}},
    )
    assert user.roles.account.kind is RoleKind.ACCOUNT


def test_user_requires_core_fields() -> None:
    with pytest.raises(ValidationError):
        User(username="alice", password_hash="h")
