from __future__ import annotations

from pathlib import Path

from fresh.auth.sessions import SessionStore
from fresh.core.storage import SESSIONS, DocumentStore
from tests.factories import Clock


def test_session_create_stores_only_key_hash(tmp_path: Path) -> None:
    store = DocumentStore.local(tmp_path)
    sessions = SessionStore(store)

    grant = sessions.create("u1", "10.0.0.1", "pytest")
    stored = store.collection(SESSIONS).find_by_id(grant.session.id)

    assert stored["user_id"] == "u1"
    assert grant.key not in stored.values()
    assert stored["key_hash"] != grant.key
    assert "key_hash" not in grant.session.public_dict()


def test_find_by_credentials_requires_matching_key(tmp_path: Path) -> None:
    sessions = SessionStore(DocumentStore.local(tmp_path))
    grant = sessions.create("u1", "10.0.0.1", None)

    found = sessions.find_by_credentials(grant.session.id, grant.key)

    assert found is not None
    assert found.id == grant.session.id
    assert sessions.find_by_credentials(grant.session.id, "poisoned") is None
    assert sessions.find_by_credentials("missing", grant.key) is None
    assert sessions.find_by_credentials("", "") is None


def test_sessions_are_independent_per_login(tmp_path: Path) -> None:
    sessions = SessionStore(DocumentStore.local(tmp_path))
    first = sessions.create("u1", "10.0.0.1", None)
    second = sessions.create("u1", "10.0.0.2", None)

    assert first.session.id != second.session.id
    assert sessions.find_by_credentials(first.session.id, second.key) is None

    sessions.delete_by_id(first.session.id)

    assert sessions.find_by_credentials(first.session.id, first.key) is None
    assert sessions.find_by_credentials(second.session.id, second.key) is not None


def test_touch_last_active_records_later_time(tmp_path: Path) -> None:
    clock = Clock()
    sessions = SessionStore(DocumentStore.local(tmp_path), clock=clock)
    grant = sessions.create("u1", "10.0.0.1", None)
    assert grant.session.last_active is None

    clock.advance(5)
    touched = sessions.touch_last_active(grant.session)

    assert touched.last_active == clock.now
    assert touched.last_active > touched.time_created
    assert sessions.find_by_id(grant.session.id).last_active == clock.now


def test_delete_for_user_only_removes_own_sessions(tmp_path: Path) -> None:
    clock = Clock()
    sessions = SessionStore(DocumentStore.local(tmp_path), clock=clock)
    mine = sessions.create("u1", "10.0.0.1", None)
    clock.advance(1)
    newer = sessions.create("u1", "10.0.0.1", None)
    other = sessions.create("u2", "10.0.0.1", None)

    assert [s.id for s in sessions.list_for_user("u1")] == [newer.session.id, mine.session.id]
    assert sessions.delete_for_user(other.session.id, "u1") is None
    assert sessions.delete_for_user(mine.session.id, "u1").id == mine.session.id
    assert sessions.delete_all_for_user("u1") == 1
    assert sessions.list_for_user("u1") == []
    assert sessions.find_by_id(other.session.id) is not None


def test_find_by_credentials_rejects_key_off_by_one_character(tmp_path: Path) -> None:
    sessions = SessionStore(DocumentStore.local(tmp_path))
    grant = sessions.create("u1", "127.0.0.1", None)
    last = grant.key[-1]
    altered = grant.key[:-1] + ("0" if last != "0" else "1")

    assert sessions.find_by_credentials(grant.session.id, altered) is None
    assert sessions.find_by_credentials(grant.session.id, grant.key[:-1]) is None
    assert sessions.find_by_credentials(grant.session.id, grant.key + "0") is None
