from __future__ import annotations

from pathlib import Path

from fresh.auth.repository import UserRepository
from fresh.core.storage import SESSIONS, DocumentStore
from fresh.roles.models import ROOT_GROUP_ID
from fresh.roles.repository import AccountRepository, AdminGroupRepository, AdminRepository
from fresh.roles.resolver import RoleResolver
from scripts import first_time_setup


def test_run_setup_creates_linked_root_records(tmp_path: Path) -> None:
    store = DocumentStore.local(tmp_path)
    store.collection(SESSIONS).insert_one({"_id": "stale", "user_id": "x"})

    user = first_time_setup.run_setup(store, email="Root@Fresh.Test", password="pw")

    admins = AdminRepository(store)
    admin = admins.find_by_id(first_time_setup.ROOT_ADMIN_ID)
    group = AdminGroupRepository(store).find_by_id(ROOT_GROUP_ID)
    resolver = RoleResolver(admins, AccountRepository(store), AdminGroupRepository(store))

    assert store.collection(SESSIONS).count() == 0
    assert group.name == "Root"
    assert user.email == "root@fresh.test"
    assert user.roles.admin.id == admin.id
    assert admin.user.id == user.id
    assert UserRepository(store).find_by_credentials("root", "pw").id == user.id
    assert resolver.has_permission(resolver.admin_for(user), "anything") is True


def test_run_setup_is_repeatable(tmp_path: Path) -> None:
    store = DocumentStore.local(tmp_path)

    first_time_setup.run_setup(store, email="root@fresh.test", password="pw")
    first_time_setup.run_setup(store, email="root@fresh.test", password="pw2")

    assert UserRepository(store).count() == 1
    assert UserRepository(store).find_by_credentials("root", "pw2") is not None


def test_main_runs_non_interactively(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("MONGODB_URI", raising=False)
    monkeypatch.setattr(first_time_setup, "APP_ROOT", tmp_path)

    code = first_time_setup.main(["--email", "root@fresh.test", "--password", "pw", "--yes"])

    assert code == 0
    store = DocumentStore.local(tmp_path)
    assert UserRepository(store).find_by_username("root") is not None
