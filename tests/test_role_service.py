from __future__ import annotations

from pathlib import Path

import pytest

from fresh.api.errors import ApiError, ApiErrorCode
from fresh.roles.models import ROOT_GROUP_ID
from tests.factories import create_admin_user, create_user, make_container


def test_create_group_and_status_reject_duplicates(tmp_path: Path) -> None:
    service = make_container(tmp_path).role_admin

    group = service.create_group("Sales Team")
    status = service.create_status("Account", "Happy")

    assert group.id == "sales-team"
    assert status.id == "account-happy"
    with pytest.raises(ApiError) as exc:
        service.create_group("sales team")
    assert exc.value.status_code == 409
    assert exc.value.error_code == ApiErrorCode.RECORD_EXISTS
    with pytest.raises(ApiError):
        service.create_status("Account", "Happy")


def test_lookups_raise_not_found(tmp_path: Path) -> None:
    service = make_container(tmp_path).role_admin

    for lookup, code in [
        (service.get_user, ApiErrorCode.USER_NOT_FOUND),
        (service.get_admin, ApiErrorCode.ADMIN_NOT_FOUND),
        (service.get_account, ApiErrorCode.ACCOUNT_NOT_FOUND),
        (service.get_group, ApiErrorCode.ADMIN_GROUP_NOT_FOUND),
        (service.get_status, ApiErrorCode.STATUS_NOT_FOUND),
        (service.get_session, ApiErrorCode.SESSION_NOT_FOUND),
    ]:
        with pytest.raises(ApiError) as exc:
            lookup("missing")
        assert exc.value.status_code == 404
        assert exc.value.error_code == code


def test_admin_group_and_permission_changes_revoke_sessions(tmp_path: Path) -> None:
    container = make_container(tmp_path)
    service = container.role_admin
    user, admin = create_admin_user(container)

    grant = container.sessions.create(user.id, "10.0.0.1", None)
    updated = service.set_admin_groups(admin.id, {"sales": "Sales"})
    assert updated.groups == {"sales": "Sales"}
    assert container.sessions.find_by_id(grant.session.id) is None

    grant = container.sessions.create(user.id, "10.0.0.1", None)
    service.set_admin_permissions(admin.id, {"export": True})
    assert container.sessions.find_by_id(grant.session.id) is None

    service.create_group("Sales")
    grant = container.sessions.create(user.id, "10.0.0.1", None)
    service.set_group_permissions("sales", {"refund": True})
    assert container.sessions.find_by_id(grant.session.id) is None
    assert container.resolver.has_permission(service.get_admin(admin.id), "refund") is True


def test_root_group_is_immutable(tmp_path: Path) -> None:
    service = make_container(tmp_path).role_admin

    for change in (
        lambda: service.rename_group(ROOT_GROUP_ID, "Other"),
        lambda: service.set_group_permissions(ROOT_GROUP_ID, {"x": False}),
        lambda: service.delete_group(ROOT_GROUP_ID),
    ):
        with pytest.raises(ApiError) as exc:
            change()
        assert exc.value.status_code == 403


def test_rename_and_delete_group(tmp_path: Path) -> None:
    service = make_container(tmp_path).role_admin
    service.create_group("Support")

    assert service.rename_group("support", "Customer Support").name == "Customer Support"
    assert service.delete_group("support").id == "support"
    with pytest.raises(ApiError):
        service.get_group("support")


def test_user_active_identity_and_delete_revoke_sessions(tmp_path: Path) -> None:
    container = make_container(tmp_path)
    service = container.role_admin
    user = create_user(container, "alice")
    create_user(container, "bob")

    grant = container.sessions.create(user.id, "10.0.0.1", None)
    assert service.set_user_active(user.id, False).is_active is False
    assert container.sessions.find_by_id(grant.session.id) is None

    grant = container.sessions.create(user.id, "10.0.0.1", None)
    renamed = service.update_user_identity(user.id, username="Alicia", email="alicia@fresh.test")
    assert renamed.username == "alicia"
    assert container.sessions.find_by_id(grant.session.id) is None

    with pytest.raises(ApiError) as exc:
        service.update_user_identity(user.id, username="bob", email="alicia@fresh.test")
    assert exc.value.error_code == ApiErrorCode.USERNAME_IN_USE

    grant = container.sessions.create(user.id, "10.0.0.1", None)
    service.delete_user(user.id)
    assert container.sessions.find_by_id(grant.session.id) is None
    with pytest.raises(ApiError):
        service.delete_user(user.id)


def test_account_notes_and_status_history(tmp_path: Path) -> None:
    container = make_container(tmp_path)
    service = container.role_admin
    _, author = create_admin_user(container)
    account = service.create_account("Carol Jones")
    service.create_status("Account", "Happy")
    service.create_status("Account", "Angry")

    service.add_account_note(account.id, author, "Called about invoice")
    service.set_account_status(account.id, author, "account-happy")
    updated = service.set_account_status(account.id, author, "account-angry")

    assert [note.data for note in updated.notes] == ["Called about invoice"]
    assert updated.notes[0].admin_created.name == "Ada Boss"
    assert updated.status.current.id == "account-angry"
    assert [entry.id for entry in updated.status.log] == ["account-happy", "account-angry"]
    with pytest.raises(ApiError) as exc:
        service.set_account_status(account.id, author, "account-unknown")
    assert exc.value.error_code == ApiErrorCode.STATUS_NOT_FOUND


def test_list_get_and_delete_sessions(tmp_path: Path) -> None:
    container = make_container(tmp_path)
    service = container.role_admin
    user = create_user(container)
    grants = [container.sessions.create(user.id, "10.0.0.1", None) for _ in range(3)]

    page = service.list_sessions(page=1, limit=2)

    assert page.total == 3
    assert len(page.data) == 2
    assert page.has_next is True
    assert service.get_session(grants[0].session.id).user_id == user.id
    assert service.delete_session(grants[0].session.id).id == grants[0].session.id
    with pytest.raises(ApiError):
        service.delete_session(grants[0].session.id)


def test_identity_update_refreshes_linked_role_usernames(tmp_path: Path) -> None:
    container = make_container(tmp_path)
    service = container.role_admin
    user, admin = create_admin_user(container, "boss")
    account = service.create_account("Ada Boss")
    container.linker.link_account(account.id, "boss")
    other, other_admin = create_admin_user(container, "other", name="Other Person")

    service.update_user_identity(user.id, username="Chief", email="chief@fresh.test")

    assert container.admins.find_by_id(admin.id).user.name == "chief"
    assert container.accounts.find_by_id(account.id).user.name == "chief"
    assert container.admins.find_by_id(other_admin.id).user.name == "other"

    with pytest.raises(ApiError) as exc:
        service.update_user_identity(other.id, username="other", email="chief@fresh.test")
    assert exc.value.error_code == ApiErrorCode.EMAIL_IN_USE


def test_unlink_after_rename_keeps_current_username(tmp_path: Path, monkeypatch) -> None:
    container = make_container(tmp_path)
    user, admin = create_admin_user(container, "boss")
    container.role_admin.update_user_identity(user.id, username="chief", email="chief@fresh.test")

    def _boom(*_args, **_kwargs):
        raise RuntimeError("store down")

    monkeypatch.setattr(container.users, "unlink_role", _boom)
    with pytest.raises(RuntimeError):
        container.linker.unlink_admin(admin.id)

    assert container.admins.find_by_id(admin.id).user.name == "chief"
