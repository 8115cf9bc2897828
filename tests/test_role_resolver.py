from __future__ import annotations

from pathlib import Path

from fresh.roles.models import ROOT_GROUP_ID
from fresh.roles.resolver import PermissionSource, resolve_permission
from tests.factories import create_admin_user, create_user, make_container


def test_resolve_permission_first_definition_wins() -> None:
    sources = [
        PermissionSource("admin", {"can_delete": False}),
        PermissionSource("sales", {"can_delete": True, "can_export": True}),
        PermissionSource("support", {"can_export": False}),
    ]

    assert resolve_permission(sources, "can_delete") is False
    assert resolve_permission(sources, "can_export") is True
    assert resolve_permission(sources, "undefined") is False
    assert resolve_permission([], "anything") is False


def test_admin_override_beats_group_grant(tmp_path: Path) -> None:
    container = make_container(tmp_path)
    container.groups.create("Sales")
    container.groups.set_permissions("sales", {"refund": True, "export": True})
    _, admin = create_admin_user(
        container, groups={"sales": "Sales"}, permissions={"refund": False}
    )

    assert container.resolver.has_permission(admin, "refund") is False
    assert container.resolver.has_permission(admin, "export") is True
    assert container.resolver.has_permission(admin, "delete_everything") is False


def test_earlier_group_wins_over_later_group(tmp_path: Path) -> None:
    container = make_container(tmp_path)
    container.groups.create("Sales")
    container.groups.create("Support")
    container.groups.set_permissions("sales", {"export": True})
    container.groups.set_permissions("support", {"export": False})
    _, admin = create_admin_user(
        container, groups={"support": "Support", "sales": "Sales"}
    )

    names = [source.name for source in container.resolver.permission_sources(admin)]

    assert names == [f"admin:{admin.id}", "group:support", "group:sales"]
    assert container.resolver.has_permission(admin, "export") is False


def test_root_group_member_passes_every_check(tmp_path: Path) -> None:
    container = make_container(tmp_path)
    _, admin = create_admin_user(
        container, groups={ROOT_GROUP_ID: "Root"}, permissions={"refund": False}
    )

    assert container.resolver.has_permission(admin, "refund") is True
    assert container.resolver.authorize(admin, groups=["sales"], permission="x") is True


def test_authorize_requires_group_membership_and_permission(tmp_path: Path) -> None:
    container = make_container(tmp_path)
    _, admin = create_admin_user(
        container, groups={"sales": "Sales"}, permissions={"export": True}
    )

    assert container.resolver.authorize(admin, groups=["sales", "support"]) is True
    assert container.resolver.authorize(admin, groups=["support"]) is False
    assert container.resolver.authorize(admin, permission="export") is True
    assert container.resolver.authorize(admin, permission="refund") is False
    assert container.resolver.authorize(None, groups=["sales"]) is False


def test_hydrate_caches_roles_for_the_request(tmp_path: Path) -> None:
    container = make_container(tmp_path)
    user, admin = create_admin_user(container)

    first = container.resolver.hydrate(user)
    container.admins.set_name(admin.id, "Renamed Person")
    second = container.resolver.hydrate(user)

    assert first is second
    assert second.admin.full_name() == "Ada Boss"
    assert second.account is None
    assert second.kinds() == ["admin"]

    plain = create_user(container, "nobody")
    assert container.resolver.admin_for(plain) is None
    assert container.resolver.account_for(plain) is None
