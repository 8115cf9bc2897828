"""Role hydration and admin permission resolution."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from fresh.auth.models import RoleKind, User
from fresh.roles.models import ROOT_GROUP_ID, Account, Admin
from fresh.roles.repository import AccountRepository, AdminGroupRepository, AdminRepository


@dataclass(frozen=True)
class HydratedRoles:
    """Role records a user plays, fetched for the current request."""

    admin: Admin | None = None
    account: Account | None = None

    def kinds(self) -> list[str]:
        return [kind.value for kind in RoleKind if getattr(self, kind.value) is not None]


@dataclass(frozen=True)
class PermissionSource:
    """A named map of permission answers consulted in order."""

    name: str
    permissions: Mapping[str, bool] = field(default_factory=dict)


def resolve_permission(sources: Sequence[PermissionSource], key: str) -> bool:
    """Return the first defined answer for ``key``; deny when none defines it."""
    for source in sources:
        if key in source.permissions:
            return bool(source.permissions[key])
    return False


class RoleResolver:
    """Looks up linked roles and answers admin authorization questions."""

    def __init__(
        self,
        admins: AdminRepository,
        accounts: AccountRepository,
        groups: AdminGroupRepository,
    ) -> None:
        self._admins = admins
        self._accounts = accounts
        self._groups = groups

    def hydrate(self, user: User) -> HydratedRoles:
        """Fetch the user's linked roles once and cache them on the user."""
        if user._hydrated is not None:
            return user._hydrated

        admin_link = user.roles.get(RoleKind.ADMIN)
        account_link = user.roles.get(RoleKind.ACCOUNT)
        roles = HydratedRoles(
            admin=self._admins.find_by_id(admin_link.id) if admin_link else None,
            account=self._accounts.find_by_id(account_link.id) if account_link else None,
        )
        user._hydrated = roles
        return roles

    def admin_for(self, user: User) -> Admin | None:
        return self.hydrate(user).admin

    def account_for(self, user: User) -> Account | None:
        return self.hydrate(user).account

    @staticmethod
    def is_member_of(admin: Admin, group_id: str) -> bool:
        return group_id in admin.groups

    def permission_sources(self, admin: Admin) -> list[PermissionSource]:
        """Admin overrides first, then member groups in membership order."""
        sources = [PermissionSource(name=f"admin:{admin.id}", permissions=admin.permissions)]
        for group_id in admin.groups:
            group = self._groups.find_by_id(group_id)
            if group is None:
                continue
            sources.append(
                PermissionSource(name=f"group:{group.id}", permissions=group.permissions)
            )
        return sources

    def has_permission(self, admin: Admin, key: str) -> bool:
        if self.is_member_of(admin, ROOT_GROUP_ID):
            return True
        return resolve_permission(self.permission_sources(admin), key)

    def authorize(
        self,
        admin: Admin | None,
        *,
        groups: Iterable[str] = (),
        permission: str | None = None,
    ) -> bool:
        """Combined check: root passes; else required group and permission."""
        if admin is None:
            return False
        if self.is_member_of(admin, ROOT_GROUP_ID):
            return True
        required_groups = list(groups)
        if required_groups and not any(
            self.is_member_of(admin, group_id) for group_id in required_groups
        ):
            return False
        if permission is not None and not self.has_permission(admin, permission):
            return False
        return True
