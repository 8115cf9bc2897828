"""Repositories for admins, admin groups, accounts and statuses."""

from __future__ import annotations

from fresh.core.repository import DocumentRepository
from fresh.core.storage import ACCOUNTS, ADMIN_GROUPS, ADMINS, STATUSES
from fresh.roles.models import (
    Account,
    Admin,
    AdminGroup,
    EntityRef,
    Name,
    NoteEntry,
    Status,
    StatusEntry,
    slugify,
)


class _LinkedRoleRepository:
    """Shared user-link updates for role records."""

    def rename_user(self, user_id: str, username: str):
        """Refresh the cached username on the role linked to ``user_id``."""
        role = self.find_one({"user.id": user_id})
        if role is None:
            return None
        return self.update(role.id, {"$set": {"user.name": username}})

    def link_user(self, role_id: str, user_id: str, username: str):
        ref = EntityRef(id=user_id, name=username)
        return self.update(role_id, {"$set": {"user": ref.model_dump()}})

    def unlink_user(self, role_id: str):
        return self.update(role_id, {"$unset": {"user": ""}})


class AdminRepository(_LinkedRoleRepository, DocumentRepository[Admin]):
    model = Admin
    collection_name = ADMINS

    def create(self, name: str) -> Admin:
        return self.insert(Admin(name=Name.parse(name)))

    def set_groups(self, admin_id: str, groups: dict[str, str]) -> Admin | None:
        return self.update(admin_id, {"$set": {"groups": dict(groups)}})

    def set_permissions(self, admin_id: str, permissions: dict[str, bool]) -> Admin | None:
        return self.update(admin_id, {"$set": {"permissions": dict(permissions)}})

    def set_name(self, admin_id: str, name: str) -> Admin | None:
        return self.update(admin_id, {"$set": {"name": Name.parse(name).model_dump()}})


class AdminGroupRepository(DocumentRepository[AdminGroup]):
    model = AdminGroup
    collection_name = ADMIN_GROUPS

    def create(self, name: str) -> AdminGroup:
        """Insert a group whose id is the slug of its name."""
        return self.insert(AdminGroup(id=slugify(name), name=name))

    def set_name(self, group_id: str, name: str) -> AdminGroup | None:
        return self.update(group_id, {"$set": {"name": name}})

    def set_permissions(
        self, group_id: str, permissions: dict[str, bool]
    ) -> AdminGroup | None:
        return self.update(group_id, {"$set": {"permissions": dict(permissions)}})


class AccountRepository(_LinkedRoleRepository, DocumentRepository[Account]):
    model = Account
    collection_name = ACCOUNTS

    def create(self, name: str) -> Account:
        return self.insert(Account(name=Name.parse(name)))

    def set_name(self, account_id: str, name: str | Name) -> Account | None:
        parsed = name if isinstance(name, Name) else Name.parse(name)
        return self.update(account_id, {"$set": {"name": parsed.model_dump()}})

    def push_note(self, account_id: str, note: NoteEntry) -> Account | None:
        return self.update(account_id, {"$push": {"notes": note.model_dump()}})

    def push_status(self, account_id: str, entry: StatusEntry) -> Account | None:
        """Make ``entry`` the current status and append it to the log."""
        document = entry.model_dump()
        return self.update(
            account_id,
            {"$set": {"status.current": document}, "$push": {"status.log": document}},
        )


class StatusRepository(DocumentRepository[Status]):
    model = Status
    collection_name = STATUSES

    def create(self, pivot: str, name: str) -> Status:
        return self.insert(Status(id=slugify(f"{pivot} {name}"), pivot=pivot, name=name))
