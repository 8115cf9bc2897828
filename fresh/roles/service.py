"""Administrative operations on users, roles, groups and sessions."""

from __future__ import annotations

import logging

from fresh.api.errors import ApiErrorCode, conflict, forbidden, not_found
from fresh.auth.models import Session, User
from fresh.auth.repository import UserRepository
from fresh.auth.sessions import SessionStore
from fresh.core.repository import Page, sort_adapter
from fresh.core.storage import DuplicateDocumentError
from fresh.roles.linking import LinkEnforcer
from fresh.roles.models import (
    ROOT_GROUP_ID,
    Account,
    Admin,
    AdminGroup,
    EntityRef,
    NoteEntry,
    Status,
    StatusEntry,
)
from fresh.roles.repository import (
    AccountRepository,
    AdminGroupRepository,
    AdminRepository,
    StatusRepository,
)

LOGGER = logging.getLogger(__name__)


class RoleAdminService:
    """Root-scope management flows.

    Changes that alter what a user may do (groups, permissions, active flag)
    revoke that user's sessions so the next request re-authenticates.
    """

    def __init__(
        self,
        *,
        users: UserRepository,
        admins: AdminRepository,
        accounts: AccountRepository,
        groups: AdminGroupRepository,
        statuses: StatusRepository,
        sessions: SessionStore,
        linker: LinkEnforcer,
    ) -> None:
        self._users = users
        self._admins = admins
        self._accounts = accounts
        self._groups = groups
        self._statuses = statuses
        self._sessions = sessions
        self._linker = linker

    # lookups

    def get_user(self, user_id: str) -> User:
        user = self._users.find_by_id(user_id)
        if user is None:
            raise not_found(ApiErrorCode.USER_NOT_FOUND, "User not found.")
        return user

    def get_admin(self, admin_id: str) -> Admin:
        admin = self._admins.find_by_id(admin_id)
        if admin is None:
            raise not_found(ApiErrorCode.ADMIN_NOT_FOUND, "Admin not found.")
        return admin

    def get_account(self, account_id: str) -> Account:
        account = self._accounts.find_by_id(account_id)
        if account is None:
            raise not_found(ApiErrorCode.ACCOUNT_NOT_FOUND, "Account not found.")
        return account

    def get_group(self, group_id: str) -> AdminGroup:
        group = self._groups.find_by_id(group_id)
        if group is None:
            raise not_found(ApiErrorCode.ADMIN_GROUP_NOT_FOUND, "AdminGroup not found.")
        return group

    def get_status(self, status_id: str) -> Status:
        status = self._statuses.find_by_id(status_id)
        if status is None:
            raise not_found(ApiErrorCode.STATUS_NOT_FOUND, "Status not found.")
        return status

    # creation

    def create_admin(self, name: str) -> Admin:
        return self._admins.create(name)

    def create_account(self, name: str) -> Account:
        return self._accounts.create(name)

    def create_group(self, name: str) -> AdminGroup:
        try:
            return self._groups.create(name)
        except DuplicateDocumentError as exc:
            raise conflict(ApiErrorCode.RECORD_EXISTS, "AdminGroup already exists.") from exc

    def create_status(self, pivot: str, name: str) -> Status:
        try:
            return self._statuses.create(pivot, name)
        except DuplicateDocumentError as exc:
            raise conflict(ApiErrorCode.RECORD_EXISTS, "Status already exists.") from exc

    # admins and groups

    def set_admin_groups(self, admin_id: str, groups: dict[str, str]) -> Admin:
        admin = self._admins.set_groups(admin_id, groups)
        if admin is None:
            raise not_found(ApiErrorCode.ADMIN_NOT_FOUND, "Admin not found.")
        self._revoke_linked(admin)
        return admin

    def set_admin_permissions(self, admin_id: str, permissions: dict[str, bool]) -> Admin:
        admin = self._admins.set_permissions(admin_id, permissions)
        if admin is None:
            raise not_found(ApiErrorCode.ADMIN_NOT_FOUND, "Admin not found.")
        self._revoke_linked(admin)
        return admin

    def rename_group(self, group_id: str, name: str) -> AdminGroup:
        self._assert_not_root(group_id)
        group = self._groups.set_name(group_id, name)
        if group is None:
            raise not_found(ApiErrorCode.ADMIN_GROUP_NOT_FOUND, "AdminGroup not found.")
        return group

    def set_group_permissions(
        self, group_id: str, permissions: dict[str, bool]
    ) -> AdminGroup:
        self._assert_not_root(group_id)
        group = self._groups.set_permissions(group_id, permissions)
        if group is None:
            raise not_found(ApiErrorCode.ADMIN_GROUP_NOT_FOUND, "AdminGroup not found.")
        for admin in self._admins.find({f"groups.{group_id}": {"$exists": True}}):
            self._revoke_linked(admin)
        return group

    def delete_group(self, group_id: str) -> AdminGroup:
        self._assert_not_root(group_id)
        group = self._groups.delete(group_id)
        if group is None:
            raise not_found(ApiErrorCode.ADMIN_GROUP_NOT_FOUND, "AdminGroup not found.")
        return group

    # users

    def set_user_active(self, user_id: str, is_active: bool) -> User:
        user = self._users.set_active(user_id, is_active)
        if user is None:
            raise not_found(ApiErrorCode.USER_NOT_FOUND, "User not found.")
        self._sessions.delete_all_for_user(user.id)
        return user

    def update_user_identity(self, user_id: str, *, username: str, email: str) -> User:
        user = self._linker.update_identity(user_id, username=username, email=email)
        self._sessions.delete_all_for_user(user.id)
        return user

    def delete_user(self, user_id: str) -> User:
        user = self._users.delete(user_id)
        if user is None:
            raise not_found(ApiErrorCode.USER_NOT_FOUND, "User not found.")
        self._sessions.delete_all_for_user(user_id)
        return user

    # accounts

    def add_account_note(self, account_id: str, author: Admin, data: str) -> Account:
        note = NoteEntry(
            data=data, admin_created=EntityRef(id=author.id, name=author.full_name())
        )
        account = self._accounts.push_note(account_id, note)
        if account is None:
            raise not_found(ApiErrorCode.ACCOUNT_NOT_FOUND, "Account not found.")
        return account

    def set_account_status(self, account_id: str, author: Admin, status_id: str) -> Account:
        status = self.get_status(status_id)
        entry = StatusEntry(
            id=status.id,
            name=status.name,
            admin_created=EntityRef(id=author.id, name=author.full_name()),
        )
        account = self._accounts.push_status(account_id, entry)
        if account is None:
            raise not_found(ApiErrorCode.ACCOUNT_NOT_FOUND, "Account not found.")
        return account

    # sessions

    def list_sessions(
        self, *, page: int = 1, limit: int = 20, sort: str = "_id"
    ) -> Page[Session]:
        return self._sessions.repo.paged_find(
            {}, page=page, limit=limit, sort=sort_adapter(sort)
        )

    def get_session(self, session_id: str) -> Session:
        session = self._sessions.find_by_id(session_id)
        if session is None:
            raise not_found(ApiErrorCode.SESSION_NOT_FOUND, "Session not found.")
        return session

    def delete_session(self, session_id: str) -> Session:
        session = self._sessions.delete_by_id(session_id)
        if session is None:
            raise not_found(ApiErrorCode.SESSION_NOT_FOUND, "Session not found.")
        return session

    def _revoke_linked(self, admin: Admin) -> None:
        if admin.user is not None:
            self._sessions.delete_all_for_user(admin.user.id)

    @staticmethod
    def _assert_not_root(group_id: str) -> None:
        if group_id == ROOT_GROUP_ID:
            raise forbidden("The root group cannot be modified.")
