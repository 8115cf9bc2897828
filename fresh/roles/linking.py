"""Paired user/role link updates that keep both sides consistent."""

from __future__ import annotations

import logging
from typing import Callable

from fresh.api.errors import ApiErrorCode, conflict, not_found
from fresh.auth.models import RoleKind, RoleLink, User
from fresh.auth.repository import UserRepository
from fresh.auth.sessions import SessionStore
from fresh.core.storage import DuplicateDocumentError
from fresh.roles.models import Account, Admin
from fresh.roles.repository import AccountRepository, AdminRepository

LOGGER = logging.getLogger(__name__)

RoleRecord = Admin | Account


class LinkEnforcer:
    """One user per role record and one role record per kind per user.

    The store has no multi-document transactions here, so the role side is
    written first and restored if the user-side write fails.
    """

    def __init__(
        self,
        users: UserRepository,
        admins: AdminRepository,
        accounts: AccountRepository,
        sessions: SessionStore,
    ) -> None:
        self._users = users
        self._admins = admins
        self._accounts = accounts
        self._sessions = sessions

    def _repo_for(self, kind: RoleKind) -> AdminRepository | AccountRepository:
        return self._admins if kind is RoleKind.ADMIN else self._accounts

    def _get_role(self, kind: RoleKind, role_id: str) -> RoleRecord:
        record = self._repo_for(kind).find_by_id(role_id)
        if record is None:
            if kind is RoleKind.ADMIN:
                raise not_found(ApiErrorCode.ADMIN_NOT_FOUND, "Admin not found.")
            raise not_found(ApiErrorCode.ACCOUNT_NOT_FOUND, "Account not found.")
        return record

    def link_admin(self, admin_id: str, username: str) -> Admin:
        return self._link(RoleKind.ADMIN, admin_id, username, revoke_sessions=True)

    def link_account(self, account_id: str, username: str) -> Account:
        return self._link(RoleKind.ACCOUNT, account_id, username, revoke_sessions=False)

    def unlink_admin(self, admin_id: str) -> Admin:
        return self._unlink(RoleKind.ADMIN, admin_id)

    def unlink_account(self, account_id: str) -> Account:
        return self._unlink(RoleKind.ACCOUNT, account_id)

    def update_identity(self, user_id: str, *, username: str, email: str) -> User:
        """Change username and email, then refresh the name cached on linked roles."""
        username = username.strip().lower()
        email = email.strip().lower()
        taken = self._users.find_by_username(username)
        if taken is not None and taken.id != user_id:
            raise conflict(ApiErrorCode.USERNAME_IN_USE, "Username already in use.")
        taken = self._users.find_by_email(email)
        if taken is not None and taken.id != user_id:
            raise conflict(ApiErrorCode.EMAIL_IN_USE, "Email already in use.")

        try:
            user = self._users.update_identity(user_id, username=username, email=email)
        except DuplicateDocumentError as exc:
            if exc.field == "email":
                raise conflict(ApiErrorCode.EMAIL_IN_USE, "Email already in use.") from exc
            raise conflict(ApiErrorCode.USERNAME_IN_USE, "Username already in use.") from exc
        if user is None:
            raise not_found(ApiErrorCode.USER_NOT_FOUND, "User not found.")

        for repo in (self._admins, self._accounts):
            repo.rename_user(user.id, user.username)
        return user

    def _link(
        self, kind: RoleKind, role_id: str, username: str, *, revoke_sessions: bool
    ) -> RoleRecord:
        role = self._get_role(kind, role_id)
        user = self._users.find_by_username(username)
        if user is None:
            raise not_found(ApiErrorCode.USER_NOT_FOUND, "User not found.")

        current = user.roles.get(kind)
        if current is not None and current.id != role.id:
            raise conflict(
                ApiErrorCode.LINK_CONFLICT,
                f"User is linked to an {kind.value}. Unlink first.",
            )
        if role.user is not None and role.user.id != user.id:
            raise conflict(
                ApiErrorCode.LINK_CONFLICT,
                f"{kind.value.capitalize()} is linked to a user. Unlink first.",
            )

        repo = self._repo_for(kind)
        linked = repo.link_user(role.id, user.id, user.username)
        self._write_user_side(
            lambda: self._users.link_role(
                user.id, RoleLink(kind=kind, id=role.id, name=role.full_name())
            ),
            compensate=lambda: self._restore_role_user(repo, role),
        )
        if revoke_sessions:
            self._sessions.delete_all_for_user(user.id)
        LOGGER.info(
            "role_linked kind=%s role_id=%s", kind.value, role.id, extra={"user_id": user.id}
        )
        return linked or role

    def _unlink(self, kind: RoleKind, role_id: str) -> RoleRecord:
        role = self._get_role(kind, role_id)
        repo = self._repo_for(kind)
        if role.user is None or not role.user.id:
            return repo.unlink_user(role.id) or role

        user = self._users.find_by_id(role.user.id)
        if user is None:
            # Dangling reference to a deleted user.
            return repo.unlink_user(role.id) or role

        unlinked = repo.unlink_user(role.id)
        self._write_user_side(
            lambda: self._users.unlink_role(user.id, kind),
            compensate=lambda: self._restore_role_user(repo, role),
        )
        self._sessions.delete_all_for_user(user.id)
        LOGGER.info(
            "role_unlinked kind=%s role_id=%s", kind.value, role.id, extra={"user_id": user.id}
        )
        return unlinked or role

    @staticmethod
    def _restore_role_user(
        repo: AdminRepository | AccountRepository, role: RoleRecord
    ) -> None:
        if role.user is None:
            repo.unlink_user(role.id)
        else:
            repo.link_user(role.id, role.user.id, role.user.name)

    @staticmethod
    def _write_user_side(
        write: Callable[[], User | None], *, compensate: Callable[[], None]
    ) -> None:
        try:
            write()
        except Exception:
            LOGGER.exception("user-side link write failed; restoring role side")
            compensate()
            raise
