"""Repository for user identity records."""

from __future__ import annotations

from typing import Literal

from fresh.auth.models import PendingToken, RoleKind, RoleLink, User
from fresh.core.models import now_ts
from fresh.core.repository import DocumentRepository
from fresh.core.security import hash_secret, verify_secret
from fresh.core.storage import USERS

PendingField = Literal["verify", "reset_password"]


class UserRepository(DocumentRepository[User]):
    """User persistence with credential lookup helpers."""

    model = User
    collection_name = USERS

    def create(
        self,
        username: str,
        password: str,
        email: str,
        *,
        verify: PendingToken | None = None,
    ) -> User:
        """Hash the password and insert a new active user."""
        user = User(
            username=username,
            email=email,
            password_hash=hash_secret(password).hash,
            verify=verify,
        )
        return self.insert(user)

    def find_by_username(self, username: str) -> User | None:
        return self.find_one({"username": username.strip().lower()})

    def find_by_email(self, email: str) -> User | None:
        return self.find_one({"email": email.strip().lower()})

    def find_by_credentials(self, username: str, password: str) -> User | None:
        """Return the active user matching username or email and password."""
        key = username.strip().lower()
        field = "email" if "@" in key else "username"
        user = self.find_one({field: key, "is_active": True})
        if user is None:
            return None
        if not verify_secret(password, user.password_hash):
            return None
        return user

    def find_with_pending(
        self, email: str, field: PendingField, *, expired: bool = False
    ) -> User | None:
        """Find a user by email whose pending token is still valid (or expired)."""
        operator = "$lt" if expired else "$gt"
        return self.find_one(
            {"email": email.strip().lower(), f"{field}.expires": {operator: now_ts()}}
        )

    def set_pending(self, user_id: str, field: PendingField, token: PendingToken) -> User | None:
        return self.update(user_id, {"$set": {field: token.model_dump()}})

    def clear_pending(self, user_id: str, field: PendingField) -> User | None:
        return self.update(user_id, {"$unset": {field: ""}})

    def set_password(self, user_id: str, password: str) -> User | None:
        """Store a new password hash and drop any pending reset."""
        return self.update(
            user_id,
            {
                "$set": {"password_hash": hash_secret(password).hash},
                "$unset": {"reset_password": ""},
            },
        )

    def set_active(self, user_id: str, is_active: bool) -> User | None:
        return self.update(user_id, {"$set": {"is_active": bool(is_active)}})

    def update_identity(self, user_id: str, *, username: str, email: str) -> User | None:
        return self.update(
            user_id,
            {"$set": {"username": username.strip().lower(), "email": email.strip().lower()}},
        )

    def link_role(self, user_id: str, link: RoleLink) -> User | None:
        return self.update(
            user_id, {"$set": {f"roles.{link.kind.value}": link.model_dump(mode="json")}}
        )

    def unlink_role(self, user_id: str, kind: RoleKind) -> User | None:
        return self.update(user_id, {"$unset": {f"roles.{kind.value}": ""}})
