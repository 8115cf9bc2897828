"""Pydantic models for authentication domain."""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, Field, PrivateAttr, field_validator, model_validator

from fresh.core.models import StoredModel, now_ts


class RoleKind(StrEnum):
    """Roles a user can play."""

    ADMIN = "admin"
    ACCOUNT = "account"


class RoleLink(BaseModel):
    """Reference from a user to the role record it plays."""

    kind: RoleKind
    id: str
    name: str = ""


class UserRoles(BaseModel):
    """One optional slot per role kind."""

    admin: RoleLink | None = None
    account: RoleLink | None = None

    @model_validator(mode="before")
    @classmethod
    def _tag_slots(cls, data: Any) -> Any:
        # Stored links may omit the kind; the slot name supplies it.
        if not isinstance(data, dict):
            return data
        tagged = dict(data)
        for kind in RoleKind:
            link = tagged.get(kind.value)
            if isinstance(link, dict):
                tagged[kind.value] = {"kind": kind.value, **link}
        return tagged

    @model_validator(mode="after")
    def _check_slot_kinds(self) -> "UserRoles":
        for kind in RoleKind:
            link = self.get(kind)
            if link is not None and link.kind is not kind:
                raise ValueError(f"{link.kind} link stored in {kind} slot")
        return self

    def get(self, kind: RoleKind) -> RoleLink | None:
        return getattr(self, kind.value)

    def kinds(self) -> list[str]:
        return [kind.value for kind in RoleKind if self.get(kind) is not None]


class PendingToken(BaseModel):
    """Hashed emailed key with its expiry timestamp."""

    token: str
    expires: float


class User(StoredModel):
    """Persisted identity record."""

    username: str = Field(min_length=1)
    email: str = Field(min_length=3)
    password_hash: str = Field(min_length=1)
    is_active: bool = True
    time_created: float = Field(default_factory=now_ts)
    verify: PendingToken | None = None
    reset_password: PendingToken | None = None
    roles: UserRoles = Field(default_factory=UserRoles)

    _hydrated: Any = PrivateAttr(default=None)

    @field_validator("username", "email")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return value.strip().lower()

    def can_play_role(self, kind: RoleKind) -> bool:
        return self.roles.get(kind) is not None

    @property
    def scope(self) -> list[str]:
        return self.roles.kinds()


class UserSummary(BaseModel):
    """User fields safe to return to clients."""

    id: str
    username: str
    email: str
    is_active: bool
    roles: UserRoles

    @classmethod
    def from_user(cls, user: User) -> "UserSummary":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            is_active=user.is_active,
            roles=user.roles,
        )


class Session(StoredModel):
    """Server-held proof of a successful login."""

    user_id: str = Field(min_length=1)
    key_hash: str = Field(min_length=1)
    time_created: float = Field(default_factory=now_ts)
    last_active: float | None = None
    ip: str = ""
    user_agent: str = ""

    def public_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude={"key_hash"})


class SessionGrant(BaseModel):
    """A freshly created session with its one-time plaintext key."""

    session: Session
    key: str


class AuthAttempt(StoredModel):
    """Failed login record used for throttling."""

    ip: str = Field(min_length=1)
    username: str = Field(min_length=1)
    time_created: float = Field(default_factory=now_ts)


class CredentialBundle(BaseModel):
    """Session credentials extracted from an Authorization header."""

    scheme: Literal["bearer", "basic"]
    session_id: str
    session_key: str
    claims: dict[str, Any] = Field(default_factory=dict)


class AuthCredentials(BaseModel):
    """Identity attached to an authenticated request."""

    session: Session
    user_id: str
    username: str = ""
    email_verified: bool = False
    roles: UserRoles = Field(default_factory=UserRoles)
    scope: list[str] = Field(default_factory=list)
    user: User | None = None


class AuthVerdict(BaseModel):
    """Outcome of validating request credentials."""

    is_valid: bool
    credentials: AuthCredentials | None = None

    @classmethod
    def invalid(cls) -> "AuthVerdict":
        return cls(is_valid=False)


class LoginResult(BaseModel):
    """Login response payload."""

    authorization: str
    session_id: str
    user: UserSummary


class SignupResult(BaseModel):
    """Signup response payload."""

    user: UserSummary
    session: dict[str, Any]
    session_key: str
    auth_header: str
    authorization: str


class LoginRequest(BaseModel):
    """Login request payload."""

    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class SignupRequest(BaseModel):
    """Signup request payload."""

    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    username: str = Field(min_length=1, pattern=r"^[a-zA-Z0-9\-_]+$")
    password: str = Field(min_length=1)


class EmailRequest(BaseModel):
    """Payload carrying only an email address."""

    email: str = Field(min_length=3)


class EmailKeyRequest(BaseModel):
    """Verify-email payload."""

    email: str = Field(min_length=3)
    key: str = Field(min_length=1)


class ResetPasswordRequest(BaseModel):
    """Reset-password payload."""

    email: str = Field(min_length=3)
    key: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ChangePasswordRequest(BaseModel):
    """Change-own-password payload."""

    password: str = Field(min_length=1)


class UpdateIdentityRequest(BaseModel):
    """Update-own-identity payload."""

    username: str = Field(min_length=1, pattern=r"^[a-zA-Z0-9\-_]+$")
    email: str = Field(min_length=3)


class PersonNameRequest(BaseModel):
    first: str = Field(min_length=1)
    last: str = Field(min_length=1)


class UpdateAccountRequest(BaseModel):
    """Update-own-account payload."""

    name: PersonNameRequest
