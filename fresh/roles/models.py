"""Pydantic models for admin and account roles."""

from __future__ import annotations

import re

from pydantic import BaseModel, Field

from fresh.core.models import StoredModel, now_ts

ROOT_GROUP_ID = "root"


def slugify(value: str) -> str:
    """Lowercase and hyphenate a display name into a stable id."""
    return re.sub(r"[^a-z0-9]+", "-", value.strip().lower()).strip("-")


class Name(BaseModel):
    """Person name split into parts."""

    first: str
    middle: str = ""
    last: str = ""

    @classmethod
    def parse(cls, value: str) -> "Name":
        parts = value.split()
        if not parts:
            raise ValueError("Name must not be empty")
        if len(parts) == 1:
            return cls(first=parts[0])
        if len(parts) == 2:
            return cls(first=parts[0], last=parts[1])
        return cls(first=parts[0], middle=" ".join(parts[1:-1]), last=parts[-1])

    def full(self) -> str:
        return " ".join(part for part in (self.first, self.middle, self.last) if part)


class EntityRef(BaseModel):
    """Id plus cached display name of another record."""

    id: str
    name: str


class Admin(StoredModel):
    """Admin role record."""

    name: Name
    time_created: float = Field(default_factory=now_ts)
    user: EntityRef | None = None
    groups: dict[str, str] = Field(default_factory=dict)
    permissions: dict[str, bool] = Field(default_factory=dict)

    def full_name(self) -> str:
        return self.name.full()


class AdminGroup(StoredModel):
    """Named bundle of default admin permissions."""

    name: str = Field(min_length=1)
    permissions: dict[str, bool] = Field(default_factory=dict)


class NoteEntry(BaseModel):
    data: str = Field(min_length=1)
    admin_created: EntityRef
    time_created: float = Field(default_factory=now_ts)


class StatusEntry(BaseModel):
    id: str
    name: str
    admin_created: EntityRef
    time_created: float = Field(default_factory=now_ts)


class StatusHistory(BaseModel):
    current: StatusEntry | None = None
    log: list[StatusEntry] = Field(default_factory=list)


class Account(StoredModel):
    """Customer role record."""

    name: Name
    time_created: float = Field(default_factory=now_ts)
    user: EntityRef | None = None
    notes: list[NoteEntry] = Field(default_factory=list)
    status: StatusHistory = Field(default_factory=StatusHistory)

    def full_name(self) -> str:
        return self.name.full()


class AccountSummary(BaseModel):
    """Account fields an account holder may read about themselves."""

    id: str
    name: Name
    user: EntityRef | None = None
    time_created: float

    @classmethod
    def from_account(cls, account: Account) -> "AccountSummary":
        return cls(
            id=account.id,
            name=account.name,
            user=account.user,
            time_created=account.time_created,
        )


class Status(StoredModel):
    """Account status choice, grouped by pivot (e.g. ``Account``)."""

    pivot: str = Field(min_length=1)
    name: str = Field(min_length=1)
