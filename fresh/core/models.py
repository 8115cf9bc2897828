"""Base pydantic model for records kept in the document store."""

from __future__ import annotations

import time
import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def new_id() -> str:
    return uuid.uuid4().hex


def now_ts() -> float:
    return time.time()


class StoredModel(BaseModel):
    """Document with an ``_id`` primary key, validated before every write."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_id, alias="_id")

    def to_document(self) -> dict[str, Any]:
        """Serialize into the stored shape (``_id`` key, unset fields dropped)."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)

    @classmethod
    def from_document(cls, document: dict[str, Any] | None):
        """Validate a stored document, passing ``None`` through."""
        if document is None:
            return None
        return cls.model_validate(document)
