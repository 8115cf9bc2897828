"""Pydantic API response models used in OpenAPI contracts."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class ApiErrorResponse(BaseModel):
    """Stable error envelope for API responses."""

    error_code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error message")


class HealthResponse(BaseModel):
    """Health check response payload."""

    status: Literal["ok"]
    storage: Literal["mongodb", "file"]


class StatusResponse(BaseModel):
    """Acknowledgement for operations without a body."""

    status: Literal["ok"]


class SessionsResponse(BaseModel):
    """Sessions owned by the caller, without key hashes."""

    data: list[dict[str, Any]]
