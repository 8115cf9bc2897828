"""Shared API error types and helpers."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from fastapi import HTTPException


class ApiErrorCode(StrEnum):
    """Machine-readable API error codes."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_MISSING_TOKEN = "AUTH_MISSING_TOKEN"
    AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"
    AUTH_TOKEN_INVALID = "AUTH_TOKEN_INVALID"
    AUTH_INVALID_KEY = "AUTH_INVALID_KEY"
    AUTH_FORBIDDEN = "AUTH_FORBIDDEN"
    AUTH_RATE_LIMITED = "AUTH_RATE_LIMITED"
    USERNAME_IN_USE = "USERNAME_IN_USE"
    EMAIL_IN_USE = "EMAIL_IN_USE"
    LINK_CONFLICT = "LINK_CONFLICT"
    RECORD_EXISTS = "RECORD_EXISTS"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    ADMIN_NOT_FOUND = "ADMIN_NOT_FOUND"
    ADMIN_GROUP_NOT_FOUND = "ADMIN_GROUP_NOT_FOUND"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    STATUS_NOT_FOUND = "STATUS_NOT_FOUND"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    SESSION_CURRENT = "SESSION_CURRENT"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


class ApiError(HTTPException):
    """HTTP exception carrying stable API error envelope."""

    def __init__(
        self, *, status_code: int, error_code: ApiErrorCode, message: str
    ) -> None:
        """Build an HTTP exception with standard detail structure."""
        super().__init__(
            status_code=status_code,
            detail={"error_code": str(error_code), "message": message},
        )
        self.error_code = error_code


def not_found(error_code: ApiErrorCode, message: str) -> ApiError:
    return ApiError(status_code=404, error_code=error_code, message=message)


def conflict(error_code: ApiErrorCode, message: str) -> ApiError:
    return ApiError(status_code=409, error_code=error_code, message=message)


def forbidden(message: str) -> ApiError:
    return ApiError(
        status_code=403, error_code=ApiErrorCode.AUTH_FORBIDDEN, message=message
    )


def to_error_payload(detail: Any, status_code: int) -> dict[str, str]:
    """Normalize HTTP exception detail into stable error payload."""
    if isinstance(detail, dict):
        error_code = str(detail.get("error_code") or f"HTTP_{status_code}")
        message = str(detail.get("message") or detail.get("detail") or "HTTP error")
        return {"error_code": error_code, "message": message}
    return {
        "error_code": f"HTTP_{status_code}",
        "message": str(detail or "HTTP error"),
    }
