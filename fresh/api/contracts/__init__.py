"""Public API response contracts."""

from fresh.api.contracts.models import (
    ApiErrorResponse,
    HealthResponse,
    SessionsResponse,
    StatusResponse,
)

__all__ = [
    "ApiErrorResponse",
    "HealthResponse",
    "SessionsResponse",
    "StatusResponse",
]
