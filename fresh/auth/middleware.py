"""HTTP middleware that enforces session auth on protected API routes."""

from __future__ import annotations

from collections.abc import Collection
from typing import Callable

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from fresh.api.contracts import ApiErrorResponse
from fresh.api.errors import ApiErrorCode
from fresh.auth.strategies import AuthStrategy, parse_authorization

# Routes where credentials are optional ("try" mode).
PUBLIC_PATHS = frozenset(
    {
        "/api/health",
        "/api/login",
        "/api/login/forgot",
        "/api/login/reset",
        "/api/logout",
        "/api/signup",
        "/api/signup/verify",
        "/api/signup/resend",
    }
)


def _unauthorized(error_code: ApiErrorCode, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content=ApiErrorResponse(error_code=error_code, message=message).model_dump(),
    )


def create_auth_middleware(
    strategy: AuthStrategy,
    *,
    secret_key: str,
    algorithm: str = "HS256",
    enabled: bool = True,
    public_paths: Collection[str] = PUBLIC_PATHS,
) -> Callable:
    """Create middleware function that validates session credentials."""

    async def auth_middleware(request: Request, call_next: Callable):
        """Validate credentials for protected API paths and attach them to state."""
        request.state.credentials = None
        if not enabled:
            return await call_next(request)

        path = request.url.path
        authorization = request.headers.get("authorization", "")
        is_public = not path.startswith("/api/") or path in public_paths
        if is_public and not authorization:
            return await call_next(request)

        bundle = parse_authorization(
            authorization, secret_key=secret_key, algorithm=algorithm
        )
        if bundle is None:
            if is_public:
                return await call_next(request)
            if not authorization:
                return _unauthorized(
                    ApiErrorCode.AUTH_MISSING_TOKEN, "Missing authorization header"
                )
            return _unauthorized(ApiErrorCode.AUTH_TOKEN_INVALID, "Invalid credentials")

        verdict = await run_in_threadpool(strategy.validate, bundle)
        if not verdict.is_valid:
            if is_public:
                return await call_next(request)
            return _unauthorized(ApiErrorCode.AUTH_TOKEN_INVALID, "Invalid credentials")

        request.state.credentials = verdict.credentials
        return await call_next(request)

    return auth_middleware
