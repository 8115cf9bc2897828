"""FastAPI dependencies that authorize the authenticated caller."""

from __future__ import annotations

from typing import Callable

from fastapi import Depends, Request

from fresh.api.errors import ApiError, ApiErrorCode, forbidden
from fresh.auth.models import AuthCredentials, RoleKind
from fresh.roles.models import Admin

ROOT_USERNAME = "root"


def get_credentials(request: Request) -> AuthCredentials:
    """Return credentials attached by the auth middleware or raise 401."""
    credentials = getattr(request.state, "credentials", None)
    if credentials is None:
        raise ApiError(
            status_code=401,
            error_code=ApiErrorCode.AUTH_MISSING_TOKEN,
            message="Missing authentication.",
        )
    return credentials


def _current_admin(request: Request, credentials: AuthCredentials) -> Admin | None:
    if RoleKind.ADMIN.value not in credentials.scope:
        return None
    container = request.app.state.container
    if credentials.user is None:
        credentials.user = container.users.find_by_id(credentials.user_id)
    if credentials.user is None:
        return None
    return container.resolver.admin_for(credentials.user)


def require_admin_group(*groups: str) -> Callable[..., Admin]:
    """Allow admins in any of ``groups``; members of ``root`` always pass."""

    def dependency(
        request: Request, credentials: AuthCredentials = Depends(get_credentials)
    ) -> Admin:
        admin = _current_admin(request, credentials)
        if not request.app.state.container.resolver.authorize(admin, groups=groups):
            raise forbidden("Missing required group membership.")
        return admin

    return dependency


def require_permission(permission: str) -> Callable[..., Admin]:
    def dependency(
        request: Request, credentials: AuthCredentials = Depends(get_credentials)
    ) -> Admin:
        admin = _current_admin(request, credentials)
        resolver = request.app.state.container.resolver
        if not resolver.authorize(admin, permission=permission):
            raise forbidden(f"Missing required permission: {permission}.")
        return admin

    return dependency


def require_not_root_user(
    credentials: AuthCredentials = Depends(get_credentials),
) -> AuthCredentials:
    if credentials.username == ROOT_USERNAME:
        raise forbidden("Not permitted for the root user.")
    return credentials


def require_verified_user(
    credentials: AuthCredentials = Depends(get_credentials),
) -> AuthCredentials:
    if not credentials.email_verified:
        raise forbidden("Email is not verified.")
    return credentials


def require_scope(*scopes: str) -> Callable[..., AuthCredentials]:
    """Allow callers whose roles include any of ``scopes``."""

    def dependency(
        credentials: AuthCredentials = Depends(get_credentials),
    ) -> AuthCredentials:
        if not set(scopes) & set(credentials.scope):
            raise forbidden("Insufficient scope.")
        return credentials

    return dependency
