"""Authentication API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from fresh.api.contracts import ApiErrorResponse, SessionsResponse, StatusResponse
from fresh.auth.models import (
    AuthCredentials,
    ChangePasswordRequest,
    EmailKeyRequest,
    EmailRequest,
    LoginRequest,
    LoginResult,
    ResetPasswordRequest,
    RoleKind,
    SignupRequest,
    SignupResult,
    UpdateAccountRequest,
    UpdateIdentityRequest,
    UserSummary,
)
from fresh.auth.preware import get_credentials, require_not_root_user, require_scope
from fresh.auth.service import AuthService
from fresh.roles.models import AccountSummary

USER_SCOPES = (RoleKind.ADMIN.value, RoleKind.ACCOUNT.value)


def _client_ip(request: Request) -> str:
    return (request.client.host if request.client else "") or "unknown"


def create_auth_router(service: AuthService) -> APIRouter:
    """Build router with login, signup, password and self-service endpoints."""
    router = APIRouter(tags=["auth"])

    @router.post(
        "/api/login",
        response_model=LoginResult,
        responses={401: {"model": ApiErrorResponse}, 429: {"model": ApiErrorResponse}},
    )
    def login(req: LoginRequest, request: Request) -> LoginResult:
        return service.login(
            req.username,
            req.password,
            ip=_client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )

    @router.post(
        "/api/signup",
        response_model=SignupResult,
        responses={409: {"model": ApiErrorResponse}},
    )
    def signup(req: SignupRequest, request: Request) -> SignupResult:
        return service.signup(
            name=req.name,
            email=req.email,
            username=req.username,
            password=req.password,
            ip=_client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )

    @router.delete("/api/logout", response_model=StatusResponse)
    def logout(request: Request) -> StatusResponse:
        """Delete the current session, if any."""
        service.logout(getattr(request.state, "credentials", None))
        return StatusResponse(status="ok")

    @router.post("/api/login/forgot", response_model=StatusResponse)
    def forgot(req: EmailRequest) -> StatusResponse:
        service.forgot_password(req.email)
        return StatusResponse(status="ok")

    @router.post(
        "/api/login/reset",
        response_model=StatusResponse,
        responses={400: {"model": ApiErrorResponse}},
    )
    def reset(req: ResetPasswordRequest) -> StatusResponse:
        service.reset_password(req.email, req.key, req.password)
        return StatusResponse(status="ok")

    @router.post(
        "/api/signup/verify",
        response_model=StatusResponse,
        responses={400: {"model": ApiErrorResponse}},
    )
    def verify(req: EmailKeyRequest) -> StatusResponse:
        service.verify_email(req.email, req.key)
        return StatusResponse(status="ok")

    @router.post("/api/signup/resend", response_model=StatusResponse)
    def resend(req: EmailRequest) -> StatusResponse:
        service.resend_verification(req.email)
        return StatusResponse(status="ok")

    @router.put(
        "/api/users/my/password",
        response_model=UserSummary,
        responses={401: {"model": ApiErrorResponse}, 403: {"model": ApiErrorResponse}},
    )
    def change_password(
        req: ChangePasswordRequest,
        credentials: AuthCredentials = Depends(require_not_root_user),
    ) -> UserSummary:
        user = service.change_password(credentials.user_id, req.password)
        return UserSummary.from_user(user)

    @router.get(
        "/api/users/my",
        response_model=UserSummary,
        responses={403: {"model": ApiErrorResponse}},
    )
    def my_user(
        credentials: AuthCredentials = Depends(require_scope(*USER_SCOPES)),
    ) -> UserSummary:
        return UserSummary.from_user(service.my_user(credentials))

    @router.put(
        "/api/users/my",
        response_model=UserSummary,
        responses={403: {"model": ApiErrorResponse}, 409: {"model": ApiErrorResponse}},
        dependencies=[Depends(require_not_root_user)],
    )
    def update_my_user(
        req: UpdateIdentityRequest,
        credentials: AuthCredentials = Depends(require_scope(*USER_SCOPES)),
    ) -> UserSummary:
        user = service.update_my_identity(credentials, username=req.username, email=req.email)
        return UserSummary.from_user(user)

    @router.get(
        "/api/accounts/my",
        response_model=AccountSummary,
        responses={403: {"model": ApiErrorResponse}, 404: {"model": ApiErrorResponse}},
    )
    def my_account(
        credentials: AuthCredentials = Depends(require_scope(RoleKind.ACCOUNT.value)),
    ) -> AccountSummary:
        return AccountSummary.from_account(service.my_account(credentials))

    @router.put(
        "/api/accounts/my",
        response_model=AccountSummary,
        responses={403: {"model": ApiErrorResponse}, 404: {"model": ApiErrorResponse}},
    )
    def update_my_account(
        req: UpdateAccountRequest,
        credentials: AuthCredentials = Depends(require_scope(RoleKind.ACCOUNT.value)),
    ) -> AccountSummary:
        account = service.update_my_account(
            credentials, first=req.name.first, last=req.name.last
        )
        return AccountSummary.from_account(account)

    @router.get("/api/sessions/my", response_model=SessionsResponse)
    def my_sessions(
        credentials: AuthCredentials = Depends(get_credentials),
    ) -> SessionsResponse:
        sessions = service.my_sessions(credentials)
        return SessionsResponse(data=[session.public_dict() for session in sessions])

    @router.delete(
        "/api/sessions/my/{session_id}",
        response_model=StatusResponse,
        responses={400: {"model": ApiErrorResponse}},
    )
    def delete_my_session(
        session_id: str,
        credentials: AuthCredentials = Depends(get_credentials),
    ) -> StatusResponse:
        service.delete_my_session(credentials, session_id)
        return StatusResponse(status="ok")

    return router
