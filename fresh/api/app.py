"""Application container and FastAPI app factory."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fresh.api.contracts import HealthResponse
from fresh.api.http_setup import register_exception_handlers, register_http_middleware
from fresh.auth.middleware import create_auth_middleware
from fresh.auth.rate_limiter import AuthAttemptGuard
from fresh.auth.repository import UserRepository
from fresh.auth.router import create_auth_router
from fresh.auth.service import AuthService
from fresh.auth.sessions import SessionStore
from fresh.auth.strategies import AuthStrategy, SessionStrategy, UserSessionStrategy
from fresh.core.config import AUTH_STRATEGY_SESSION, AppConfig
from fresh.core.mailer import LoggingMailer, Mailer
from fresh.core.mongo_migrations import apply_mongo_migrations
from fresh.core.storage import DocumentStore
from fresh.roles.linking import LinkEnforcer
from fresh.roles.repository import (
    AccountRepository,
    AdminGroupRepository,
    AdminRepository,
    StatusRepository,
)
from fresh.roles.resolver import RoleResolver
from fresh.roles.service import RoleAdminService

LOGGER = logging.getLogger(__name__)


@dataclass
class AppContainer:
    """Long-lived collaborators shared by every request."""

    config: AppConfig
    store: DocumentStore
    users: UserRepository
    admins: AdminRepository
    accounts: AccountRepository
    groups: AdminGroupRepository
    statuses: StatusRepository
    sessions: SessionStore
    guard: AuthAttemptGuard
    resolver: RoleResolver
    linker: LinkEnforcer
    mailer: Mailer
    executor: ThreadPoolExecutor
    strategy: AuthStrategy
    auth_service: AuthService
    role_admin: RoleAdminService

    def close(self) -> None:
        self.executor.shutdown(wait=True)
        self.store.close()


def build_container(
    config: AppConfig,
    *,
    store: DocumentStore,
    mailer: Mailer | None = None,
) -> AppContainer:
    """Wire repositories and services around an opened document store."""
    users = UserRepository(store)
    admins = AdminRepository(store)
    accounts = AccountRepository(store)
    groups = AdminGroupRepository(store)
    statuses = StatusRepository(store)
    sessions = SessionStore(store)
    guard = AuthAttemptGuard(store, config.auth_attempts)
    linker = LinkEnforcer(users, admins, accounts, sessions)
    mailer = mailer or LoggingMailer(config.mailer)
    executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="session-touch")

    strategy: AuthStrategy
    if config.auth.strategy == AUTH_STRATEGY_SESSION:
        strategy = SessionStrategy(sessions, users, executor=executor)
    else:
        strategy = UserSessionStrategy(sessions, users, executor=executor)

    return AppContainer(
        config=config,
        store=store,
        users=users,
        admins=admins,
        accounts=accounts,
        groups=groups,
        statuses=statuses,
        sessions=sessions,
        guard=guard,
        resolver=RoleResolver(admins, accounts, groups),
        linker=linker,
        mailer=mailer,
        executor=executor,
        strategy=strategy,
        auth_service=AuthService(
            users=users,
            sessions=sessions,
            guard=guard,
            accounts=accounts,
            linker=linker,
            mailer=mailer,
            config=config.auth,
            mailer_config=config.mailer,
        ),
        role_admin=RoleAdminService(
            users=users,
            admins=admins,
            accounts=accounts,
            groups=groups,
            statuses=statuses,
            sessions=sessions,
            linker=linker,
        ),
    )


def create_app(
    config: AppConfig,
    *,
    app_root: Path,
    container: AppContainer | None = None,
) -> FastAPI:
    """Build the API app; the container is closed when the app shuts down."""
    if container is None:
        container = build_container(config, store=DocumentStore.open(config.mongo, app_root))
    apply_mongo_migrations(container.store)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        purged = container.guard.purge_expired()
        if purged:
            LOGGER.info("auth_attempts_purged: %s", purged)
        try:
            yield
        finally:
            container.close()

    app = FastAPI(title="Fresh API", version="1.0.0", lifespan=lifespan)
    app.state.container = container

    app.include_router(create_auth_router(container.auth_service))
    # Middleware added last runs first: CORS, then request logging, then auth.
    app.middleware("http")(
        create_auth_middleware(
            container.strategy,
            secret_key=config.auth.secret_key,
            algorithm=config.auth.algorithm,
            enabled=config.auth.enabled,
        )
    )
    register_http_middleware(app, logger=LOGGER)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )
    register_exception_handlers(app, logger=LOGGER)

    @app.get("/api/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(
            status="ok", storage="mongodb" if container.store.is_mongo else "file"
        )

    return app
