from __future__ import annotations

from pathlib import Path

from fresh.api.app import AppContainer, build_container
from fresh.auth.models import User
from fresh.core.config import (
    AUTH_STRATEGY_USER_SESSION,
    AppConfig,
    AuthAttemptsConfig,
    AuthConfig,
    LoggingConfig,
    MailerConfig,
    MongoConfig,
    SecurityConfig,
)
from fresh.core.mailer import LoggingMailer
from fresh.core.storage import DocumentStore
from fresh.roles.models import Admin

SECRET_KEY = "test-secret"
PASSWORD = "s3cret-pass"


class Clock:
    """Manually advanced clock for time-window tests."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def auth_config(strategy: str = AUTH_STRATEGY_USER_SESSION, enabled: bool = True) -> AuthConfig:
    return AuthConfig(
        enabled=enabled,
        secret_key=SECRET_KEY,
        algorithm="HS256",
        strategy=strategy,
        verify_token_ttl_seconds=3600,
        reset_token_ttl_seconds=10000,
    )


def attempts_config(
    for_ip: int = 50, for_ip_and_user: int = 7, hours: float = 1
) -> AuthAttemptsConfig:
    return AuthAttemptsConfig(
        for_ip=for_ip,
        for_ip_and_user=for_ip_and_user,
        duration_of_blocking_hours=hours,
    )


def app_config(strategy: str = AUTH_STRATEGY_USER_SESSION, enabled: bool = True) -> AppConfig:
    return AppConfig(
        mongo=MongoConfig(uri="", db="fresh-test"),
        auth=auth_config(strategy, enabled),
        auth_attempts=attempts_config(),
        mailer=MailerConfig(project_name="Fresh", from_address="no-reply@fresh.test"),
        logging=LoggingConfig(level="INFO"),
        security=SecurityConfig(cors_allowed_origins=["http://localhost:3000"]),
    )


def make_container(
    tmp_path: Path,
    *,
    strategy: str = AUTH_STRATEGY_USER_SESSION,
    enabled: bool = True,
) -> AppContainer:
    config = app_config(strategy, enabled)
    return build_container(
        config,
        store=DocumentStore.local(tmp_path),
        mailer=LoggingMailer(config.mailer),
    )


def create_user(
    container: AppContainer,
    username: str = "alice",
    *,
    password: str = PASSWORD,
    email: str | None = None,
) -> User:
    return container.users.create(username, password, email or f"{username}@fresh.test")


def create_admin_user(
    container: AppContainer,
    username: str = "boss",
    *,
    name: str = "Ada Boss",
    groups: dict[str, str] | None = None,
    permissions: dict[str, bool] | None = None,
) -> tuple[User, Admin]:
    user = create_user(container, username)
    admin = container.admins.create(name)
    if groups:
        container.admins.set_groups(admin.id, groups)
    if permissions:
        container.admins.set_permissions(admin.id, permissions)
    container.linker.link_admin(admin.id, username)
    return container.users.find_by_id(user.id), container.admins.find_by_id(admin.id)
