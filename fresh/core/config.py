"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass

AUTH_STRATEGY_SESSION = "session"
AUTH_STRATEGY_USER_SESSION = "user_session"


@dataclass(frozen=True)
class MongoConfig:
    """Document store connection settings."""

    uri: str
    db: str


@dataclass(frozen=True)
class AuthConfig:
    """Authentication-related configuration."""

    enabled: bool
    secret_key: str
    algorithm: str
    strategy: str
    verify_token_ttl_seconds: int
    reset_token_ttl_seconds: int


@dataclass(frozen=True)
class AuthAttemptsConfig:
    """Login throttling thresholds."""

    for_ip: int
    for_ip_and_user: int
    duration_of_blocking_hours: float


@dataclass(frozen=True)
class MailerConfig:
    """Outgoing email identity."""

    project_name: str
    from_address: str


@dataclass(frozen=True)
class LoggingConfig:
    """Structured logging configuration."""

    level: str


@dataclass(frozen=True)
class SecurityConfig:
    """API perimeter security settings."""

    cors_allowed_origins: list[str]


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""

    mongo: MongoConfig
    auth: AuthConfig
    auth_attempts: AuthAttemptsConfig
    mailer: MailerConfig
    logging: LoggingConfig
    security: SecurityConfig

    @staticmethod
    def from_env() -> "AppConfig":
        """Build app config from process environment."""
        auth_enabled = os.getenv("AUTH_ENABLED", "1").strip().lower() in {
            "1",
            "true",
            "yes",
            "on",
        }
        secret_key = (
            os.getenv("AUTH_SECRET_KEY", "").strip() or "dev-insecure-secret-change-me"
        )
        algorithm = os.getenv("AUTH_ALGORITHM", "HS256").strip().upper() or "HS256"
        strategy = (
            os.getenv("AUTH_STRATEGY", AUTH_STRATEGY_USER_SESSION).strip().lower()
            or AUTH_STRATEGY_USER_SESSION
        )
        if strategy not in {AUTH_STRATEGY_SESSION, AUTH_STRATEGY_USER_SESSION}:
            raise ValueError(f"Unsupported AUTH_STRATEGY: {strategy}")
        verify_ttl = int(os.getenv("AUTH_VERIFY_TOKEN_TTL_SECONDS", "3600"))
        reset_ttl = int(os.getenv("AUTH_RESET_TOKEN_TTL_SECONDS", "10000"))
        for_ip = int(os.getenv("AUTH_ATTEMPTS_FOR_IP", "50"))
        for_ip_and_user = int(os.getenv("AUTH_ATTEMPTS_FOR_IP_AND_USER", "7"))
        duration_hours = float(
            os.getenv("AUTH_ATTEMPTS_DURATION_OF_BLOCKING_HOURS", "1")
        )
        mongo_uri = os.getenv("MONGODB_URI", "").strip()
        mongo_db = os.getenv("MONGODB_DB", "fresh").strip() or "fresh"
        project_name = os.getenv("PROJECT_NAME", "Fresh").strip() or "Fresh"
        from_address = (
            os.getenv("MAIL_FROM_ADDRESS", "no-one@your-service").strip()
            or "no-one@your-service"
        )
        log_level = os.getenv("LOG_LEVEL", "INFO").strip() or "INFO"
        cors_allowed_origins = [
            origin.strip()
            for origin in os.getenv(
                "CORS_ALLOWED_ORIGINS",
                "http://localhost:3000,http://127.0.0.1:3000",
            ).split(",")
            if origin.strip()
        ]

        return AppConfig(
            mongo=MongoConfig(uri=mongo_uri, db=mongo_db),
            auth=AuthConfig(
                enabled=auth_enabled,
                secret_key=secret_key,
                algorithm=algorithm,
                strategy=strategy,
                verify_token_ttl_seconds=verify_ttl,
                reset_token_ttl_seconds=reset_ttl,
            ),
            auth_attempts=AuthAttemptsConfig(
                for_ip=for_ip,
                for_ip_and_user=for_ip_and_user,
                duration_of_blocking_hours=duration_hours,
            ),
            mailer=MailerConfig(project_name=project_name, from_address=from_address),
            logging=LoggingConfig(level=log_level),
            security=SecurityConfig(cors_allowed_origins=cors_allowed_origins),
        )
