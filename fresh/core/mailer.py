"""Outgoing email interface used by the signup and password flows."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from fresh.core.config import MailerConfig

LOGGER = logging.getLogger(__name__)


class Mailer(Protocol):
    """Delivers templated emails."""

    def send_email(
        self, *, to: str, subject: str, template: str, context: dict[str, Any]
    ) -> None: ...


class LoggingMailer:
    """Mailer that records outgoing messages in the application log."""

    def __init__(self, config: MailerConfig) -> None:
        self._config = config
        self.outbox: list[dict[str, Any]] = []

    def send_email(
        self, *, to: str, subject: str, template: str, context: dict[str, Any]
    ) -> None:
        message = {
            "from": self._config.from_address,
            "to": to,
            "subject": subject,
            "template": template,
            "context": dict(context),
        }
        self.outbox.append(message)
        LOGGER.info("email_queued to=%s template=%s", to, template)
