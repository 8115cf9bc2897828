"""Versioned MongoDB schema migrations for the document store collections."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from fresh.core.logging import CORRELATION_ID_CTX
from fresh.core.storage import (
    ACCOUNTS,
    ADMINS,
    AUTH_ATTEMPTS,
    SESSIONS,
    USERS,
    DocumentStore,
)

LOGGER = logging.getLogger(__name__)

MigrationFn = Callable[[Any], None]


def _migration_20261019_01_user_indexes(db: Any) -> None:
    db[USERS].create_index("username", unique=True)
    db[USERS].create_index("email", unique=True)


def _migration_20261019_02_session_indexes(db: Any) -> None:
    db[SESSIONS].create_index("user_id")
    db[AUTH_ATTEMPTS].create_index([("ip", 1), ("username", 1)])
    db[AUTH_ATTEMPTS].create_index([("username", 1), ("time_created", 1)])


def _migration_20261019_03_role_link_indexes(db: Any) -> None:
    for name in (ADMINS, ACCOUNTS):
        db[name].create_index("user.id")
        db[name].create_index("user.name")


MIGRATIONS: list[tuple[str, MigrationFn]] = [
    ("20261019_01_user_indexes", _migration_20261019_01_user_indexes),
    ("20261019_02_session_indexes", _migration_20261019_02_session_indexes),
    ("20261019_03_role_link_indexes", _migration_20261019_03_role_link_indexes),
]


def apply_migrations(db: Any) -> list[str]:
    """Apply pending migrations to ``db`` and return the ids applied."""
    migration_collection = db["schema_migrations"]
    migration_collection.create_index("migration_id", unique=True)

    applied: list[str] = []
    for migration_id, migration_fn in MIGRATIONS:
        if migration_collection.find_one({"migration_id": migration_id}):
            continue
        migration_fn(db)
        migration_collection.insert_one(
            {
                "migration_id": migration_id,
                "applied_at": datetime.now(timezone.utc),
                "correlation_id": CORRELATION_ID_CTX.get(),
            }
        )
        applied.append(migration_id)
    return applied


def apply_mongo_migrations(store: DocumentStore) -> None:
    """Apply MongoDB migrations when the store is backed by MongoDB."""
    if not store.is_mongo:
        return
    applied = apply_migrations(store.database)
    if applied:
        LOGGER.info("mongo_migrations_applied: %s", ",".join(applied))
