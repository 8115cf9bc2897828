from __future__ import annotations

from pathlib import Path
from typing import Any

from fresh.core.mongo_migrations import MIGRATIONS, apply_migrations, apply_mongo_migrations
from fresh.core.storage import DocumentStore


class _FakeCollection:
    def __init__(self) -> None:
        self.indexes: list[tuple[Any, dict[str, Any]]] = []
        self.rows: list[dict[str, Any]] = []

    def create_index(self, keys: Any, **kwargs: Any) -> None:
        self.indexes.append((keys, kwargs))

    def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        for row in self.rows:
            if all(row.get(key) == value for key, value in query.items()):
                return row
        return None

    def insert_one(self, row: dict[str, Any]) -> None:
        self.rows.append(row)


class _FakeDb(dict):
    def __missing__(self, name: str) -> _FakeCollection:
        collection = _FakeCollection()
        self[name] = collection
        return collection


def test_apply_migrations_creates_indexes_once() -> None:
    db = _FakeDb()

    applied = apply_migrations(db)
    again = apply_migrations(db)

    assert applied == [migration_id for migration_id, _ in MIGRATIONS]
    assert again == []
    assert ("username", {"unique": True}) in db["users"].indexes
    assert ("email", {"unique": True}) in db["users"].indexes
    assert ("user_id", {}) in db["sessions"].indexes
    assert ("user.id", {}) in db["admins"].indexes
    assert len(db["schema_migrations"].rows) == len(MIGRATIONS)


def test_apply_mongo_migrations_skips_file_store(tmp_path: Path) -> None:
    apply_mongo_migrations(DocumentStore.local(tmp_path))
