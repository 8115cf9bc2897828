"""Document store with MongoDB primary and JSON-file fallback backends."""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from threading import RLock
from typing import Any, Protocol

from pymongo import MongoClient, ReturnDocument
from pymongo.errors import DuplicateKeyError

from fresh.core.config import MongoConfig

LOGGER = logging.getLogger(__name__)

USERS = "users"
ADMINS = "admins"
ADMIN_GROUPS = "admin_groups"
ACCOUNTS = "accounts"
SESSIONS = "sessions"
AUTH_ATTEMPTS = "auth_attempts"
STATUSES = "statuses"

COLLECTION_NAMES = (
    USERS,
    ADMINS,
    ADMIN_GROUPS,
    ACCOUNTS,
    SESSIONS,
    AUTH_ATTEMPTS,
    STATUSES,
)

# Mirrors the unique indexes created by the Mongo migrations.
UNIQUE_FIELDS: dict[str, tuple[str, ...]] = {
    USERS: ("username", "email"),
}

Filter = dict[str, Any]
Update = dict[str, dict[str, Any]]
Sort = list[tuple[str, int]]


class DuplicateDocumentError(Exception):
    """Raised when a write violates a unique key."""

    def __init__(self, collection: str, field: str) -> None:
        super().__init__(f"Duplicate value for {collection}.{field}")
        self.collection = collection
        self.field = field


class Collection(Protocol):
    """Operations every backend collection supports."""

    name: str

    def insert_one(self, document: dict[str, Any]) -> dict[str, Any]: ...

    def find_by_id(self, document_id: str) -> dict[str, Any] | None: ...

    def find_one(self, query: Filter) -> dict[str, Any] | None: ...

    def find(
        self,
        query: Filter | None = None,
        *,
        sort: Sort | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[dict[str, Any]]: ...

    def find_by_id_and_update(
        self, document_id: str, update: Update
    ) -> dict[str, Any] | None: ...

    def find_by_id_and_delete(self, document_id: str) -> dict[str, Any] | None: ...

    def find_one_and_delete(self, query: Filter) -> dict[str, Any] | None: ...

    def delete_many(self, query: Filter) -> int: ...

    def count(self, query: Filter | None = None) -> int: ...


class MongoCollection:
    """Thin adapter over a pymongo collection."""

    def __init__(self, collection: Any) -> None:
        self._collection = collection
        self.name = str(collection.name)

    def _duplicate(self, exc: DuplicateKeyError) -> DuplicateDocumentError:
        key_pattern = (exc.details or {}).get("keyPattern") or {}
        return DuplicateDocumentError(self.name, next(iter(key_pattern), "_id"))

    def insert_one(self, document: dict[str, Any]) -> dict[str, Any]:
        try:
            self._collection.insert_one(document)
        except DuplicateKeyError as exc:
            raise self._duplicate(exc) from exc
        return document

    def find_by_id(self, document_id: str) -> dict[str, Any] | None:
        return self._collection.find_one({"_id": document_id})

    def find_one(self, query: Filter) -> dict[str, Any] | None:
        return self._collection.find_one(query)

    def find(
        self,
        query: Filter | None = None,
        *,
        sort: Sort | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[dict[str, Any]]:
        cursor = self._collection.find(query or {})
        if sort:
            cursor = cursor.sort(sort)
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    def find_by_id_and_update(
        self, document_id: str, update: Update
    ) -> dict[str, Any] | None:
        try:
            return self._collection.find_one_and_update(
                {"_id": document_id},
                update,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as exc:
            raise self._duplicate(exc) from exc

    def find_by_id_and_delete(self, document_id: str) -> dict[str, Any] | None:
        return self._collection.find_one_and_delete({"_id": document_id})

    def find_one_and_delete(self, query: Filter) -> dict[str, Any] | None:
        return self._collection.find_one_and_delete(query)

    def delete_many(self, query: Filter) -> int:
        return int(self._collection.delete_many(query).deleted_count)

    def count(self, query: Filter | None = None) -> int:
        return int(self._collection.count_documents(query or {}))


def _get_path(document: Any, path: str) -> Any:
    node = document
    for key in path.split("."):
        if not isinstance(node, dict) or key not in node:
            return None
        node = node[key]
    return node


def _compare(value: Any, operator: str, operand: Any) -> bool:
    if operator == "$exists":
        return (value is not None) == bool(operand)
    if operator == "$ne":
        return value != operand
    if operator == "$in":
        return value in operand
    if value is None:
        return False
    try:
        if operator == "$gt":
            return value > operand
        if operator == "$gte":
            return value >= operand
        if operator == "$lt":
            return value < operand
        if operator == "$lte":
            return value <= operand
    except TypeError:
        return False
    raise ValueError(f"Unsupported query operator: {operator}")


def _matches(document: dict[str, Any], query: Filter | None) -> bool:
    for path, expected in (query or {}).items():
        value = _get_path(document, path)
        if isinstance(expected, dict) and any(k.startswith("$") for k in expected):
            for operator, operand in expected.items():
                if not _compare(value, operator, operand):
                    return False
        elif value != expected:
            return False
    return True


def _parent_node(
    document: dict[str, Any], path: str, *, create: bool
) -> tuple[dict[str, Any] | None, str]:
    *parents, leaf = path.split(".")
    node = document
    for key in parents:
        if not isinstance(node.get(key), dict):
            if not create:
                return None, leaf
            node[key] = {}
        node = node[key]
    return node, leaf


def _apply_update(document: dict[str, Any], update: Update) -> None:
    for operator, fields in update.items():
        for path, value in fields.items():
            node, leaf = _parent_node(document, path, create=operator != "$unset")
            if node is None:
                continue
            if operator == "$set":
                node[leaf] = copy.deepcopy(value)
            elif operator == "$unset":
                node.pop(leaf, None)
            elif operator == "$push":
                node.setdefault(leaf, []).append(copy.deepcopy(value))
            else:
                raise ValueError(f"Unsupported update operator: {operator}")


def _sort_key(value: Any) -> tuple[int, Any]:
    # None sorts first, mirroring MongoDB ordering for missing fields.
    if value is None:
        return (0, "")
    if isinstance(value, (int, float)):
        return (1, value)
    return (2, str(value))


class JsonFileCollection:
    """Collection persisted as a JSON list on local disk."""

    def __init__(
        self,
        path: Path,
        lock: RLock,
        *,
        unique_fields: tuple[str, ...] = (),
    ) -> None:
        self._path = path
        self._lock = lock
        self._unique_fields = unique_fields
        self.name = path.stem

    def _read(self) -> list[dict[str, Any]]:
        """Read list payload from JSON file with empty fallback."""
        if not self._path.exists():
            return []
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except Exception:
            LOGGER.exception("Failed reading fallback collection: %s", self._path)
            return []
        return payload if isinstance(payload, list) else []

    def _write(self, rows: list[dict[str, Any]]) -> None:
        """Persist list payload to JSON file."""
        self._path.write_text(
            json.dumps(rows, ensure_ascii=False, indent=2), encoding="utf-8"
        )

    def _assert_unique(
        self, rows: list[dict[str, Any]], document: dict[str, Any]
    ) -> None:
        for field in ("_id", *self._unique_fields):
            value = _get_path(document, field)
            if value is None:
                continue
            for row in rows:
                if _get_path(row, field) == value:
                    raise DuplicateDocumentError(self.name, field)

    def insert_one(self, document: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            rows = self._read()
            self._assert_unique(rows, document)
            rows.append(copy.deepcopy(document))
            self._write(rows)
        return document

    def find_by_id(self, document_id: str) -> dict[str, Any] | None:
        return self.find_one({"_id": document_id})

    def find_one(self, query: Filter) -> dict[str, Any] | None:
        with self._lock:
            for row in self._read():
                if _matches(row, query):
                    return row
        return None

    def find(
        self,
        query: Filter | None = None,
        *,
        sort: Sort | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[dict[str, Any]]:
        with self._lock:
            rows = [row for row in self._read() if _matches(row, query)]
        for field, direction in reversed(sort or []):
            rows.sort(key=lambda row: _sort_key(_get_path(row, field)), reverse=direction < 0)
        rows = rows[skip:]
        return rows[:limit] if limit else rows

    def find_by_id_and_update(
        self, document_id: str, update: Update
    ) -> dict[str, Any] | None:
        with self._lock:
            rows = self._read()
            for index, row in enumerate(rows):
                if row.get("_id") != document_id:
                    continue
                updated = copy.deepcopy(row)
                _apply_update(updated, update)
                others = rows[:index] + rows[index + 1 :]
                self._assert_unique(others, updated)
                rows[index] = updated
                self._write(rows)
                return copy.deepcopy(updated)
        return None

    def find_by_id_and_delete(self, document_id: str) -> dict[str, Any] | None:
        return self.find_one_and_delete({"_id": document_id})

    def find_one_and_delete(self, query: Filter) -> dict[str, Any] | None:
        with self._lock:
            rows = self._read()
            for index, row in enumerate(rows):
                if _matches(row, query):
                    del rows[index]
                    self._write(rows)
                    return row
        return None

    def delete_many(self, query: Filter) -> int:
        with self._lock:
            rows = self._read()
            kept = [row for row in rows if not _matches(row, query)]
            if len(kept) != len(rows):
                self._write(kept)
        return len(rows) - len(kept)

    def count(self, query: Filter | None = None) -> int:
        with self._lock:
            return sum(1 for row in self._read() if _matches(row, query))


class DocumentStore:
    """Process-wide handle on the named document collections."""

    def __init__(
        self,
        collections: dict[str, Collection],
        *,
        client: Any = None,
        database: Any = None,
    ) -> None:
        self._collections = collections
        self._client = client
        self._database = database

    @property
    def is_mongo(self) -> bool:
        return self._client is not None

    @classmethod
    def open(cls, config: MongoConfig, app_root: Path) -> "DocumentStore":
        """Connect to MongoDB when configured, else use the local file store."""
        if config.uri:
            try:
                client: Any = MongoClient(config.uri, serverSelectionTimeoutMS=3000)
                client.admin.command("ping")
                db = client[config.db]
                LOGGER.info("DocumentStore using MongoDB: db=%s", config.db)
                return cls(
                    {name: MongoCollection(db[name]) for name in COLLECTION_NAMES},
                    client=client,
                    database=db,
                )
            except Exception:
                LOGGER.exception(
                    "MongoDB connection failed. Falling back to local file store."
                )
        else:
            LOGGER.warning("MONGODB_URI is not set. Using local file store fallback.")
        return cls.local(app_root)

    @classmethod
    def local(cls, app_root: Path) -> "DocumentStore":
        """Build a store persisted under ``runtime/store`` of the app root."""
        store_dir = app_root / "runtime" / "store"
        store_dir.mkdir(parents=True, exist_ok=True)
        lock = RLock()
        return cls(
            {
                name: JsonFileCollection(
                    store_dir / f"{name}.json",
                    lock,
                    unique_fields=UNIQUE_FIELDS.get(name, ()),
                )
                for name in COLLECTION_NAMES
            }
        )

    @property
    def database(self) -> Any:
        """Return the pymongo database handle, or None for the file store."""
        return self._database

    def collection(self, name: str) -> Collection:
        try:
            return self._collections[name]
        except KeyError as exc:
            raise KeyError(f"Unknown collection: {name}") from exc

    def close(self) -> None:
        """Release the underlying client connection."""
        if self._client is not None:
            self._client.close()
            self._client = None
            self._database = None
