"""Typed repository base over a document store collection."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

from fresh.core.models import StoredModel
from fresh.core.storage import DocumentStore, Filter, Sort, Update

ModelT = TypeVar("ModelT", bound=StoredModel)


class Page(BaseModel, Generic[ModelT]):
    """One page of a sorted listing."""

    data: list[ModelT]
    page: int
    limit: int
    total: int

    @property
    def has_next(self) -> bool:
        return self.page * self.limit < self.total


class DocumentRepository(Generic[ModelT]):
    """CRUD helpers that convert between stored documents and models."""

    model: type[ModelT]
    collection_name: str

    def __init__(self, store: DocumentStore) -> None:
        self._collection = store.collection(self.collection_name)

    def insert(self, record: ModelT) -> ModelT:
        self._collection.insert_one(record.to_document())
        return record

    def find_by_id(self, record_id: str) -> ModelT | None:
        return self.model.from_document(self._collection.find_by_id(record_id))

    def find_one(self, query: Filter) -> ModelT | None:
        return self.model.from_document(self._collection.find_one(query))

    def find(
        self,
        query: Filter | None = None,
        *,
        sort: Sort | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[ModelT]:
        rows = self._collection.find(query, sort=sort, skip=skip, limit=limit)
        return [self.model.model_validate(row) for row in rows]

    def paged_find(
        self,
        query: Filter | None = None,
        *,
        page: int = 1,
        limit: int = 20,
        sort: Sort | None = None,
    ) -> Page[ModelT]:
        page = max(1, int(page))
        limit = max(1, int(limit))
        data = self.find(query, sort=sort or [("_id", 1)], skip=(page - 1) * limit, limit=limit)
        return Page[self.model](
            data=data, page=page, limit=limit, total=self._collection.count(query)
        )

    def update(self, record_id: str, update: Update) -> ModelT | None:
        return self.model.from_document(
            self._collection.find_by_id_and_update(record_id, update)
        )

    def delete(self, record_id: str) -> ModelT | None:
        return self.model.from_document(self._collection.find_by_id_and_delete(record_id))

    def find_one_and_delete(self, query: Filter) -> ModelT | None:
        return self.model.from_document(self._collection.find_one_and_delete(query))

    def delete_many(self, query: Filter) -> int:
        return self._collection.delete_many(query)

    def count(self, query: Filter | None = None) -> int:
        return self._collection.count(query)


def sort_adapter(sort: str) -> Sort:
    """Translate ``"-time_created,username"`` into a store sort spec."""
    spec: list[tuple[str, int]] = []
    for raw in sort.split(","):
        field = raw.strip()
        if not field:
            continue
        direction = -1 if field.startswith("-") else 1
        field = field.lstrip("-+")
        spec.append(("_id" if field == "id" else field, direction))
    return spec
