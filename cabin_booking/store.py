"""
Document store capability consumed by the booking core.

The core only needs equality, membership and simple range filters plus
single-document writes; overlap logic is done in memory on the per-cabin
result set. Two backends implement the protocol:

  - ``MemoryStore``   in-process dicts, used by tests and local runs
  - ``TortoiseStore`` Tortoise ORM models from ``cabin_booking.models``

Documents are plain dicts keyed by the model field names; every document
has an ``id``.
"""

from __future__ import annotations

import copy
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Protocol
from uuid import uuid4

from tortoise.transactions import in_transaction

# ---------------------------------------------------------------------------
# Query predicates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Eq:
    field: str
    value: Any

    def matches(self, doc: dict) -> bool:
        return doc.get(self.field) == self.value

    def to_filter(self) -> dict[str, Any]:
        return {self.field: self.value}


@dataclass(frozen=True)
class In:
    field: str
    values: Iterable[Any]

    def matches(self, doc: dict) -> bool:
        return doc.get(self.field) in self.values

    def to_filter(self) -> dict[str, Any]:
        return {f"{self.field}__in": list(self.values)}


@dataclass(frozen=True)
class NotIn:
    field: str
    values: Iterable[Any]

    def matches(self, doc: dict) -> bool:
        return doc.get(self.field) not in self.values

    def to_filter(self) -> dict[str, Any]:
        return {f"{self.field}__not_in": list(self.values)}


@dataclass(frozen=True)
class Range:
    """``gte <= value < lt``; either bound may be omitted."""

    field: str
    gte: Any = None
    lt: Any = None

    def matches(self, doc: dict) -> bool:
        value = doc.get(self.field)
        if value is None:
            return False
        if self.gte is not None and value < self.gte:
            return False
        if self.lt is not None and value >= self.lt:
            return False
        return True

    def to_filter(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.gte is not None:
            out[f"{self.field}__gte"] = self.gte
        if self.lt is not None:
            out[f"{self.field}__lt"] = self.lt
        return out


Predicate = Eq | In | NotIn | Range


class Store(Protocol):
    async def find(
        self,
        collection: str,
        *predicates: Predicate,
        order_by: str | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[dict]: ...

    async def count(self, collection: str, *predicates: Predicate) -> int: ...

    async def get(self, collection: str, doc_id: Any) -> dict | None: ...

    async def insert_one(self, collection: str, doc: dict) -> dict: ...

    async def insert_many(self, collection: str, docs: list[dict]) -> list[dict]: ...

    async def update_by_id(self, collection: str, doc_id: Any, fields: dict) -> dict | None: ...

    async def delete_by_id(self, collection: str, doc_id: Any) -> bool: ...

    def transaction(self) -> Any: ...


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


def _sort_key(field: str):
    def key(doc: dict):
        value = doc.get(field)
        # None sorts first, like SQL NULLS FIRST on ascending order
        return (value is not None, value)

    return key


class MemoryStore:
    """
    Dict-backed store. Writes made inside ``transaction()`` are journalled
    per task and undone on error; writes from other tasks are left alone.
    """

    def __init__(self) -> None:
        self._data: dict[str, dict[Any, dict]] = {}
        self._journal: ContextVar[list[tuple[str, Any, dict | None]] | None] = ContextVar(
            f"memory_store_journal_{id(self)}", default=None
        )

    def _record(self, collection: str, doc_id: Any) -> None:
        journal = self._journal.get()
        if journal is not None:
            previous = self._collection(collection).get(doc_id)
            journal.append((collection, doc_id, copy.deepcopy(previous)))

    def _undo(self, journal: list[tuple[str, Any, dict | None]]) -> None:
        for collection, doc_id, previous in reversed(journal):
            if previous is None:
                self._collection(collection).pop(doc_id, None)
            else:
                self._collection(collection)[doc_id] = previous

    def _collection(self, name: str) -> dict[Any, dict]:
        return self._data.setdefault(name, {})

    def load(self, collection: str, *docs: dict) -> None:
        """Put documents in place synchronously, e.g. from fixtures."""
        for doc in docs:
            self._collection(collection)[doc["id"]] = copy.deepcopy(doc)

    async def find(
        self,
        collection: str,
        *predicates: Predicate,
        order_by: str | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[dict]:
        docs = [
            doc
            for doc in self._collection(collection).values()
            if all(p.matches(doc) for p in predicates)
        ]
        if order_by:
            field = order_by.lstrip("-")
            docs.sort(key=_sort_key(field), reverse=order_by.startswith("-"))
        docs = docs[skip:]
        if limit is not None:
            docs = docs[:limit]
        return [copy.deepcopy(doc) for doc in docs]

    async def count(self, collection: str, *predicates: Predicate) -> int:
        return sum(
            1
            for doc in self._collection(collection).values()
            if all(p.matches(doc) for p in predicates)
        )

    async def get(self, collection: str, doc_id: Any) -> dict | None:
        doc = self._collection(collection).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def insert_one(self, collection: str, doc: dict) -> dict:
        stored = copy.deepcopy(doc)
        stored.setdefault("id", uuid4())
        self._record(collection, stored["id"])
        self._collection(collection)[stored["id"]] = stored
        return copy.deepcopy(stored)

    async def insert_many(self, collection: str, docs: list[dict]) -> list[dict]:
        return [await self.insert_one(collection, doc) for doc in docs]

    async def update_by_id(self, collection: str, doc_id: Any, fields: dict) -> dict | None:
        doc = self._collection(collection).get(doc_id)
        if doc is None:
            return None
        self._record(collection, doc_id)
        doc.update(copy.deepcopy(fields))
        return copy.deepcopy(doc)

    async def delete_by_id(self, collection: str, doc_id: Any) -> bool:
        if doc_id not in self._collection(collection):
            return False
        self._record(collection, doc_id)
        del self._collection(collection)[doc_id]
        return True

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        outer = self._journal.get()
        journal: list[tuple[str, Any, dict | None]] = []
        token = self._journal.set(journal)
        try:
            yield
        except BaseException:
            self._undo(journal)
            raise
        finally:
            self._journal.reset(token)
        if outer is not None:
            # nested: the enclosing transaction may still roll these back
            outer.extend(journal)


# ---------------------------------------------------------------------------
# Tortoise ORM backend
# ---------------------------------------------------------------------------


class TortoiseStore:
    """
    Translates predicates into Tortoise filter kwargs.
    Collections map to the models registered in ``cabin_booking.models``.
    """

    def __init__(self, models: dict[str, Any] | None = None) -> None:
        if models is None:
            from cabin_booking.models import COLLECTIONS

            models = COLLECTIONS
        self._models = models

    def _qs(self, collection: str, predicates: Iterable[Predicate]):
        model = self._models[collection]
        kwargs: dict[str, Any] = {}
        for p in predicates:
            kwargs.update(p.to_filter())
        return model.filter(**kwargs)

    async def find(
        self,
        collection: str,
        *predicates: Predicate,
        order_by: str | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[dict]:
        qs = self._qs(collection, predicates)
        if order_by:
            qs = qs.order_by(order_by)
        if skip:
            qs = qs.offset(skip)
        if limit is not None:
            qs = qs.limit(limit)
        return await qs.values()

    async def count(self, collection: str, *predicates: Predicate) -> int:
        return await self._qs(collection, predicates).count()

    async def get(self, collection: str, doc_id: Any) -> dict | None:
        rows = await self._models[collection].filter(id=doc_id).limit(1).values()
        return rows[0] if rows else None

    async def insert_one(self, collection: str, doc: dict) -> dict:
        fields = dict(doc)
        fields.setdefault("id", uuid4())
        await self._models[collection].create(**fields)
        return await self.get(collection, fields["id"])  # type: ignore[return-value]

    async def insert_many(self, collection: str, docs: list[dict]) -> list[dict]:
        model = self._models[collection]
        rows = []
        for doc in docs:
            fields = dict(doc)
            fields.setdefault("id", uuid4())
            rows.append(model(**fields))
        await model.bulk_create(rows)
        return [await self.get(collection, row.pk) for row in rows]  # type: ignore[misc]

    async def update_by_id(self, collection: str, doc_id: Any, fields: dict) -> dict | None:
        updated = await self._models[collection].filter(id=doc_id).update(**fields)
        if not updated:
            return None
        return await self.get(collection, doc_id)

    async def delete_by_id(self, collection: str, doc_id: Any) -> bool:
        deleted = await self._models[collection].filter(id=doc_id).delete()
        return deleted > 0

    def transaction(self):
        return in_transaction()
