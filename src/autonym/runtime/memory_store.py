"""
In-memory store.

Keeps records in a list for tests and prototypes. Ids are sequential strings.

    people = Resource({"name": "person", "schema": PERSON_SCHEMA, "store": InMemoryStore()})
    await people.create({"first_name": "Dagny"})   # {"id": "1", "first_name": "Dagny"}
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

from autonym.core.errors import AutonymError, ErrorCode


class InMemoryStore:
    """A complete set of store operations backed by a list."""

    def __init__(self, records: list[dict[str, Any]] | None = None):
        self._records: list[dict[str, Any]] = []
        self._counter = 0
        for record in records or []:
            self._insert(record)

    def __len__(self) -> int:
        return len(self._records)

    async def create(self, data: Mapping[str, Any], meta: Any = None) -> dict[str, Any]:
        return copy.deepcopy(self._insert(data))

    async def find(
        self, query: Mapping[str, Any] | None = None, meta: Any = None
    ) -> list[dict[str, Any]]:
        """All records whose properties equal every key in the query."""
        query = query or {}
        return [
            copy.deepcopy(record)
            for record in self._records
            if all(key in record and record[key] == value for key, value in query.items())
        ]

    async def find_one(self, id: Any, meta: Any = None) -> dict[str, Any]:
        return copy.deepcopy(self._records[self._index_of(id)])

    async def find_one_and_update(
        self,
        id: Any,
        data: Mapping[str, Any],
        complete_data: Mapping[str, Any] | None = None,
        meta: Any = None,
    ) -> dict[str, Any]:
        record = self._records[self._index_of(id)]
        record.update(copy.deepcopy(dict(data)))
        record["id"] = str(id)
        return copy.deepcopy(record)

    async def find_one_and_delete(self, id: Any, meta: Any = None) -> dict[str, Any]:
        return self._records.pop(self._index_of(id))

    def _insert(self, data: Mapping[str, Any]) -> dict[str, Any]:
        self._counter += 1
        record = {**copy.deepcopy(dict(data)), "id": str(self._counter)}
        self._records.append(record)
        return record

    def _index_of(self, id: Any) -> int:
        for index, record in enumerate(self._records):
            if record["id"] == str(id):
                return index
        raise AutonymError(ErrorCode.NOT_FOUND, "Record not found.")
