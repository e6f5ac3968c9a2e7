"""
Request and response views handed to policies.

A view pair is created for every operation. Policies read and adjust the
in-flight record through them; the lifecycle runner advances them from one
stage to the next (validated request data, populated response data).
"""

from __future__ import annotations

import copy
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from autonym.specs.resource import CrudMethod

RecordLoader = Callable[[], Awaitable[dict[str, Any]]]


# =============================================================================
# Merge Helpers
# =============================================================================


def merge_defaults(data: Mapping[str, Any], defaults: Mapping[str, Any]) -> dict[str, Any]:
    """
    Deep-merge ``defaults`` under ``data``: values in ``data`` win.

    Example:
        >>> merge_defaults({"a": {"x": 1}}, {"a": {"x": 0, "y": 2}, "b": 3})
        {'a': {'x': 1, 'y': 2}, 'b': 3}
    """
    merged = copy.deepcopy(dict(data))
    for key, value in defaults.items():
        if key not in merged:
            merged[key] = copy.deepcopy(value)
        elif isinstance(merged[key], dict) and isinstance(value, Mapping):
            merged[key] = merge_defaults(merged[key], value)
    return merged


def deep_assign(target: dict[str, Any], source: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-assign ``source`` onto ``target`` in place: values in ``source`` win."""
    for key, value in source.items():
        if isinstance(value, Mapping) and isinstance(target.get(key), dict):
            deep_assign(target[key], value)
        else:
            target[key] = copy.deepcopy(value)
    return target


# =============================================================================
# Request View
# =============================================================================


class RequestView:
    """
    The caller's side of an operation.

    Holds the method, id, query and (for create and update) the working
    record. For updates the stored record is fetched lazily, at most once.
    """

    def __init__(
        self,
        method: CrudMethod,
        meta: dict[str, Any],
        *,
        id: Any = None,
        data: Mapping[str, Any] | None = None,
        query: Mapping[str, Any] | None = None,
        load_original: RecordLoader | None = None,
    ):
        self.method = method
        self.meta = meta
        self._id = id
        self._query = dict(query) if query is not None else {}
        self._data: dict[str, Any] | None = (
            copy.deepcopy(dict(data or {})) if method.has_body else None
        )
        self._load_original = load_original
        self._original_data: dict[str, Any] | None = None
        self._complete_data: dict[str, Any] | None = None
        self._is_validated = False

    # Method predicates

    @property
    def is_creating(self) -> bool:
        return self.method == CrudMethod.CREATE

    @property
    def is_finding(self) -> bool:
        return self.method == CrudMethod.FIND

    @property
    def is_finding_one(self) -> bool:
        return self.method == CrudMethod.FIND_ONE

    @property
    def is_updating(self) -> bool:
        return self.method == CrudMethod.FIND_ONE_AND_UPDATE

    @property
    def is_deleting(self) -> bool:
        return self.method == CrudMethod.FIND_ONE_AND_DELETE

    @property
    def has_body(self) -> bool:
        return self.method.has_body

    @property
    def has_id(self) -> bool:
        return self.method.has_id

    @property
    def is_writing(self) -> bool:
        return self.has_body or self.is_deleting

    @property
    def is_reading(self) -> bool:
        """Whether the operation returns record data (everything but delete)."""
        return not self.is_deleting

    @property
    def is_validated(self) -> bool:
        return self._is_validated

    # Accessors

    def get_id(self) -> Any:
        if not self.has_id:
            raise LookupError("Cannot get the id of a request that creates or finds many.")
        return self._id

    def get_query(self) -> dict[str, Any]:
        return self._query

    def get_data(self) -> dict[str, Any]:
        if self._data is None:
            raise LookupError("Cannot get request data from a request without a body.")
        return self._data

    def set_data(self, data: Mapping[str, Any], replace: bool = False) -> None:
        """
        Merge new properties into the request data, or replace it entirely.

        Raises:
            LookupError: If the request has no body
        """
        if self._data is None:
            raise LookupError("Cannot set request data on a request without a body.")
        if replace:
            self._data = copy.deepcopy(dict(data))
        else:
            deep_assign(self._data, data)

    async def get_original_data(self) -> dict[str, Any]:
        """The stored record being updated or deleted; ``{}`` for creates."""
        if not self.is_writing:
            raise LookupError("Cannot get original data on a request that does not write.")
        if self._original_data is None:
            if self.is_creating or self._load_original is None:
                self._original_data = {}
            else:
                self._original_data = await self._load_original()
        return self._original_data

    async def get_complete_data(self) -> dict[str, Any]:
        """
        The stored record with the request data merged over it.

        After schema validation this is the validated complete record.
        """
        if self._complete_data is not None:
            return self._complete_data
        original = await self.get_original_data()
        return merge_defaults(self.get_data(), original)

    def mark_validated(
        self, data: Mapping[str, Any], complete_data: Mapping[str, Any] | None = None
    ) -> None:
        """Advance the working record to its validated state."""
        self.set_data(data, replace=True)
        if complete_data is not None:
            self._complete_data = dict(complete_data)
        self._is_validated = True

    def __repr__(self) -> str:
        return f"RequestView(method={self.method!s}, id={self._id!r})"


# =============================================================================
# Response View
# =============================================================================


class ResponseView:
    """
    The result side of an operation.

    Empty until the store call returns; afterwards holds the store result,
    which ``post_store`` policies may adjust.
    """

    def __init__(self, meta: dict[str, Any]):
        self.meta = meta
        self._data: Any = None
        self._is_populated = False

    @property
    def is_populated(self) -> bool:
        return self._is_populated

    def populate(self, data: Any) -> None:
        self._data = data
        self._is_populated = True

    def get_data(self) -> Any:
        if not self._is_populated:
            raise LookupError("Cannot get response data before the store method has been called.")
        return self._data

    def set_data(self, data: Any, replace: bool = False) -> None:
        """
        Merge new properties into the response data, or replace it entirely.

        For list results, ``data`` must be a list and is merged element-wise.

        Raises:
            LookupError: Before the store method has been called
            TypeError: If the shape of ``data`` does not match the result
        """
        if not self._is_populated:
            raise LookupError("Cannot set response data before the store method has been called.")

        if replace:
            self._data = data
        elif isinstance(self._data, list):
            if not isinstance(data, list):
                raise TypeError("The data must be a list.")
            for record, patch in zip(self._data, data, strict=False):
                if isinstance(record, dict) and isinstance(patch, Mapping):
                    deep_assign(record, patch)
        else:
            if not isinstance(data, Mapping):
                raise TypeError("The data must be a mapping.")
            if not isinstance(self._data, dict):
                self._data = {}
            deep_assign(self._data, data)

    def __repr__(self) -> str:
        return f"ResponseView(populated={self._is_populated})"
