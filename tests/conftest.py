"""Shared pytest fixtures for Autonym tests."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from autonym import InMemoryStore, Resource

PERSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "first_name": {"type": "string", "minLength": 1},
        "last_name": {"type": "string", "minLength": 1},
        "age": {"type": "integer", "minimum": 0},
        "role": {"type": "string", "default": "member"},
        "address": {
            "type": "object",
            "properties": {
                "city": {"type": "string"},
                "zip": {"type": "string"},
            },
            "required": ["city"],
        },
    },
    "required": ["first_name", "last_name"],
}


@pytest.fixture
def person_schema() -> dict[str, Any]:
    """A person schema with a default, a nested object and required fields."""
    return copy.deepcopy(PERSON_SCHEMA)


@pytest.fixture
def store() -> InMemoryStore:
    """Empty in-memory store."""
    return InMemoryStore()


@pytest.fixture
def seeded_store() -> InMemoryStore:
    """In-memory store with a single person (id "1")."""
    return InMemoryStore([{"first_name": "Dagny", "last_name": "Taggart", "role": "member"}])


@pytest.fixture
def make_resource(person_schema):
    """Factory for person resources over a given store, with declaration overrides."""

    def _make(store: Any, **overrides: Any) -> Resource:
        declaration: dict[str, Any] = {
            "name": "person",
            "schema": person_schema,
            "store": store,
        }
        declaration.update(overrides)
        return Resource(declaration)

    return _make
