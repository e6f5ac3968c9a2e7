"""
Schema validation for resource records.

Wraps a compiled ``jsonschema`` validator. Validation is "validate and
sanitize": the record is copied, undeclared properties are stripped and
declared defaults are filled in before the schema is checked, so callers get
back exactly the record that should move on through the lifecycle.

When a resource declares optional-update properties, a second schema is
derived with those properties removed from their nearest ``required`` list
and used for partial (update) validation.
"""

from __future__ import annotations

import copy
import logging
import re
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from jsonschema import Draft7Validator, FormatChecker
from jsonschema.exceptions import SchemaError

from autonym.core.errors import AutonymError, ConfigurationError, ErrorCode

if TYPE_CHECKING:
    from jsonschema.exceptions import ValidationError

    from autonym.specs.resource import SchemaOptions

logger = logging.getLogger(__name__)

ROOT_FIELD = ""


class SchemaGate:
    """
    Compiled schema for one resource.

    The validators are built once and only ever read afterwards, so a single
    gate is shared by every concurrent operation on the resource.
    """

    def __init__(
        self,
        resource_name: str,
        schema: Mapping[str, Any] | None,
        options: SchemaOptions | None = None,
        optional_update_properties: Iterable[str] = (),
    ):
        from autonym.specs.resource import SchemaOptions

        self.resource_name = resource_name
        self.options = options or SchemaOptions()
        self.schema = copy.deepcopy(dict(schema)) if schema is not None else None
        self.update_schema = self.schema
        self._validator: Draft7Validator | None = None
        self._update_validator: Draft7Validator | None = None

        if self.schema is None:
            return

        try:
            Draft7Validator.check_schema(self.schema)
        except SchemaError as e:
            raise ConfigurationError(f"invalid JSON schema: {e.message}", "config.schema") from e

        optional = list(optional_update_properties)
        if optional:
            self.update_schema = derive_update_schema(self.schema, optional)

        format_checker = FormatChecker() if self.options.format_checking else None
        self._validator = Draft7Validator(self.schema, format_checker=format_checker)
        self._update_validator = (
            Draft7Validator(self.update_schema, format_checker=format_checker)
            if optional
            else self._validator
        )

    @property
    def has_schema(self) -> bool:
        return self.schema is not None

    def validate(self, record: Any, *, partial: bool = False) -> Any:
        """
        Validate and sanitize a record.

        Args:
            record: Record to validate; it is not modified
            partial: Use the update schema (optional-update properties not required)

        Returns:
            The sanitized copy of the record, or the record itself when the
            resource has no schema

        Raises:
            AutonymError: NOT_ACCEPTABLE with errors grouped by field path
        """
        validator = self._update_validator if partial else self._validator
        if validator is None:
            return record

        sanitized = copy.deepcopy(record)
        _sanitize(
            sanitized,
            validator.schema,
            self.options.remove_additional,
            self.options.use_defaults,
        )

        errors = list(validator.iter_errors(sanitized))
        if errors:
            if not self.options.all_errors:
                errors = errors[:1]
            grouped = group_errors(errors)
            logger.debug(
                "Schema validation failed for %s: %s", self.resource_name, sorted(grouped)
            )
            raise AutonymError(
                ErrorCode.NOT_ACCEPTABLE,
                f'Schema validation for resource "{self.resource_name}" failed.',
                {"errors": grouped},
            )
        return sanitized


# =============================================================================
# Update Schema Derivation
# =============================================================================


def derive_update_schema(schema: Mapping[str, Any], paths: Iterable[str]) -> dict[str, Any]:
    """
    Copy a schema with each dotted property path dropped from its parent's ``required``.

    Raises:
        ConfigurationError: If a path does not exist in the schema
    """
    derived = copy.deepcopy(dict(schema))
    for path in paths:
        parent = derived
        segments = path.split(".")
        for segment in segments[:-1]:
            parent = _child_schema(parent, segment, path)
        _child_schema(parent, segments[-1], path)

        required = parent.get("required")
        if isinstance(required, list) and segments[-1] in required:
            remaining = [name for name in required if name != segments[-1]]
            if remaining:
                parent["required"] = remaining
            else:
                del parent["required"]
    return derived


def _child_schema(parent: Mapping[str, Any], segment: str, path: str) -> dict[str, Any]:
    properties = parent.get("properties")
    if not isinstance(properties, Mapping) or segment not in properties:
        raise ConfigurationError(
            f'property "{path}" does not exist in the schema.',
            "config.optional_update_properties",
        )
    return properties[segment]


# =============================================================================
# Sanitization and Error Grouping
# =============================================================================


def _sanitize(
    instance: Any, schema: Mapping[str, Any], remove_additional: bool, use_defaults: bool
) -> None:
    if isinstance(instance, dict):
        properties = schema.get("properties")
        if not isinstance(properties, Mapping):
            return

        if remove_additional and not isinstance(schema.get("additionalProperties"), Mapping):
            patterns = schema.get("patternProperties") or {}
            for key in list(instance):
                if key not in properties and not _matches_pattern(key, patterns):
                    del instance[key]

        for key, subschema in properties.items():
            if not isinstance(subschema, Mapping):
                continue
            if key not in instance:
                if use_defaults and "default" in subschema:
                    instance[key] = copy.deepcopy(subschema["default"])
                continue
            _sanitize(instance[key], subschema, remove_additional, use_defaults)

    elif isinstance(instance, list):
        items = schema.get("items")
        if isinstance(items, Mapping):
            for item in instance:
                _sanitize(item, items, remove_additional, use_defaults)


def _matches_pattern(key: str, patterns: Mapping[str, Any]) -> bool:
    return any(re.search(pattern, key) for pattern in patterns)


def group_errors(errors: Iterable[ValidationError]) -> dict[str, list[str]]:
    """
    Group validation errors by dotted field path.

    ``required`` errors are attributed to the missing property rather than
    to the object that lacks it. Errors on the record itself use ``""``.
    """
    grouped: dict[str, list[str]] = {}
    for error in errors:
        path = [str(part) for part in error.absolute_path]
        if error.validator == "required" and isinstance(error.instance, Mapping):
            for name in error.validator_value:
                if name not in error.instance:
                    field = ".".join([*path, name])
                    _append_unique(grouped, field, "is a required property")
            continue
        field = ".".join(path) if path else ROOT_FIELD
        _append_unique(grouped, field, error.message)
    return grouped


def _append_unique(grouped: dict[str, list[str]], field: str, message: str) -> None:
    messages = grouped.setdefault(field, [])
    if message not in messages:
        messages.append(message)
