"""
Policy expression types.

An expression decides whether a CRUD stage may proceed. It is one of:

- ``True`` / ``False``: explicitly allow or deny
- a policy function ``(request, response, meta)`` that denies by raising
- ``{"and": [...]}``, ``{"or": [...]}``, ``{"not": expr}`` (or the nodes
  built by ``all_of``, ``any_of`` and ``negate``)

Expressions are compiled once, when a resource is declared, into the frozen
node types below. Evaluation lives in ``autonym.runtime.policy_evaluator``.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeAlias

from autonym.core.errors import ConfigurationError

if TYPE_CHECKING:
    from autonym.runtime.views import RequestView, ResponseView

PolicyFunction: TypeAlias = Callable[
    ["RequestView", "ResponseView", dict[str, Any]],
    Awaitable[None] | None,
]


def as_coroutine_function(func: Callable[..., Any]) -> Callable[..., Awaitable[Any]]:
    """Wrap a plain or async callable so it can always be awaited."""

    async def call(*args: Any) -> Any:
        result = func(*args)
        if inspect.isawaitable(result):
            return await result
        return result

    call.__name__ = getattr(func, "__name__", type(func).__name__)
    call.__qualname__ = getattr(func, "__qualname__", call.__name__)
    call.__wrapped__ = func  # type: ignore[attr-defined]
    return call


# =============================================================================
# Expression Nodes
# =============================================================================


@dataclass(frozen=True)
class Policy:
    """A single policy function, normalized to a coroutine function."""

    func: Callable[..., Awaitable[Any]]
    name: str

    @classmethod
    def wrap(cls, func: Callable[..., Any]) -> Policy:
        return cls(
            func=as_coroutine_function(func),
            name=getattr(func, "__name__", type(func).__name__),
        )

    async def __call__(
        self, request: RequestView, response: ResponseView, meta: dict[str, Any]
    ) -> None:
        await self.func(request, response, meta)


@dataclass(frozen=True)
class AllOf:
    """Satisfied when every operand is satisfied, evaluated left to right."""

    operands: tuple[Expression, ...]


@dataclass(frozen=True)
class AnyOf:
    """Satisfied when any operand is satisfied, evaluated left to right."""

    operands: tuple[Expression, ...]


@dataclass(frozen=True)
class Not:
    """Satisfied when the operand is not."""

    operand: Expression


Expression: TypeAlias = bool | Policy | AllOf | AnyOf | Not

_LOGICAL_KEYS = ("and", "or", "not")


# =============================================================================
# Compilation
# =============================================================================


def compile_expression(raw: Any, location: str = "expression") -> Expression:
    """
    Compile a raw policy expression into expression nodes.

    Args:
        raw: Boolean, callable, logical mapping or an already compiled node
        location: Dotted location used in error messages

    Returns:
        The compiled expression

    Raises:
        ConfigurationError: If the expression is malformed
    """
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, Policy | AllOf | AnyOf | Not):
        return raw
    if isinstance(raw, Mapping):
        return _compile_logical(raw, location)
    if callable(raw):
        return Policy.wrap(raw)
    raise ConfigurationError(
        "policy operands must be booleans, functions, or mappings with a single "
        f"'and', 'or' or 'not' key, received {type(raw).__name__}.",
        location,
    )


def _compile_logical(raw: Mapping[str, Any], location: str) -> Expression:
    keys = list(raw.keys())
    if len(keys) != 1 or keys[0] not in _LOGICAL_KEYS:
        raise ConfigurationError(
            f"logical expressions must have exactly one of 'and', 'or', 'not', received {keys}.",
            location,
        )

    key = keys[0]
    value = raw[key]
    if key == "not":
        return Not(compile_expression(value, f"{location}.not"))

    if isinstance(value, str | bytes) or not isinstance(value, Sequence):
        raise ConfigurationError(f"'{key}' must be a list of operands.", location)
    operands = tuple(
        compile_expression(operand, f"{location}.{key}[{i}]") for i, operand in enumerate(value)
    )
    return AllOf(operands) if key == "and" else AnyOf(operands)


def all_of(*operands: Any) -> AllOf:
    """Build an ``and`` expression."""
    return AllOf(tuple(compile_expression(op, f"and[{i}]") for i, op in enumerate(operands)))


def any_of(*operands: Any) -> AnyOf:
    """Build an ``or`` expression."""
    return AnyOf(tuple(compile_expression(op, f"or[{i}]") for i, op in enumerate(operands)))


def negate(operand: Any) -> Not:
    """Build a ``not`` expression."""
    return Not(compile_expression(operand, "not"))
