"""
Asynchronous evaluation of policy expressions.

Rules:
- ``True`` is satisfied; ``False`` is not and reports a generic FORBIDDEN error
- A policy function is satisfied unless it raises; what it raises is its error
- ``and`` stops at the first unsatisfied operand and reports that operand's error
- ``or`` stops at the first satisfied operand; if none is, it reports the
  error of the last operand evaluated
- ``not`` is satisfied when its operand is not (reporting nothing), and
  unsatisfied with a fresh generic error when its operand is satisfied

The evaluator never raises on a denial. It returns a ``PolicyOutcome`` and
leaves it to the caller to raise the reported error.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, NamedTuple

from autonym.core.errors import AutonymError
from autonym.specs.expression import AllOf, AnyOf, Expression, Not, Policy

if TYPE_CHECKING:
    from autonym.runtime.views import RequestView, ResponseView

logger = logging.getLogger(__name__)


class PolicyOutcome(NamedTuple):
    """Result of evaluating an expression."""

    satisfied: bool
    error: BaseException | None = None

    def __bool__(self) -> bool:
        return self.satisfied

    def raise_if_denied(self) -> None:
        """Raise the reported error, or a generic FORBIDDEN error, when unsatisfied."""
        if not self.satisfied:
            raise self.error or AutonymError.forbidden()


ALLOWED = PolicyOutcome(True)


class PolicyEvaluator:
    """Evaluates compiled expressions against one operation's views and meta."""

    def __init__(self, resource_name: str = ""):
        self.resource_name = resource_name

    async def evaluate(
        self,
        expression: Expression,
        request: RequestView,
        response: ResponseView,
        meta: dict[str, Any],
    ) -> PolicyOutcome:
        if isinstance(expression, bool):
            return ALLOWED if expression else PolicyOutcome(False, AutonymError.forbidden())

        if isinstance(expression, Policy):
            try:
                await expression(request, response, meta)
            except Exception as e:
                logger.debug("Policy %s denied %s: %r", expression.name, self.resource_name, e)
                return PolicyOutcome(False, e)
            return ALLOWED

        if isinstance(expression, AllOf):
            for operand in expression.operands:
                outcome = await self.evaluate(operand, request, response, meta)
                if not outcome:
                    return outcome
            return ALLOWED

        if isinstance(expression, AnyOf):
            last_error: BaseException | None = None
            for operand in expression.operands:
                outcome = await self.evaluate(operand, request, response, meta)
                if outcome:
                    return ALLOWED
                last_error = outcome.error
            return PolicyOutcome(False, last_error)

        if isinstance(expression, Not):
            outcome = await self.evaluate(expression.operand, request, response, meta)
            if outcome:
                return PolicyOutcome(False, AutonymError.forbidden())
            return ALLOWED

        raise TypeError(
            f'Policy operands for resource "{self.resource_name}" are invalid, '
            f"received {type(expression).__name__}."
        )
