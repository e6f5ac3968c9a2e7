"""
Lifecycle runner for CRUD operations.

Every operation runs an explicit sequence of steps:

    create, find_one_and_update:
        pre_schema -> validate -> post_schema -> pre_store -> store -> post_store
    find, find_one, find_one_and_delete:
        pre_store -> store -> post_store

Policy steps evaluate the resource's expression for that stage and method;
the first unsatisfied stage aborts the operation. The store is called
exactly once. Anything raised along the way leaves the runner as an
``AutonymError``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from autonym.core.errors import AutonymError
from autonym.runtime.policy_evaluator import PolicyEvaluator
from autonym.specs.resource import CrudMethod, Stage

if TYPE_CHECKING:
    from autonym.runtime.views import RequestView, ResponseView
    from autonym.specs.resource import ResourceConfig

logger = logging.getLogger(__name__)


class Step(StrEnum):
    """One step of the lifecycle pipeline."""

    PRE_SCHEMA = Stage.PRE_SCHEMA.value
    VALIDATE = "validate"
    POST_SCHEMA = Stage.POST_SCHEMA.value
    PRE_STORE = Stage.PRE_STORE.value
    STORE = "store"
    POST_STORE = Stage.POST_STORE.value

    @property
    def stage(self) -> Stage | None:
        """The policy stage this step evaluates, if any."""
        try:
            return Stage(self.value)
        except ValueError:
            return None


WRITE_PIPELINE: tuple[Step, ...] = (
    Step.PRE_SCHEMA,
    Step.VALIDATE,
    Step.POST_SCHEMA,
    Step.PRE_STORE,
    Step.STORE,
    Step.POST_STORE,
)
READ_PIPELINE: tuple[Step, ...] = (Step.PRE_STORE, Step.STORE, Step.POST_STORE)


def pipeline_for(method: CrudMethod) -> tuple[Step, ...]:
    return WRITE_PIPELINE if method.has_body else READ_PIPELINE


StoreCall = Callable[["RequestView"], Awaitable[Any]]


def update_delta(validated: Mapping[str, Any], supplied: Mapping[str, Any]) -> dict[str, Any]:
    """
    The part of a validated record the caller actually supplied.

    Keys are taken from ``supplied`` and values from ``validated``, level by
    level through nested mappings, so properties stripped by sanitization
    never reach the store and nothing merged in from the stored record does.

    Example:
        >>> update_delta(
        ...     {"name": "Dagny", "address": {"city": "Gulch", "zip": "1"}},
        ...     {"address": {"city": "Gulch", "planet": "Earth"}},
        ... )
        {'address': {'city': 'Gulch'}}
    """
    delta: dict[str, Any] = {}
    for key, value in supplied.items():
        if key not in validated:
            continue
        sanitized = validated[key]
        if isinstance(value, Mapping) and isinstance(sanitized, Mapping):
            delta[key] = update_delta(sanitized, value)
        else:
            delta[key] = sanitized
    return delta


@dataclass
class Operation:
    """
    Everything the runner needs for one CRUD call.

    ``store_call`` receives the request view at the store step, after every
    earlier stage has had its chance to adjust the working record, and
    returns the raw store result.
    """

    method: CrudMethod
    request: RequestView
    response: ResponseView
    meta: dict[str, Any]
    store_call: StoreCall


class LifecycleRunner:
    """Runs the staged pipeline for a resource's operations."""

    def __init__(self, config: ResourceConfig):
        self.config = config
        self.evaluator = PolicyEvaluator(config.name)

    async def run(self, operation: Operation) -> Any:
        """
        Run an operation through its pipeline.

        Returns:
            The response data after ``post_store`` policies have run

        Raises:
            AutonymError: The normalized error of the first failing step
        """
        step: Step | None = None
        try:
            for step in pipeline_for(operation.method):
                logger.debug("%s.%s: %s", self.config.name, operation.method, step)
                if step is Step.VALIDATE:
                    await self._validate(operation)
                elif step is Step.STORE:
                    result = await operation.store_call(operation.request)
                    operation.response.populate(result)
                else:
                    await self._authorize(step, operation)
        except Exception as e:
            error = AutonymError.from_error(e)
            logger.debug(
                "%s.%s failed at %s: %r", self.config.name, operation.method, step, error
            )
            if error is e:
                raise
            raise error from e

        return operation.response.get_data()

    async def _authorize(self, step: Step, operation: Operation) -> None:
        stage = step.stage
        if stage is None:
            raise ValueError(f"Step {step} does not evaluate policies.")
        expression = self.config.policies.get(stage, operation.method)
        outcome = await self.evaluator.evaluate(
            expression, operation.request, operation.response, operation.meta
        )
        if not outcome:
            logger.info(
                "Denied %s.%s at %s", self.config.name, operation.method, stage
            )
        outcome.raise_if_denied()

    async def _validate(self, operation: Operation) -> None:
        """
        Validate the working record.

        For creates the request data is validated as-is. For updates the
        request data is merged over the stored record and the merged record is
        validated; only the properties the caller supplied (and that survived
        sanitization) go on to the store.
        """
        request = operation.request
        gate = self.config.schema_gate

        if operation.method == CrudMethod.FIND_ONE_AND_UPDATE:
            supplied = request.get_data()
            complete = await request.get_complete_data()
            validated = gate.validate(complete, partial=True)
            request.mark_validated(update_delta(validated, supplied), complete_data=validated)
        else:
            request.mark_validated(gate.validate(request.get_data()))
