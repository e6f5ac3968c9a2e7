"""
Resource registry and transport-agnostic dispatch.

Resources are registered explicitly; each registration rebuilds the route
index on the spot. ``dispatch`` is the seam a transport (HTTP, RPC, a test
harness) calls: it resolves the route, runs the operation and turns the
outcome into a ``Reply`` whose body is always safe to send to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any

from autonym.core.errors import AutonymError, ConfigurationError, ErrorCode
from autonym.runtime.logging import get_logger, log_with_context
from autonym.runtime.resource import Resource
from autonym.specs.resource import CrudMethod

logger = get_logger("registry")


@dataclass(frozen=True)
class Reply:
    """Outcome of a dispatched operation."""

    status: HTTPStatus
    body: Any

    @property
    def ok(self) -> bool:
        return self.status < HTTPStatus.BAD_REQUEST


class ResourceRegistry:
    """Registry of resources keyed by name and by route."""

    def __init__(self, resources: Iterable[Resource] = ()):
        self._resources: list[Resource] = []
        self._by_route: dict[str, Resource] = {}
        for resource in resources:
            self.register(resource)

    def register(self, resource: Resource) -> Resource:
        """
        Register a resource and rebuild the route index.

        Raises:
            ConfigurationError: If the name or route is already registered
        """
        if not isinstance(resource, Resource):
            raise ConfigurationError(
                f"expected a Resource, received {type(resource).__name__}.", "registry"
            )
        for existing in self._resources:
            if existing.name == resource.name:
                raise ConfigurationError(
                    f'name "{resource.name}" is already registered.', "registry"
                )
            if existing.route == resource.route:
                raise ConfigurationError(
                    f'route "{resource.route}" is already used by "{existing.name}".', "registry"
                )

        self._resources.append(resource)
        self._by_route = {r.route.strip("/"): r for r in self._resources}
        logger.info("Registered resource %s at /%s", resource.name, resource.route.strip("/"))
        return resource

    def get(self, route: str) -> Resource | None:
        return self._by_route.get(route.strip("/"))

    def by_name(self, name: str) -> Resource | None:
        return next((r for r in self._resources if r.name == name), None)

    @property
    def routes(self) -> dict[str, Resource]:
        return dict(self._by_route)

    def __iter__(self) -> Iterator[Resource]:
        return iter(list(self._resources))

    def __len__(self) -> int:
        return len(self._resources)

    def __contains__(self, route: object) -> bool:
        return isinstance(route, str) and route.strip("/") in self._by_route

    async def init_all(self) -> None:
        """Initialize every registered resource concurrently."""
        await asyncio.gather(*(resource.init() for resource in self._resources))

    async def dispatch(
        self,
        route: str,
        method: CrudMethod | str,
        *,
        id: Any = None,
        data: Mapping[str, Any] | None = None,
        query: Mapping[str, Any] | None = None,
        meta: Mapping[str, Any] | None = None,
    ) -> Reply:
        """
        Run an operation on the resource at ``route``.

        Returns:
            Reply with 201 for create, 200 for other successes, and the
            status and response-safe payload of the error otherwise
        """
        try:
            try:
                method = CrudMethod(method)
            except ValueError:
                raise AutonymError(
                    ErrorCode.BAD_REQUEST, f'Unknown method "{method}".', client_error=True
                ) from None
            resource = self.get(route)
            if resource is None:
                raise AutonymError(ErrorCode.NOT_FOUND, f'No resource is registered at "{route}".')
            body = await self._call(resource, method, id=id, data=data, query=query, meta=meta)
        except Exception as e:
            return self._error_reply(e, route, method)

        status = HTTPStatus.CREATED if method == CrudMethod.CREATE else HTTPStatus.OK
        return Reply(status, body)

    async def _call(
        self,
        resource: Resource,
        method: CrudMethod,
        *,
        id: Any,
        data: Mapping[str, Any] | None,
        query: Mapping[str, Any] | None,
        meta: Mapping[str, Any] | None,
    ) -> Any:
        if method == CrudMethod.CREATE:
            return await resource.create(data or {}, meta)
        if method == CrudMethod.FIND:
            return await resource.find(query, meta)
        if method == CrudMethod.FIND_ONE:
            return await resource.find_one(id, meta)
        if method == CrudMethod.FIND_ONE_AND_UPDATE:
            return await resource.find_one_and_update(id, data or {}, meta)
        return await resource.find_one_and_delete(id, meta)

    def _error_reply(self, exc: Exception, route: str, method: Any) -> Reply:
        error = AutonymError.from_error(exc).to_client_error()
        if not error.is_client_error:
            log_with_context(
                logger,
                logging.ERROR,
                f"Internal error in {method} /{route.strip('/')}: {error.message}",
                code=error.code,
                data=error.data,
            )
        return Reply(error.status, error.payload)
