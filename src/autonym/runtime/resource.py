"""
Resource facade - the public CRUD surface of a declared resource.

Each operation builds fresh meta and request/response views, wires the store
call for its method and hands the lot to the lifecycle runner:

    posts = Resource({"name": "post", "schema": POST_SCHEMA, "store": InMemoryStore()})
    post = await posts.create({"title": "Hello"}, meta={"user_id": "u1"})
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from autonym.core.errors import AutonymError, ErrorCode
from autonym.runtime.lifecycle import LifecycleRunner, Operation, StoreCall
from autonym.runtime.views import RequestView, ResponseView
from autonym.specs.resource import CrudMethod, PolicyTable, ResourceConfig, normalize_config

logger = logging.getLogger(__name__)

OriginalLoader = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


class Resource:
    """
    A named entity type with a schema, policies and store bindings.

    Accepts either a raw declaration mapping or an already normalized
    ``ResourceConfig``. The configuration is captured per instance and never
    changes afterwards.
    """

    def __init__(self, declaration: Mapping[str, Any] | ResourceConfig):
        if isinstance(declaration, ResourceConfig):
            self._config = declaration
        else:
            self._config = normalize_config(declaration)
        self._runner = LifecycleRunner(self._config)
        self._initialization: asyncio.Future[Any] | None = None

    @property
    def config(self) -> ResourceConfig:
        return self._config

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def route(self) -> str:
        return self._config.route

    @property
    def policies(self) -> PolicyTable:
        return self._config.policies

    @property
    def initial_meta(self) -> dict[str, Any]:
        return self._config.new_meta()

    async def init(self) -> Any:
        """
        Run the declared ``init`` hook once.

        Concurrent and later callers all await the same initialization.
        """
        if self._initialization is None:
            logger.debug("Initializing resource %s", self.name)
            self._initialization = asyncio.ensure_future(self._config.init())
        return await asyncio.shield(self._initialization)

    # =========================================================================
    # CRUD Operations
    # =========================================================================

    async def create(
        self, data: Mapping[str, Any], meta: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        """Create a record and return it unserialized."""
        store = self._config.store

        async def call_store(request: RequestView) -> Any:
            serialized = await self.serialize(request.get_data())
            return await store.create(serialized, request.meta)

        return await self._run(CrudMethod.CREATE, call_store, meta, data=data)

    async def find(
        self, query: Mapping[str, Any] | None = None, meta: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Find records matching a query, unserialized in store order."""
        store = self._config.store

        async def call_store(request: RequestView) -> Any:
            return list(await store.find(request.get_query(), request.meta))

        async def unserialize_all(results: list[Any]) -> list[Any]:
            return list(await asyncio.gather(*(self.unserialize(result) for result in results)))

        return await self._run(
            CrudMethod.FIND, call_store, meta, query=query or {}, finish=unserialize_all
        )

    async def find_one(self, id: Any, meta: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Find a single record by id."""
        store = self._config.store

        async def call_store(request: RequestView) -> Any:
            return await store.find_one(request.get_id(), request.meta)

        return await self._run(CrudMethod.FIND_ONE, call_store, meta, id=id)

    async def find_one_and_update(
        self,
        id: Any,
        data: Mapping[str, Any],
        meta: Mapping[str, Any] | None = None,
        *,
        original_data: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Update a record with the given properties.

        The stored record is fetched (unless ``original_data`` is given) so the
        merged, complete record can be validated. The store receives only the
        properties the caller supplied, plus the complete record, each
        serialized.
        """
        store = self._config.store

        async def call_store(request: RequestView) -> Any:
            complete = await request.get_complete_data()
            serialized_delta, serialized_complete = await asyncio.gather(
                self.serialize(request.get_data()),
                self.serialize(complete),
            )
            return await store.find_one_and_update(
                request.get_id(), serialized_delta, serialized_complete, request.meta
            )

        async def load_original(meta: dict[str, Any]) -> dict[str, Any]:
            if original_data is not None:
                return dict(original_data)
            stored = await store.find_one(id, meta)
            if stored is None:
                raise AutonymError(
                    ErrorCode.NOT_FOUND,
                    f'No record of resource "{self.name}" has the id "{id}".',
                )
            return await self.unserialize(stored)

        return await self._run(
            CrudMethod.FIND_ONE_AND_UPDATE,
            call_store,
            meta,
            id=id,
            data=data,
            load_original=load_original,
        )

    async def find_one_and_delete(
        self, id: Any, meta: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        """Delete a record by id and return ``{"id": id}``."""
        store = self._config.store

        async def call_store(request: RequestView) -> Any:
            await store.find_one_and_delete(request.get_id(), request.meta)
            return {"id": request.get_id()}

        return await self._run(CrudMethod.FIND_ONE_AND_DELETE, call_store, meta, id=id)

    # =========================================================================
    # Serialization
    # =========================================================================

    async def serialize(self, data: Any) -> Any:
        """Reformat a (possibly partial) record before it reaches the store."""
        return await self._config.serialize(data)

    async def unserialize(self, data: Any) -> Any:
        """Reformat a store result before it is returned."""
        return await self._config.unserialize(data)

    def validate(self, data: Mapping[str, Any], *, partial: bool = False) -> Any:
        """Validate and sanitize a record against the resource schema."""
        return self._config.schema_gate.validate(data, partial=partial)

    # =========================================================================
    # Internals
    # =========================================================================

    async def _run(
        self,
        method: CrudMethod,
        call_store: StoreCall,
        meta: Mapping[str, Any] | None,
        *,
        id: Any = None,
        data: Mapping[str, Any] | None = None,
        query: Mapping[str, Any] | None = None,
        load_original: OriginalLoader | None = None,
        finish: Callable[[Any], Awaitable[Any]] | None = None,
    ) -> Any:
        try:
            await self.init()

            fresh_meta = self._config.new_meta(meta)
            request = RequestView(
                method,
                fresh_meta,
                id=id,
                data=data,
                query=query,
                load_original=(lambda: load_original(fresh_meta)) if load_original else None,
            )
            result = await self._runner.run(
                Operation(
                    method=method,
                    request=request,
                    response=ResponseView(fresh_meta),
                    meta=fresh_meta,
                    store_call=call_store,
                )
            )
            return await (finish or self.unserialize)(result)
        except AutonymError:
            raise
        except Exception as e:
            raise AutonymError.from_error(e) from e

    def __repr__(self) -> str:
        return f"Resource(name={self.name!r}, route={self.route!r})"
