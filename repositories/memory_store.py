# ============================================================================
# IN-MEMORY OBJECT STORE
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Infrastructure - Process-local store
# PURPOSE: ObjectStore for local mode (STORE_BACKEND=memory) and tests
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
In-Memory Object Store

Keeps resources in a dict keyed by (kind, namespace, name). Insertion order
of the dict is creation order, which list() relies on.

Every read returns a deep copy, so callers can mutate what they get back
without touching stored state; only update_status() can change it.

All methods run without awaiting between read and write, which makes each
one atomic with respect to other coroutines on the same event loop.
"""

import asyncio
from typing import AsyncIterator, Dict, List, Optional

from core.contracts import ResourceKind
from core.models import Resource, ResourceKey
from repositories.base import (
    AlreadyExistsError,
    ConflictError,
    EventType,
    NotFoundError,
    ObjectStore,
    ResourceEvent,
)

_CLOSED = object()


class MemoryObjectStore(ObjectStore):
    """Process-local ObjectStore."""

    def __init__(self):
        super().__init__()
        self._objects: Dict[ResourceKey, Resource] = {}
        self._subscribers: List[asyncio.Queue] = []
        self._closed = False

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, kind: ResourceKind, namespace: str, name: str) -> Resource:
        key = ResourceKey(ResourceKind(kind), namespace, name)
        stored = self._objects.get(key)
        if stored is None:
            raise NotFoundError(f"{key} not found", operation="get", entity_id=str(key))
        return stored.model_copy(deep=True)

    async def list(
        self,
        kind: ResourceKind,
        namespace: Optional[str] = None,
        labels: Optional[Dict[str, str]] = None,
    ) -> List[Resource]:
        kind = ResourceKind(kind)
        wanted = labels or {}
        result = []
        for key, stored in self._objects.items():
            if key.kind != kind:
                continue
            if namespace is not None and key.namespace != namespace:
                continue
            have = stored.metadata.labels
            if any(have.get(k) != v for k, v in wanted.items()):
                continue
            result.append(stored.model_copy(deep=True))
        return result

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, resource: Resource) -> Resource:
        key = resource.key
        if key in self._objects:
            raise AlreadyExistsError(f"{key} already exists", operation="create", entity_id=str(key))

        stored = resource.model_copy(deep=True)
        stored.metadata.resource_version = 1
        self._objects[key] = stored
        self._log_operation(True, "create", str(key))
        self._publish(ResourceEvent.for_resource(EventType.ADDED, stored))
        return stored.model_copy(deep=True)

    async def update_status(self, resource: Resource) -> Resource:
        key = resource.key
        stored = self._objects.get(key)
        if stored is None:
            raise NotFoundError(f"{key} not found", operation="update_status", entity_id=str(key))

        expected = resource.metadata.resource_version
        actual = stored.metadata.resource_version
        if expected != actual:
            raise ConflictError(
                f"{key} version conflict: have {expected}, stored {actual}",
                entity_id=str(key),
                expected=expected,
                actual=actual,
            )

        updated = stored.model_copy(deep=True)
        updated.status = resource.status.model_copy(deep=True)
        updated.metadata.resource_version = actual + 1
        self._objects[key] = updated
        self._log_operation(True, "update_status", str(key), {"version": actual + 1})
        self._publish(ResourceEvent.for_resource(EventType.MODIFIED, updated))
        return updated.model_copy(deep=True)

    async def delete(self, kind: ResourceKind, namespace: str, name: str) -> None:
        key = ResourceKey(ResourceKind(kind), namespace, name)
        stored = self._objects.pop(key, None)
        if stored is None:
            raise NotFoundError(f"{key} not found", operation="delete", entity_id=str(key))
        self._log_operation(True, "delete", str(key))
        self._publish(ResourceEvent.for_resource(EventType.DELETED, stored))

    # ------------------------------------------------------------------
    # Watch
    # ------------------------------------------------------------------

    def _publish(self, event: ResourceEvent) -> None:
        for queue in self._subscribers:
            queue.put_nowait(event)

    async def watch(self) -> AsyncIterator[ResourceEvent]:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.append(queue)
        try:
            while not self._closed:
                event = await queue.get()
                if event is _CLOSED:
                    return
                yield event
        finally:
            self._subscribers.remove(queue)

    async def ping(self) -> bool:
        return not self._closed

    async def close(self) -> None:
        self._closed = True
        for queue in self._subscribers:
            queue.put_nowait(_CLOSED)

    def __len__(self) -> int:
        return len(self._objects)


__all__ = ["MemoryObjectStore"]
