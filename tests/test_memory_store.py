# ============================================================================
# OBJECT STORE TESTS
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Tests - In-memory ObjectStore contract
# PURPOSE: Verify versioning, conditional writes, listing and watch
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Object Store Tests

Covers:
1. create / get / delete and their errors
2. Conditional status writes (resource_version)
3. list() ordering, namespace and label filters
4. watch() events
5. Row mapping for the PostgreSQL store (no database needed)

Run with:
    pytest tests/test_memory_store.py -v
"""

import asyncio

import pytest

from core.contracts import ResourceKind
from core.models import (
    Mutex,
    MutexStatus,
    Permit,
    PermitSpec,
    Semaphore,
    SemaphoreSpec,
    SemaphoreStatus,
)
from repositories import (
    AlreadyExistsError,
    ConflictError,
    EventType,
    MemoryObjectStore,
    NotFoundError,
    PostgresObjectStore,
    create_store,
)
from repositories.database import safe_conninfo

from conftest import T0


def _permit(name: str, semaphore: str, namespace: str = "default") -> Permit:
    return Permit.new(
        name,
        namespace=namespace,
        labels={"semaphore": semaphore},
        spec=PermitSpec(semaphore=semaphore, holder=name),
    )


# ============================================================================
# CRUD
# ============================================================================

class TestCrud:
    """Basic storage semantics."""

    def test_create_assigns_version(self):
        store = MemoryObjectStore()
        created = asyncio.run(store.create(Mutex.new("db")))
        assert created.metadata.resource_version == 1

    def test_create_duplicate_rejected(self):
        store = MemoryObjectStore()

        async def scenario():
            await store.create(Mutex.new("db"))
            await store.create(Mutex.new("db"))

        with pytest.raises(AlreadyExistsError):
            asyncio.run(scenario())

    def test_same_name_different_kind_or_namespace(self):
        store = MemoryObjectStore()

        async def scenario():
            await store.create(Mutex.new("db"))
            await store.create(Mutex.new("db", namespace="other"))
            await store.create(Semaphore.new("db", spec=SemaphoreSpec(permits=1)))

        asyncio.run(scenario())
        assert len(store) == 3

    def test_get_missing(self):
        with pytest.raises(NotFoundError):
            asyncio.run(MemoryObjectStore().get(ResourceKind.MUTEX, "default", "nope"))

    def test_get_or_none(self):
        assert asyncio.run(MemoryObjectStore().get_or_none(ResourceKind.MUTEX, "default", "nope")) is None

    def test_reads_are_copies(self):
        store = MemoryObjectStore()

        async def scenario():
            await store.create(Mutex.new("db"))
            copy = await store.get(ResourceKind.MUTEX, "default", "db")
            copy.status.holder = "sneaky"
            return await store.get(ResourceKind.MUTEX, "default", "db")

        assert asyncio.run(scenario()).status.holder == ""

    def test_delete(self):
        store = MemoryObjectStore()

        async def scenario():
            await store.create(Mutex.new("db"))
            await store.delete(ResourceKind.MUTEX, "default", "db")
            return await store.get_or_none(ResourceKind.MUTEX, "default", "db")

        assert asyncio.run(scenario()) is None

    def test_delete_missing(self):
        with pytest.raises(NotFoundError):
            asyncio.run(MemoryObjectStore().delete(ResourceKind.MUTEX, "default", "nope"))


# ============================================================================
# CONDITIONAL WRITES
# ============================================================================

class TestConditionalWrites:
    """update_status succeeds only on the current version."""

    def test_update_bumps_version(self):
        store = MemoryObjectStore()

        async def scenario():
            created = await store.create(Mutex.new("db"))
            return await store.update_status(created.with_status(MutexStatus(holder="a")))

        updated = asyncio.run(scenario())
        assert updated.metadata.resource_version == 2
        assert updated.status.holder == "a"

    def test_stale_version_conflicts(self):
        store = MemoryObjectStore()

        async def scenario():
            created = await store.create(Mutex.new("db"))
            await store.update_status(created.with_status(MutexStatus(holder="a")))
            await store.update_status(created.with_status(MutexStatus(holder="b")))

        with pytest.raises(ConflictError) as exc_info:
            asyncio.run(scenario())
        assert exc_info.value.expected == 1
        assert exc_info.value.actual == 2

    def test_losing_write_leaves_winner(self):
        store = MemoryObjectStore()

        async def scenario():
            created = await store.create(Mutex.new("db"))
            await store.update_status(created.with_status(MutexStatus(holder="a")))
            with pytest.raises(ConflictError):
                await store.update_status(created.with_status(MutexStatus(holder="b")))
            return await store.get(ResourceKind.MUTEX, "default", "db")

        assert asyncio.run(scenario()).status.holder == "a"

    def test_update_ignores_spec_changes(self):
        store = MemoryObjectStore()

        async def scenario():
            created = await store.create(Semaphore.new("api", spec=SemaphoreSpec(permits=2)))
            changed = created.with_status(SemaphoreStatus(available=2))
            changed.spec.permits = 99
            await store.update_status(changed)
            return await store.get(ResourceKind.SEMAPHORE, "default", "api")

        stored = asyncio.run(scenario())
        assert stored.spec.permits == 2
        assert stored.status.available == 2

    def test_update_deleted_resource(self):
        store = MemoryObjectStore()

        async def scenario():
            created = await store.create(Mutex.new("db"))
            await store.delete(ResourceKind.MUTEX, "default", "db")
            await store.update_status(created)

        with pytest.raises(NotFoundError):
            asyncio.run(scenario())


# ============================================================================
# LISTING
# ============================================================================

class TestList:
    """Creation order, namespace and label filters."""

    def setup_method(self):
        self.store = MemoryObjectStore()

        async def seed():
            await self.store.create(_permit("p1", "api"))
            await self.store.create(_permit("p2", "other"))
            await self.store.create(_permit("p3", "api"))
            await self.store.create(_permit("p4", "api", namespace="prod"))
            await self.store.create(Mutex.new("db"))

        asyncio.run(seed())

    def _names(self, **kwargs):
        return [r.name for r in asyncio.run(self.store.list(ResourceKind.PERMIT, **kwargs))]

    def test_all_namespaces_in_creation_order(self):
        assert self._names() == ["p1", "p2", "p3", "p4"]

    def test_namespace_filter(self):
        assert self._names(namespace="prod") == ["p4"]

    def test_label_filter(self):
        assert self._names(namespace="default", labels={"semaphore": "api"}) == ["p1", "p3"]

    def test_label_filter_no_match(self):
        assert self._names(labels={"semaphore": "missing"}) == []

    def test_returns_typed_models(self):
        permits = asyncio.run(self.store.list(ResourceKind.PERMIT, namespace="prod"))
        assert isinstance(permits[0], Permit)


# ============================================================================
# WATCH
# ============================================================================

class TestWatch:
    """Every write is published to subscribers."""

    def test_events_for_each_write(self):
        store = MemoryObjectStore()

        async def scenario():
            events = []
            stream = store.watch()
            first = asyncio.ensure_future(stream.__anext__())
            await asyncio.sleep(0)

            created = await store.create(_permit("p1", "api"))
            events.append(await first)
            await store.update_status(created)
            events.append(await stream.__anext__())
            await store.delete(ResourceKind.PERMIT, "default", "p1")
            events.append(await stream.__anext__())
            await stream.aclose()
            return events

        events = asyncio.run(scenario())
        assert [e.type for e in events] == [EventType.ADDED, EventType.MODIFIED, EventType.DELETED]
        assert all(e.labels == {"semaphore": "api"} for e in events)
        assert events[0].parent_key() == (ResourceKind.SEMAPHORE, "default", "api")

    def test_close_ends_watch(self):
        store = MemoryObjectStore()

        async def scenario():
            received = []

            async def consume():
                async for event in store.watch():
                    received.append(event)

            task = asyncio.ensure_future(consume())
            await asyncio.sleep(0)
            await store.create(Mutex.new("db"))
            await asyncio.sleep(0)
            await store.close()
            await asyncio.wait_for(task, timeout=1.0)
            return received, await store.ping()

        received, alive = asyncio.run(scenario())
        assert len(received) == 1
        assert alive is False


# ============================================================================
# FACTORY AND ROW MAPPING
# ============================================================================

class TestFactoryAndRows:
    """Backend selection and the PostgreSQL row mapping."""

    def test_memory_backend(self):
        assert isinstance(asyncio.run(create_store("memory")), MemoryObjectStore)

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="STORE_BACKEND"):
            asyncio.run(create_store("etcd"))

    def test_default_backend_is_memory(self, monkeypatch):
        monkeypatch.delenv("STORE_BACKEND", raising=False)
        assert isinstance(asyncio.run(create_store()), MemoryObjectStore)

    def test_row_to_resource(self):
        row = {
            "kind": "Semaphore",
            "namespace": "prod",
            "name": "api",
            "labels": {"team": "core"},
            "spec": {"permits": 3, "ttl": 30.0},
            "status": {"in_use": 1, "available": 2, "phase": "Ready"},
            "creation_timestamp": T0,
            "resource_version": 7,
        }
        resource = PostgresObjectStore._row_to_resource(row)
        assert isinstance(resource, Semaphore)
        assert resource.key == (ResourceKind.SEMAPHORE, "prod", "api")
        assert resource.metadata.resource_version == 7
        assert resource.spec.permits == 3
        assert resource.status.available == 2

    def test_row_with_null_status(self):
        row = {
            "kind": "Mutex",
            "namespace": "default",
            "name": "db",
            "labels": None,
            "spec": None,
            "status": None,
            "creation_timestamp": T0,
            "resource_version": 1,
        }
        resource = PostgresObjectStore._row_to_resource(row)
        assert resource.status.holder == ""
        assert resource.metadata.labels == {}

    def test_safe_conninfo_hides_password(self):
        assert safe_conninfo("postgresql://u:secret@db:5432/sync") == "db:5432/sync"
        assert "secret" not in safe_conninfo("host=db password=secret")
