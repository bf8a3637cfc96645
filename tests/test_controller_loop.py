# ============================================================================
# CONTROLLER LOOP TESTS
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Tests - Work queue and dispatcher
# PURPOSE: Verify de-duplication, timers, event mapping and error handling
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Controller Loop Tests

Covers:
1. WorkQueue de-duplication and per-key serialization
2. Requeue timers (earliest wins) and shutdown
3. Watch event -> key mapping (child events wake the parent)
4. Conflict redelivery, error backoff and failure reset
5. Resync
6. End-to-end: running controller reacts to store writes

Run with:
    pytest tests/test_controller_loop.py -v
"""

import asyncio

import pytest

from core.config import ControllerDefaults
from core.contracts import OncePhase, ResourceKind, SemaphorePhase
from core.models import Mutex, Once, Permit, PermitSpec, ResourceKey, Semaphore, SemaphoreSpec
from controller import Controller, WorkQueue, build_registry
from controller.engine import ReconcilerRegistry, Reconciler
from controller.loop import IMMEDIATE_CONFLICT_RETRIES
from repositories import EventType, MemoryObjectStore, ResourceEvent

from conftest import ConflictingStore

KEY = ResourceKey(ResourceKind.MUTEX, "default", "db")


def _defaults(**overrides) -> ControllerDefaults:
    values = dict(workers=2, resync_interval=60.0, backoff_base=0.5, backoff_cap=60.0, watch_restart_delay=0.01)
    values.update(overrides)
    return ControllerDefaults(**values)


class BrokenReconciler(Reconciler):
    """Always fails inside compute()."""

    kind = ResourceKind.MUTEX

    def compute(self, resource, related, now):
        raise RuntimeError("boom")


# ============================================================================
# WORK QUEUE
# ============================================================================

class TestWorkQueue:
    """De-duplicating, per-key serialized queue."""

    def test_duplicate_adds_collapse(self):
        async def scenario():
            queue = WorkQueue()
            queue.add(KEY)
            queue.add(KEY)
            depth = queue.depth
            key = await queue.get()
            return depth, key, queue.depth, queue.in_flight

        depth, key, after, in_flight = asyncio.run(scenario())
        assert depth == 1
        assert key == KEY
        assert after == 0
        assert in_flight == 1

    def test_add_while_processing_redelivers_after_done(self):
        async def scenario():
            queue = WorkQueue()
            queue.add(KEY)
            await queue.get()
            queue.add(KEY)
            # Not handed to a second worker while the first holds it
            assert queue._queue.empty()
            queue.done(KEY)
            return await asyncio.wait_for(queue.get(), timeout=1.0)

        assert asyncio.run(scenario()) == KEY

    def test_done_without_new_add_does_not_requeue(self):
        async def scenario():
            queue = WorkQueue()
            queue.add(KEY)
            await queue.get()
            queue.done(KEY)
            return queue._queue.empty(), queue.in_flight

        empty, in_flight = asyncio.run(scenario())
        assert empty
        assert in_flight == 0

    def test_earliest_timer_wins(self):
        async def scenario():
            queue = WorkQueue()
            queue.add_after(KEY, 30.0)
            queue.add_after(KEY, 0.01)
            queue.add_after(KEY, 10.0)
            pending = queue.pending_timer(KEY)
            timers = queue.timers
            key = await asyncio.wait_for(queue.get(), timeout=1.0)
            return pending, timers, key, queue.timers

        pending, timers, key, after = asyncio.run(scenario())
        assert pending <= 0.01
        assert timers == 1
        assert key == KEY
        assert after == 0

    def test_zero_delay_is_immediate(self):
        async def scenario():
            queue = WorkQueue()
            queue.add_after(KEY, 0)
            return queue.depth, queue.timers

        assert asyncio.run(scenario()) == (1, 0)

    def test_shutdown_releases_workers(self):
        async def scenario():
            queue = WorkQueue()
            queue.add_after(KEY, 30.0)
            queue.shutdown(workers=2)
            queue.add(KEY)
            return await queue.get(), await queue.get(), queue.timers

        assert asyncio.run(scenario()) == (None, None, 0)


# ============================================================================
# EVENT MAPPING
# ============================================================================

class TestHandleEvent:
    """Store events become work keys."""

    def setup_method(self):
        self.store = MemoryObjectStore()
        self.controller = Controller(self.store, build_registry(self.store), defaults=_defaults())

    def _queued(self):
        return set(self.controller.queue._dirty)

    def test_primitive_event_enqueues_itself(self):
        async def scenario():
            self.controller.handle_event(ResourceEvent(EventType.MODIFIED, ResourceKind.MUTEX, "default", "db"))
            return self._queued()

        assert asyncio.run(scenario()) == {KEY}

    def test_child_event_enqueues_parent_only(self):
        async def scenario():
            self.controller.handle_event(
                ResourceEvent(EventType.ADDED, ResourceKind.PERMIT, "ns", "p1", {"semaphore": "api"})
            )
            return self._queued()

        assert asyncio.run(scenario()) == {ResourceKey(ResourceKind.SEMAPHORE, "ns", "api")}

    def test_deleted_request_wakes_lease(self):
        async def scenario():
            self.controller.handle_event(
                ResourceEvent(EventType.DELETED, ResourceKind.LEASE_REQUEST, "ns", "r1", {"lease": "leader"})
            )
            return self._queued()

        assert asyncio.run(scenario()) == {ResourceKey(ResourceKind.LEASE, "ns", "leader")}

    def test_job_event_ignored(self):
        async def scenario():
            self.controller.handle_event(ResourceEvent(EventType.MODIFIED, ResourceKind.JOB, "ns", "etl"))
            return self._queued()

        assert asyncio.run(scenario()) == set()

    def test_resync_enqueues_every_primitive(self):
        async def scenario():
            await self.store.create(Mutex.new("db"))
            await self.store.create(Semaphore.new("api", spec=SemaphoreSpec(permits=1)))
            await self.store.create(Permit.new(
                "p1", labels={"semaphore": "api"}, spec=PermitSpec(semaphore="api", holder="a")
            ))
            count = await self.controller.resync()
            return count, self._queued()

        count, queued = asyncio.run(scenario())
        assert count == 2
        assert queued == {KEY, ResourceKey(ResourceKind.SEMAPHORE, "default", "api")}


# ============================================================================
# PROCESS KEY
# ============================================================================

class TestProcessKey:
    """Scheduling after success, conflict and failure."""

    def test_requeue_action_sets_timer(self):
        store = MemoryObjectStore()
        controller = Controller(store, build_registry(store), defaults=_defaults())
        key = ResourceKey(ResourceKind.SEMAPHORE, "default", "api")

        async def scenario():
            await store.create(Semaphore.new("api", spec=SemaphoreSpec(permits=2)))
            action = await controller.process_key(key)
            return action, controller.queue.pending_timer(key)

        action, pending = asyncio.run(scenario())
        assert action.delay.total_seconds() == 60
        assert 59 < pending <= 60

    def test_conflict_requeues_immediately_then_succeeds(self):
        store = ConflictingStore(conflicts=1)
        controller = Controller(store, build_registry(store), defaults=_defaults())
        key = ResourceKey(ResourceKind.ONCE, "default", "init")

        async def scenario():
            await store.create(Once.new("init"))
            first = await controller.process_key(key)
            failures = controller.failures(key)
            queued = controller.queue.depth
            second = await controller.process_key(key)
            once = await store.get(ResourceKind.ONCE, "default", "init")
            return first, failures, queued, second, controller.failures(key), once

        first, failures, queued, second, after, once = asyncio.run(scenario())
        assert first is None
        assert failures == 1
        assert queued == 1
        assert second is not None
        assert after == 0
        assert once.status.phase == OncePhase.PENDING
        assert controller.stats["conflicts"] == 1

    def test_repeated_conflicts_fall_back_to_backoff(self):
        store = ConflictingStore(conflicts=100)
        defaults = _defaults()
        controller = Controller(store, build_registry(store), defaults=defaults)
        key = ResourceKey(ResourceKind.ONCE, "default", "init")

        async def scenario():
            await store.create(Once.new("init"))
            for _ in range(IMMEDIATE_CONFLICT_RETRIES + 1):
                await controller.process_key(key)
            return controller.queue.pending_timer(key)

        pending = asyncio.run(scenario())
        expected = defaults.backoff(IMMEDIATE_CONFLICT_RETRIES + 1)
        assert pending is not None
        assert expected - 0.5 < pending <= expected

    def test_error_backs_off(self):
        store = MemoryObjectStore()
        registry = ReconcilerRegistry()
        registry.register(BrokenReconciler(store))
        controller = Controller(store, registry, defaults=_defaults())

        async def scenario():
            await store.create(Mutex.new("db"))
            result = await controller.process_key(KEY)
            first = controller.queue.pending_timer(KEY)
            return result, first, controller.failures(KEY)

        result, pending, failures = asyncio.run(scenario())
        assert result is None
        assert failures == 1
        assert 0 < pending <= 0.5
        assert controller.stats["errors"] == 1
        assert controller.stats["backing_off"] == 1

    def test_backoff_grows_and_caps(self):
        defaults = ControllerDefaults(backoff_base=0.5, backoff_cap=60.0)
        assert defaults.backoff(0) == 0
        assert defaults.backoff(1) == 0.5
        assert defaults.backoff(2) == 1.0
        assert defaults.backoff(4) == 4.0
        assert defaults.backoff(20) == 60.0

    def test_unregistered_kind_dropped(self):
        store = MemoryObjectStore()
        controller = Controller(store, ReconcilerRegistry(), defaults=_defaults())
        assert asyncio.run(controller.process_key(KEY)) is None

    def test_duplicate_registration_rejected(self):
        store = MemoryObjectStore()
        registry = build_registry(store)
        with pytest.raises(ValueError):
            registry.register(BrokenReconciler(store))


# ============================================================================
# END TO END
# ============================================================================

class TestRunningController:
    """Background workers react to watch events."""

    def test_permit_updates_semaphore(self):
        store = MemoryObjectStore()
        controller = Controller(store, build_registry(store), defaults=_defaults())

        async def wait_for_status(predicate):
            for _ in range(200):
                semaphore = await store.get(ResourceKind.SEMAPHORE, "default", "api")
                if predicate(semaphore):
                    return semaphore
                await asyncio.sleep(0.01)
            raise AssertionError(f"status never matched: {semaphore.status}")

        async def scenario():
            await controller.start()
            try:
                await store.create(Semaphore.new("api", spec=SemaphoreSpec(permits=1)))
                ready = await wait_for_status(lambda s: s.status.phase == SemaphorePhase.READY)

                await store.create(Permit.new(
                    "p1", labels={"semaphore": "api"}, spec=PermitSpec(semaphore="api", holder="a")
                ))
                full = await wait_for_status(lambda s: s.status.phase == SemaphorePhase.FULL)
                stats = controller.stats
            finally:
                await controller.stop()
            return ready, full, stats, controller.running

        ready, full, stats, running = asyncio.run(scenario())
        assert ready.status.available == 1
        assert full.status.in_use == 1
        assert stats["running"] is True
        assert stats["reconciles"] >= 2
        assert running is False

    def test_stop_is_idempotent(self):
        store = MemoryObjectStore()
        controller = Controller(store, build_registry(store), defaults=_defaults())

        async def scenario():
            await controller.start()
            await controller.stop()
            await controller.stop()

        asyncio.run(scenario())
        assert controller.running is False
