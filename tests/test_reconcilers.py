# ============================================================================
# RECONCILER TESTS
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Tests - Per-primitive reconciliation logic
# PURPOSE: Verify compute() rules and the reconcile() write path
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Reconciler Tests

Covers:
1. Mutex / RWMutex phase derivation and TTL expiry
2. Semaphore accounting (expired permits, over-commit)
3. Barrier open / fail / wait rules and requeue timing
4. Lease expiry, priority arbitration and tie-breaking
5. Gate condition evaluation and adaptive polling
6. Once / WaitGroup phase
7. reconcile(): NotFound, write-only-on-change, conflicts, best-effort writes

compute() is pure, so most tests call it directly with a fixed `now`.

Run with:
    pytest tests/test_reconcilers.py -v
"""

import asyncio
from datetime import timedelta

import pytest

from core.contracts import (
    BarrierPhase,
    GatePhase,
    LeasePhase,
    LeaseRequestPhase,
    MutexPhase,
    OncePhase,
    ResourceKind,
    RWMutexPhase,
    SemaphorePhase,
    WaitGroupPhase,
)
from core.models import (
    Arrival,
    ArrivalSpec,
    Barrier,
    BarrierSpec,
    BarrierStatus,
    Gate,
    GateSpec,
    Job,
    JobStatus,
    Lease,
    LeaseRequest,
    LeaseRequestSpec,
    LeaseRequestStatus,
    LeaseSpec,
    LeaseStatus,
    Mutex,
    MutexSpec,
    MutexStatus,
    Once,
    OnceStatus,
    Permit,
    PermitSpec,
    PermitStatus,
    ResourceKey,
    RWMutex,
    RWMutexStatus,
    Semaphore,
    SemaphoreSpec,
    SemaphoreStatus,
    WaitGroup,
    WaitGroupStatus,
)
from controller.engine import (
    ActionType,
    BarrierReconciler,
    GateReconciler,
    LeaseReconciler,
    MutexReconciler,
    NextAction,
    OnceReconciler,
    RWMutexReconciler,
    SemaphoreReconciler,
    WaitGroupReconciler,
    build_registry,
    select_request,
)
from controller.engine.scheduling import adaptive_poll, poll_or_deadline
from repositories import ConflictError, MemoryObjectStore

from conftest import T0, ConflictingStore, FailingStore, FakeClock, meta


def seconds(n: float) -> timedelta:
    return timedelta(seconds=n)


def assert_requeue(action: NextAction, delay: timedelta):
    assert action.type == ActionType.REQUEUE
    assert action.delay == delay


def _permit(name: str, holder: str, expires_at=None, semaphore: str = "api") -> Permit:
    return Permit(
        metadata=meta(name, labels={"semaphore": semaphore}),
        spec=PermitSpec(semaphore=semaphore, holder=holder),
        status=PermitStatus(expires_at=expires_at),
    )


def _arrival(holder: str, barrier: str = "start") -> Arrival:
    return Arrival(
        metadata=meta(f"{barrier}-{holder}", labels={"barrier": barrier}),
        spec=ArrivalSpec(barrier=barrier, holder=holder),
    )


def _request(name: str, holder: str, priority=None, phase=LeaseRequestPhase.PENDING, lease: str = "leader"):
    return LeaseRequest(
        metadata=meta(name, labels={"lease": lease}),
        spec=LeaseRequestSpec(lease=lease, holder=holder, priority=priority),
        status=LeaseRequestStatus(phase=phase),
    )


# ============================================================================
# MUTEX
# ============================================================================

class TestMutexReconciler:
    """Phase follows holder; expiry clears the holder."""

    def setup_method(self):
        self.reconciler = MutexReconciler(MemoryObjectStore())

    def test_new_mutex_is_unlocked(self):
        outcome = self.reconciler.compute(Mutex(metadata=meta("m")), None, T0)
        assert outcome.status.phase == MutexPhase.UNLOCKED
        assert outcome.action.type == ActionType.DONE

    def test_held_with_ttl_requeues_at_expiry(self):
        mutex = Mutex(
            metadata=meta("m"),
            status=MutexStatus(holder="a", locked_at=T0, expires_at=T0 + seconds(30)),
        )
        outcome = self.reconciler.compute(mutex, None, T0 + seconds(10))
        assert outcome.status.phase == MutexPhase.LOCKED
        assert outcome.status.holder == "a"
        assert_requeue(outcome.action, seconds(20))

    def test_requeue_never_below_one_second(self):
        mutex = Mutex(metadata=meta("m"), status=MutexStatus(holder="a", expires_at=T0 + seconds(0.2)))
        outcome = self.reconciler.compute(mutex, None, T0)
        assert_requeue(outcome.action, seconds(1))

    def test_held_without_ttl_is_done(self):
        mutex = Mutex(metadata=meta("m"), status=MutexStatus(holder="a"))
        outcome = self.reconciler.compute(mutex, None, T0)
        assert outcome.status.phase == MutexPhase.LOCKED
        assert outcome.action.type == ActionType.DONE

    def test_expired_lock_is_cleared(self):
        mutex = Mutex(
            metadata=meta("m"),
            spec=MutexSpec(ttl="30s"),
            status=MutexStatus(holder="a", locked_at=T0, expires_at=T0 + seconds(30), phase=MutexPhase.LOCKED),
        )
        outcome = self.reconciler.compute(mutex, None, T0 + seconds(31))
        assert outcome.status == MutexStatus(phase=MutexPhase.UNLOCKED)
        assert outcome.action.type == ActionType.DONE
        assert outcome.checkpoint == "mutex_expired"

    def test_expiry_exactly_now_counts_as_expired(self):
        mutex = Mutex(metadata=meta("m"), status=MutexStatus(holder="a", expires_at=T0))
        outcome = self.reconciler.compute(mutex, None, T0)
        assert outcome.status.holder == ""


# ============================================================================
# RWMUTEX
# ============================================================================

class TestRWMutexReconciler:
    """Writer beats readers when both are recorded."""

    def setup_method(self):
        self.reconciler = RWMutexReconciler(MemoryObjectStore())

    def test_readers_give_read_locked(self):
        rw = RWMutex(metadata=meta("rw"), status=RWMutexStatus(read_holders=["a", "b"]))
        assert self.reconciler.compute(rw, None, T0).status.phase == RWMutexPhase.READ_LOCKED

    def test_writer_gives_write_locked(self):
        rw = RWMutex(metadata=meta("rw"), status=RWMutexStatus(write_holder="w"))
        assert self.reconciler.compute(rw, None, T0).status.phase == RWMutexPhase.WRITE_LOCKED

    def test_conflicting_status_reports_write_locked(self):
        rw = RWMutex(metadata=meta("rw"), status=RWMutexStatus(write_holder="w", read_holders=["r"]))
        outcome = self.reconciler.compute(rw, None, T0)
        assert outcome.status.phase == RWMutexPhase.WRITE_LOCKED
        assert outcome.status.read_holders == ["r"]

    def test_unlocked(self):
        rw = RWMutex(metadata=meta("rw"))
        outcome = self.reconciler.compute(rw, None, T0)
        assert outcome.status.phase == RWMutexPhase.UNLOCKED
        assert outcome.action.type == ActionType.DONE

    def test_expiry_clears_everyone(self):
        rw = RWMutex(
            metadata=meta("rw"),
            status=RWMutexStatus(read_holders=["a", "b"], expires_at=T0 - seconds(1)),
        )
        outcome = self.reconciler.compute(rw, None, T0)
        assert outcome.status == RWMutexStatus(phase=RWMutexPhase.UNLOCKED)
        assert outcome.checkpoint == "rwmutex_expired"

    def test_live_ttl_requeues(self):
        rw = RWMutex(
            metadata=meta("rw"),
            status=RWMutexStatus(write_holder="w", expires_at=T0 + seconds(5)),
        )
        assert_requeue(self.reconciler.compute(rw, None, T0).action, seconds(5))


# ============================================================================
# SEMAPHORE
# ============================================================================

class TestSemaphoreReconciler:
    """Counts live Permit children."""

    def setup_method(self):
        self.reconciler = SemaphoreReconciler(MemoryObjectStore())

    def _semaphore(self, permits: int) -> Semaphore:
        return Semaphore(metadata=meta("api"), spec=SemaphoreSpec(permits=permits))

    def test_expired_permits_do_not_count(self):
        permits = [
            _permit("p1", "a", expires_at=T0 + seconds(60)),
            _permit("p2", "b"),
            _permit("p3", "c", expires_at=T0 - seconds(1)),
        ]
        outcome = self.reconciler.compute(self._semaphore(3), permits, T0)
        assert outcome.status == SemaphoreStatus(in_use=2, available=1, phase=SemaphorePhase.READY)

    def test_full(self):
        permits = [_permit("p1", "a"), _permit("p2", "b")]
        outcome = self.reconciler.compute(self._semaphore(2), permits, T0)
        assert outcome.status.available == 0
        assert outcome.status.phase == SemaphorePhase.FULL

    def test_over_commit_reports_zero_available(self):
        permits = [_permit(f"p{i}", f"h{i}") for i in range(3)]
        outcome = self.reconciler.compute(self._semaphore(2), permits, T0)
        assert outcome.status.in_use == 3
        assert outcome.status.available == 0
        assert outcome.status.phase == SemaphorePhase.FULL

    def test_always_requeues_on_resync_interval(self):
        outcome = self.reconciler.compute(self._semaphore(1), [], T0)
        assert outcome.status.phase == SemaphorePhase.READY
        assert_requeue(outcome.action, seconds(60))

    def test_reconcile_lists_only_own_permits(self):
        store = MemoryObjectStore()
        reconciler = SemaphoreReconciler(store, clock=FakeClock())

        async def scenario():
            await store.create(self._semaphore(3))
            await store.create(_permit("p1", "a"))
            await store.create(_permit("p2", "b", semaphore="other"))
            await reconciler.reconcile(ResourceKey(ResourceKind.SEMAPHORE, "default", "api"))
            return await store.get(ResourceKind.SEMAPHORE, "default", "api")

        semaphore = asyncio.run(scenario())
        assert semaphore.status.in_use == 1
        assert semaphore.status.available == 2


# ============================================================================
# BARRIER
# ============================================================================

class TestBarrierReconciler:
    """Open at the required count; fail at the deadline."""

    def setup_method(self):
        self.reconciler = BarrierReconciler(MemoryObjectStore())

    def _barrier(self, expected=3, quorum=None, timeout=None, status=None) -> Barrier:
        return Barrier(
            metadata=meta("start"),
            spec=BarrierSpec(expected=expected, quorum=quorum, timeout=timeout),
            status=status or BarrierStatus(),
        )

    def test_waiting_without_timeout_polls(self):
        outcome = self.reconciler.compute(self._barrier(), [_arrival("a"), _arrival("b")], T0)
        assert outcome.status.phase == BarrierPhase.WAITING
        assert outcome.status.arrived == 2
        assert outcome.status.arrivals == ["a", "b"]
        assert_requeue(outcome.action, seconds(60))

    def test_waiting_wakes_at_deadline(self):
        barrier = self._barrier(timeout="30s")
        outcome = self.reconciler.compute(barrier, [_arrival("a")], T0 + seconds(10))
        assert_requeue(outcome.action, seconds(20))

    def test_waiting_wake_has_floor(self):
        barrier = self._barrier(timeout="30s")
        outcome = self.reconciler.compute(barrier, [], T0 + seconds(29.9))
        assert_requeue(outcome.action, seconds(1))

    def test_opens_at_quorum(self):
        barrier = self._barrier(expected=3, quorum=2)
        outcome = self.reconciler.compute(barrier, [_arrival("a"), _arrival("b")], T0 + seconds(5))
        assert outcome.status.phase == BarrierPhase.OPEN
        assert outcome.status.opened_at == T0 + seconds(5)
        assert outcome.action.type == ActionType.DONE
        assert outcome.checkpoint == "barrier_opened"

    def test_fails_after_timeout(self):
        barrier = self._barrier(timeout="30s")
        outcome = self.reconciler.compute(barrier, [_arrival("a")], T0 + seconds(31))
        assert outcome.status.phase == BarrierPhase.FAILED
        assert outcome.status.arrived == 1
        assert outcome.action.type == ActionType.DONE

    def test_late_but_complete_still_opens(self):
        barrier = self._barrier(expected=2, timeout="30s")
        outcome = self.reconciler.compute(barrier, [_arrival("a"), _arrival("b")], T0 + seconds(60))
        assert outcome.status.phase == BarrierPhase.OPEN

    def test_open_is_terminal_and_keeps_its_count(self):
        opened = BarrierStatus(arrived=3, arrivals=["a", "b", "c"], phase=BarrierPhase.OPEN, opened_at=T0)
        barrier = self._barrier(status=opened)
        outcome = self.reconciler.compute(barrier, [_arrival("a")], T0 + seconds(100))
        assert outcome.status == opened
        assert outcome.status.arrived >= barrier.spec.required
        assert outcome.action.type == ActionType.DONE

    def test_failed_is_terminal(self):
        failed = BarrierStatus(arrived=1, arrivals=["a"], phase=BarrierPhase.FAILED)
        barrier = self._barrier(status=failed)
        outcome = self.reconciler.compute(barrier, [_arrival(h) for h in "abc"], T0)
        assert outcome.status == failed
        assert outcome.status.arrived < barrier.spec.required


# ============================================================================
# LEASE
# ============================================================================

class TestSelectRequest:
    """Highest priority wins; ties go to the first listed."""

    def test_highest_priority(self):
        requests = [_request("r1", "a", 1), _request("r2", "b", 5), _request("r3", "c", 3)]
        assert select_request(requests).spec.holder == "b"

    def test_tie_goes_to_first(self):
        requests = [_request("r1", "a", 5), _request("r2", "b", 5)]
        assert select_request(requests).spec.holder == "a"

    def test_default_priority_applies_to_unset(self):
        requests = [_request("r1", "a", 5), _request("r2", "b", None)]
        assert select_request(requests, default_priority=10).spec.holder == "b"
        assert select_request(requests).spec.holder == "a"

    def test_negative_priorities(self):
        requests = [_request("r1", "a", -5), _request("r2", "b", -1)]
        assert select_request(requests).spec.holder == "b"

    def test_non_pending_ignored(self):
        requests = [
            _request("r1", "a", 9, phase=LeaseRequestPhase.GRANTED),
            _request("r2", "b", 9, phase=LeaseRequestPhase.DENIED),
        ]
        assert select_request(requests) is None


class TestLeaseReconciler:
    """Expire, then grant while available."""

    def setup_method(self):
        self.reconciler = LeaseReconciler(MemoryObjectStore())

    def _lease(self, status=None, priority=None) -> Lease:
        return Lease(
            metadata=meta("leader"),
            spec=LeaseSpec(ttl="30s", priority=priority),
            status=status or LeaseStatus(),
        )

    def test_available_without_requests(self):
        outcome = self.reconciler.compute(self._lease(), [], T0)
        assert outcome.status.phase == LeasePhase.AVAILABLE
        assert outcome.secondary_writes == []
        assert_requeue(outcome.action, seconds(60))

    def test_grants_highest_priority(self):
        requests = [_request("r1", "a", 1), _request("r2", "b", 5)]
        outcome = self.reconciler.compute(self._lease(), requests, T0)

        assert outcome.status.holder == "b"
        assert outcome.status.phase == LeasePhase.HELD
        assert outcome.status.acquired_at == T0
        assert outcome.status.expires_at == T0 + seconds(30)
        assert outcome.checkpoint == "lease_granted"
        assert_requeue(outcome.action, seconds(30))

        (write,) = outcome.secondary_writes
        assert write.resource.name == "r2"
        assert write.resource.status.phase == LeaseRequestPhase.GRANTED

    def test_held_is_not_regranted(self):
        held = LeaseStatus(holder="a", acquired_at=T0, expires_at=T0 + seconds(30), phase=LeasePhase.HELD)
        outcome = self.reconciler.compute(self._lease(held), [_request("r2", "b", 100)], T0 + seconds(10))
        assert outcome.status.holder == "a"
        assert outcome.secondary_writes == []
        assert_requeue(outcome.action, seconds(20))

    def test_expired_is_regranted_in_same_pass(self):
        held = LeaseStatus(holder="a", acquired_at=T0, expires_at=T0 + seconds(30), phase=LeasePhase.HELD)
        now = T0 + seconds(31)
        outcome = self.reconciler.compute(self._lease(held), [_request("r2", "b")], now)
        assert outcome.status.holder == "b"
        assert outcome.status.acquired_at == now
        assert outcome.status.renew_count == 0
        assert outcome.status.phase == LeasePhase.HELD

    def test_expired_without_requests_becomes_available(self):
        held = LeaseStatus(holder="a", expires_at=T0, renew_count=3, phase=LeasePhase.HELD)
        outcome = self.reconciler.compute(self._lease(held), [], T0 + seconds(1))
        assert outcome.status.holder == ""
        assert outcome.status.expires_at is None
        assert outcome.status.phase == LeasePhase.AVAILABLE
        assert outcome.checkpoint == "lease_expired"

    def test_lease_priority_is_request_default(self):
        requests = [_request("r1", "a", 3), _request("r2", "b")]
        outcome = self.reconciler.compute(self._lease(priority=7), requests, T0)
        assert outcome.status.holder == "b"

    def test_reconcile_writes_lease_and_request(self):
        store = MemoryObjectStore()
        reconciler = LeaseReconciler(store, clock=FakeClock())

        async def scenario():
            await store.create(self._lease())
            await store.create(_request("r1", "a"))
            await reconciler.reconcile(ResourceKey(ResourceKind.LEASE, "default", "leader"))
            lease = await store.get(ResourceKind.LEASE, "default", "leader")
            request = await store.get(ResourceKind.LEASE_REQUEST, "default", "r1")
            return lease, request

        lease, request = asyncio.run(scenario())
        assert lease.status.holder == "a"
        assert request.status.phase == LeaseRequestPhase.GRANTED

    def test_failed_request_update_does_not_undo_grant(self):
        store = FailingStore(ResourceKind.LEASE_REQUEST)
        reconciler = LeaseReconciler(store, clock=FakeClock())

        async def scenario():
            await store.create(self._lease())
            await store.create(_request("r1", "a"))
            action = await reconciler.reconcile(ResourceKey(ResourceKind.LEASE, "default", "leader"))
            lease = await store.get(ResourceKind.LEASE, "default", "leader")
            request = await store.get(ResourceKind.LEASE_REQUEST, "default", "r1")
            return action, lease, request

        action, lease, request = asyncio.run(scenario())
        assert action.type == ActionType.REQUEUE
        assert lease.status.holder == "a"
        assert request.status.phase == LeaseRequestPhase.PENDING


# ============================================================================
# GATE
# ============================================================================

class TestGateReconciler:
    """Conditions evaluated against live resources."""

    def setup_method(self):
        self.store = MemoryObjectStore()
        self.clock = FakeClock()
        self.reconciler = GateReconciler(self.store, clock=self.clock)

    def _run(self, gate: Gate, *others) -> Gate:
        async def scenario():
            for resource in others:
                await self.store.create(resource)
            await self.store.create(gate)
            self.action = await self.reconciler.reconcile(gate.key)
            return await self.store.get(ResourceKind.GATE, gate.namespace, gate.name)
        return asyncio.run(scenario())

    def _gate(self, conditions, timeout=None, namespace="default") -> Gate:
        return Gate(
            metadata=meta("deploy", namespace=namespace),
            spec=GateSpec.model_validate({"conditions": conditions, "timeout": timeout}),
        )

    def test_no_conditions_opens(self):
        gate = self._run(self._gate([]))
        assert gate.status.phase == GatePhase.OPEN
        assert gate.status.opened_at == T0
        assert self.action.type == ActionType.DONE

    def test_semaphore_short_of_value(self):
        semaphore = Semaphore(
            metadata=meta("api"),
            spec=SemaphoreSpec(permits=5),
            status=SemaphoreStatus(in_use=3, available=2, phase=SemaphorePhase.READY),
        )
        gate = self._run(self._gate([{"type": "Semaphore", "name": "api", "value": 3}]), semaphore)
        assert gate.status.phase == GatePhase.WAITING
        (condition,) = gate.status.condition_statuses
        assert condition.met is False
        assert "2 available" in condition.message
        assert_requeue(self.action, seconds(10))

    def test_semaphore_value_required(self):
        semaphore = Semaphore(metadata=meta("api"), spec=SemaphoreSpec(permits=5))
        gate = self._run(self._gate([{"type": "Semaphore", "name": "api"}]), semaphore)
        assert gate.status.condition_statuses[0].met is False
        assert "requires a value" in gate.status.condition_statuses[0].message

    def test_all_kinds_met(self):
        job = Job(metadata=meta("etl"), status=JobStatus(succeeded=1))
        barrier = Barrier(
            metadata=meta("start"),
            spec=BarrierSpec(expected=1),
            status=BarrierStatus(arrived=1, phase=BarrierPhase.OPEN),
        )
        lease = Lease(metadata=meta("leader"), spec=LeaseSpec(ttl="30s"), status=LeaseStatus(phase=LeasePhase.AVAILABLE))
        semaphore = Semaphore(
            metadata=meta("api"),
            spec=SemaphoreSpec(permits=3),
            status=SemaphoreStatus(available=3, phase=SemaphorePhase.READY),
        )
        gate = self._run(
            self._gate([
                {"type": "Job", "name": "etl"},
                {"type": "Barrier", "name": "start"},
                {"type": "Lease", "name": "leader"},
                {"type": "Semaphore", "name": "api", "value": 3},
            ]),
            job, barrier, lease, semaphore,
        )
        assert gate.status.phase == GatePhase.OPEN
        assert all(c.met for c in gate.status.condition_statuses)

    def test_missing_resource_is_unmet_not_error(self):
        gate = self._run(self._gate([{"type": "Job", "name": "ghost"}]))
        assert gate.status.phase == GatePhase.WAITING
        assert "not found" in gate.status.condition_statuses[0].message

    def test_unknown_condition_is_unmet(self):
        gate = self._run(self._gate([{"type": "Pod", "name": "web-0"}]))
        (condition,) = gate.status.condition_statuses
        assert condition.met is False
        assert condition.type == "Pod"
        assert "Unknown condition type" in condition.message

    def test_condition_namespace_defaults_to_gate(self):
        job = Job(metadata=meta("etl", namespace="batch"), status=JobStatus(succeeded=1))
        gate = self._run(self._gate([{"type": "Job", "name": "etl"}], namespace="batch"), job)
        assert gate.status.phase == GatePhase.OPEN

    def test_condition_namespace_override(self):
        job = Job(metadata=meta("etl", namespace="batch"), status=JobStatus(succeeded=1))
        gate = self._run(self._gate([{"type": "Job", "name": "etl", "namespace": "batch"}]), job)
        assert gate.status.phase == GatePhase.OPEN

    def test_barrier_not_yet_reconciled(self):
        barrier = Barrier(metadata=meta("start"), spec=BarrierSpec(expected=2))
        gate = self._run(self._gate([{"type": "Barrier", "name": "start"}]), barrier)
        assert "not yet reconciled" in gate.status.condition_statuses[0].message

    def test_fails_after_timeout(self):
        self.clock.advance(61)
        gate = self._run(self._gate([{"type": "Job", "name": "ghost"}], timeout="1m"))
        assert gate.status.phase == GatePhase.FAILED
        assert self.action.type == ActionType.DONE

    def test_polls_faster_near_deadline(self):
        self.clock.advance(50)
        self._run(self._gate([{"type": "Job", "name": "ghost"}], timeout="60s"))
        assert_requeue(self.action, seconds(1))

    def test_poll_capped_for_long_timeouts(self):
        self._run(self._gate([{"type": "Job", "name": "ghost"}], timeout="1h"))
        assert_requeue(self.action, seconds(30))


class TestScheduling:
    """Wake-up helpers."""

    def test_adaptive_poll_fraction(self):
        delay = adaptive_poll(T0 + seconds(100), T0, seconds(10), 0.1, seconds(1), seconds(30))
        assert delay == seconds(10)

    def test_adaptive_poll_without_deadline(self):
        assert adaptive_poll(None, T0, seconds(10), 0.1, seconds(1), seconds(30)) == seconds(10)

    def test_poll_or_deadline_past_deadline(self):
        assert poll_or_deadline(seconds(60), T0 - seconds(5), T0, seconds(1)) == seconds(1)


# ============================================================================
# ONCE / WAITGROUP
# ============================================================================

class TestLatchReconcilers:
    """Phase mirrors the client-written field."""

    def test_once_pending_and_executed(self):
        reconciler = OnceReconciler(MemoryObjectStore())
        pending = reconciler.compute(Once(metadata=meta("init")), None, T0)
        assert pending.status.phase == OncePhase.PENDING

        executed = reconciler.compute(
            Once(metadata=meta("init"), status=OnceStatus(executed=True, executor="a")), None, T0
        )
        assert executed.status.phase == OncePhase.EXECUTED
        assert executed.status.executor == "a"
        assert executed.checkpoint == "once_executed"

    @pytest.mark.parametrize("counter,phase", [
        (0, WaitGroupPhase.DONE),
        (2, WaitGroupPhase.WAITING),
        (-1, WaitGroupPhase.DONE),
    ])
    def test_waitgroup_phase(self, counter, phase):
        reconciler = WaitGroupReconciler(MemoryObjectStore())
        wg = WaitGroup(metadata=meta("batch"), status=WaitGroupStatus(counter=counter))
        outcome = reconciler.compute(wg, None, T0)
        assert outcome.status.phase == phase
        assert outcome.status.counter == counter
        assert outcome.action.type == ActionType.DONE


# ============================================================================
# RECONCILE WRAPPER
# ============================================================================

class TestReconcileWrapper:
    """The async write path shared by every reconciler."""

    def test_missing_resource_is_done(self):
        reconciler = MutexReconciler(MemoryObjectStore())
        action = asyncio.run(reconciler.reconcile(ResourceKey(ResourceKind.MUTEX, "default", "gone")))
        assert action.type == ActionType.DONE

    def test_second_reconcile_writes_nothing(self):
        store = MemoryObjectStore()
        reconciler = WaitGroupReconciler(store)

        async def scenario():
            await store.create(WaitGroup(metadata=meta("batch"), status=WaitGroupStatus(counter=2)))
            key = ResourceKey(ResourceKind.WAITGROUP, "default", "batch")
            await reconciler.reconcile(key)
            first = await store.get(*key)
            await reconciler.reconcile(key)
            second = await store.get(*key)
            return first, second

        first, second = asyncio.run(scenario())
        assert first.status.phase == WaitGroupPhase.WAITING
        assert first.metadata.resource_version == 2
        assert second.metadata.resource_version == 2

    def test_conflict_propagates(self):
        store = ConflictingStore(conflicts=1)
        reconciler = OnceReconciler(store)

        async def scenario():
            await store.create(Once(metadata=meta("init")))
            await reconciler.reconcile(ResourceKey(ResourceKind.ONCE, "default", "init"))

        with pytest.raises(ConflictError):
            asyncio.run(scenario())

    def test_registry_covers_every_primitive(self):
        registry = build_registry(MemoryObjectStore())
        assert set(registry.kinds()) == {
            ResourceKind.MUTEX, ResourceKind.RWMUTEX, ResourceKind.SEMAPHORE,
            ResourceKind.BARRIER, ResourceKind.LEASE, ResourceKind.GATE,
            ResourceKind.ONCE, ResourceKind.WAITGROUP,
        }
        assert ResourceKind.PERMIT not in registry
