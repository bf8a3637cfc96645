# ============================================================================
# LATCH RECONCILERS
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Mutex, RWMutex, Once, WaitGroup
# PURPOSE: Phase projection and TTL expiry for client-driven primitives
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Latch Reconcilers

For these four primitives the clients do the real work: they set holders,
flip `executed` or move the counter through conditional status writes. The
reconcilers only keep `phase` consistent with those fields and, for the
locks, clear holders whose TTL has run out.
"""

import logging
from datetime import datetime

from core.contracts import MutexPhase, OncePhase, ResourceKind, RWMutexPhase, WaitGroupPhase
from core.models import (
    Mutex,
    MutexStatus,
    Once,
    RWMutex,
    RWMutexStatus,
    WaitGroup,
)
from controller.engine.base import NextAction, ReconcileOutcome, Reconciler
from controller.engine.scheduling import until

logger = logging.getLogger(__name__)


class MutexReconciler(Reconciler):
    """Expire stale holders and derive Locked/Unlocked."""

    kind = ResourceKind.MUTEX

    def compute(self, resource: Mutex, related, now: datetime) -> ReconcileOutcome:
        current = resource.status

        if current.expires_at is not None and current.expires_at <= now:
            logger.info(f"Lock held by {current.holder or '<none>'} expired at {current.expires_at.isoformat()}")
            return ReconcileOutcome(
                status=MutexStatus(phase=MutexPhase.UNLOCKED),
                action=NextAction.done(),
                checkpoint="mutex_expired",
            )

        status = current.model_copy(deep=True)
        status.phase = MutexPhase.LOCKED if status.holder else MutexPhase.UNLOCKED

        if status.holder and status.expires_at is not None:
            action = NextAction.requeue_after(until(status.expires_at, now, self.defaults.min_requeue))
        else:
            action = NextAction.done()

        return ReconcileOutcome(status=status, action=action)


class RWMutexReconciler(Reconciler):
    """Expire stale holders and derive Unlocked/ReadLocked/WriteLocked."""

    kind = ResourceKind.RWMUTEX

    def compute(self, resource: RWMutex, related, now: datetime) -> ReconcileOutcome:
        current = resource.status

        if current.expires_at is not None and current.expires_at <= now:
            logger.info(
                f"RW lock expired at {current.expires_at.isoformat()} "
                f"(writer={current.write_holder or '<none>'}, readers={len(current.read_holders)})"
            )
            return ReconcileOutcome(
                status=RWMutexStatus(phase=RWMutexPhase.UNLOCKED),
                action=NextAction.done(),
                checkpoint="rwmutex_expired",
            )

        status = current.model_copy(deep=True)
        if status.write_holder:
            if status.read_holders:
                logger.warning(
                    f"Writer {status.write_holder} and readers {status.read_holders} "
                    f"both recorded; reporting WriteLocked"
                )
            status.phase = RWMutexPhase.WRITE_LOCKED
        elif status.read_holders:
            status.phase = RWMutexPhase.READ_LOCKED
        else:
            status.phase = RWMutexPhase.UNLOCKED

        held = status.phase != RWMutexPhase.UNLOCKED
        if held and status.expires_at is not None:
            action = NextAction.requeue_after(until(status.expires_at, now, self.defaults.min_requeue))
        else:
            action = NextAction.done()

        return ReconcileOutcome(status=status, action=action)


class OnceReconciler(Reconciler):
    """Keep phase equal to the executed flag."""

    kind = ResourceKind.ONCE

    def compute(self, resource: Once, related, now: datetime) -> ReconcileOutcome:
        status = resource.status.model_copy(deep=True)
        status.phase = OncePhase.EXECUTED if status.executed else OncePhase.PENDING

        checkpoint = None
        if status.phase == OncePhase.EXECUTED and resource.status.phase != OncePhase.EXECUTED:
            checkpoint = "once_executed"

        return ReconcileOutcome(status=status, action=NextAction.done(), checkpoint=checkpoint)


class WaitGroupReconciler(Reconciler):
    """Done when the counter reaches zero (or below)."""

    kind = ResourceKind.WAITGROUP

    def compute(self, resource: WaitGroup, related, now: datetime) -> ReconcileOutcome:
        status = resource.status.model_copy(deep=True)
        if status.counter < 0:
            logger.warning(f"Counter is negative ({status.counter}); treating as done")
        status.phase = WaitGroupPhase.DONE if status.counter <= 0 else WaitGroupPhase.WAITING

        checkpoint = None
        if status.phase == WaitGroupPhase.DONE and resource.status.phase != WaitGroupPhase.DONE:
            checkpoint = "waitgroup_done"

        return ReconcileOutcome(status=status, action=NextAction.done(), checkpoint=checkpoint)


__all__ = [
    "MutexReconciler",
    "RWMutexReconciler",
    "OnceReconciler",
    "WaitGroupReconciler",
]
