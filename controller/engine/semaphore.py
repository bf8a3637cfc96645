# ============================================================================
# SEMAPHORE RECONCILER
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Counting semaphore accounting
# PURPOSE: Count live Permits and report availability
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Semaphore Reconciler

Purely observational. A permit is granted by existing: clients create a
Permit labelled `semaphore=<name>`, and this reconciler counts them.

    in_use    = permits whose expires_at is unset or still in the future
    available = spec.permits - in_use   (reported as 0 when over-committed)
    phase     = Ready if available > 0 else Full

Expired permits are never deleted or patched here; they just stop
counting. The reconciler always requeues on a fixed interval so expiry is
noticed without new events.
"""

import logging
from datetime import datetime
from typing import List

from core.contracts import ResourceKind, SemaphorePhase
from core.models import Permit, Semaphore, SemaphoreStatus
from controller.engine.base import NextAction, ReconcileOutcome, Reconciler

logger = logging.getLogger(__name__)


def count_live(permits: List[Permit], now: datetime) -> int:
    """Number of permits still in use at `now`."""
    return sum(1 for permit in permits if permit.status.is_live(now))


class SemaphoreReconciler(Reconciler):
    """Account for live Permit children."""

    kind = ResourceKind.SEMAPHORE

    async def fetch_related(self, resource: Semaphore) -> List[Permit]:
        return await self.children.children(resource)

    def compute(self, resource: Semaphore, related: List[Permit], now: datetime) -> ReconcileOutcome:
        in_use = count_live(related or [], now)
        available = resource.spec.permits - in_use
        if available < 0:
            logger.warning(
                f"Over-committed: {in_use} live permits for {resource.spec.permits} slots"
            )
            available = 0

        status = SemaphoreStatus(
            in_use=in_use,
            available=available,
            phase=SemaphorePhase.READY if available > 0 else SemaphorePhase.FULL,
        )

        checkpoint = None
        if resource.status.phase != status.phase:
            checkpoint = f"semaphore_{status.phase.value.lower()}"

        return ReconcileOutcome(
            status=status,
            action=NextAction.requeue_after(self.defaults.semaphore_resync),
            checkpoint=checkpoint,
        )


__all__ = ["SemaphoreReconciler", "count_live"]
