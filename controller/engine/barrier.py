# ============================================================================
# BARRIER RECONCILER
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Rendezvous evaluation
# PURPOSE: Count Arrivals and open, fail or keep waiting
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Barrier Reconciler

Rules, evaluated in order on every reconcile:

    1. timeout set, now > created + timeout, arrived < required -> Failed
    2. arrived >= required                                    -> Open
    3. otherwise                                              -> Waiting

Open and Failed are terminal. Once reached the stored status is left as it
was, so `arrived` keeps the count that decided the phase.
"""

import logging
from datetime import datetime
from typing import List

from core.contracts import BarrierPhase, ResourceKind
from core.models import Arrival, Barrier
from controller.engine.base import NextAction, ReconcileOutcome, Reconciler
from controller.engine.scheduling import poll_or_deadline

logger = logging.getLogger(__name__)


class BarrierReconciler(Reconciler):
    """Evaluate a barrier against its Arrival children."""

    kind = ResourceKind.BARRIER

    async def fetch_related(self, resource: Barrier) -> List[Arrival]:
        return await self.children.children(resource)

    def compute(self, resource: Barrier, related: List[Arrival], now: datetime) -> ReconcileOutcome:
        status = resource.status.model_copy(deep=True)
        if status.phase is not None and status.phase.is_terminal():
            return ReconcileOutcome(status=status, action=NextAction.done())

        arrivals = related or []
        status.arrived = len(arrivals)
        status.arrivals = [arrival.spec.holder for arrival in arrivals]

        required = resource.spec.required
        deadline = resource.deadline()

        if deadline is not None and now > deadline and status.arrived < required:
            logger.info(f"Timed out with {status.arrived}/{required} arrivals")
            status.phase = BarrierPhase.FAILED
            return ReconcileOutcome(status=status, action=NextAction.done(), checkpoint="barrier_failed")

        if status.arrived >= required:
            status.phase = BarrierPhase.OPEN
            if status.opened_at is None:
                status.opened_at = now
            logger.info(f"Opened with {status.arrived}/{required} arrivals")
            return ReconcileOutcome(status=status, action=NextAction.done(), checkpoint="barrier_opened")

        status.phase = BarrierPhase.WAITING
        delay = poll_or_deadline(
            self.defaults.barrier_poll, deadline, now, self.defaults.min_requeue
        )
        return ReconcileOutcome(status=status, action=NextAction.requeue_after(delay))


__all__ = ["BarrierReconciler"]
