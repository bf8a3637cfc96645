# ============================================================================
# LEASE RECONCILER
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Priority-arbitrated lease
# PURPOSE: Expire holders and grant the lease to the best pending request
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Lease Reconciler

Each reconcile:

    1. expires_at <= now         -> clear holder, Available
    2. no holder                 -> Available, else Held
    3. Available + pending requests
                                 -> grant to the highest priority request

Priority of a request is its own `priority`, else the lease's
`spec.priority`, else 0. Ties go to the request listed first (creation
order). This is first-seen, not a strict FIFO guarantee across stores.

The grant is two independent writes: the Lease status (authoritative,
conditional) and then the LeaseRequest status set to Granted (best effort).
If the second write fails the request keeps showing Pending; it is not
rolled back and may be granted again after the lease is next free.
"""

import logging
from datetime import datetime
from typing import List, Optional

from core.contracts import LeasePhase, LeaseRequestPhase, ResourceKind
from core.models import Lease, LeaseRequest, LeaseRequestStatus, LeaseStatus
from controller.engine.base import NextAction, ReconcileOutcome, Reconciler, SecondaryWrite
from controller.engine.scheduling import until

logger = logging.getLogger(__name__)


def effective_priority(request: LeaseRequest, default: Optional[int]) -> int:
    """Priority used for arbitration."""
    if request.spec.priority is not None:
        return request.spec.priority
    if default is not None:
        return default
    return 0


def select_request(requests: List[LeaseRequest], default_priority: Optional[int] = None) -> Optional[LeaseRequest]:
    """
    Pick the winning pending request.

    Args:
        requests: Candidate requests in creation order
        default_priority: Lease-level priority for requests without one

    Returns:
        Highest-priority pending request (first wins ties), or None
    """
    best: Optional[LeaseRequest] = None
    best_priority = 0
    for request in requests:
        if not request.status.is_pending:
            continue
        priority = effective_priority(request, default_priority)
        if best is None or priority > best_priority:
            best, best_priority = request, priority
    return best


class LeaseReconciler(Reconciler):
    """Expire and grant a Lease from its LeaseRequest children."""

    kind = ResourceKind.LEASE

    async def fetch_related(self, resource: Lease) -> List[LeaseRequest]:
        return await self.children.children(resource)

    def compute(self, resource: Lease, related: List[LeaseRequest], now: datetime) -> ReconcileOutcome:
        status: LeaseStatus = resource.status.model_copy(deep=True)
        checkpoint = None

        if status.is_expired(now):
            logger.info(f"Lease held by {status.holder or '<none>'} expired")
            status.holder = ""
            status.acquired_at = None
            status.expires_at = None
            checkpoint = "lease_expired"

        status.phase = LeasePhase.HELD if status.holder else LeasePhase.AVAILABLE

        secondary = []
        if status.phase == LeasePhase.AVAILABLE:
            winner = select_request(related or [], resource.spec.priority)
            if winner is not None:
                status.holder = winner.spec.holder
                status.acquired_at = now
                status.expires_at = now + resource.spec.ttl
                status.renew_count = 0
                status.phase = LeasePhase.HELD
                checkpoint = "lease_granted"
                logger.info(
                    f"Granted to {winner.spec.holder} via {winner.name} "
                    f"(priority {effective_priority(winner, resource.spec.priority)})"
                )
                granted = winner.with_status(LeaseRequestStatus(
                    phase=LeaseRequestPhase.GRANTED,
                    requested_at=winner.status.requested_at,
                ))
                secondary.append(SecondaryWrite(granted, reason="lease granted"))

        if status.holder and status.expires_at is not None:
            action = NextAction.requeue_after(until(status.expires_at, now, self.defaults.min_requeue))
        else:
            action = NextAction.requeue_after(self.defaults.lease_fallback)

        return ReconcileOutcome(
            status=status,
            action=action,
            secondary_writes=secondary,
            checkpoint=checkpoint,
        )


__all__ = ["LeaseReconciler", "select_request", "effective_priority"]
