# ============================================================================
# BASE CONTRACTS & ENUMS
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Foundation - Resource kinds and phase enums
# PURPOSE: Define the kinds, phases and label keys shared by every layer
# LAST_REVIEWED: 17 OCT 2026
# EXPORTS: ResourceKind, *Phase enums, CHILD_LABELS
# DEPENDENCIES: enum
# ============================================================================
"""
Base contracts for the sync primitives controller.

These cross every boundary:
- Store (PostgreSQL rows / in-memory objects)
- Controller (reconcilers, dispatcher)
- Clients (services, HTTP API, CLI)

Phase values are the exact strings written into resource status.
"""

from enum import Enum
from typing import Dict


# ============================================================================
# RESOURCE KINDS
# ============================================================================

class ResourceKind(str, Enum):
    """
    Every resource type held in the object store.

    Primitive kinds are reconciled. Child kinds (Permit, Arrival,
    LeaseRequest) are only listed by their parent's reconciler.
    Job is external and read-only.
    """
    MUTEX = "Mutex"
    RWMUTEX = "RWMutex"
    SEMAPHORE = "Semaphore"
    PERMIT = "Permit"
    BARRIER = "Barrier"
    ARRIVAL = "Arrival"
    LEASE = "Lease"
    LEASE_REQUEST = "LeaseRequest"
    GATE = "Gate"
    ONCE = "Once"
    WAITGROUP = "WaitGroup"
    JOB = "Job"

    def is_child(self) -> bool:
        """Check if this kind is linked to a parent by label."""
        return self in CHILD_LABELS


# Child kind -> (parent kind, label key carrying the parent's name)
CHILD_LABELS: Dict[ResourceKind, tuple] = {
    ResourceKind.PERMIT: (ResourceKind.SEMAPHORE, "semaphore"),
    ResourceKind.ARRIVAL: (ResourceKind.BARRIER, "barrier"),
    ResourceKind.LEASE_REQUEST: (ResourceKind.LEASE, "lease"),
}


# ============================================================================
# PHASE ENUMS
# ============================================================================

class MutexPhase(str, Enum):
    """Mutex lock state."""
    UNLOCKED = "Unlocked"
    LOCKED = "Locked"


class RWMutexPhase(str, Enum):
    """Read/write lock state."""
    UNLOCKED = "Unlocked"
    READ_LOCKED = "ReadLocked"
    WRITE_LOCKED = "WriteLocked"


class SemaphorePhase(str, Enum):
    """Semaphore capacity state."""
    READY = "Ready"      # At least one permit available
    FULL = "Full"        # No permits available


class PermitPhase(str, Enum):
    """Permit state (set by the acquiring client)."""
    GRANTED = "Granted"
    DENIED = "Denied"
    EXPIRED = "Expired"


class BarrierPhase(str, Enum):
    """
    Barrier rendezvous state.

    State transitions:
        WAITING -> OPEN
                -> FAILED (timeout)
    """
    WAITING = "Waiting"
    OPEN = "Open"
    FAILED = "Failed"

    def is_terminal(self) -> bool:
        """Check if this is a terminal state (no further transitions)."""
        return self in (BarrierPhase.OPEN, BarrierPhase.FAILED)


class ArrivalPhase(str, Enum):
    """Arrival state."""
    RECORDED = "Recorded"


class LeasePhase(str, Enum):
    """
    Lease ownership state.

    EXPIRED is transient: an expired lease becomes AVAILABLE in the
    same reconcile and can be granted immediately.
    """
    AVAILABLE = "Available"
    HELD = "Held"
    EXPIRED = "Expired"


class LeaseRequestPhase(str, Enum):
    """LeaseRequest state."""
    PENDING = "Pending"
    GRANTED = "Granted"
    DENIED = "Denied"


class GatePhase(str, Enum):
    """Gate state."""
    WAITING = "Waiting"
    OPEN = "Open"
    FAILED = "Failed"


class OncePhase(str, Enum):
    """Once latch state."""
    PENDING = "Pending"
    EXECUTED = "Executed"


class WaitGroupPhase(str, Enum):
    """WaitGroup state."""
    WAITING = "Waiting"
    DONE = "Done"


class GateConditionType(str, Enum):
    """Condition kinds a Gate knows how to evaluate."""
    JOB = "Job"
    SEMAPHORE = "Semaphore"
    BARRIER = "Barrier"
    LEASE = "Lease"


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ResourceKind",
    "CHILD_LABELS",
    "MutexPhase",
    "RWMutexPhase",
    "SemaphorePhase",
    "PermitPhase",
    "BarrierPhase",
    "ArrivalPhase",
    "LeasePhase",
    "LeaseRequestPhase",
    "GatePhase",
    "OncePhase",
    "WaitGroupPhase",
    "GateConditionType",
]
