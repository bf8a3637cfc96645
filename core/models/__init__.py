# ============================================================================
# MODELS MODULE
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Model exports
# PURPOSE: Central export point for all resource models
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Models Module - Central Export Point

All pydantic resource models for the sync primitives controller.

RESOURCE_TYPES maps each ResourceKind to its model class. Stores use it to
rebuild typed resources from rows; it is an immutable lookup table, not a
registry of behaviour.
"""

from types import MappingProxyType
from typing import Mapping, Type

from core.contracts import ResourceKind
from core.models.resource import Duration, Timestamp, ObjectMeta, Resource, ResourceKey
from core.models.mutex import Mutex, MutexSpec, MutexStatus, RWMutex, RWMutexSpec, RWMutexStatus
from core.models.semaphore import (
    Semaphore, SemaphoreSpec, SemaphoreStatus, Permit, PermitSpec, PermitStatus,
)
from core.models.barrier import (
    Barrier, BarrierSpec, BarrierStatus, Arrival, ArrivalSpec, ArrivalStatus,
)
from core.models.lease import (
    Lease, LeaseSpec, LeaseStatus, LeaseRequest, LeaseRequestSpec, LeaseRequestStatus,
)
from core.models.gate import (
    Gate,
    GateSpec,
    GateStatus,
    GateCondition,
    GateConditionStatus,
    JobCondition,
    SemaphoreCondition,
    BarrierCondition,
    LeaseCondition,
    UnknownCondition,
)
from core.models.latch import Once, OnceSpec, OnceStatus, WaitGroup, WaitGroupSpec, WaitGroupStatus
from core.models.job import Job, JobStatus

RESOURCE_TYPES: Mapping[ResourceKind, Type[Resource]] = MappingProxyType({
    cls.KIND: cls
    for cls in (
        Mutex, RWMutex, Semaphore, Permit, Barrier, Arrival,
        Lease, LeaseRequest, Gate, Once, WaitGroup, Job,
    )
})


def model_for(kind: ResourceKind) -> Type[Resource]:
    """Model class for a kind."""
    return RESOURCE_TYPES[ResourceKind(kind)]


__all__ = [
    # Envelope
    "Duration",
    "Timestamp",
    "ObjectMeta",
    "Resource",
    "ResourceKey",
    "RESOURCE_TYPES",
    "model_for",
    # Locks
    "Mutex", "MutexSpec", "MutexStatus",
    "RWMutex", "RWMutexSpec", "RWMutexStatus",
    # Semaphore
    "Semaphore", "SemaphoreSpec", "SemaphoreStatus",
    "Permit", "PermitSpec", "PermitStatus",
    # Barrier
    "Barrier", "BarrierSpec", "BarrierStatus",
    "Arrival", "ArrivalSpec", "ArrivalStatus",
    # Lease
    "Lease", "LeaseSpec", "LeaseStatus",
    "LeaseRequest", "LeaseRequestSpec", "LeaseRequestStatus",
    # Gate
    "Gate", "GateSpec", "GateStatus", "GateCondition", "GateConditionStatus",
    "JobCondition", "SemaphoreCondition", "BarrierCondition", "LeaseCondition",
    "UnknownCondition",
    # Latches
    "Once", "OnceSpec", "OnceStatus",
    "WaitGroup", "WaitGroupSpec", "WaitGroupStatus",
    # External
    "Job", "JobStatus",
]
