# ============================================================================
# MUTEX / RWMUTEX MODELS
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core model - Exclusive and read/write locks
# PURPOSE: Lock resources with optional TTL
# LAST_REVIEWED: 17 OCT 2026
# EXPORTS: Mutex, MutexSpec, MutexStatus, RWMutex, RWMutexSpec, RWMutexStatus
# DEPENDENCIES: pydantic
# ============================================================================
"""
Mutex and RWMutex Models

Acquire and release are client-side status patches protected by the
store's conditional write. The controller only normalises phase and
enforces TTL expiry.
"""

from typing import ClassVar, List, Optional

from pydantic import BaseModel, Field

from core.contracts import MutexPhase, ResourceKind, RWMutexPhase
from core.models.resource import Duration, Resource, Timestamp


class MutexSpec(BaseModel):
    """Mutex configuration."""
    ttl: Optional[Duration] = Field(
        default=None,
        description="Lock expires this long after it is taken"
    )


class MutexStatus(BaseModel):
    """
    Observed mutex state.

    Invariant: holder != "" <=> phase == LOCKED
    """
    holder: str = Field(default="", max_length=253)
    locked_at: Optional[Timestamp] = None
    expires_at: Optional[Timestamp] = None
    phase: MutexPhase = Field(default=MutexPhase.UNLOCKED)

    @property
    def is_locked(self) -> bool:
        return bool(self.holder)


class Mutex(Resource):
    """Exclusive lock."""

    KIND: ClassVar[ResourceKind] = ResourceKind.MUTEX

    spec: MutexSpec = Field(default_factory=MutexSpec)
    status: MutexStatus = Field(default_factory=MutexStatus)


class RWMutexSpec(BaseModel):
    """RWMutex configuration."""
    ttl: Optional[Duration] = None


class RWMutexStatus(BaseModel):
    """
    Observed read/write lock state.

    write_holder and read_holders are never both non-empty. This is upheld
    by clients retrying conditional writes, not by the controller.
    """
    write_holder: str = Field(default="", max_length=253)
    read_holders: List[str] = Field(default_factory=list)
    locked_at: Optional[Timestamp] = None
    expires_at: Optional[Timestamp] = None
    phase: RWMutexPhase = Field(default=RWMutexPhase.UNLOCKED)

    @property
    def has_conflict(self) -> bool:
        """Both a writer and readers recorded (invariant violated)."""
        return bool(self.write_holder) and bool(self.read_holders)


class RWMutex(Resource):
    """Read/write lock."""

    KIND: ClassVar[ResourceKind] = ResourceKind.RWMUTEX

    spec: RWMutexSpec = Field(default_factory=RWMutexSpec)
    status: RWMutexStatus = Field(default_factory=RWMutexStatus)


__all__ = [
    "MutexSpec",
    "MutexStatus",
    "Mutex",
    "RWMutexSpec",
    "RWMutexStatus",
    "RWMutex",
]
