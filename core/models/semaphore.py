# ============================================================================
# SEMAPHORE / PERMIT MODELS
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core model - Counting semaphore and its permits
# PURPOSE: Capacity-limited access expressed as parent + child resources
# LAST_REVIEWED: 17 OCT 2026
# EXPORTS: Semaphore, SemaphoreSpec, SemaphoreStatus, Permit, PermitSpec, PermitStatus
# DEPENDENCIES: pydantic
# ============================================================================
"""
Semaphore and Permit Models

A Semaphore is the parent; each held permit is a Permit child labelled
`semaphore=<semaphore name>`. Granting is implicit in the existence of an
unexpired Permit. The Semaphore reconciler only counts.
"""

from datetime import datetime
from typing import ClassVar, Optional

from pydantic import BaseModel, Field

from core.contracts import PermitPhase, ResourceKind, SemaphorePhase
from core.models.resource import Duration, Resource, Timestamp


class SemaphoreSpec(BaseModel):
    """Semaphore configuration."""
    permits: int = Field(..., ge=1, le=2**31 - 1, description="Maximum concurrent holders")
    ttl: Optional[Duration] = Field(
        default=None,
        description="Default TTL applied to permits acquired without one"
    )


class SemaphoreStatus(BaseModel):
    """Observed semaphore usage."""
    in_use: int = Field(default=0, ge=0)
    available: int = Field(default=0, ge=0)
    phase: Optional[SemaphorePhase] = None


class Semaphore(Resource):
    """Counting semaphore."""

    KIND: ClassVar[ResourceKind] = ResourceKind.SEMAPHORE

    spec: SemaphoreSpec
    status: SemaphoreStatus = Field(default_factory=SemaphoreStatus)


class PermitSpec(BaseModel):
    """Permit request details."""
    semaphore: str = Field(..., min_length=1, max_length=253)
    holder: str = Field(..., min_length=1, max_length=253)
    ttl: Optional[Duration] = None


class PermitStatus(BaseModel):
    """Permit state, written by the acquiring client."""
    phase: Optional[PermitPhase] = None
    acquired_at: Optional[Timestamp] = None
    expires_at: Optional[Timestamp] = None

    def is_live(self, now: datetime) -> bool:
        """A permit counts as in use unless it carries an expiry in the past."""
        return self.expires_at is None or self.expires_at > now


class Permit(Resource):
    """One held semaphore permit (child of Semaphore)."""

    KIND: ClassVar[ResourceKind] = ResourceKind.PERMIT

    spec: PermitSpec
    status: PermitStatus = Field(default_factory=PermitStatus)


__all__ = [
    "SemaphoreSpec",
    "SemaphoreStatus",
    "Semaphore",
    "PermitSpec",
    "PermitStatus",
    "Permit",
]
