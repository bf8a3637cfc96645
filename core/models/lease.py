# ============================================================================
# LEASE / LEASE REQUEST MODELS
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Priority-arbitrated exclusive lease
# PURPOSE: Lease with TTL for crash-safe exclusive ownership
# LAST_REVIEWED: 17 OCT 2026
# EXPORTS: Lease, LeaseSpec, LeaseStatus, LeaseRequest, LeaseRequestSpec, LeaseRequestStatus
# DEPENDENCIES: pydantic
# ============================================================================
"""
Lease and LeaseRequest Models

Clients ask for a lease by creating a LeaseRequest labelled
`lease=<lease name>`. While the lease is free, the reconciler grants it to
the highest-priority pending request.

Key properties:
- Lease expires automatically if not renewed within TTL
- A new holder can be granted as soon as the old one expires
- Release clears the holder explicitly
- The Lease status is authoritative; a request's Granted phase may lag
"""

from datetime import datetime
from typing import ClassVar, Optional

from pydantic import BaseModel, Field

from core.contracts import LeasePhase, LeaseRequestPhase, ResourceKind
from core.models.resource import Duration, Resource, Timestamp


class LeaseSpec(BaseModel):
    """Lease configuration."""
    ttl: Duration = Field(..., description="How long a grant lasts without renewal")
    priority: Optional[int] = Field(
        default=None,
        description="Priority assumed for requests that do not set one"
    )


class LeaseStatus(BaseModel):
    """
    Observed lease ownership.

    Invariant: holder != "" <=> phase == HELD
    """
    holder: str = Field(default="", max_length=253)
    acquired_at: Optional[Timestamp] = None
    expires_at: Optional[Timestamp] = None
    renew_count: int = Field(default=0, ge=0)
    phase: Optional[LeasePhase] = None

    def is_expired(self, now: datetime) -> bool:
        """
        Check if the current grant has expired.

        Args:
            now: Current time

        Returns:
            True if an expiry is recorded and has passed
        """
        return self.expires_at is not None and self.expires_at <= now


class Lease(Resource):
    """Exclusive, priority-arbitrated lease."""

    KIND: ClassVar[ResourceKind] = ResourceKind.LEASE

    spec: LeaseSpec
    status: LeaseStatus = Field(default_factory=LeaseStatus)


class LeaseRequestSpec(BaseModel):
    """A client's bid for a lease."""
    lease: str = Field(..., min_length=1, max_length=253)
    holder: str = Field(..., min_length=1, max_length=253)
    priority: Optional[int] = Field(default=None, description="Higher wins")
    ttl: Optional[Duration] = Field(
        default=None,
        description="Lifetime of the request object itself (garbage collection)"
    )


class LeaseRequestStatus(BaseModel):
    """Request state."""
    phase: Optional[LeaseRequestPhase] = None
    requested_at: Optional[Timestamp] = None

    @property
    def is_pending(self) -> bool:
        return self.phase in (None, LeaseRequestPhase.PENDING)


class LeaseRequest(Resource):
    """A pending bid for a Lease (child of Lease)."""

    KIND: ClassVar[ResourceKind] = ResourceKind.LEASE_REQUEST

    spec: LeaseRequestSpec
    status: LeaseRequestStatus = Field(default_factory=LeaseRequestStatus)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "LeaseSpec",
    "LeaseStatus",
    "Lease",
    "LeaseRequestSpec",
    "LeaseRequestStatus",
    "LeaseRequest",
]
