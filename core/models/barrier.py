# ============================================================================
# BARRIER / ARRIVAL MODELS
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core model - Rendezvous barrier and its arrivals
# PURPOSE: Fixed-count or quorum rendezvous with optional timeout
# LAST_REVIEWED: 17 OCT 2026
# EXPORTS: Barrier, BarrierSpec, BarrierStatus, Arrival, ArrivalSpec, ArrivalStatus
# DEPENDENCIES: pydantic
# ============================================================================
"""
Barrier and Arrival Models

Each participant creates one Arrival labelled `barrier=<barrier name>`.
Arrivals are append-only by convention. The barrier opens when the
required number have arrived and fails if its timeout passes first.
"""

from datetime import datetime
from typing import ClassVar, List, Optional

from pydantic import BaseModel, Field, model_validator

from core.contracts import ArrivalPhase, BarrierPhase, ResourceKind
from core.models.resource import Duration, Resource, Timestamp


class BarrierSpec(BaseModel):
    """Barrier configuration."""
    expected: int = Field(..., ge=1, description="Number of participants")
    quorum: Optional[int] = Field(
        default=None,
        ge=1,
        description="Open once this many arrive (must not exceed expected)"
    )
    timeout: Optional[Duration] = Field(
        default=None,
        description="Fail if not open this long after creation"
    )

    @model_validator(mode="after")
    def _quorum_within_expected(self) -> "BarrierSpec":
        if self.quorum is not None and self.quorum > self.expected:
            raise ValueError(f"quorum ({self.quorum}) cannot exceed expected ({self.expected})")
        return self

    @property
    def required(self) -> int:
        """Arrivals needed to open."""
        return self.quorum if self.quorum is not None else self.expected


class BarrierStatus(BaseModel):
    """Observed barrier state."""
    arrived: int = Field(default=0, ge=0)
    arrivals: List[str] = Field(
        default_factory=list,
        description="Holder names in arrival order"
    )
    phase: Optional[BarrierPhase] = None
    opened_at: Optional[Timestamp] = None


class Barrier(Resource):
    """Rendezvous barrier."""

    KIND: ClassVar[ResourceKind] = ResourceKind.BARRIER

    spec: BarrierSpec
    status: BarrierStatus = Field(default_factory=BarrierStatus)

    def deadline(self) -> Optional[datetime]:
        """Creation time + timeout, if a timeout is configured."""
        if self.spec.timeout is None:
            return None
        return self.metadata.creation_timestamp + self.spec.timeout


class ArrivalSpec(BaseModel):
    """Who arrived where."""
    barrier: str = Field(..., min_length=1, max_length=253)
    holder: str = Field(..., min_length=1, max_length=253)


class ArrivalStatus(BaseModel):
    """Arrival record."""
    phase: Optional[ArrivalPhase] = None
    arrived_at: Optional[Timestamp] = None


class Arrival(Resource):
    """One participant's arrival (child of Barrier)."""

    KIND: ClassVar[ResourceKind] = ResourceKind.ARRIVAL

    spec: ArrivalSpec
    status: ArrivalStatus = Field(default_factory=ArrivalStatus)


__all__ = [
    "BarrierSpec",
    "BarrierStatus",
    "Barrier",
    "ArrivalSpec",
    "ArrivalStatus",
    "Arrival",
]
