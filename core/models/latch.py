# ============================================================================
# ONCE / WAITGROUP MODELS
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core model - Single-execution latch and dynamic counter
# PURPOSE: Latches whose phase is a projection of client-written state
# LAST_REVIEWED: 17 OCT 2026
# EXPORTS: Once, OnceSpec, OnceStatus, WaitGroup, WaitGroupSpec, WaitGroupStatus
# DEPENDENCIES: pydantic
# ============================================================================
"""
Once and WaitGroup Models

Clients write `executed` (Once) and `counter` (WaitGroup) directly with
retrying conditional writes. The controller only keeps `phase` consistent.
"""

from typing import ClassVar, Optional

from pydantic import BaseModel, Field

from core.contracts import OncePhase, ResourceKind, WaitGroupPhase
from core.models.resource import Duration, Resource, Timestamp

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


class OnceSpec(BaseModel):
    """Once configuration."""
    ttl: Optional[Duration] = None


class OnceStatus(BaseModel):
    """Once latch state."""
    executed: bool = False
    executor: str = Field(default="", max_length=253)
    executed_at: Optional[Timestamp] = None
    phase: Optional[OncePhase] = None


class Once(Resource):
    """Single-execution latch."""

    KIND: ClassVar[ResourceKind] = ResourceKind.ONCE

    spec: OnceSpec = Field(default_factory=OnceSpec)
    status: OnceStatus = Field(default_factory=OnceStatus)


class WaitGroupSpec(BaseModel):
    """WaitGroup configuration."""
    ttl: Optional[Duration] = None


class WaitGroupStatus(BaseModel):
    """WaitGroup counter state."""
    counter: int = Field(default=0, ge=INT32_MIN, le=INT32_MAX)
    phase: Optional[WaitGroupPhase] = None


class WaitGroup(Resource):
    """Dynamic wait counter."""

    KIND: ClassVar[ResourceKind] = ResourceKind.WAITGROUP

    spec: WaitGroupSpec = Field(default_factory=WaitGroupSpec)
    status: WaitGroupStatus = Field(default_factory=WaitGroupStatus)


__all__ = [
    "OnceSpec",
    "OnceStatus",
    "Once",
    "WaitGroupSpec",
    "WaitGroupStatus",
    "WaitGroup",
]
