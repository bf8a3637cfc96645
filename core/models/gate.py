# ============================================================================
# GATE MODEL
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core model - Composite condition gate
# PURPOSE: Open once every referenced primitive reaches a target state
# LAST_REVIEWED: 17 OCT 2026
# EXPORTS: Gate, GateSpec, GateStatus, GateCondition, GateConditionStatus
# DEPENDENCIES: pydantic
# ============================================================================
"""
Gate Model

A Gate lists typed conditions over other resources:

    Job        - external batch job reached a state (Complete/Failed/Active)
    Semaphore  - semaphore has at least `value` permits available
    Barrier    - barrier phase equals `state` (default Open)
    Lease      - lease phase equals `state` (default Available)

Conditions are a tagged union keyed on `type`. Any other `type` parses as
UnknownCondition so that manifests written for newer controllers still load;
the evaluator reports those as unmet.
"""

from datetime import datetime
from typing import Annotated, Any, ClassVar, List, Literal, Optional, Union

from pydantic import BaseModel, Discriminator, Field, Tag

from core.contracts import (
    BarrierPhase,
    GateConditionType,
    GatePhase,
    LeasePhase,
    ResourceKind,
)
from core.models.resource import Duration, Resource, Timestamp


class _ConditionBase(BaseModel):
    """Fields shared by every condition."""
    name: str = Field(..., min_length=1, max_length=253, description="Referenced resource name")
    namespace: Optional[str] = Field(
        default=None,
        max_length=63,
        description="Defaults to the gate's namespace"
    )


class JobCondition(_ConditionBase):
    """External batch job reached a state."""
    type: Literal["Job"] = "Job"
    state: Literal["Complete", "Failed", "Active"] = "Complete"


class SemaphoreCondition(_ConditionBase):
    """Semaphore has at least `value` permits available."""
    type: Literal["Semaphore"] = "Semaphore"
    value: Optional[int] = Field(default=None, ge=0)


class BarrierCondition(_ConditionBase):
    """Barrier is in `state`."""
    type: Literal["Barrier"] = "Barrier"
    state: BarrierPhase = BarrierPhase.OPEN


class LeaseCondition(_ConditionBase):
    """Lease is in `state`."""
    type: Literal["Lease"] = "Lease"
    state: LeasePhase = LeasePhase.AVAILABLE


class UnknownCondition(_ConditionBase):
    """Condition of a type this controller does not understand."""
    type: str
    state: Optional[str] = None
    value: Optional[int] = None

    model_config = {"extra": "allow"}


_KNOWN_TYPES = {t.value for t in GateConditionType}


def _condition_tag(value: Any) -> str:
    """Pick the union member from the raw `type` field."""
    if isinstance(value, dict):
        raw = value.get("type")
    else:
        raw = getattr(value, "type", None)
    if isinstance(raw, GateConditionType):
        raw = raw.value
    return raw if raw in _KNOWN_TYPES else "Unknown"


GateCondition = Annotated[
    Union[
        Annotated[JobCondition, Tag("Job")],
        Annotated[SemaphoreCondition, Tag("Semaphore")],
        Annotated[BarrierCondition, Tag("Barrier")],
        Annotated[LeaseCondition, Tag("Lease")],
        Annotated[UnknownCondition, Tag("Unknown")],
    ],
    Discriminator(_condition_tag),
]


class GateSpec(BaseModel):
    """Gate configuration."""
    conditions: List[GateCondition] = Field(default_factory=list)
    timeout: Optional[Duration] = Field(
        default=None,
        description="Fail if not open this long after creation"
    )


class GateConditionStatus(BaseModel):
    """Evaluation result for one condition."""
    type: str
    name: str
    met: bool = False
    message: str = ""


class GateStatus(BaseModel):
    """Observed gate state."""
    phase: Optional[GatePhase] = None
    condition_statuses: List[GateConditionStatus] = Field(default_factory=list)
    opened_at: Optional[Timestamp] = None


class Gate(Resource):
    """Composite condition gate."""

    KIND: ClassVar[ResourceKind] = ResourceKind.GATE

    spec: GateSpec = Field(default_factory=GateSpec)
    status: GateStatus = Field(default_factory=GateStatus)

    def deadline(self) -> Optional[datetime]:
        """Creation time + timeout, if a timeout is configured."""
        if self.spec.timeout is None:
            return None
        return self.metadata.creation_timestamp + self.spec.timeout


__all__ = [
    "JobCondition",
    "SemaphoreCondition",
    "BarrierCondition",
    "LeaseCondition",
    "UnknownCondition",
    "GateCondition",
    "GateSpec",
    "GateConditionStatus",
    "GateStatus",
    "Gate",
]
