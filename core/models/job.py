# ============================================================================
# JOB MODEL (EXTERNAL)
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core model - External batch job reference
# PURPOSE: Read-only view of a batch job that Gate conditions can wait on
# LAST_REVIEWED: 17 OCT 2026
# EXPORTS: Job, JobStatus
# DEPENDENCIES: pydantic
# ============================================================================
"""
Job Model

A Job is owned by some other system (a batch scheduler). The controller
never writes it; Gates only read its completion counters.

    Complete -> succeeded > 0
    Failed   -> failed > 0
    Active   -> active > 0
"""

from typing import Any, ClassVar, Dict

from pydantic import BaseModel, Field

from core.contracts import ResourceKind
from core.models.resource import Resource


class JobStatus(BaseModel):
    """Pod counters reported by the batch scheduler."""
    active: int = Field(default=0, ge=0)
    succeeded: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)

    def reached(self, state: str) -> bool:
        """Check whether the job reports the given state."""
        counters: Dict[str, int] = {
            "Complete": self.succeeded,
            "Failed": self.failed,
            "Active": self.active,
        }
        return counters.get(state, 0) > 0


class Job(Resource):
    """External batch job (read-only)."""

    KIND: ClassVar[ResourceKind] = ResourceKind.JOB

    spec: Dict[str, Any] = Field(default_factory=dict)
    status: JobStatus = Field(default_factory=JobStatus)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["Job", "JobStatus"]
