# ============================================================================
# API SCHEMAS
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Request/Response schemas
# PURPOSE: Pydantic models for API validation
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
API Schemas

Request and response models for the API. Resources travel in their stored
shape ({kind, metadata, spec, status}); verb requests carry only what the
operation needs.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from core.models import Duration, Resource


# ============================================================================
# REQUEST SCHEMAS
# ============================================================================

class ResourceCreate(BaseModel):
    """Request to create a resource."""
    name: str = Field(..., min_length=1, max_length=253)
    spec: Dict[str, Any] = Field(default_factory=dict)
    labels: Dict[str, str] = Field(default_factory=dict)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"name": "api-limit", "spec": {"permits": 3, "ttl": "5m"}},
                {"name": "db-migration", "spec": {"ttl": "30s"}},
            ]
        }
    }


class JobStatusUpdate(BaseModel):
    """Counters reported by an external batch scheduler."""
    active: int = Field(default=0, ge=0)
    succeeded: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)


class HolderRequest(BaseModel):
    """Identify the caller; defaults to the server's holder name."""
    holder: Optional[str] = Field(None, max_length=253)


class WaitRequest(BaseModel):
    """Bound a blocking operation."""
    timeout: Optional[float] = Field(None, ge=0, description="Seconds; omit to wait indefinitely")


class LockRequest(HolderRequest, WaitRequest):
    """Lock / acquire request."""
    ttl: Optional[Duration] = Field(None, description="Overrides the primitive's spec.ttl")


class LeaseAcquireRequest(LockRequest):
    """Lease acquire request."""
    priority: Optional[int] = Field(None, description="Higher wins")


class AddRequest(BaseModel):
    """WaitGroup counter change."""
    delta: int = Field(default=1)


class ExecuteRequest(BaseModel):
    """Once execution claim."""
    executor: Optional[str] = Field(None, max_length=253)


# ============================================================================
# RESPONSE SCHEMAS
# ============================================================================

class ResourceResponse(BaseModel):
    """A stored resource."""
    kind: str
    metadata: Dict[str, Any]
    spec: Dict[str, Any]
    status: Dict[str, Any]

    @classmethod
    def from_resource(cls, resource: Resource) -> "ResourceResponse":
        data = resource.model_dump(mode="json")
        return cls(
            kind=resource.KIND.value,
            metadata=data["metadata"],
            spec=data.get("spec", {}),
            status=data.get("status", {}),
        )


class ResourceListResponse(BaseModel):
    """Resources of one kind."""
    items: List[ResourceResponse]
    count: int


class ReleaseResponse(BaseModel):
    """Result of a semaphore release."""
    released: int


class ExecuteResponse(BaseModel):
    """Result of a Once execution claim."""
    executed: bool
    won: bool


class ErrorResponse(BaseModel):
    """Error response."""
    detail: str


__all__ = [
    "ResourceCreate",
    "JobStatusUpdate",
    "HolderRequest",
    "WaitRequest",
    "LockRequest",
    "LeaseAcquireRequest",
    "AddRequest",
    "ExecuteRequest",
    "ResourceResponse",
    "ResourceListResponse",
    "ReleaseResponse",
    "ExecuteResponse",
    "ErrorResponse",
]
