# ============================================================================
# RESOURCE BASE MODEL
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core model - Metadata / spec / status envelope
# PURPOSE: Common envelope shared by every resource in the object store
# LAST_REVIEWED: 17 OCT 2026
# EXPORTS: ObjectMeta, Resource, ResourceKey, Duration
# DEPENDENCIES: pydantic
# ============================================================================
"""
Resource Envelope

Every resource has three parts:
- metadata: identity, labels, creation time, resource_version
- spec: desired configuration, set once at creation
- status: observed state, written by the controller (and, for some
  primitives, patched directly by clients)

resource_version is the optimistic concurrency token. The store bumps it on
every successful write and rejects writes carrying a stale value.
"""

from datetime import datetime, timedelta
from typing import Annotated, Any, ClassVar, Dict, NamedTuple, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, Field, field_validator

from core.contracts import ResourceKind
from core.timeutil import coerce_duration, ensure_utc, utc_now


# Duration fields accept seconds, ISO 8601 or Go-style strings ("30s")
Duration = Annotated[timedelta, BeforeValidator(coerce_duration)]

# Status timestamps are normalised to UTC
Timestamp = Annotated[datetime, AfterValidator(ensure_utc)]


class ResourceKey(NamedTuple):
    """Identity of a resource: (kind, namespace, name)."""
    kind: ResourceKind
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.kind.value}/{self.namespace}/{self.name}"


class ObjectMeta(BaseModel):
    """Resource metadata."""

    name: str = Field(..., min_length=1, max_length=253)
    namespace: str = Field(default="default", min_length=1, max_length=63)
    labels: Dict[str, str] = Field(default_factory=dict)
    creation_timestamp: datetime = Field(default_factory=utc_now)
    resource_version: int = Field(
        default=0,
        ge=0,
        description="Version for optimistic locking - incremented by the store on each write"
    )

    model_config = {"frozen": False}

    @field_validator("creation_timestamp")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class Resource(BaseModel):
    """
    Base class for all stored resources.

    Subclasses set KIND and declare `spec` and `status` fields.
    """

    KIND: ClassVar[ResourceKind]

    metadata: ObjectMeta

    model_config = {"frozen": False}

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def key(self) -> ResourceKey:
        return ResourceKey(self.KIND, self.metadata.namespace, self.metadata.name)

    def with_status(self, status: Any) -> "Resource":
        """Return a deep copy carrying a new status (metadata preserved)."""
        clone = self.model_copy(deep=True)
        clone.status = status
        return clone

    @classmethod
    def new(
        cls,
        name: str,
        namespace: str = "default",
        labels: Optional[Dict[str, str]] = None,
        **fields: Any,
    ) -> "Resource":
        """
        Factory for a resource that has not been stored yet.

        Example:
            Semaphore.new("api-limit", spec=SemaphoreSpec(permits=3))
        """
        meta = ObjectMeta(name=name, namespace=namespace, labels=labels or {})
        return cls(metadata=meta, **fields)


__all__ = ["Duration", "Timestamp", "ResourceKey", "ObjectMeta", "Resource"]
