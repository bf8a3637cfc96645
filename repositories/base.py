# ============================================================================
# OBJECT STORE CONTRACT
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Store interface and error taxonomy
# PURPOSE: Versioned, watched resource storage shared by controller and clients
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Object Store Contract

Abstract base class for resource storage plus the error taxonomy every
caller relies on:

    NotFoundError       - resource does not exist
    ConflictError       - write carried a stale resource_version
    AlreadyExistsError  - create of an existing (kind, namespace, name)
    StoreError          - anything else (connection lost, bad row, ...)

Implementations:
- MemoryObjectStore (repositories.memory_store) for local mode and tests
- PostgresObjectStore (repositories.resource_repo) for production

Contract:
- list() returns resources in creation order
- update_status() writes status only, and only if metadata.resource_version
  matches the stored version; the stored version is then incremented
- every successful create/update/delete is published to watch() subscribers
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional

from core.contracts import CHILD_LABELS, ResourceKind
from core.models import Resource, ResourceKey

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base exception for store operations."""

    def __init__(self, message: str, operation: str = None, entity_id: str = None):
        self.operation = operation
        self.entity_id = entity_id
        super().__init__(message)


class NotFoundError(StoreError):
    """Raised when a resource does not exist."""


class ConflictError(StoreError):
    """Raised when a conditional write carries a stale resource_version."""

    def __init__(self, message: str, entity_id: str = None, expected: int = None, actual: int = None):
        self.expected = expected
        self.actual = actual
        super().__init__(message, operation="update_status", entity_id=entity_id)


class AlreadyExistsError(StoreError):
    """Raised when creating a resource whose key is taken."""


class EventType(str, Enum):
    """Watch event types."""
    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"


@dataclass(frozen=True)
class ResourceEvent:
    """A change notification from the store."""
    type: EventType
    kind: ResourceKind
    namespace: str
    name: str
    labels: Dict[str, str] = field(default_factory=dict)

    @property
    def key(self) -> ResourceKey:
        return ResourceKey(self.kind, self.namespace, self.name)

    def parent_key(self) -> Optional[ResourceKey]:
        """
        Key of the parent resource for child kinds.

        Returns None for top-level kinds and for children missing their
        parent label.
        """
        link = CHILD_LABELS.get(self.kind)
        if link is None:
            return None
        parent_kind, label = link
        parent_name = self.labels.get(label)
        if not parent_name:
            return None
        return ResourceKey(parent_kind, self.namespace, parent_name)

    @classmethod
    def for_resource(cls, event_type: EventType, resource: Resource) -> "ResourceEvent":
        return cls(
            type=event_type,
            kind=resource.KIND,
            namespace=resource.namespace,
            name=resource.name,
            labels=dict(resource.metadata.labels),
        )


class ObjectStore(ABC):
    """
    Abstract resource store.

    Provides:
    - Error context manager for consistent error handling
    - Standardized logging

    Subclasses implement storage-specific operations.
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.logger.debug(f"{self.__class__.__name__} initialized")

    @contextmanager
    def _error_context(self, operation: str, entity_id: Optional[str] = None):
        """
        Context manager for consistent error handling.

        Store errors raised inside the block already carry context and pass
        through unchanged. Anything else is logged and wrapped in StoreError.

        Args:
            operation: Human-readable description of the operation
            entity_id: Optional entity ID for context

        Example:
            with self._error_context("status update", str(resource.key)):
                await self._execute_update(resource)
        """
        try:
            yield
        except StoreError:
            raise
        except Exception as e:
            error_msg = f"{operation} failed"
            if entity_id:
                error_msg += f" for {entity_id}"
            error_msg += f": {e}"
            self.logger.error(error_msg)
            raise StoreError(error_msg, operation=operation, entity_id=entity_id) from e

    def _log_operation(
        self,
        success: bool,
        operation: str,
        entity_id: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Log operation result with consistent formatting.

        Format:
            Success: "operation: entity_id | details"
            Failure: "operation failed: entity_id | details"
        """
        msg = f"{operation}: {entity_id}" if success else f"{operation} failed: {entity_id}"
        if details:
            msg += f" | {details}"

        if success:
            self.logger.debug(msg)
        else:
            self.logger.warning(msg)

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    @abstractmethod
    async def get(self, kind: ResourceKind, namespace: str, name: str) -> Resource:
        """Fetch one resource. Raises NotFoundError."""

    @abstractmethod
    async def list(
        self,
        kind: ResourceKind,
        namespace: Optional[str] = None,
        labels: Optional[Dict[str, str]] = None,
    ) -> List[Resource]:
        """
        List resources of a kind in creation order.

        Args:
            kind: Resource kind
            namespace: Restrict to one namespace (None = all)
            labels: Every given label must match exactly
        """

    @abstractmethod
    async def create(self, resource: Resource) -> Resource:
        """Store a new resource. Raises AlreadyExistsError."""

    @abstractmethod
    async def update_status(self, resource: Resource) -> Resource:
        """
        Conditionally replace a resource's status.

        Raises:
            NotFoundError: resource was deleted
            ConflictError: resource.metadata.resource_version is stale

        Returns:
            The stored resource carrying its new resource_version
        """

    @abstractmethod
    async def delete(self, kind: ResourceKind, namespace: str, name: str) -> None:
        """Remove a resource. Raises NotFoundError."""

    @abstractmethod
    def watch(self) -> AsyncIterator[ResourceEvent]:
        """Async iterator of change events, starting from now."""

    @abstractmethod
    async def ping(self) -> bool:
        """Check that the store is reachable."""

    async def close(self) -> None:
        """Release connections. Default: nothing to release."""

    async def get_or_none(self, kind: ResourceKind, namespace: str, name: str) -> Optional[Resource]:
        """get() that maps NotFoundError to None."""
        try:
            return await self.get(kind, namespace, name)
        except NotFoundError:
            return None


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "StoreError",
    "NotFoundError",
    "ConflictError",
    "AlreadyExistsError",
    "EventType",
    "ResourceEvent",
    "ObjectStore",
]
