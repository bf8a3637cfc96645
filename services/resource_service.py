# ============================================================================
# RESOURCE SERVICE
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Generic resource CRUD
# PURPOSE: Create, get, list and delete any primitive
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Resource Service

Kind-agnostic CRUD used by the API and by the per-primitive services.
Creation validates the spec through the kind's pydantic model before it
reaches the store.
"""

import logging
from typing import Any, Dict, List, Optional

from core.contracts import ResourceKind
from core.models import Resource, model_for
from repositories import NotFoundError, ObjectStore

logger = logging.getLogger(__name__)


class ResourceService:
    """Generic resource operations."""

    def __init__(self, store: ObjectStore):
        """
        Initialize resource service.

        Args:
            store: Object store
        """
        self.store = store

    def build(
        self,
        kind: ResourceKind,
        name: str,
        namespace: str = "default",
        spec: Optional[Dict[str, Any]] = None,
        labels: Optional[Dict[str, str]] = None,
        status: Optional[Dict[str, Any]] = None,
    ) -> Resource:
        """
        Build (but do not store) a typed resource.

        Raises:
            pydantic.ValidationError: spec is invalid for the kind
        """
        cls = model_for(kind)
        data: Dict[str, Any] = {
            "metadata": {"name": name, "namespace": namespace, "labels": labels or {}},
        }
        if spec is not None:
            data["spec"] = spec
        if status is not None:
            data["status"] = status
        return cls.model_validate(data)

    async def create(
        self,
        kind: ResourceKind,
        name: str,
        namespace: str = "default",
        spec: Optional[Dict[str, Any]] = None,
        labels: Optional[Dict[str, str]] = None,
    ) -> Resource:
        """Validate and store a new resource."""
        resource = self.build(kind, name, namespace, spec=spec, labels=labels)
        created = await self.store.create(resource)
        logger.info(f"Created {created.key}")
        return created

    async def create_resource(self, resource: Resource) -> Resource:
        created = await self.store.create(resource)
        logger.info(f"Created {created.key}")
        return created

    async def get(self, kind: ResourceKind, name: str, namespace: str = "default") -> Resource:
        return await self.store.get(kind, namespace, name)

    async def list(
        self,
        kind: ResourceKind,
        namespace: Optional[str] = None,
        labels: Optional[Dict[str, str]] = None,
    ) -> List[Resource]:
        return await self.store.list(kind, namespace=namespace, labels=labels)

    async def delete(
        self,
        kind: ResourceKind,
        name: str,
        namespace: str = "default",
        missing_ok: bool = False,
    ) -> bool:
        """
        Delete a resource.

        Returns:
            True if deleted, False if it was already gone (missing_ok only)
        """
        try:
            await self.store.delete(kind, namespace, name)
        except NotFoundError:
            if missing_ok:
                return False
            raise
        logger.info(f"Deleted {ResourceKind(kind).value}/{namespace}/{name}")
        return True


__all__ = ["ResourceService"]
