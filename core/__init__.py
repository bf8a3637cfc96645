# ============================================================================
# CORE MODULE
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core module initialization
# PURPOSE: Export core contracts and models
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================

from core.contracts import CHILD_LABELS, ResourceKind
from core.models import (
    ObjectMeta,
    Resource,
    ResourceKey,
    RESOURCE_TYPES,
    model_for,
)

__all__ = [
    "CHILD_LABELS",
    "ResourceKind",
    "ObjectMeta",
    "Resource",
    "ResourceKey",
    "RESOURCE_TYPES",
    "model_for",
]
