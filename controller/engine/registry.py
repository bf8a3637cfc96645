# ============================================================================
# RECONCILER REGISTRY
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Kind to reconciler table
# PURPOSE: Explicit, injected mapping built once at startup
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Reconciler Registry

A plain table from ResourceKind to reconciler instance. It is built once
(build_registry) and handed to the dispatcher; nothing registers itself at
import time.
"""

import logging
from typing import Dict, Iterator, Optional

from core.config import ReconcileDefaults
from core.contracts import ResourceKind
from core.timeutil import Clock, utc_now
from controller.engine.barrier import BarrierReconciler
from controller.engine.base import Reconciler
from controller.engine.gate import GateReconciler
from controller.engine.latches import (
    MutexReconciler,
    OnceReconciler,
    RWMutexReconciler,
    WaitGroupReconciler,
)
from controller.engine.lease import LeaseReconciler
from controller.engine.semaphore import SemaphoreReconciler
from repositories import ObjectStore

logger = logging.getLogger(__name__)

RECONCILER_CLASSES = (
    MutexReconciler,
    RWMutexReconciler,
    SemaphoreReconciler,
    BarrierReconciler,
    LeaseReconciler,
    GateReconciler,
    OnceReconciler,
    WaitGroupReconciler,
)


class ReconcilerRegistry:
    """Mapping of kind to reconciler."""

    def __init__(self):
        self._reconcilers: Dict[ResourceKind, Reconciler] = {}

    def register(self, reconciler: Reconciler) -> None:
        kind = reconciler.kind
        if kind in self._reconcilers:
            raise ValueError(f"Reconciler for {kind.value} already registered")
        self._reconcilers[kind] = reconciler

    def get(self, kind: ResourceKind) -> Optional[Reconciler]:
        return self._reconcilers.get(kind)

    def __contains__(self, kind: ResourceKind) -> bool:
        return kind in self._reconcilers

    def __iter__(self) -> Iterator[ResourceKind]:
        return iter(self._reconcilers)

    def __len__(self) -> int:
        return len(self._reconcilers)

    def kinds(self):
        return list(self._reconcilers)


def build_registry(
    store: ObjectStore,
    defaults: Optional[ReconcileDefaults] = None,
    clock: Clock = utc_now,
) -> ReconcilerRegistry:
    """Registry with a reconciler for every primitive kind."""
    registry = ReconcilerRegistry()
    for cls in RECONCILER_CLASSES:
        registry.register(cls(store, defaults=defaults, clock=clock))
    logger.info(f"Registered reconcilers: {', '.join(k.value for k in registry)}")
    return registry


__all__ = ["ReconcilerRegistry", "build_registry", "RECONCILER_CLASSES"]
