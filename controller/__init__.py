# ============================================================================
# CONTROLLER MODULE
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Reconciliation controller
# PURPOSE: Dispatcher plus per-kind reconcilers
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Controller Module

Usage:
    from controller import Controller, build_registry

    registry = build_registry(store)
    controller = Controller(store, registry)
    await controller.start()
"""

from controller.engine import ReconcilerRegistry, build_registry
from controller.loop import Controller, WorkQueue

__all__ = ["Controller", "WorkQueue", "ReconcilerRegistry", "build_registry"]
