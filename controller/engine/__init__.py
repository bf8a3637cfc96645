# ============================================================================
# CONTROLLER ENGINE
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Per-kind reconcilers
# PURPOSE: Pure reconciliation logic for every primitive
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================

from controller.engine.base import (
    ActionType,
    ChildIndex,
    NextAction,
    ReconcileOutcome,
    Reconciler,
    SecondaryWrite,
)
from controller.engine.barrier import BarrierReconciler
from controller.engine.gate import ConditionEvaluator, GateReconciler
from controller.engine.latches import (
    MutexReconciler,
    OnceReconciler,
    RWMutexReconciler,
    WaitGroupReconciler,
)
from controller.engine.lease import LeaseReconciler, select_request
from controller.engine.registry import ReconcilerRegistry, build_registry
from controller.engine.semaphore import SemaphoreReconciler

__all__ = [
    "ActionType",
    "ChildIndex",
    "NextAction",
    "ReconcileOutcome",
    "Reconciler",
    "SecondaryWrite",
    "MutexReconciler",
    "RWMutexReconciler",
    "SemaphoreReconciler",
    "BarrierReconciler",
    "LeaseReconciler",
    "select_request",
    "GateReconciler",
    "ConditionEvaluator",
    "OnceReconciler",
    "WaitGroupReconciler",
    "ReconcilerRegistry",
    "build_registry",
]
