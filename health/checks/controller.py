# ============================================================================
# CONTROLLER HEALTH CHECKS
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Infrastructure - Dispatcher state checks
# PURPOSE: Controller running and every primitive has a reconciler
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Controller Health Checks

Controller checks (priority 30):
- ControllerCheck: Dispatcher running; degraded while keys are backing off
- ReconcilersCheck: A reconciler is registered for every primitive kind
"""

import os
import logging

from core.contracts import ResourceKind
from health.core import HealthCheckPlugin, HealthCheckResult
from health.registry import register_check

logger = logging.getLogger(__name__)

# Kinds the controller must reconcile (children and Job are only read)
PRIMITIVE_KINDS = [
    kind for kind in ResourceKind
    if not kind.is_child() and kind != ResourceKind.JOB
]

# Global reference to controller (set by main app)
_controller = None


def set_controller(controller):
    """Set controller reference for health checks."""
    global _controller
    _controller = controller


@register_check(category="controller")
class ControllerCheck(HealthCheckPlugin):
    """
    Dispatcher health check.

    Skipped when RUN_CONTROLLER=false (API-only replica).
    """

    name = "controller"
    timeout_seconds = 2.0
    required_for_ready = True

    async def check(self) -> HealthCheckResult:
        if os.environ.get("RUN_CONTROLLER", "true").lower() == "false":
            return HealthCheckResult.healthy(message="Controller disabled (skipped)")

        if _controller is None:
            return HealthCheckResult.unhealthy(
                message="Controller not initialized",
                hint="Controller reference not set",
            )

        if not _controller.running:
            return HealthCheckResult.unhealthy(message="Controller not running")

        stats = _controller.stats
        details = {
            "uptime_seconds": stats["uptime_seconds"],
            "reconciles": stats["reconciles"],
            "conflicts": stats["conflicts"],
            "errors": stats["errors"],
            "queue_depth": stats["queue_depth"],
            "backing_off": stats["backing_off"],
            "last_resync_at": stats["last_resync_at"],
        }

        if stats["backing_off"]:
            return HealthCheckResult.degraded(
                message=f"Controller running, {stats['backing_off']} key(s) backing off after errors",
                **details,
            )

        return HealthCheckResult.healthy(
            message=f"Controller running ({stats['reconciles']} reconciles)",
            **details,
        )


@register_check(category="controller", required_for_ready=False)
class ReconcilersCheck(HealthCheckPlugin):
    """Every primitive kind has a reconciler."""

    name = "reconcilers"
    timeout_seconds = 1.0

    async def check(self) -> HealthCheckResult:
        if _controller is None:
            return HealthCheckResult.unhealthy(message="Controller not initialized")

        registered = set(_controller.registry.kinds())
        missing = [kind.value for kind in PRIMITIVE_KINDS if kind not in registered]
        if missing:
            return HealthCheckResult.degraded(
                message=f"No reconciler for: {', '.join(missing)}",
                missing=missing,
            )

        return HealthCheckResult.healthy(
            message=f"{len(registered)} reconcilers registered",
            kinds=sorted(kind.value for kind in registered),
        )


__all__ = ["ControllerCheck", "ReconcilersCheck", "set_controller", "PRIMITIVE_KINDS"]
