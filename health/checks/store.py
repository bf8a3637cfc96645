# ============================================================================
# STORE HEALTH CHECKS
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Infrastructure - Object store connectivity
# PURPOSE: Verify the object store answers
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Store Health Checks

Store checks (priority 20):
- StoreCheck: ObjectStore.ping() succeeds
"""

import logging

from health.core import HealthCheckPlugin, HealthCheckResult
from health.registry import register_check

logger = logging.getLogger(__name__)

# Global reference to the store (set by main app)
_store = None


def set_store(store):
    """Set store reference for health checks."""
    global _store
    _store = store


@register_check(category="store")
class StoreCheck(HealthCheckPlugin):
    """Object store reachability."""

    name = "store"
    timeout_seconds = 5.0
    required_for_ready = True

    async def check(self) -> HealthCheckResult:
        if _store is None:
            return HealthCheckResult.unhealthy(
                message="Store not initialized",
                hint="Store reference not set",
            )

        backend = type(_store).__name__
        if not await _store.ping():
            return HealthCheckResult.unhealthy(message="Store ping failed", backend=backend)

        return HealthCheckResult.healthy(message="Store reachable", backend=backend)


__all__ = ["StoreCheck", "set_store"]
