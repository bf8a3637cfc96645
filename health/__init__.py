# ============================================================================
# HEALTH CHECK MODULE
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Infrastructure - Health check plugin system
# PURPOSE: Kubernetes probes and health monitoring
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Health Check Module

- /livez: Process alive (instant, for Kubernetes liveness probe)
- /readyz: Ready to serve (store reachable, controller running)
- /health: Comprehensive status (all plugins)

Usage:
    from health import health_router, get_registry
    import health.checks  # registers the built-in checks

    app.include_router(health_router)
"""

from health.core import (
    HealthStatus,
    HealthCheckResult,
    HealthCheckPlugin,
    HealthCheckCategory,
)
from health.registry import (
    HealthCheckRegistry,
    register_check,
    get_registry,
)
from health.executor import HealthCheckExecutor
from health.router import health_router

__all__ = [
    "HealthStatus",
    "HealthCheckResult",
    "HealthCheckPlugin",
    "HealthCheckCategory",
    "HealthCheckRegistry",
    "register_check",
    "get_registry",
    "HealthCheckExecutor",
    "health_router",
]
