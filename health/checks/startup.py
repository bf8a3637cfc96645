# ============================================================================
# STARTUP HEALTH CHECKS
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Infrastructure - Startup health checks
# PURPOSE: Basic process and configuration checks
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Startup Health Checks

Basic checks that run first (priority 10):
- ProcessCheck: Always healthy if process is running
- ConfigCheck: Store backend selected and its connection settings present
"""

import os
import platform
import sys
import logging
from typing import List

from health.core import HealthCheckPlugin, HealthCheckResult
from health.registry import register_check

logger = logging.getLogger(__name__)

STORE_BACKENDS = ("memory", "postgres")


@register_check(category="startup")
class ProcessCheck(HealthCheckPlugin):
    """Always healthy if the check runs (proves process is alive)."""

    name = "process"
    timeout_seconds = 1.0

    async def check(self) -> HealthCheckResult:
        return HealthCheckResult.healthy(
            message="Process running",
            python_version=sys.version,
            platform=platform.platform(),
            pid=os.getpid(),
        )


@register_check(category="startup")
class ConfigCheck(HealthCheckPlugin):
    """
    Configuration health check.

    Verifies STORE_BACKEND is known and, for postgres, that connection
    settings are present. Does NOT connect (that is StoreCheck's job).
    """

    name = "config"
    timeout_seconds = 1.0

    async def check(self) -> HealthCheckResult:
        backend = os.environ.get("STORE_BACKEND", "memory").lower()
        if backend not in STORE_BACKENDS:
            return HealthCheckResult.unhealthy(
                message=f"Unknown STORE_BACKEND: {backend}",
                allowed=list(STORE_BACKENDS),
            )

        missing: List[str] = []
        if backend == "postgres" and not os.environ.get("DATABASE_URL"):
            missing = [var for var in ("POSTGRES_HOST", "POSTGRES_DB") if not os.environ.get(var)]

        if missing:
            return HealthCheckResult.unhealthy(
                message=f"Missing required config: {', '.join(missing)}",
                missing=missing,
                store_backend=backend,
            )

        if backend == "memory":
            return HealthCheckResult.degraded(
                message="In-memory store: state is lost on restart",
                store_backend=backend,
            )

        return HealthCheckResult.healthy(message="All required config present", store_backend=backend)


__all__ = ["ProcessCheck", "ConfigCheck"]
