# ============================================================================
# HEALTH CHECK PLUGINS
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Infrastructure - Health check implementations
# PURPOSE: Specific health checks for the sync controller
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Health Check Plugins

Startup Checks (priority 10):
- process: Basic process health (always healthy if running)
- config: Store backend and connection settings present

Store Checks (priority 20):
- store: Object store answers ping

Controller Checks (priority 30):
- controller: Dispatcher running
- reconcilers: Every primitive kind has a reconciler

Import this module to register all checks:
    import health.checks
"""

from health.checks.startup import ProcessCheck, ConfigCheck
from health.checks.store import StoreCheck, set_store
from health.checks.controller import ControllerCheck, ReconcilersCheck, set_controller

__all__ = [
    "ProcessCheck",
    "ConfigCheck",
    "StoreCheck",
    "ControllerCheck",
    "ReconcilersCheck",
    "set_store",
    "set_controller",
]
