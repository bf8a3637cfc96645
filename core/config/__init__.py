# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Configuration Module

Provides centralized configuration and defaults for the sync controller.
"""

from core.config.defaults import (
    ControllerDefaults,
    ReconcileDefaults,
    RetryDefaults,
    WaitDefaults,
    Defaults,
    get_defaults,
    reset_defaults,
)

__all__ = [
    "ControllerDefaults",
    "ReconcileDefaults",
    "RetryDefaults",
    "WaitDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
