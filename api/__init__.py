# ============================================================================
# API MODULE
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - FastAPI routes
# PURPOSE: HTTP API for primitive management and client operations
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
API Module

FastAPI routes for the sync primitives controller.
"""

from .routes import router, set_services
from .schemas import (
    LockRequest,
    ResourceCreate,
    ResourceResponse,
)

__all__ = [
    "router",
    "set_services",
    "LockRequest",
    "ResourceCreate",
    "ResourceResponse",
]
