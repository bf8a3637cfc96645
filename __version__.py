# ============================================================================
# VERSION - SYNC PRIMITIVES CONTROLLER
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# ============================================================================
"""
Version information for the sync primitives controller.

This is the single source of truth for the application version.
Updated manually for each release.
"""
# Version format: major.minor.patch.build
# Criteria for 0.1 - every primitive reconciles against the memory store
__version__ = "0.1.0.0"
__version_info__ = tuple(int(x) for x in __version__.split("."))

# Build metadata
BUILD_DATE = "2026-10-17"

# Deployment info
CONTROLLER_IMAGE = f"syncmaster:v{__version__}"
EPOCH = 1
CODENAME = "Sync Primitives Controller"
