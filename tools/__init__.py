# ============================================================================
# TOOLS MODULE
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Tool - Command line utilities
# PURPOSE: syncctl, a shell client for the HTTP API
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
