# ============================================================================
# REPOSITORIES MODULE
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Object store layer
# PURPOSE: Versioned resource storage with watch support
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Repositories Module

Provides the ObjectStore contract and its two implementations.

Usage:
    from repositories import create_store

    store = await create_store()          # STORE_BACKEND=memory|postgres
    mutex = await store.get(ResourceKind.MUTEX, "default", "db-lock")
"""

from .base import (
    AlreadyExistsError,
    ConflictError,
    EventType,
    NotFoundError,
    ObjectStore,
    ResourceEvent,
    StoreError,
)
from .memory_store import MemoryObjectStore
from .resource_repo import PostgresObjectStore, create_store

__all__ = [
    "ObjectStore",
    "MemoryObjectStore",
    "PostgresObjectStore",
    "create_store",
    "ResourceEvent",
    "EventType",
    "StoreError",
    "NotFoundError",
    "ConflictError",
    "AlreadyExistsError",
]
