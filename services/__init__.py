# ============================================================================
# SERVICES MODULE
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Client operations
# PURPOSE: Acquire/release/wait operations over the object store
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Services Module

Client-side operations for every primitive. They never talk to the
controller; they read and conditionally write resources in the store.

Usage:
    from services import SyncClient

    client = SyncClient(store)
    permit = await client.semaphore.acquire("api-limit", holder="worker-1")
"""

from .errors import (
    LockHeldError,
    NotHolderError,
    PrimitiveFailedError,
    RetryExhaustedError,
    SyncError,
    WaitTimeoutError,
)
from .retry import default_holder, retry_on_conflict, update_status_with_retry, wait_for
from .resource_service import ResourceService
from .lock_service import MutexService, RWMutexService
from .semaphore_service import SemaphoreService
from .barrier_service import BarrierService, GateService
from .lease_service import LeaseService
from .latch_service import OnceService, WaitGroupService
from .client import SyncClient

__all__ = [
    "SyncClient",
    "ResourceService",
    "MutexService",
    "RWMutexService",
    "SemaphoreService",
    "BarrierService",
    "GateService",
    "LeaseService",
    "OnceService",
    "WaitGroupService",
    "default_holder",
    "retry_on_conflict",
    "update_status_with_retry",
    "wait_for",
    "SyncError",
    "LockHeldError",
    "NotHolderError",
    "WaitTimeoutError",
    "PrimitiveFailedError",
    "RetryExhaustedError",
]
