# ============================================================================
# SYNC CLIENT
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Service facade
# PURPOSE: One object bundling every primitive's client operations
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Sync Client

Usage:
    client = SyncClient(store)
    await client.mutex.lock("db-migration", holder="job-7", timeout=30)
    ...
    await client.mutex.unlock("db-migration", holder="job-7")
"""

import asyncio
from typing import Optional

from core.config import RetryDefaults, WaitDefaults
from core.timeutil import Clock, utc_now
from repositories import ObjectStore
from services.barrier_service import BarrierService, GateService
from services.latch_service import OnceService, WaitGroupService
from services.lease_service import LeaseService
from services.lock_service import MutexService, RWMutexService
from services.resource_service import ResourceService
from services.retry import Sleep
from services.semaphore_service import SemaphoreService


class SyncClient:
    """All client operations against one store."""

    def __init__(
        self,
        store: ObjectStore,
        clock: Clock = utc_now,
        retry_defaults: Optional[RetryDefaults] = None,
        wait_defaults: Optional[WaitDefaults] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.store = store
        shared = dict(
            clock=clock,
            retry_defaults=retry_defaults,
            wait_defaults=wait_defaults,
            sleep=sleep,
        )
        self.resources = ResourceService(store)
        self.mutex = MutexService(store, **shared)
        self.rwmutex = RWMutexService(store, **shared)
        self.semaphore = SemaphoreService(store, **shared)
        self.barrier = BarrierService(store, **shared)
        self.gate = GateService(store, **shared)
        self.lease = LeaseService(store, **shared)
        self.once = OnceService(store, **shared)
        self.waitgroup = WaitGroupService(store, **shared)


__all__ = ["SyncClient"]
