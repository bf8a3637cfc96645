# ============================================================================
# SEMAPHORE SERVICE
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Semaphore client operations
# PURPOSE: Acquire and release permits
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Semaphore Service

A permit is held by creating a Permit child labelled `semaphore=<name>`.
acquire() counts live permits itself rather than trusting the semaphore's
status, which lags by one reconcile. Two clients racing for the last slot
can both succeed; the reconciler reports that as over-commit.

The Permit is created already Granted with its expiry, in one write.
"""

import logging
import time
from datetime import timedelta
from typing import List, Optional

from core.contracts import PermitPhase, ResourceKind
from core.models import ObjectMeta, Permit, PermitSpec, PermitStatus, Semaphore
from repositories import AlreadyExistsError
from services.base import PrimitiveService
from services.errors import NotHolderError
from services.retry import Timeout

logger = logging.getLogger(__name__)


class SemaphoreService(PrimitiveService):
    """Semaphore acquire / release / list_permits."""

    kind = ResourceKind.SEMAPHORE

    async def list_permits(self, name: str, namespace: str = "default") -> List[Permit]:
        """Permits of a semaphore in creation order."""
        return await self.store.list(
            ResourceKind.PERMIT, namespace=namespace, labels={"semaphore": name}
        )

    async def available(self, name: str, namespace: str = "default") -> int:
        """Free slots right now, counted from live permits."""
        semaphore: Semaphore = await self.get(name, namespace)
        now = self.clock()
        live = sum(1 for p in await self.list_permits(name, namespace) if p.status.is_live(now))
        return semaphore.spec.permits - live

    async def try_acquire(
        self,
        name: str,
        holder: Optional[str] = None,
        ttl: Optional[timedelta] = None,
        namespace: str = "default",
    ) -> Optional[Permit]:
        """Create a permit if a slot is free; None when full."""
        holder = self.holder_or_default(holder)
        semaphore: Semaphore = await self.get(name, namespace)
        if await self.available(name, namespace) <= 0:
            return None

        ttl = ttl if ttl is not None else semaphore.spec.ttl
        now = self.clock()
        permit = Permit(
            metadata=ObjectMeta(
                name=f"{name}-{holder}-{time.time_ns()}",
                namespace=namespace,
                labels={"semaphore": name},
            ),
            spec=PermitSpec(semaphore=name, holder=holder, ttl=ttl),
            status=PermitStatus(
                phase=PermitPhase.GRANTED,
                acquired_at=now,
                expires_at=now + ttl if ttl is not None else None,
            ),
        )
        try:
            created = await self.store.create(permit)
        except AlreadyExistsError:
            return None

        logger.info(f"{holder} acquired a permit on {self.ref(name, namespace)}")
        return created

    async def acquire(
        self,
        name: str,
        holder: Optional[str] = None,
        ttl: Optional[timedelta] = None,
        timeout: Timeout = None,
        namespace: str = "default",
    ) -> Permit:
        """
        Wait for a free slot and take it.

        Raises:
            NotFoundError: semaphore does not exist
            WaitTimeoutError: no slot freed in time
        """
        holder = self.holder_or_default(holder)

        async def attempt() -> Optional[Permit]:
            return await self.try_acquire(name, holder=holder, ttl=ttl, namespace=namespace)

        return await self.wait(attempt, timeout, f"permit on {self.ref(name, namespace)}")

    async def release(self, name: str, holder: Optional[str] = None, namespace: str = "default") -> int:
        """
        Delete every permit `holder` has on the semaphore.

        Returns:
            Number of permits released

        Raises:
            NotHolderError: holder has no permit
        """
        holder = self.holder_or_default(holder)
        released = 0
        for permit in await self.list_permits(name, namespace):
            if permit.spec.holder == holder:
                if await self.resources.delete(ResourceKind.PERMIT, permit.name, namespace, missing_ok=True):
                    released += 1
        if released == 0:
            raise NotHolderError(self.ref(name, namespace), holder)
        logger.info(f"{holder} released {released} permit(s) on {self.ref(name, namespace)}")
        return released


__all__ = ["SemaphoreService"]
