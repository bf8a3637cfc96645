# ============================================================================
# LEASE SERVICE
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Lease client operations
# PURPOSE: Request, renew and release priority-arbitrated leases
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Lease Service

acquire() files a LeaseRequest and waits for the controller to grant the
lease to this holder. The Lease status is what counts; the request's own
Granted phase may lag or never appear.

If the wait times out the request is withdrawn so it cannot win later, and
a grant that slipped in before the withdrawal is released again.
"""

import logging
import time
from datetime import timedelta
from typing import Optional

from core.contracts import LeasePhase, LeaseRequestPhase, ResourceKind
from core.models import (
    Lease,
    LeaseRequest,
    LeaseRequestSpec,
    LeaseRequestStatus,
    LeaseStatus,
    ObjectMeta,
)
from services.base import PrimitiveService
from services.errors import NotHolderError, PrimitiveFailedError, WaitTimeoutError
from services.retry import Timeout

logger = logging.getLogger(__name__)


class LeaseService(PrimitiveService):
    """Lease acquire / renew / release."""

    kind = ResourceKind.LEASE

    async def request(
        self,
        name: str,
        holder: Optional[str] = None,
        priority: Optional[int] = None,
        ttl: Optional[timedelta] = None,
        namespace: str = "default",
    ) -> LeaseRequest:
        """File a LeaseRequest without waiting for the grant."""
        holder = self.holder_or_default(holder)
        await self.get(name, namespace)

        request = LeaseRequest(
            metadata=ObjectMeta(
                name=f"{name}-{holder}-{time.time_ns()}",
                namespace=namespace,
                labels={"lease": name},
            ),
            spec=LeaseRequestSpec(lease=name, holder=holder, priority=priority, ttl=ttl),
            status=LeaseRequestStatus(phase=LeaseRequestPhase.PENDING, requested_at=self.clock()),
        )
        created = await self.store.create(request)
        logger.info(f"{holder} requested {self.ref(name, namespace)} (priority={priority})")
        return created

    async def acquire(
        self,
        name: str,
        holder: Optional[str] = None,
        priority: Optional[int] = None,
        ttl: Optional[timedelta] = None,
        timeout: Timeout = None,
        namespace: str = "default",
    ) -> Lease:
        """
        Request the lease and wait until it is granted to `holder`.

        Raises:
            PrimitiveFailedError: the request was denied
            WaitTimeoutError: not granted in time (request withdrawn)
        """
        holder = self.holder_or_default(holder)
        request = await self.request(name, holder=holder, priority=priority, ttl=ttl, namespace=namespace)
        ref = self.ref(name, namespace)

        async def granted() -> Optional[Lease]:
            lease: Lease = await self.get(name, namespace)
            if lease.status.holder == holder and not lease.status.is_expired(self.clock()):
                return lease
            current = await self.store.get_or_none(ResourceKind.LEASE_REQUEST, namespace, request.name)
            if current is not None and current.status.phase == LeaseRequestPhase.DENIED:
                raise PrimitiveFailedError(ref, f"request {request.name} denied")
            return None

        try:
            return await self.wait(granted, timeout, f"{ref} to be granted to {holder}")
        except WaitTimeoutError:
            await self.resources.delete(ResourceKind.LEASE_REQUEST, request.name, namespace, missing_ok=True)
            await self._give_back(name, holder, namespace)
            raise

    async def _give_back(self, name: str, holder: str, namespace: str) -> None:
        # The grant can land between the last poll and the withdrawal
        lease = await self.store.get_or_none(ResourceKind.LEASE, namespace, name)
        if lease is None or lease.status.holder != holder:
            return
        logger.warning(f"{self.ref(name, namespace)} was granted to {holder} after its wait timed out; releasing")
        try:
            await self.release(name, holder=holder, namespace=namespace)
        except NotHolderError as exc:
            logger.debug(f"Lease moved on before release: {exc}")

    async def renew(self, name: str, holder: Optional[str] = None, namespace: str = "default") -> Lease:
        """
        Push expires_at out by the lease TTL.

        Raises:
            NotHolderError: holder does not hold a live grant
        """
        holder = self.holder_or_default(holder)

        def mutate(lease: Lease) -> LeaseStatus:
            now = self.clock()
            status = lease.status.model_copy(deep=True)
            if status.holder != holder or status.is_expired(now):
                raise NotHolderError(self.ref(name, namespace), holder, status.holder or None)
            status.expires_at = now + lease.spec.ttl
            status.renew_count += 1
            return status

        lease = await self.update_status(name, namespace, mutate)
        logger.debug(f"{holder} renewed {self.ref(name, namespace)} (#{lease.status.renew_count})")
        return lease

    async def release(self, name: str, holder: Optional[str] = None, namespace: str = "default") -> Lease:
        """
        Give the lease up and withdraw the holder's requests.

        Raises:
            NotHolderError: holder does not hold the lease
        """
        holder = self.holder_or_default(holder)

        def mutate(lease: Lease) -> LeaseStatus:
            status = lease.status.model_copy(deep=True)
            if status.holder != holder:
                raise NotHolderError(self.ref(name, namespace), holder, status.holder or None)
            status.holder = ""
            status.acquired_at = None
            status.expires_at = None
            status.phase = LeasePhase.AVAILABLE
            return status

        lease = await self.update_status(name, namespace, mutate)

        requests = await self.store.list(
            ResourceKind.LEASE_REQUEST, namespace=namespace, labels={"lease": name}
        )
        for request in requests:
            if request.spec.holder == holder:
                await self.resources.delete(ResourceKind.LEASE_REQUEST, request.name, namespace, missing_ok=True)

        logger.info(f"{holder} released {self.ref(name, namespace)}")
        return lease


__all__ = ["LeaseService"]
