# ============================================================================
# BARRIER AND GATE SERVICES
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Rendezvous client operations
# PURPOSE: Arrive at barriers and wait on barriers and gates
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Barrier and Gate Services

Both waits watch the controller-written phase: Open returns, Failed raises
PrimitiveFailedError. Neither wait writes anything.
"""

import logging
from typing import Optional

from core.contracts import ArrivalPhase, BarrierPhase, GatePhase, ResourceKind
from core.models import Arrival, ArrivalSpec, ArrivalStatus, Barrier, Gate, ObjectMeta
from repositories import AlreadyExistsError
from services.base import PrimitiveService
from services.errors import PrimitiveFailedError
from services.retry import Timeout

logger = logging.getLogger(__name__)


class BarrierService(PrimitiveService):
    """Barrier arrive / wait."""

    kind = ResourceKind.BARRIER

    async def arrive(self, name: str, holder: Optional[str] = None, namespace: str = "default") -> Arrival:
        """
        Record `holder`'s arrival.

        Arriving twice is harmless: the second call returns the first Arrival.

        Raises:
            NotFoundError: barrier does not exist
        """
        holder = self.holder_or_default(holder)
        await self.get(name, namespace)

        arrival = Arrival(
            metadata=ObjectMeta(name=f"{name}-{holder}", namespace=namespace, labels={"barrier": name}),
            spec=ArrivalSpec(barrier=name, holder=holder),
            status=ArrivalStatus(phase=ArrivalPhase.RECORDED, arrived_at=self.clock()),
        )
        try:
            created = await self.store.create(arrival)
        except AlreadyExistsError:
            logger.debug(f"{holder} already arrived at {self.ref(name, namespace)}")
            return await self.store.get(ResourceKind.ARRIVAL, namespace, arrival.name)

        logger.info(f"{holder} arrived at {self.ref(name, namespace)}")
        return created

    async def wait(self, name: str, timeout: Timeout = None, namespace: str = "default") -> Barrier:
        """
        Wait for the barrier to open.

        Raises:
            PrimitiveFailedError: barrier timed out
            WaitTimeoutError: caller's timeout elapsed first
        """
        ref = self.ref(name, namespace)

        async def probe() -> Optional[Barrier]:
            barrier: Barrier = await self.get(name, namespace)
            if barrier.status.phase == BarrierPhase.OPEN:
                return barrier
            if barrier.status.phase == BarrierPhase.FAILED:
                raise PrimitiveFailedError(
                    ref, f"{barrier.status.arrived}/{barrier.spec.required} arrived before timeout"
                )
            return None

        return await super().wait(probe, timeout, f"{ref} to open")


class GateService(PrimitiveService):
    """Gate wait."""

    kind = ResourceKind.GATE

    async def wait(self, name: str, timeout: Timeout = None, namespace: str = "default") -> Gate:
        """
        Wait for the gate to open.

        Raises:
            PrimitiveFailedError: gate timed out
            WaitTimeoutError: caller's timeout elapsed first
        """
        ref = self.ref(name, namespace)

        async def probe() -> Optional[Gate]:
            gate: Gate = await self.get(name, namespace)
            if gate.status.phase == GatePhase.OPEN:
                return gate
            if gate.status.phase == GatePhase.FAILED:
                unmet = [c.message for c in gate.status.condition_statuses if not c.met]
                raise PrimitiveFailedError(ref, "; ".join(unmet))
            return None

        return await super().wait(probe, timeout, f"{ref} to open")


__all__ = ["BarrierService", "GateService"]
