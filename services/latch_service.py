# ============================================================================
# LATCH SERVICES
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Once and WaitGroup client operations
# PURPOSE: First-writer-wins execution marker and dynamic counter
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Latch Services

Both primitives are mutated only here, through update_status_with_retry.
Concurrent add() calls each retry their own conditional write, so no
increment is lost.
"""

import logging
from typing import Awaitable, Callable, Optional, TypeVar

from core.contracts import OncePhase, ResourceKind, WaitGroupPhase
from core.models import Once, OnceStatus, WaitGroup, WaitGroupStatus
from core.models.latch import INT32_MAX, INT32_MIN
from services.base import PrimitiveService
from services.retry import Timeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OnceService(PrimitiveService):
    """Once mark_executed / is_executed / do."""

    kind = ResourceKind.ONCE

    async def is_executed(self, name: str, namespace: str = "default") -> bool:
        once: Once = await self.get(name, namespace)
        return once.status.executed

    async def mark_executed(self, name: str, executor: Optional[str] = None, namespace: str = "default") -> bool:
        """
        Claim the single execution.

        Returns:
            True if this call set executed, False if someone already had
        """
        executor = self.holder_or_default(executor)
        won = False

        def mutate(once: Once) -> Optional[OnceStatus]:
            nonlocal won
            if once.status.executed:
                won = False
                return None
            won = True
            return OnceStatus(
                executed=True,
                executor=executor,
                executed_at=self.clock(),
                phase=OncePhase.EXECUTED,
            )

        await self.update_status(name, namespace, mutate)
        if won:
            logger.info(f"{executor} executed {self.ref(name, namespace)}")
        return won

    async def do(
        self,
        name: str,
        fn: Callable[[], Awaitable[T]],
        executor: Optional[str] = None,
        namespace: str = "default",
    ) -> Optional[T]:
        """
        Run `fn` only if this caller wins the execution claim.

        The claim is written before `fn` runs, so a failing `fn` is not
        retried by anyone else.
        """
        if not await self.mark_executed(name, executor=executor, namespace=namespace):
            return None
        return await fn()


class WaitGroupService(PrimitiveService):
    """WaitGroup add / done / wait."""

    kind = ResourceKind.WAITGROUP

    async def add(self, name: str, delta: int = 1, namespace: str = "default") -> WaitGroup:
        """
        Change the counter by `delta`.

        Raises:
            ValueError: result would leave the int32 range
        """
        def mutate(wg: WaitGroup) -> WaitGroupStatus:
            counter = wg.status.counter + delta
            if not INT32_MIN <= counter <= INT32_MAX:
                raise ValueError(f"counter {counter} out of int32 range")
            return WaitGroupStatus(
                counter=counter,
                phase=WaitGroupPhase.DONE if counter <= 0 else WaitGroupPhase.WAITING,
            )

        wg = await self.update_status(name, namespace, mutate)
        logger.debug(f"{self.ref(name, namespace)} counter -> {wg.status.counter}")
        return wg

    async def done(self, name: str, namespace: str = "default") -> WaitGroup:
        return await self.add(name, -1, namespace=namespace)

    async def wait(self, name: str, timeout: Timeout = None, namespace: str = "default") -> WaitGroup:
        """Wait until the counter is zero or below."""

        async def probe() -> Optional[WaitGroup]:
            wg: WaitGroup = await self.get(name, namespace)
            return wg if wg.status.counter <= 0 else None

        return await super().wait(probe, timeout, f"{self.ref(name, namespace)} to reach zero")


__all__ = ["OnceService", "WaitGroupService"]
