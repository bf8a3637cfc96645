# ============================================================================
# PRIMITIVE SERVICE BASE
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Shared plumbing for client operations
# PURPOSE: Store, clock and retry/wait settings in one place
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Primitive Service Base

Every per-primitive service holds the same collaborators. Tests replace
the clock to move time and pass small wait settings to keep polls short.
"""

import asyncio
from typing import Any, Awaitable, Callable, ClassVar, Optional, TypeVar

from core.config import RetryDefaults, WaitDefaults, get_defaults
from core.contracts import ResourceKind
from core.models import Resource, ResourceKey
from core.timeutil import Clock, utc_now
from repositories import ObjectStore
from services.resource_service import ResourceService
from services.retry import Sleep, Timeout, default_holder, update_status_with_retry, wait_for

T = TypeVar("T")


class PrimitiveService:
    """Base for client operations on one primitive kind."""

    kind: ClassVar[ResourceKind]

    def __init__(
        self,
        store: ObjectStore,
        clock: Clock = utc_now,
        retry_defaults: Optional[RetryDefaults] = None,
        wait_defaults: Optional[WaitDefaults] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.store = store
        self.clock = clock
        self.retry_defaults = retry_defaults or get_defaults().retry
        self.wait_defaults = wait_defaults or get_defaults().wait
        self.sleep = sleep
        self.resources = ResourceService(store)

    @staticmethod
    def holder_or_default(holder: Optional[str]) -> str:
        return holder or default_holder()

    def ref(self, name: str, namespace: str) -> str:
        return str(ResourceKey(self.kind, namespace, name))

    async def get(self, name: str, namespace: str = "default") -> Resource:
        return await self.store.get(self.kind, namespace, name)

    async def update_status(
        self,
        name: str,
        namespace: str,
        mutate: Callable[[Resource], Any],
    ) -> Resource:
        return await update_status_with_retry(
            self.store,
            self.kind,
            namespace,
            name,
            mutate,
            defaults=self.retry_defaults,
            sleep=self.sleep,
        )

    async def wait(
        self,
        probe: Callable[[], Awaitable[Optional[T]]],
        timeout: Timeout,
        description: str,
    ) -> T:
        return await wait_for(
            probe,
            timeout=timeout,
            description=description,
            defaults=self.wait_defaults,
            sleep=self.sleep,
        )


__all__ = ["PrimitiveService"]
