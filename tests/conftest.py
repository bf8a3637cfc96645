# ============================================================================
# SHARED TEST FIXTURES
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Tests - Fixtures shared by every test module
# PURPOSE: Controllable clock, fast retry/wait settings, store variants
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Shared fixtures.

FakeClock lets reconcilers and services see a fixed "now" that tests move
forward explicitly. YieldingStore suspends between read and write so that
concurrent clients on one event loop really do race.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from core.config import ReconcileDefaults, RetryDefaults, WaitDefaults
from core.contracts import ResourceKind
from core.models import ObjectMeta
from repositories import ConflictError, MemoryObjectStore, StoreError

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


class YieldingStore(MemoryObjectStore):
    """Memory store that yields to the event loop after every get()."""

    async def get(self, kind, namespace, name):
        resource = await super().get(kind, namespace, name)
        await asyncio.sleep(0)
        return resource


class ConflictingStore(MemoryObjectStore):
    """
    Memory store whose next `conflicts` status writes fail with ConflictError.

    Restrict to one kind with `only`.
    """

    def __init__(self, conflicts: int = 1, only: Optional[ResourceKind] = None):
        super().__init__()
        self.conflicts = conflicts
        self.only = only
        self.injected = 0

    async def update_status(self, resource):
        if self.conflicts > 0 and (self.only is None or resource.KIND == self.only):
            self.conflicts -= 1
            self.injected += 1
            raise ConflictError(f"{resource.key} injected conflict", entity_id=str(resource.key))
        return await super().update_status(resource)


class FailingStore(MemoryObjectStore):
    """Memory store whose status writes to `kind` always fail."""

    def __init__(self, kind: ResourceKind):
        super().__init__()
        self.kind = kind

    async def update_status(self, resource):
        if resource.KIND == self.kind:
            raise StoreError(f"{resource.key} write refused", operation="update_status")
        return await super().update_status(resource)


def meta(name: str, namespace: str = "default", labels=None, created: datetime = T0) -> ObjectMeta:
    """ObjectMeta with a fixed creation time."""
    return ObjectMeta(name=name, namespace=namespace, labels=labels or {}, creation_timestamp=created)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryObjectStore()


@pytest.fixture
def reconcile_defaults():
    return ReconcileDefaults()


@pytest.fixture
def fast_retry():
    """Many quick attempts so racing writers all get through."""
    return RetryDefaults(max_attempts=25, initial_delay=0.001, max_delay=0.005, jitter=0.5)


@pytest.fixture
def fast_wait():
    """Short polls so waits resolve in milliseconds."""
    return WaitDefaults(initial_interval=0.005, max_interval=0.02, multiplier=2.0, jitter=0.0)
