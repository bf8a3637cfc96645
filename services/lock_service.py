# ============================================================================
# LOCK SERVICES
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Mutex and RWMutex client operations
# PURPOSE: Acquire and release locks through conditional status writes
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Lock Services

Locks are taken by writing the holder into the status with a conditional
write. A lock whose expires_at has passed counts as free even if the
reconciler has not cleared it yet.

Locking is re-entrant for the same holder: locking again refreshes
locked_at and expires_at.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from core.contracts import MutexPhase, ResourceKind, RWMutexPhase
from core.models import Mutex, MutexStatus, RWMutex, RWMutexStatus
from services.base import PrimitiveService
from services.errors import LockHeldError, NotHolderError
from services.retry import Timeout

logger = logging.getLogger(__name__)


def _expired(expires_at: Optional[datetime], now: datetime) -> bool:
    return expires_at is not None and expires_at <= now


def _expiry(now: datetime, ttl: Optional[timedelta]) -> Optional[datetime]:
    return now + ttl if ttl is not None else None


def _later(current: Optional[datetime], new: Optional[datetime]) -> Optional[datetime]:
    """Later of two expiries; a missing one never clears the other."""
    if current is None:
        return new
    if new is None:
        return current
    return max(current, new)


class MutexService(PrimitiveService):
    """Mutex lock / try_lock / unlock."""

    kind = ResourceKind.MUTEX

    def _locker(self, name: str, namespace: str, holder: str, ttl: Optional[timedelta]):
        def mutate(mutex: Mutex) -> MutexStatus:
            now = self.clock()
            current = mutex.status
            if current.holder and current.holder != holder and not _expired(current.expires_at, now):
                raise LockHeldError(self.ref(name, namespace), current.holder)
            return MutexStatus(
                holder=holder,
                locked_at=now,
                expires_at=_expiry(now, ttl if ttl is not None else mutex.spec.ttl),
                phase=MutexPhase.LOCKED,
            )
        return mutate

    async def try_lock(
        self,
        name: str,
        holder: Optional[str] = None,
        ttl: Optional[timedelta] = None,
        namespace: str = "default",
    ) -> Mutex:
        """
        Take the lock once or fail.

        Raises:
            LockHeldError: someone else holds a live lock
        """
        holder = self.holder_or_default(holder)
        mutex = await self.update_status(name, namespace, self._locker(name, namespace, holder, ttl))
        logger.info(f"{holder} locked {self.ref(name, namespace)}")
        return mutex

    async def lock(
        self,
        name: str,
        holder: Optional[str] = None,
        ttl: Optional[timedelta] = None,
        timeout: Timeout = None,
        namespace: str = "default",
    ) -> Mutex:
        """
        Take the lock, waiting for the current holder to release or expire.

        Raises:
            WaitTimeoutError: still held when timeout elapsed
        """
        holder = self.holder_or_default(holder)

        async def attempt() -> Optional[Mutex]:
            try:
                return await self.try_lock(name, holder=holder, ttl=ttl, namespace=namespace)
            except LockHeldError:
                return None

        return await self.wait(attempt, timeout, f"lock on {self.ref(name, namespace)}")

    async def unlock(self, name: str, holder: Optional[str] = None, namespace: str = "default") -> Mutex:
        """
        Release the lock.

        Raises:
            NotHolderError: caller does not hold the lock
        """
        holder = self.holder_or_default(holder)

        def mutate(mutex: Mutex) -> MutexStatus:
            if mutex.status.holder != holder:
                raise NotHolderError(self.ref(name, namespace), holder, mutex.status.holder or None)
            return MutexStatus(phase=MutexPhase.UNLOCKED)

        mutex = await self.update_status(name, namespace, mutate)
        logger.info(f"{holder} unlocked {self.ref(name, namespace)}")
        return mutex


class RWMutexService(PrimitiveService):
    """RWMutex rlock / lock / unlock."""

    kind = ResourceKind.RWMUTEX

    @staticmethod
    def _live(status: RWMutexStatus, now: datetime) -> RWMutexStatus:
        """Status with an expired grant treated as released."""
        if _expired(status.expires_at, now):
            return RWMutexStatus(phase=RWMutexPhase.UNLOCKED)
        return status.model_copy(deep=True)

    def _reader(self, name: str, namespace: str, holder: str, ttl: Optional[timedelta]):
        def mutate(rw: RWMutex) -> RWMutexStatus:
            now = self.clock()
            status = self._live(rw.status, now)
            if status.write_holder and status.write_holder != holder:
                raise LockHeldError(self.ref(name, namespace), status.write_holder)
            if status.write_holder == holder:
                # Downgrade from write to read
                status.write_holder = ""
            if holder not in status.read_holders:
                status.read_holders.append(holder)
            status.locked_at = status.locked_at or now
            # Readers share one expiry; a new reader never shortens or clears it
            status.expires_at = _later(status.expires_at, _expiry(now, ttl if ttl is not None else rw.spec.ttl))
            status.phase = RWMutexPhase.READ_LOCKED
            return status
        return mutate

    def _writer(self, name: str, namespace: str, holder: str, ttl: Optional[timedelta]):
        def mutate(rw: RWMutex) -> RWMutexStatus:
            now = self.clock()
            status = self._live(rw.status, now)
            if status.write_holder and status.write_holder != holder:
                raise LockHeldError(self.ref(name, namespace), status.write_holder)
            readers = [r for r in status.read_holders if r != holder]
            if readers:
                raise LockHeldError(self.ref(name, namespace), ", ".join(readers))
            return RWMutexStatus(
                write_holder=holder,
                read_holders=[],
                locked_at=now,
                expires_at=_expiry(now, ttl if ttl is not None else rw.spec.ttl),
                phase=RWMutexPhase.WRITE_LOCKED,
            )
        return mutate

    async def try_rlock(self, name: str, holder: Optional[str] = None, ttl: Optional[timedelta] = None,
                        namespace: str = "default") -> RWMutex:
        holder = self.holder_or_default(holder)
        return await self.update_status(name, namespace, self._reader(name, namespace, holder, ttl))

    async def try_lock(self, name: str, holder: Optional[str] = None, ttl: Optional[timedelta] = None,
                       namespace: str = "default") -> RWMutex:
        holder = self.holder_or_default(holder)
        return await self.update_status(name, namespace, self._writer(name, namespace, holder, ttl))

    async def rlock(
        self,
        name: str,
        holder: Optional[str] = None,
        ttl: Optional[timedelta] = None,
        timeout: Timeout = None,
        namespace: str = "default",
    ) -> RWMutex:
        """Take a shared read lock, waiting out any writer."""
        holder = self.holder_or_default(holder)

        async def attempt() -> Optional[RWMutex]:
            try:
                return await self.try_rlock(name, holder=holder, ttl=ttl, namespace=namespace)
            except LockHeldError:
                return None

        rw = await self.wait(attempt, timeout, f"read lock on {self.ref(name, namespace)}")
        logger.info(f"{holder} read-locked {self.ref(name, namespace)}")
        return rw

    async def lock(
        self,
        name: str,
        holder: Optional[str] = None,
        ttl: Optional[timedelta] = None,
        timeout: Timeout = None,
        namespace: str = "default",
    ) -> RWMutex:
        """Take the exclusive write lock, waiting for readers and writers to leave."""
        holder = self.holder_or_default(holder)

        async def attempt() -> Optional[RWMutex]:
            try:
                return await self.try_lock(name, holder=holder, ttl=ttl, namespace=namespace)
            except LockHeldError:
                return None

        rw = await self.wait(attempt, timeout, f"write lock on {self.ref(name, namespace)}")
        logger.info(f"{holder} write-locked {self.ref(name, namespace)}")
        return rw

    async def unlock(self, name: str, holder: Optional[str] = None, namespace: str = "default") -> RWMutex:
        """
        Release whichever lock `holder` has (write or read).

        Raises:
            NotHolderError: holder has neither
        """
        holder = self.holder_or_default(holder)

        def mutate(rw: RWMutex) -> RWMutexStatus:
            status = rw.status.model_copy(deep=True)
            if status.write_holder == holder:
                status.write_holder = ""
            elif holder in status.read_holders:
                status.read_holders.remove(holder)
            else:
                actual = status.write_holder or ", ".join(status.read_holders) or None
                raise NotHolderError(self.ref(name, namespace), holder, actual)

            if status.write_holder:
                status.phase = RWMutexPhase.WRITE_LOCKED
            elif status.read_holders:
                status.phase = RWMutexPhase.READ_LOCKED
            else:
                return RWMutexStatus(phase=RWMutexPhase.UNLOCKED)
            return status

        rw = await self.update_status(name, namespace, mutate)
        logger.info(f"{holder} unlocked {self.ref(name, namespace)}")
        return rw


__all__ = ["MutexService", "RWMutexService"]
