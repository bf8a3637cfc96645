# ============================================================================
# CONTROLLER LOOP
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Dispatcher and work queue
# PURPOSE: Drive reconcilers from watch events, resync and requeue timers
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Controller Loop

Work is keyed by (kind, namespace, name). Three things enqueue a key:

1. Watch events - an event for a reconciled kind enqueues its own key; an
   event for a child kind (Permit, Arrival, LeaseRequest) enqueues the
   parent named by its label.
2. Periodic resync - every key of every registered kind, to cover missed
   events.
3. Requeue timers - reconcilers ask to be called again after a delay.
   Only the earliest pending timer per key is kept.

The WorkQueue guarantees a key is processed by at most one worker at a
time. A key added while it is being processed is marked dirty and handed
out again once the worker finishes.

Errors:
- ConflictError -> requeue immediately, falling back to backoff after a
  few consecutive conflicts
- anything else -> exponential backoff per key (base 0.5s, cap 60s)
- success resets the key's failure count

Runs as background tasks in the FastAPI application.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set, Tuple

from core.config import ControllerDefaults
from core.models import ResourceKey
from controller.engine.base import ActionType, NextAction
from controller.engine.registry import ReconcilerRegistry
from repositories import ConflictError, ObjectStore, ResourceEvent

logger = logging.getLogger(__name__)

# Consecutive conflicts on one key that are retried without delay
IMMEDIATE_CONFLICT_RETRIES = 3


class WorkQueue:
    """
    De-duplicating, per-key serialized work queue.

    add() of a key that is already queued is a no-op; add() of a key being
    processed marks it dirty so it is queued again on done().
    """

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._dirty: Set[ResourceKey] = set()
        self._processing: Set[ResourceKey] = set()
        self._timers: Dict[ResourceKey, Tuple[float, asyncio.TimerHandle]] = {}
        self._shutdown = False

    def add(self, key: ResourceKey) -> None:
        if self._shutdown or key in self._dirty:
            return
        self._dirty.add(key)
        if key not in self._processing:
            self._queue.put_nowait(key)

    def add_after(self, key: ResourceKey, delay: float) -> None:
        """Enqueue `key` after `delay` seconds, keeping the earliest timer."""
        if self._shutdown:
            return
        if delay <= 0:
            self.add(key)
            return

        loop = asyncio.get_running_loop()
        due = loop.time() + delay
        existing = self._timers.get(key)
        if existing is not None:
            if existing[0] <= due:
                return
            existing[1].cancel()
        handle = loop.call_later(delay, self._fire, key)
        self._timers[key] = (due, handle)

    def _fire(self, key: ResourceKey) -> None:
        self._timers.pop(key, None)
        self.add(key)

    async def get(self) -> Optional[ResourceKey]:
        """Next key to process, or None once shut down."""
        key = await self._queue.get()
        if key is None:
            return None
        self._dirty.discard(key)
        self._processing.add(key)
        return key

    def done(self, key: ResourceKey) -> None:
        self._processing.discard(key)
        if key in self._dirty and not self._shutdown:
            self._queue.put_nowait(key)

    def pending_timer(self, key: ResourceKey) -> Optional[float]:
        """Seconds until the key's timer fires, if one is set."""
        existing = self._timers.get(key)
        if existing is None:
            return None
        return max(0.0, existing[0] - asyncio.get_running_loop().time())

    def shutdown(self, workers: int) -> None:
        self._shutdown = True
        for _, handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        for _ in range(workers):
            self._queue.put_nowait(None)

    @property
    def depth(self) -> int:
        return len(self._dirty)

    @property
    def in_flight(self) -> int:
        return len(self._processing)

    @property
    def timers(self) -> int:
        return len(self._timers)


class Controller:
    """
    Reconciliation dispatcher.

    Owns a WorkQueue, a worker pool, a watch consumer and a resync loop.
    Reconcilers come from an injected ReconcilerRegistry.
    """

    def __init__(
        self,
        store: ObjectStore,
        registry: ReconcilerRegistry,
        defaults: Optional[ControllerDefaults] = None,
    ):
        self.store = store
        self.registry = registry
        self.defaults = defaults or ControllerDefaults.from_env()

        self.queue = WorkQueue()
        self._failures: Dict[ResourceKey, int] = {}

        self._running = False
        self._workers: list = []
        self._watch_task: Optional[asyncio.Task] = None
        self._resync_task: Optional[asyncio.Task] = None

        # Metrics
        self._started_at: Optional[datetime] = None
        self._reconciles = 0
        self._conflicts = 0
        self._errors = 0
        self._events = 0
        self._resyncs = 0
        self._last_resync_at: Optional[datetime] = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start workers, the watch consumer and the resync loop."""
        if self._running:
            logger.warning("Controller already running")
            return

        self._running = True
        self._started_at = datetime.now(timezone.utc)

        for i in range(self.defaults.workers):
            self._workers.append(asyncio.create_task(self._worker(i), name=f"controller-worker-{i}"))
        self._watch_task = asyncio.create_task(self._watch_loop(), name="controller-watch")
        self._resync_task = asyncio.create_task(self._resync_loop(), name="controller-resync")

        logger.info(
            f"Controller started (workers={self.defaults.workers}, "
            f"resync={self.defaults.resync_interval}s, kinds={len(self.registry)})"
        )

    async def stop(self) -> None:
        """Stop all background tasks."""
        if not self._running:
            return
        logger.info("Stopping controller")
        self._running = False
        self.queue.shutdown(len(self._workers))

        tasks = [self._watch_task, self._resync_task, *self._workers]
        for task in tasks:
            if task and not task.done():
                task.cancel()
        for task in tasks:
            if task:
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        self._workers = []
        self._watch_task = None
        self._resync_task = None
        logger.info(
            f"Controller stopped (reconciles={self._reconciles}, "
            f"conflicts={self._conflicts}, errors={self._errors})"
        )

    # =========================================================================
    # TRIGGERS
    # =========================================================================

    def enqueue(self, key: ResourceKey) -> None:
        if key.kind in self.registry:
            self.queue.add(key)

    def handle_event(self, event: ResourceEvent) -> None:
        """Map a store event to the keys it affects."""
        self._events += 1
        if event.kind in self.registry:
            self.queue.add(event.key)
        parent = event.parent_key()
        if parent is not None and parent.kind in self.registry:
            self.queue.add(parent)

    async def resync(self) -> int:
        """Enqueue every resource of every reconciled kind."""
        count = 0
        for kind in self.registry.kinds():
            for resource in await self.store.list(kind):
                self.queue.add(resource.key)
                count += 1
        self._resyncs += 1
        self._last_resync_at = datetime.now(timezone.utc)
        logger.debug(f"Resync enqueued {count} resources")
        return count

    async def _resync_loop(self) -> None:
        while self._running:
            try:
                await self.resync()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._errors += 1
                logger.error(f"Resync failed: {e}")
            await asyncio.sleep(self.defaults.resync_interval)

    async def _watch_loop(self) -> None:
        while self._running:
            try:
                async for event in self.store.watch():
                    self.handle_event(event)
                if self._running:
                    logger.warning("Watch stream ended, restarting")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._errors += 1
                logger.error(f"Watch failed: {e}")
            await asyncio.sleep(self.defaults.watch_restart_delay)

    # =========================================================================
    # WORKERS
    # =========================================================================

    async def _worker(self, index: int) -> None:
        logger.debug(f"Worker {index} started")
        while True:
            key = await self.queue.get()
            if key is None:
                return
            try:
                await self.process_key(key)
            finally:
                self.queue.done(key)

    async def process_key(self, key: ResourceKey) -> Optional[NextAction]:
        """
        Reconcile one key and schedule its next run.

        Returns:
            The reconciler's NextAction, or None when reconciliation failed
        """
        reconciler = self.registry.get(key.kind)
        if reconciler is None:
            logger.warning(f"No reconciler for {key.kind.value}, dropping {key}")
            return None

        self._reconciles += 1
        try:
            action = await reconciler.reconcile(key)
        except ConflictError as e:
            self._conflicts += 1
            failures = self._record_failure(key)
            if failures <= IMMEDIATE_CONFLICT_RETRIES:
                logger.debug(f"Conflict on {key}, requeueing now: {e}")
                self.queue.add(key)
            else:
                self._schedule_backoff(key, failures, e)
            return None
        except Exception as e:
            self._errors += 1
            failures = self._record_failure(key)
            logger.exception(f"Reconcile of {key} failed: {e}")
            self._schedule_backoff(key, failures, e)
            return None

        if action.type == ActionType.RETRY:
            self._errors += 1
            failures = self._record_failure(key)
            self._schedule_backoff(key, failures, action.error)
            return action

        self._failures.pop(key, None)
        if action.type == ActionType.REQUEUE:
            self.queue.add_after(key, action.delay.total_seconds())
        return action

    def _record_failure(self, key: ResourceKey) -> int:
        failures = self._failures.get(key, 0) + 1
        self._failures[key] = failures
        return failures

    def _schedule_backoff(self, key: ResourceKey, failures: int, error: Any) -> None:
        delay = self.defaults.backoff(failures)
        logger.warning(f"Retrying {key} in {delay:.1f}s (attempt {failures}): {error}")
        self.queue.add_after(key, delay)

    def failures(self, key: ResourceKey) -> int:
        return self._failures.get(key, 0)

    @property
    def stats(self) -> Dict[str, Any]:
        """Get controller statistics."""
        uptime_seconds = None
        if self._started_at:
            uptime_seconds = (datetime.now(timezone.utc) - self._started_at).total_seconds()

        return {
            "running": self._running,
            "started_at": self._started_at.isoformat() if self._started_at else None,
            "uptime_seconds": uptime_seconds,
            "workers": self.defaults.workers,
            "kinds": [kind.value for kind in self.registry.kinds()],
            "queue_depth": self.queue.depth,
            "in_flight": self.queue.in_flight,
            "timers": self.queue.timers,
            "reconciles": self._reconciles,
            "conflicts": self._conflicts,
            "errors": self._errors,
            "events": self._events,
            "resyncs": self._resyncs,
            "last_resync_at": self._last_resync_at.isoformat() if self._last_resync_at else None,
            "backing_off": len(self._failures),
        }


__all__ = ["Controller", "WorkQueue", "IMMEDIATE_CONFLICT_RETRIES"]
