# ============================================================================
# RECONCILER BASE
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Reconciler contract
# PURPOSE: Pure compute step plus the async fetch/write wrapper around it
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Reconciler Base

Each primitive type has one reconciler. A reconciler is split in two:

    compute(resource, related, now) -> ReconcileOutcome
        Pure. No I/O, no sleeping, no clock reads. Returns the new status,
        what to do next (done / requeue_after / retry) and optional
        best-effort writes to other resources.

    reconcile(key) -> NextAction
        Async wrapper: fetch the resource and its related objects, call
        compute, write the status only when it changed (conditional on the
        version read), then attempt the secondary writes.

Store errors other than NotFound propagate to the dispatcher, which decides
between immediate redelivery (ConflictError) and backoff.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from core.config import ReconcileDefaults
from core.contracts import CHILD_LABELS, ResourceKind
from core.logging import log_checkpoint, log_context
from core.models import Resource, ResourceKey
from core.timeutil import Clock, utc_now
from repositories import NotFoundError, ObjectStore, StoreError

logger = logging.getLogger(__name__)


# ============================================================================
# OUTCOME TYPES
# ============================================================================

class ActionType(str, Enum):
    """What the dispatcher should do with a key after reconciling it."""
    DONE = "done"
    REQUEUE = "requeue"
    RETRY = "retry"


@dataclass(frozen=True)
class NextAction:
    """Scheduling directive returned by a reconcile."""
    type: ActionType
    delay: Optional[timedelta] = None
    error: Optional[BaseException] = None

    @classmethod
    def done(cls) -> "NextAction":
        return cls(ActionType.DONE)

    @classmethod
    def requeue_after(cls, delay: timedelta) -> "NextAction":
        return cls(ActionType.REQUEUE, delay=max(delay, timedelta(0)))

    @classmethod
    def retry(cls, error: BaseException) -> "NextAction":
        return cls(ActionType.RETRY, error=error)

    def __str__(self) -> str:
        if self.type == ActionType.REQUEUE:
            return f"requeue_after({self.delay.total_seconds():.3f}s)"
        if self.type == ActionType.RETRY:
            return f"retry({self.error!r})"
        return "done"


@dataclass
class SecondaryWrite:
    """
    A best-effort status write to another resource.

    `resource` carries the new status and the resource_version it was read
    at, so the write is still conditional.
    """
    resource: Resource
    reason: str = ""


@dataclass
class ReconcileOutcome:
    """Result of a pure compute step."""
    status: Any
    action: NextAction
    secondary_writes: List[SecondaryWrite] = field(default_factory=list)
    checkpoint: Optional[str] = None


# ============================================================================
# CHILD INDEX
# ============================================================================

# parent kind -> (child kind, label naming the parent)
PARENT_CHILDREN: Dict[ResourceKind, Tuple[ResourceKind, str]] = {
    parent: (child, label) for child, (parent, label) in CHILD_LABELS.items()
}


class ChildIndex:
    """
    Lookup from a parent resource to its children.

    Rebuilt from a label-filtered list on every call. Children are never
    owned by the parent; deleting a parent leaves them in place.
    """

    def __init__(self, store: ObjectStore):
        self.store = store

    @staticmethod
    def selector(parent: Resource) -> Dict[str, str]:
        _, label = PARENT_CHILDREN[parent.KIND]
        return {label: parent.name}

    async def children(self, parent: Resource) -> List[Resource]:
        """Children of `parent` in its namespace, in creation order."""
        child_kind, _ = PARENT_CHILDREN[parent.KIND]
        return await self.store.list(
            child_kind,
            namespace=parent.namespace,
            labels=self.selector(parent),
        )


# ============================================================================
# RECONCILER
# ============================================================================

class Reconciler(ABC):
    """Base class for per-kind reconcilers."""

    kind: ClassVar[ResourceKind]

    def __init__(
        self,
        store: ObjectStore,
        defaults: Optional[ReconcileDefaults] = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.defaults = defaults or ReconcileDefaults()
        self.clock = clock
        self.children = ChildIndex(store)

    async def fetch_related(self, resource: Resource) -> Any:
        """Load objects compute() needs besides the resource itself."""
        return None

    @abstractmethod
    def compute(self, resource: Resource, related: Any, now: datetime) -> ReconcileOutcome:
        """Pure reconciliation step."""

    async def reconcile(self, key: ResourceKey) -> NextAction:
        """
        Reconcile one resource.

        Returns:
            NextAction for the dispatcher

        Raises:
            ConflictError: status write lost a race (redeliver now)
            StoreError: any other store failure (redeliver with backoff)
        """
        try:
            resource = await self.store.get(key.kind, key.namespace, key.name)
        except NotFoundError:
            logger.debug(f"{key} no longer exists, nothing to do")
            return NextAction.done()

        related = await self.fetch_related(resource)
        now = self.clock()

        with log_context(kind=key.kind.value, namespace=key.namespace, name=key.name):
            outcome = self.compute(resource, related, now)
            changed = outcome.status != resource.status
            logger.debug(f"Reconciled {key}: changed={changed} next={outcome.action}")

        if changed:
            await self.store.update_status(resource.with_status(outcome.status))
            if outcome.checkpoint:
                with log_context(kind=key.kind.value, namespace=key.namespace, name=key.name):
                    log_checkpoint(outcome.checkpoint)

        for write in outcome.secondary_writes:
            target = write.resource.key
            try:
                await self.store.update_status(write.resource)
            except StoreError as e:
                logger.warning(f"Best-effort update of {target} failed ({write.reason}): {e}")

        return outcome.action


__all__ = [
    "ActionType",
    "NextAction",
    "SecondaryWrite",
    "ReconcileOutcome",
    "PARENT_CHILDREN",
    "ChildIndex",
    "Reconciler",
]
