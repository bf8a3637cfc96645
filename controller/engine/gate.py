# ============================================================================
# GATE RECONCILER
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Composite condition evaluation
# PURPOSE: Open a gate once every referenced resource reaches its target state
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Gate Reconciler

Each condition is evaluated on its own and recorded as {met, message}. A
referenced resource that is missing or cannot be read makes its condition
unmet with a message; it is never a reconcile error.

Phase:
    all conditions met (vacuously true for none) -> Open
    timeout elapsed since creation                 -> Failed
    otherwise                                      -> Waiting

While Waiting the gate polls, faster as the timeout approaches:
10% of the remaining time clamped to [1s, 30s], or every 10s without a
timeout.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Type, Union

from core.contracts import GatePhase, ResourceKind
from core.models import (
    Barrier,
    BarrierCondition,
    Gate,
    GateCondition,
    GateConditionStatus,
    GateStatus,
    Job,
    JobCondition,
    Lease,
    LeaseCondition,
    Resource,
    Semaphore,
    SemaphoreCondition,
    UnknownCondition,
)
from controller.engine.base import NextAction, ReconcileOutcome, Reconciler
from controller.engine.scheduling import adaptive_poll
from repositories import NotFoundError, StoreError

logger = logging.getLogger(__name__)

# Condition class -> kind of the resource it references
CONDITION_KINDS: Dict[Type, ResourceKind] = {
    JobCondition: ResourceKind.JOB,
    SemaphoreCondition: ResourceKind.SEMAPHORE,
    BarrierCondition: ResourceKind.BARRIER,
    LeaseCondition: ResourceKind.LEASE,
}

# What fetch_related found for one condition
Lookup = Union[Resource, StoreError, None]


@dataclass
class ConditionTarget:
    """A condition paired with the resource it references."""
    condition: GateCondition
    namespace: str
    found: Lookup = None


# ============================================================================
# CONDITION EVALUATOR
# ============================================================================

class ConditionEvaluator:
    """
    Evaluates gate conditions against already-fetched resources.

    Stateless and pure; all I/O happens in GateReconciler.fetch_related.
    """

    def evaluate(self, target: ConditionTarget) -> GateConditionStatus:
        condition = target.condition

        if isinstance(condition, UnknownCondition):
            return self._result(condition, False, f"Unknown condition type: {condition.type!r}")

        ref = f"{condition.type} {target.namespace}/{condition.name}"
        found = target.found
        if isinstance(found, NotFoundError):
            return self._result(condition, False, f"{ref} not found")
        if isinstance(found, StoreError) or found is None:
            return self._result(condition, False, f"Failed to read {ref}: {found}")

        if isinstance(condition, JobCondition):
            return self._job(condition, found, ref)
        if isinstance(condition, SemaphoreCondition):
            return self._semaphore(condition, found, ref)
        if isinstance(condition, BarrierCondition):
            return self._phase(condition, found.status.phase, condition.state, ref)
        if isinstance(condition, LeaseCondition):
            return self._phase(condition, found.status.phase, condition.state, ref)

        return self._result(condition, False, f"Unknown condition type: {condition.type!r}")

    @staticmethod
    def _result(condition: GateCondition, met: bool, message: str) -> GateConditionStatus:
        return GateConditionStatus(type=condition.type, name=condition.name, met=met, message=message)

    def _job(self, condition: JobCondition, job: Job, ref: str) -> GateConditionStatus:
        if job.status.reached(condition.state):
            return self._result(condition, True, f"{ref} is {condition.state}")
        return self._result(
            condition,
            False,
            f"{ref} has not reached {condition.state} "
            f"(active={job.status.active}, succeeded={job.status.succeeded}, failed={job.status.failed})",
        )

    def _semaphore(self, condition: SemaphoreCondition, semaphore: Semaphore, ref: str) -> GateConditionStatus:
        if condition.value is None:
            return self._result(condition, False, "Semaphore condition requires a value")
        available = semaphore.status.available
        met = available >= condition.value
        return self._result(condition, met, f"{ref} has {available} available, need {condition.value}")

    def _phase(self, condition: GateCondition, phase, wanted, ref: str) -> GateConditionStatus:
        if phase == wanted:
            return self._result(condition, True, f"{ref} is {wanted.value}")
        observed = phase.value if phase is not None else "not yet reconciled"
        return self._result(condition, False, f"{ref} is {observed}, waiting for {wanted.value}")


# ============================================================================
# RECONCILER
# ============================================================================

class GateReconciler(Reconciler):
    """Evaluate a gate's conditions."""

    kind = ResourceKind.GATE

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.evaluator = ConditionEvaluator()

    async def fetch_related(self, resource: Gate) -> List[ConditionTarget]:
        targets = []
        for condition in resource.spec.conditions:
            namespace = condition.namespace or resource.namespace
            target = ConditionTarget(condition=condition, namespace=namespace)
            kind = CONDITION_KINDS.get(type(condition))
            if kind is not None:
                try:
                    target.found = await self.store.get(kind, namespace, condition.name)
                except StoreError as e:
                    target.found = e
            targets.append(target)
        return targets

    def compute(self, resource: Gate, related: List[ConditionTarget], now: datetime) -> ReconcileOutcome:
        results = [self.evaluator.evaluate(target) for target in related or []]
        all_met = all(result.met for result in results)

        status = GateStatus(
            condition_statuses=results,
            opened_at=resource.status.opened_at,
        )
        deadline = resource.deadline()

        if all_met:
            status.phase = GatePhase.OPEN
            if status.opened_at is None:
                status.opened_at = now
            action = NextAction.done()
        elif deadline is not None and now > deadline:
            status.phase = GatePhase.FAILED
            action = NextAction.done()
        else:
            status.phase = GatePhase.WAITING
            action = NextAction.requeue_after(adaptive_poll(
                deadline,
                now,
                default=self.defaults.gate_poll,
                fraction=self.defaults.gate_timeout_fraction,
                lower=self.defaults.gate_min_requeue,
                upper=self.defaults.gate_max_requeue,
            ))

        checkpoint: Optional[str] = None
        if status.phase != resource.status.phase and status.phase != GatePhase.WAITING:
            checkpoint = f"gate_{status.phase.value.lower()}"
            met = sum(1 for r in results if r.met)
            logger.info(f"Gate {status.phase.value}: {met}/{len(results)} conditions met")

        return ReconcileOutcome(status=status, action=action, checkpoint=checkpoint)


__all__ = ["GateReconciler", "ConditionEvaluator", "ConditionTarget", "CONDITION_KINDS"]
