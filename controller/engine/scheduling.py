# ============================================================================
# WAKE-UP SCHEDULING
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Requeue delay helpers
# PURPOSE: Turn expiries and deadlines into bounded requeue delays
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Wake-up Scheduling

Timers are never pushed; a reconcile that sees a future expiry or deadline
asks to be requeued when it arrives. These helpers compute those delays
and keep them above a floor so nothing spins near an expiry.
"""

from datetime import datetime, timedelta
from typing import Optional


def clamp(value: timedelta, lower: timedelta, upper: timedelta) -> timedelta:
    """Bound `value` to [lower, upper]."""
    return max(lower, min(upper, value))


def until(moment: datetime, now: datetime, minimum: timedelta) -> timedelta:
    """Time from `now` to `moment`, never below `minimum`."""
    return max(moment - now, minimum)


def poll_or_deadline(
    poll: timedelta,
    deadline: Optional[datetime],
    now: datetime,
    minimum: timedelta,
) -> timedelta:
    """
    Wake at the next poll or at the deadline, whichever comes first.

    A deadline already behind `now` yields `minimum`.
    """
    if deadline is None:
        return poll
    return max(min(poll, deadline - now), minimum)


def adaptive_poll(
    deadline: Optional[datetime],
    now: datetime,
    default: timedelta,
    fraction: float,
    lower: timedelta,
    upper: timedelta,
) -> timedelta:
    """
    Poll faster as a deadline approaches.

    Without a deadline returns `default`; otherwise `fraction` of the
    remaining time clamped to [lower, upper].
    """
    if deadline is None:
        return default
    remaining = max(deadline - now, timedelta(0))
    return clamp(remaining * fraction, lower, upper)


__all__ = ["clamp", "until", "poll_or_deadline", "adaptive_poll"]
