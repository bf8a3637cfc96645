# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Default configuration values
# PURPOSE: Centralized defaults for the dispatcher, reconcilers and clients
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Configuration Defaults

Sensible defaults for the controller and client operations.
These can be overridden via environment variables.

Design:
- Immutable dataclasses for defaults
- Environment variable overrides
- Type-safe access
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, default))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, default))


@dataclass(frozen=True)
class ControllerDefaults:
    """
    Defaults for the dispatcher.

    Controls concurrency, periodic resync and error backoff.
    """
    workers: int = 4
    resync_interval: float = 30.0  # seconds between full listings
    backoff_base: float = 0.5
    backoff_cap: float = 60.0
    watch_restart_delay: float = 1.0

    def backoff(self, failures: int) -> float:
        """Delay before retrying a key that has failed `failures` times in a row."""
        if failures <= 0:
            return 0.0
        return min(self.backoff_cap, self.backoff_base * (2 ** (failures - 1)))

    @classmethod
    def from_env(cls) -> "ControllerDefaults":
        """Create from environment variables."""
        return cls(
            workers=_env_int("CONTROLLER_WORKERS", 4),
            resync_interval=_env_float("CONTROLLER_RESYNC_SECONDS", 30.0),
            backoff_base=_env_float("CONTROLLER_BACKOFF_BASE_SECONDS", 0.5),
            backoff_cap=_env_float("CONTROLLER_BACKOFF_CAP_SECONDS", 60.0),
        )


@dataclass(frozen=True)
class ReconcileDefaults:
    """
    Defaults for reconciler wake-ups.

    Every reconciler expresses waiting as a requeue delay; these bound it.
    """
    min_requeue: timedelta = timedelta(seconds=1)
    semaphore_resync: timedelta = timedelta(seconds=60)
    barrier_poll: timedelta = timedelta(seconds=60)
    lease_fallback: timedelta = timedelta(seconds=60)
    gate_poll: timedelta = timedelta(seconds=10)
    gate_min_requeue: timedelta = timedelta(seconds=1)
    gate_max_requeue: timedelta = timedelta(seconds=30)
    gate_timeout_fraction: float = 0.1

    @classmethod
    def from_env(cls) -> "ReconcileDefaults":
        """Create from environment variables."""
        return cls(
            min_requeue=timedelta(seconds=_env_float("RECONCILE_MIN_REQUEUE_SECONDS", 1.0)),
            semaphore_resync=timedelta(seconds=_env_float("SEMAPHORE_RESYNC_SECONDS", 60.0)),
            barrier_poll=timedelta(seconds=_env_float("BARRIER_POLL_SECONDS", 60.0)),
            lease_fallback=timedelta(seconds=_env_float("LEASE_FALLBACK_SECONDS", 60.0)),
            gate_poll=timedelta(seconds=_env_float("GATE_POLL_SECONDS", 10.0)),
        )


@dataclass(frozen=True)
class RetryDefaults:
    """
    Defaults for client conditional-write retries.

    Used by update_status_with_retry for every client status patch.
    """
    max_attempts: int = 5
    initial_delay: float = 0.01
    max_delay: float = 1.0
    jitter: float = 0.1

    @classmethod
    def from_env(cls) -> "RetryDefaults":
        """Create from environment variables."""
        return cls(
            max_attempts=_env_int("CONFLICT_RETRY_ATTEMPTS", 5),
            initial_delay=_env_float("CONFLICT_RETRY_INITIAL_SECONDS", 0.01),
            max_delay=_env_float("CONFLICT_RETRY_MAX_SECONDS", 1.0),
        )


@dataclass(frozen=True)
class WaitDefaults:
    """
    Defaults for client-side waits (lock, barrier wait, gate wait).
    """
    initial_interval: float = 0.1
    max_interval: float = 5.0
    multiplier: float = 2.0
    jitter: float = 0.1
    default_timeout: Optional[float] = None

    @classmethod
    def from_env(cls) -> "WaitDefaults":
        """Create from environment variables."""
        timeout = os.getenv("WAIT_DEFAULT_TIMEOUT_SECONDS")
        return cls(
            initial_interval=_env_float("WAIT_INITIAL_INTERVAL_SECONDS", 0.1),
            max_interval=_env_float("WAIT_MAX_INTERVAL_SECONDS", 5.0),
            default_timeout=float(timeout) if timeout else None,
        )


# ============================================================================
# GLOBAL DEFAULTS INSTANCE
# ============================================================================

@dataclass
class Defaults:
    """Container for all default configurations."""
    controller: ControllerDefaults = field(default_factory=ControllerDefaults)
    reconcile: ReconcileDefaults = field(default_factory=ReconcileDefaults)
    retry: RetryDefaults = field(default_factory=RetryDefaults)
    wait: WaitDefaults = field(default_factory=WaitDefaults)

    @classmethod
    def from_env(cls) -> "Defaults":
        """Create all defaults from environment variables."""
        return cls(
            controller=ControllerDefaults.from_env(),
            reconcile=ReconcileDefaults.from_env(),
            retry=RetryDefaults.from_env(),
            wait=WaitDefaults.from_env(),
        )


_defaults: Optional[Defaults] = None


def get_defaults() -> Defaults:
    """Get global defaults instance."""
    global _defaults
    if _defaults is None:
        _defaults = Defaults.from_env()
    return _defaults


def reset_defaults() -> None:
    """Reset defaults (for testing)."""
    global _defaults
    _defaults = None


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ControllerDefaults",
    "ReconcileDefaults",
    "RetryDefaults",
    "WaitDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
