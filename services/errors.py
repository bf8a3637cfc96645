# ============================================================================
# SERVICE ERRORS
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Client-facing error types
# PURPOSE: Errors raised by client operations and mapped to HTTP by the API
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Service Errors

Store errors (NotFoundError, AlreadyExistsError, ...) pass through the
services unchanged. These cover what only a client operation can decide.
"""

from typing import Optional


class SyncError(Exception):
    """Base exception for client operations."""


class LockHeldError(SyncError):
    """The primitive is held by someone else."""

    def __init__(self, resource: str, holder: str):
        self.resource = resource
        self.holder = holder
        super().__init__(f"{resource} is held by {holder}")


class NotHolderError(SyncError):
    """Release or renew attempted by someone who does not hold it."""

    def __init__(self, resource: str, holder: str, actual: Optional[str] = None):
        self.resource = resource
        self.holder = holder
        self.actual = actual
        detail = f" (held by {actual})" if actual else " (not held)"
        super().__init__(f"{holder} does not hold {resource}{detail}")


class WaitTimeoutError(SyncError):
    """A client wait ran out of time."""

    def __init__(self, description: str, timeout: Optional[float]):
        self.description = description
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout}s waiting for {description}")


class PrimitiveFailedError(SyncError):
    """The awaited primitive reached a terminal Failed phase."""

    def __init__(self, resource: str, reason: str = ""):
        self.resource = resource
        self.reason = reason
        super().__init__(f"{resource} failed" + (f": {reason}" if reason else ""))


class RetryExhaustedError(SyncError):
    """Conditional write kept conflicting."""

    def __init__(self, description: str, attempts: int):
        self.description = description
        self.attempts = attempts
        super().__init__(f"{description} still conflicting after {attempts} attempts")


__all__ = [
    "SyncError",
    "LockHeldError",
    "NotHolderError",
    "WaitTimeoutError",
    "PrimitiveFailedError",
    "RetryExhaustedError",
]
