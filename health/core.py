# ============================================================================
# HEALTH CHECK CORE TYPES
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Infrastructure - Base classes for health checks
# PURPOSE: Health check plugin interface and result types
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Health Check Core Types

Status Hierarchy (worst wins):
- healthy: All systems operational
- degraded: Operational with warnings (e.g. keys backing off)
- unhealthy: Critical failure (store unreachable, controller stopped)

Categories (execution order by priority):
1. Startup (10): Process and configuration
2. Store (20): Object store reachability
3. Controller (30): Dispatcher and reconcilers
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def _now() -> datetime:
    return datetime.now(timezone.utc)


class HealthStatus(str, Enum):
    """Health check status values."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"

    @property
    def severity(self) -> int:
        return {
            HealthStatus.HEALTHY: 0,
            HealthStatus.DEGRADED: 1,
            HealthStatus.UNHEALTHY: 2,
        }[self]

    @classmethod
    def aggregate(cls, statuses: List["HealthStatus"]) -> "HealthStatus":
        """Aggregate multiple statuses (worst wins)."""
        if not statuses:
            return cls.HEALTHY
        return max(statuses, key=lambda s: s.severity)


class HealthCheckCategory(str, Enum):
    """Health check categories with default priorities."""
    STARTUP = "startup"
    STORE = "store"
    CONTROLLER = "controller"

    @property
    def default_priority(self) -> int:
        return {
            HealthCheckCategory.STARTUP: 10,
            HealthCheckCategory.STORE: 20,
            HealthCheckCategory.CONTROLLER: 30,
        }[self]


@dataclass
class HealthCheckResult:
    """Result from a single health check."""
    status: HealthStatus
    message: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    duration_ms: float = 0.0
    checked_at: datetime = field(default_factory=_now)

    @classmethod
    def healthy(cls, message: str = None, **details) -> "HealthCheckResult":
        return cls(status=HealthStatus.HEALTHY, message=message, details=details)

    @classmethod
    def degraded(cls, message: str, **details) -> "HealthCheckResult":
        return cls(status=HealthStatus.DEGRADED, message=message, details=details)

    @classmethod
    def unhealthy(cls, message: str, **details) -> "HealthCheckResult":
        return cls(status=HealthStatus.UNHEALTHY, message=message, details=details)

    @classmethod
    def from_exception(cls, e: Exception) -> "HealthCheckResult":
        """Create unhealthy result from exception."""
        return cls(
            status=HealthStatus.UNHEALTHY,
            message=str(e),
            details={"exception_type": type(e).__name__},
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        result = {
            "status": self.status.value,
            "duration_ms": round(self.duration_ms, 2),
        }
        if self.message:
            result["message"] = self.message
        if self.details:
            result["details"] = self.details
        return result


@dataclass
class AggregatedHealthResult:
    """Aggregated result from multiple health checks."""
    status: HealthStatus
    checks: Dict[str, HealthCheckResult]
    total_duration_ms: float
    checked_at: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "checks": {name: result.to_dict() for name, result in self.checks.items()},
            "total_duration_ms": round(self.total_duration_ms, 2),
            "checked_at": self.checked_at.isoformat().replace("+00:00", "Z"),
        }


class HealthCheckPlugin(ABC):
    """
    Base class for health check plugins.

    Attributes:
        name: Unique identifier for the check
        category: Check category (determines priority)
        priority: Execution priority (lower runs first)
        timeout_seconds: Max execution time before timeout
        required_for_ready: If True, failure blocks /readyz

    Example:
        @register_check(category="store")
        class StoreCheck(HealthCheckPlugin):
            name = "store"

            async def check(self) -> HealthCheckResult:
                ...
    """

    name: str = "unnamed"
    category: HealthCheckCategory = HealthCheckCategory.CONTROLLER
    priority: int = 50
    timeout_seconds: float = 5.0
    required_for_ready: bool = True

    @abstractmethod
    async def check(self) -> HealthCheckResult:
        """Execute health check."""


__all__ = [
    "HealthStatus",
    "HealthCheckCategory",
    "HealthCheckResult",
    "AggregatedHealthResult",
    "HealthCheckPlugin",
]
