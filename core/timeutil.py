# ============================================================================
# TIME HELPERS
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Clock and duration parsing
# PURPOSE: Timezone-aware clock and duration parsing for TTLs and timeouts
# CREATED: 17 OCT 2026
# ============================================================================
"""
Time Helpers

All timestamps in the system are timezone-aware UTC. Durations accept
three spellings so that manifests written for the Go tooling keep working:

    30              -> 30 seconds
    "PT30S"         -> ISO 8601 (pydantic's native timedelta format)
    "1h30m", "500ms" -> Go-style duration strings
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

Clock = Callable[[], datetime]

_GO_DURATION = re.compile(r"^(?:\d+(?:\.\d+)?(?:ns|us|µs|ms|s|m|h))+$")
_GO_PART = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)")

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def utc_now() -> datetime:
    """Current time, timezone-aware UTC."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC (rows written before tz support)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_go_duration(text: str) -> timedelta:
    """
    Parse a Go-style duration string.

    Args:
        text: e.g. "30s", "5m", "1h30m", "250ms"

    Returns:
        Equivalent timedelta

    Raises:
        ValueError: If the string is not a Go duration
    """
    text = text.strip()
    if text in ("0", ""):
        return timedelta(0)
    if not _GO_DURATION.match(text):
        raise ValueError(f"Invalid duration: {text!r}")
    seconds = sum(float(amount) * _UNIT_SECONDS[unit] for amount, unit in _GO_PART.findall(text))
    return timedelta(seconds=seconds)


def coerce_duration(value: Any) -> Any:
    """
    Pydantic before-validator for duration fields.

    Go-style strings are converted here; everything else (numbers,
    ISO 8601 strings, timedelta) is left for pydantic to parse.
    """
    if isinstance(value, str):
        stripped = value.strip()
        if stripped and not stripped.lstrip("-").upper().startswith("P"):
            try:
                return float(stripped)
            except ValueError:
                return parse_go_duration(stripped)
    return value


def format_duration(delta: timedelta) -> str:
    """Render a timedelta in Go style ("1h30m0s") for CLI and logs."""
    total = delta.total_seconds()
    if total < 1:
        return f"{int(total * 1000)}ms"
    hours, rest = divmod(int(total), 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{hours}h{minutes}m{seconds}s"
    if minutes:
        return f"{minutes}m{seconds}s"
    return f"{seconds}s"


__all__ = [
    "Clock",
    "utc_now",
    "ensure_utc",
    "parse_go_duration",
    "coerce_duration",
    "format_duration",
]
