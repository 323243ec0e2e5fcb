"""
Time source used by the accrual engine.

Services never call ``datetime.now()`` directly; they receive a ``Clock`` so
tests can pin "now" and assert exact cycle windows.
"""

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """Return the current time as a timezone-aware UTC datetime."""
        ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


system_clock = SystemClock()
