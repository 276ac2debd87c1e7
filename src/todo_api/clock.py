from __future__ import annotations

from datetime import datetime
from typing import Protocol


# PUBLIC_INTERFACE
class Clock(Protocol):
    """Source of the current (naive, local) time."""

    def now(self) -> datetime:
        """Return the current time."""


class SystemClock:
    """Clock backed by the host's real-time clock."""

    def now(self) -> datetime:
        return datetime.now()


_system_clock = SystemClock()


# PUBLIC_INTERFACE
def get_clock() -> Clock:
    """
    FastAPI dependency returning the process clock.
    Tests override this dependency to pin "now".
    """
    return _system_clock
