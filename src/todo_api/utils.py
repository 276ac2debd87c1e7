from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Tuple

STATUS_COMPLETED = "Completed"
STATUS_IN_PROGRESS = "In progress"

TIME_FRAMES = ("today", "tomorrow", "week")

_ONE_SECOND = timedelta(seconds=1)


class InvalidTimeFrameError(ValueError):
    """Raised when an incoming-tasks time frame token is not recognized."""

    def __init__(self, time_frame: str) -> None:
        super().__init__(f"Available time frames: {', '.join(TIME_FRAMES)}.")
        self.time_frame = time_frame


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


# PUBLIC_INTERFACE
def resolve_time_frame(time_frame: str, now: datetime) -> Tuple[datetime, datetime]:
    """
    Resolve a symbolic time frame into a closed [start, end] interval anchored
    at the start of the day containing now.

    Args:
        time_frame: One of 'today', 'tomorrow', 'week' (case-insensitive).
        now: The current time.

    Returns:
        (start, end) where end is one second before the start of the next period.

    Raises:
        InvalidTimeFrameError: if the token is not recognized.
    """
    token = (time_frame or "").strip().lower()
    today = start_of_day(now)

    if token == "today":
        start, days = today, 1
    elif token == "tomorrow":
        start, days = today + timedelta(days=1), 1
    elif token == "week":
        start, days = today, 7
    else:
        raise InvalidTimeFrameError(time_frame)

    return start, start + timedelta(days=days) - _ONE_SECOND


def status_label(is_completed: bool) -> str:
    return STATUS_COMPLETED if is_completed else STATUS_IN_PROGRESS


def is_overdue(due_date: datetime, is_completed: bool, now: datetime) -> bool:
    return not is_completed and due_date < now


def days_remaining(due_date: datetime, is_completed: bool, now: datetime) -> int:
    """
    Whole days between the start of today and the due date, rounded up.
    Completed tasks always report 0; overdue ones report zero or a negative count.
    """
    if is_completed:
        return 0
    delta = due_date - start_of_day(now)
    return math.ceil(delta.total_seconds() / 86400)
