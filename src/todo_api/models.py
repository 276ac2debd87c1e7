from __future__ import annotations

from datetime import datetime
from typing import Optional, Tuple, TypedDict

MAX_PERCENTAGE = 100


# PUBLIC_INTERFACE
class TaskItem(TypedDict):
    """
    The stored task record as passed between the repositories and the service.

    Fields:
    - id: Unique integer identifier assigned by the store
    - title: Short title (1..100 chars)
    - description: Detailed description (0..500 chars, empty by default)
    - due_date: Due datetime
    - completion_percentage: Progress in percent (0..100)
    - is_completed: Completion flag, always True when completion_percentage is 100
    - created_at: Creation timestamp, set once by the store
    - updated_at: Last mutation timestamp, None until the first mutation
    """

    id: int
    title: str
    description: str
    due_date: datetime
    completion_percentage: int
    is_completed: bool
    created_at: datetime
    updated_at: Optional[datetime]


# PUBLIC_INTERFACE
def apply_completion_rule(item: TaskItem) -> TaskItem:
    """
    Clamp completion_percentage to 100 and flag the item completed when it
    reaches 100. Mutates and returns the given item.
    """
    if item["completion_percentage"] >= MAX_PERCENTAGE:
        item["completion_percentage"] = MAX_PERCENTAGE
        item["is_completed"] = True
    return item


def clamp_percentage(value: int) -> Tuple[int, bool]:
    """Return the stored percentage for value and whether it completes the item."""
    if value >= MAX_PERCENTAGE:
        return MAX_PERCENTAGE, True
    return value, False
