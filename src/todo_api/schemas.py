from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import TaskItem
from .utils import days_remaining, is_overdue, status_label

# Shared type for incoming due_date which can be a date, datetime, or ISO8601 string
DueDateInput = Union[date, datetime, str]


def _parse_due_date(value: Optional[DueDateInput]) -> Optional[datetime]:
    """
    Internal helper to normalize due_date input into a naive local datetime.
    - If value is a string, attempt to parse via datetime.fromisoformat; if time is missing, set to 00:00.
    - If value is a date (not datetime), convert to datetime at 00:00.
    - Timezone-aware datetimes are converted to local time and made naive.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return _to_local_naive(value)

    if isinstance(value, date):
        # Promote a date to a datetime at midnight
        return datetime(value.year, value.month, value.day, 0, 0, 0)

    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        # fromisoformat before 3.11 does not accept a trailing 'Z'
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            return _to_local_naive(datetime.fromisoformat(s))
        except ValueError:
            # If only a date is provided, convert to midnight
            try:
                d = date.fromisoformat(s)
                return datetime(d.year, d.month, d.day, 0, 0, 0)
            except ValueError as e:
                raise ValueError(
                    "Invalid due_date format. Use ISO8601 date or datetime string (e.g., '2025-01-31' or '2025-01-31T13:45:00')."
                ) from e

    raise ValueError("Invalid type for due_date; expected date, datetime, or ISO8601 string.")


def _to_local_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


# PUBLIC_INTERFACE
class TaskItemCreateUpdate(BaseModel):
    """
    Schema for creating or fully replacing a task item.

    Field rules (length, range, future due date) are enforced by the service
    through todo_api.validators so that every violated field is reported at once.
    Unknown keys such as id or created_at are ignored.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Prepare quarterly report",
                "description": "Collect figures from finance and draft the summary",
                "due_date": "2025-02-01T17:00:00",
                "completion_percentage": 20,
            }
        }
    )

    title: str = Field(default="", description="Short title for the task (1..100 characters)")
    description: str = Field(default="", description="Detailed description (up to 500 characters)")
    due_date: Optional[datetime] = Field(
        default=None,
        description="Due date/time of the task, must be in the future. Accepts ISO8601 date or datetime; dates are set to 00:00",
    )
    completion_percentage: int = Field(default=0, description="Completion percentage (0..100)")

    @field_validator("title", "description", mode="before")
    @classmethod
    def null_as_empty(cls, v: Optional[str]) -> str:
        """
        Treat an explicit null title or description as empty.
        """
        return "" if v is None else v

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        """
        Normalize due_date from str/date/datetime to datetime.
        """
        return _parse_due_date(v)


# PUBLIC_INTERFACE
class TaskItemListOut(BaseModel):
    """
    Compact view of a task item used in collection responses.
    """

    id: int = Field(..., description="Unique identifier of the task")
    title: str = Field(..., description="Short title for the task")
    due_date: datetime = Field(..., description="Due date/time of the task as an ISO8601 datetime")
    completion_percentage: int = Field(..., description="Completion percentage (0..100)")
    is_completed: bool = Field(..., description="Completion status flag")
    status: str = Field(..., description="Human readable status derived from is_completed")
    is_overdue: bool = Field(..., description="True when the task is not completed and its due date has passed")

    @classmethod
    def from_entity(cls, item: TaskItem, now: datetime) -> "TaskItemListOut":
        return cls(
            id=item["id"],
            title=item["title"],
            due_date=item["due_date"],
            completion_percentage=item["completion_percentage"],
            is_completed=item["is_completed"],
            status=status_label(item["is_completed"]),
            is_overdue=is_overdue(item["due_date"], item["is_completed"], now),
        )


# PUBLIC_INTERFACE
class TaskItemDetailOut(BaseModel):
    """
    Full view of a single task item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 7,
                "title": "Prepare quarterly report",
                "description": "Collect figures from finance and draft the summary",
                "due_date": "2025-02-01T17:00:00",
                "completion_percentage": 20,
                "is_completed": False,
                "created_at": "2025-01-25T10:15:30.123456",
                "updated_at": None,
                "status": "In progress",
                "is_overdue": False,
                "days_remaining": 7,
            }
        }
    )

    id: int = Field(..., description="Unique identifier of the task")
    title: str = Field(..., description="Short title for the task")
    description: str = Field(..., description="Detailed description")
    due_date: datetime = Field(..., description="Due date/time of the task as an ISO8601 datetime")
    completion_percentage: int = Field(..., description="Completion percentage (0..100)")
    is_completed: bool = Field(..., description="Completion status flag")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: Optional[datetime] = Field(default=None, description="Last update timestamp, null until first change")
    status: str = Field(..., description="Human readable status derived from is_completed")
    is_overdue: bool = Field(..., description="True when the task is not completed and its due date has passed")
    days_remaining: int = Field(..., description="Whole days left until the due date, 0 when completed")

    @classmethod
    def from_entity(cls, item: TaskItem, now: datetime) -> "TaskItemDetailOut":
        return cls(
            id=item["id"],
            title=item["title"],
            description=item["description"],
            due_date=item["due_date"],
            completion_percentage=item["completion_percentage"],
            is_completed=item["is_completed"],
            created_at=item["created_at"],
            updated_at=item["updated_at"],
            status=status_label(item["is_completed"]),
            is_overdue=is_overdue(item["due_date"], item["is_completed"], now),
            days_remaining=days_remaining(item["due_date"], item["is_completed"], now),
        )


# PUBLIC_INTERFACE
class TaskCreatedOut(BaseModel):
    """
    Response body for a created task.
    """

    id: int = Field(..., description="Identifier assigned to the new task")
    message: str = Field(..., description="Confirmation message")


# PUBLIC_INTERFACE
class MessageOut(BaseModel):
    """
    Acknowledgement body for state-changing operations without a payload.
    """

    message: str = Field(..., description="Confirmation message")


# PUBLIC_INTERFACE
class ValidationErrorOut(BaseModel):
    """
    Body returned when task input fails field validation.
    """

    error: str = Field(default="ValidationError", description="Error kind")
    message: str = Field(..., description="Summary message")
    errors: Dict[str, List[str]] = Field(..., description="Messages keyed by field name")
