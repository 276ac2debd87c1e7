"""
Field-level validation rules applied before any task mutation.

The rules are declared as pydantic constraints on a private model and checked
against a copy of the payload, so the input is never modified. pydantic checks
every field before failing, which lets all violations be returned at once as an
ordered mapping of field name to human-readable messages. An empty mapping
means the input is valid.
"""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Dict, List, Optional

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, ValidationInfo, field_validator
from pydantic_core import PydanticCustomError

from .schemas import TaskItemCreateUpdate

TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500
PERCENT_MIN = 0
PERCENT_MAX = 100

FieldErrors = Dict[str, List[str]]

_PERCENT_MESSAGE = f"Completion percentage must be between {PERCENT_MIN} and {PERCENT_MAX}."

# (field, pydantic error type) -> message; custom errors carry their own message
_MESSAGES = {
    ("title", "string_too_short"): "Title is required.",
    ("title", "string_too_long"): f"Title must not exceed {TITLE_MAX_LENGTH} characters.",
    ("description", "string_too_long"): f"Description must not exceed {DESCRIPTION_MAX_LENGTH} characters.",
    ("completion_percentage", "greater_than_equal"): _PERCENT_MESSAGE,
    ("completion_percentage", "less_than_equal"): _PERCENT_MESSAGE,
    ("percent", "greater_than_equal"): _PERCENT_MESSAGE,
    ("percent", "less_than_equal"): _PERCENT_MESSAGE,
}

Percentage = Annotated[int, Field(ge=PERCENT_MIN, le=PERCENT_MAX)]
_percent_adapter = TypeAdapter(Percentage)


class _TaskRules(BaseModel):
    title: str = Field(min_length=1, max_length=TITLE_MAX_LENGTH)
    description: str = Field(max_length=DESCRIPTION_MAX_LENGTH)
    due_date: Optional[datetime]
    completion_percentage: Percentage

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise PydanticCustomError("title_blank", "Title is required.")
        return v

    @field_validator("due_date")
    @classmethod
    def due_date_in_future(cls, v: Optional[datetime], info: ValidationInfo) -> Optional[datetime]:
        if v is None:
            raise PydanticCustomError("due_date_missing", "Due date is required.")
        if v <= info.context["now"]:
            raise PydanticCustomError("due_date_not_future", "Due date must be in the future.")
        return v


def _collect(exc: ValidationError, field: Optional[str] = None) -> FieldErrors:
    errors: FieldErrors = {}
    for err in exc.errors():
        name = field or str(err["loc"][0])
        message = _MESSAGES.get((name, err["type"]), err["msg"])
        errors.setdefault(name, []).append(message)
    return errors


# PUBLIC_INTERFACE
def validate_task_input(data: TaskItemCreateUpdate, now: datetime) -> FieldErrors:
    """
    Validate a create/update payload.

    Rules:
    - title: required (not blank), at most 100 characters
    - description: at most 500 characters
    - due_date: required, strictly later than now
    - completion_percentage: within 0..100 inclusive
    """
    try:
        _TaskRules.model_validate(data.model_dump(), context={"now": now})
    except ValidationError as exc:
        return _collect(exc)
    return {}


# PUBLIC_INTERFACE
def validate_percent(value: int) -> FieldErrors:
    """Validate a standalone completion percentage (0..100 inclusive)."""
    try:
        _percent_adapter.validate_python(value)
    except ValidationError as exc:
        return _collect(exc, field="percent")
    return {}
