"""
Result envelope returned by every TaskItemService operation.

ServiceResult is a closed union of four variants. Each variant only carries
the fields that make sense for it: Success has an optional payload, ValidationError
always has a non-empty field error mapping, NotFound and Failure carry a message.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Generic, List, Optional, TypeVar, Union

T = TypeVar("T")


class ResultStatus(str, Enum):
    SUCCESS = "Success"
    VALIDATION_ERROR = "ValidationError"
    NOT_FOUND = "NotFound"
    FAILURE = "Failure"


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class Success(Generic[T]):
    """Operation completed; data is present for reads and creates."""

    data: Optional[T] = None
    message: str = "Operation completed successfully."
    status: ClassVar[ResultStatus] = ResultStatus.SUCCESS


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class ValidationError:
    """Input failed validation; errors maps field names to messages."""

    errors: Dict[str, List[str]] = field(default_factory=dict)
    message: str = "Validation failed."
    status: ClassVar[ResultStatus] = ResultStatus.VALIDATION_ERROR

    def __post_init__(self) -> None:
        if not self.errors or not any(self.errors.values()):
            raise ValueError("ValidationError requires at least one field error")


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class NotFound:
    """The referenced task id does not exist."""

    message: str = "Resource not found."
    status: ClassVar[ResultStatus] = ResultStatus.NOT_FOUND


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class Failure:
    """The entity was found but the persistence write had no effect."""

    message: str = "Operation failed."
    status: ClassVar[ResultStatus] = ResultStatus.FAILURE


ServiceResult = Union[Success[Any], ValidationError, NotFound, Failure]

_HTTP_STATUS = {
    ResultStatus.SUCCESS: 200,
    ResultStatus.VALIDATION_ERROR: 400,
    ResultStatus.NOT_FOUND: 404,
    ResultStatus.FAILURE: 400,
}


# PUBLIC_INTERFACE
def http_status_for(result: ServiceResult, created: bool = False) -> int:
    """
    Map a result to its HTTP status code. Success maps to 201 when created is set.
    """
    if created and result.status is ResultStatus.SUCCESS:
        return 201
    return _HTTP_STATUS[result.status]
