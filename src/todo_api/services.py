"""
Task service: orchestrates validation, repository calls and result envelopes.

Every id-taking operation looks the task up before mutating it, so an unknown
id always yields NotFound without touching the store. A write that reports no
affected row after a successful lookup yields Failure; it is not retried.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from .clock import Clock, SystemClock
from .models import apply_completion_rule
from .repositories import Repository
from .results import Failure, NotFound, ServiceResult, Success, ValidationError
from .schemas import TaskItemCreateUpdate, TaskItemDetailOut, TaskItemListOut
from .utils import resolve_time_frame
from .validators import validate_percent, validate_task_input

logger = logging.getLogger(__name__)

TaskValidator = Callable[[TaskItemCreateUpdate, datetime], Dict[str, List[str]]]
PercentValidator = Callable[[int], Dict[str, List[str]]]

MSG_CREATED = "Task created successfully."
MSG_UPDATED = "Task updated successfully."
MSG_PERCENT_SET = "Completion percentage updated successfully."
MSG_DONE = "Task marked as done."
MSG_DELETED = "Task deleted successfully."
MSG_SAVE_FAILED = "Failed to save changes to the database."


def _not_found(task_id: int) -> NotFound:
    logger.debug("Task %s not found", task_id)
    return NotFound(f"Task with ID {task_id} was not found.")


def _failure(task_id: int, operation: str) -> Failure:
    logger.warning("%s of task %s affected no rows", operation, task_id)
    return Failure(MSG_SAVE_FAILED)


# PUBLIC_INTERFACE
class TaskItemService:
    """Service layer for task items."""

    def __init__(
        self,
        repository: Repository,
        clock: Optional[Clock] = None,
        validator: TaskValidator = validate_task_input,
        percent_validator: PercentValidator = validate_percent,
    ) -> None:
        self._repo = repository
        self._clock = clock or SystemClock()
        self._validate = validator
        self._validate_percent = percent_validator

    def list_all(self) -> List[TaskItemListOut]:
        now = self._clock.now()
        return [TaskItemListOut.from_entity(item, now) for item in self._repo.get_all()]

    def get_by_id(self, task_id: int) -> ServiceResult:
        item = self._repo.get_by_id(task_id)
        if item is None:
            return _not_found(task_id)
        return Success(TaskItemDetailOut.from_entity(item, self._clock.now()))

    def list_incoming(self, time_frame: str) -> List[TaskItemListOut]:
        """
        List incomplete tasks due within the given time frame, earliest first.

        Raises:
            InvalidTimeFrameError: if time_frame is not 'today', 'tomorrow' or 'week'.
        """
        now = self._clock.now()
        start, end = resolve_time_frame(time_frame, now)
        return [TaskItemListOut.from_entity(item, now) for item in self._repo.get_incoming(start, end)]

    def create(self, data: TaskItemCreateUpdate) -> ServiceResult:
        errors = self._validate(data, self._clock.now())
        if errors:
            logger.debug("Rejected task creation: %s", errors)
            return ValidationError(errors)

        task_id = self._repo.create(data)
        logger.info("Created task %s", task_id)
        return Success(task_id, MSG_CREATED)

    def update(self, task_id: int, data: TaskItemCreateUpdate) -> ServiceResult:
        now = self._clock.now()
        errors = self._validate(data, now)
        if errors:
            logger.debug("Rejected update of task %s: %s", task_id, errors)
            return ValidationError(errors)

        item = self._repo.get_by_id(task_id)
        if item is None:
            return _not_found(task_id)

        item["title"] = data.title
        item["description"] = data.description
        item["due_date"] = data.due_date  # type: ignore[typeddict-item]
        item["completion_percentage"] = data.completion_percentage
        apply_completion_rule(item)

        if not self._repo.update(item):
            return _failure(task_id, "Update")

        stored = self._repo.get_by_id(task_id) or item
        logger.info("Updated task %s", task_id)
        return Success(TaskItemDetailOut.from_entity(stored, now), MSG_UPDATED)

    def set_percent_complete(self, task_id: int, percent: int) -> ServiceResult:
        errors = self._validate_percent(percent)
        if errors:
            logger.debug("Rejected percentage %s for task %s", percent, task_id)
            return ValidationError(errors)

        if self._repo.get_by_id(task_id) is None:
            return _not_found(task_id)

        if not self._repo.set_percent_complete(task_id, percent):
            return _failure(task_id, "Percentage update")

        logger.info("Set task %s completion to %s%%", task_id, percent)
        return Success(message=MSG_PERCENT_SET)

    def mark_as_done(self, task_id: int) -> ServiceResult:
        if self._repo.get_by_id(task_id) is None:
            return _not_found(task_id)

        if not self._repo.mark_as_done(task_id):
            return _failure(task_id, "Mark as done")

        logger.info("Marked task %s as done", task_id)
        return Success(message=MSG_DONE)

    def delete(self, task_id: int) -> ServiceResult:
        if self._repo.get_by_id(task_id) is None:
            return _not_found(task_id)

        if not self._repo.delete(task_id):
            return _failure(task_id, "Delete")

        logger.info("Deleted task %s", task_id)
        return Success(message=MSG_DELETED)
