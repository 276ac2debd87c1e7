from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, Response, status
from fastapi.responses import JSONResponse

from .. import results
from ..clock import Clock, get_clock
from ..repositories import Repository, get_repository
from ..schemas import (
    MessageOut,
    TaskCreatedOut,
    TaskItemCreateUpdate,
    TaskItemDetailOut,
    TaskItemListOut,
    ValidationErrorOut,
)
from ..services import TaskItemService
from ..utils import InvalidTimeFrameError

router = APIRouter(
    prefix="/api/v1/tasks",
    tags=["tasks"],
)

_VALIDATION_RESPONSE = {"model": ValidationErrorOut, "description": "Validation error"}


def _get_service(
    repo: Repository = Depends(get_repository),
    clock: Clock = Depends(get_clock),
) -> TaskItemService:
    """
    Dependency building the task service from the configured repository and clock.
    """
    return TaskItemService(repo, clock)


class TaskValidationException(Exception):
    """Carries a ValidationError result out of a route handler."""

    def __init__(self, result: results.ValidationError) -> None:
        super().__init__(result.message)
        self.result = result


def validation_error_response(result: results.ValidationError) -> JSONResponse:
    body = ValidationErrorOut(message=result.message, errors=result.errors)
    return JSONResponse(status_code=results.http_status_for(result), content=body.model_dump())


def _raise_for(result: results.ServiceResult) -> results.Success:
    """
    Translate a non-success result into an HTTP error and return a success
    unchanged. Validation errors are raised as TaskValidationException and
    rendered by the app-level handler.
    """
    if isinstance(result, results.ValidationError):
        raise TaskValidationException(result)
    if isinstance(result, (results.NotFound, results.Failure)):
        raise HTTPException(status_code=results.http_status_for(result), detail=result.message)
    return result


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=List[TaskItemListOut],
    summary="List Tasks",
    description="List all tasks in their compact list view.",
    responses={200: {"description": "List retrieved successfully"}},
)
def list_tasks(service: TaskItemService = Depends(_get_service)) -> List[TaskItemListOut]:
    """
    Return every task.
    """
    return service.list_all()


# PUBLIC_INTERFACE
@router.get(
    "/incoming/{time_frame}",
    response_model=List[TaskItemListOut],
    summary="List Incoming Tasks",
    description=(
        "List incomplete tasks due within a time frame, ordered by due date.\n\n"
        "time_frame is one of (case-insensitive):\n"
        "- today: from the start of today until 23:59:59 today\n"
        "- tomorrow: the whole of tomorrow\n"
        "- week: from the start of today until the end of the sixth following day"
    ),
    responses={
        200: {"description": "Incoming tasks retrieved"},
        400: {"description": "Unknown time frame"},
    },
)
def list_incoming_tasks(
    time_frame: str = Path(..., description="One of: today, tomorrow, week"),
    service: TaskItemService = Depends(_get_service),
) -> List[TaskItemListOut]:
    """
    Return incoming tasks for the requested time frame.
    """
    try:
        return service.list_incoming(time_frame)
    except InvalidTimeFrameError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}",
    response_model=TaskItemDetailOut,
    summary="Get Task",
    description="Get a single task by ID in its detail view.",
    responses={
        200: {"description": "Task found"},
        404: {"description": "Task not found"},
    },
)
def get_task(task_id: int, service: TaskItemService = Depends(_get_service)) -> TaskItemDetailOut:
    """
    Retrieve a single task by its ID.
    """
    return _raise_for(service.get_by_id(task_id)).data


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=TaskCreatedOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Task",
    description="Create a new task and return its identifier.",
    responses={
        201: {"description": "Task created successfully"},
        400: _VALIDATION_RESPONSE,
    },
)
def create_task(
    payload: TaskItemCreateUpdate,
    response: Response,
    service: TaskItemService = Depends(_get_service),
) -> TaskCreatedOut:
    """
    Create a new task. The Location header points at the created resource.
    """
    created = _raise_for(service.create(payload))
    response.headers["Location"] = f"{router.prefix}/{created.data}"
    return TaskCreatedOut(id=created.data, message=created.message)


# PUBLIC_INTERFACE
@router.put(
    "/{task_id}",
    response_model=TaskItemDetailOut,
    summary="Update Task",
    description=(
        "Replace all editable fields of an existing task. Setting completion_percentage "
        "to 100 also marks the task as completed."
    ),
    responses={
        200: {"description": "Task updated"},
        400: _VALIDATION_RESPONSE,
        404: {"description": "Task not found"},
    },
)
def update_task(
    task_id: int,
    payload: TaskItemCreateUpdate,
    service: TaskItemService = Depends(_get_service),
) -> TaskItemDetailOut:
    """
    Full update of a task.
    """
    return _raise_for(service.update(task_id, payload)).data


# PUBLIC_INTERFACE
@router.patch(
    "/{task_id}/percent/{percent}",
    response_model=MessageOut,
    summary="Set Task Completion Percentage",
    description="Set the completion percentage (0..100). 100 marks the task as completed.",
    responses={
        200: {"description": "Percentage updated"},
        400: _VALIDATION_RESPONSE,
        404: {"description": "Task not found"},
    },
)
def set_task_percent_complete(
    task_id: int,
    percent: int,
    service: TaskItemService = Depends(_get_service),
) -> MessageOut:
    """
    Update the completion percentage of a task.
    """
    result = service.set_percent_complete(task_id, percent)
    _raise_for(result)
    return MessageOut(message=result.message)


# PUBLIC_INTERFACE
@router.patch(
    "/{task_id}/done",
    response_model=MessageOut,
    summary="Mark Task As Done",
    description="Mark a task as completed at 100%.",
    responses={
        200: {"description": "Task marked as done"},
        404: {"description": "Task not found"},
    },
)
def mark_task_as_done(task_id: int, service: TaskItemService = Depends(_get_service)) -> MessageOut:
    """
    Complete a task.
    """
    result = service.mark_as_done(task_id)
    _raise_for(result)
    return MessageOut(message=result.message)


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}",
    response_model=MessageOut,
    summary="Delete Task",
    description="Delete a task by ID.",
    responses={
        200: {"description": "Task deleted"},
        404: {"description": "Task not found"},
    },
)
def delete_task(task_id: int, service: TaskItemService = Depends(_get_service)) -> MessageOut:
    """
    Delete a task. Deleting the same ID twice returns 404 the second time.
    """
    result = service.delete(task_id)
    _raise_for(result)
    return MessageOut(message=result.message)
