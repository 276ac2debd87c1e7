import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .logging_setup import setup_logging
from .repositories import get_repository
from .routers import tasks as tasks_router
from .settings import get_settings

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "tasks",
        "description": "CRUD operations for task items, completion tracking and incoming-task queries.",
    },
]

_settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(_settings.log_level)
    # Build the repository up front so the sqlite schema is migrated before the first request
    repo = app.dependency_overrides.get(get_repository, get_repository)()
    logger.info("Task API started with %s backend", type(repo).__name__)
    yield


app = FastAPI(
    title="Task Items API",
    description="Backend API service for managing task items with due dates and completion tracking.",
    version="0.1.0",
    openapi_tags=openapi_tags,
    lifespan=lifespan,
)

# Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback
allow_all = (_settings.cors_allow_origins == ["*"]) or (len(_settings.cors_allow_origins) == 0)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all else _settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Return a consistent JSON structure for malformed requests (wrong types, unparsable dates).

    Response format:
        {
            "error": "RequestValidationError",
            "message": "Request validation failed",
            "detail": [... pydantic/fastapi error details ...]
        }
    """
    return JSONResponse(
        status_code=422,
        content={
            "error": "RequestValidationError",
            "message": "Request validation failed",
            "detail": jsonable_errors(exc),
        },
    )


@app.exception_handler(tasks_router.TaskValidationException)
async def task_validation_exception_handler(
    request: Request, exc: tasks_router.TaskValidationException
) -> JSONResponse:
    """
    Render field-level task validation errors as 400 responses.

    Response format:
        {
            "error": "ValidationError",
            "message": "Validation failed.",
            "errors": {"title": ["Title is required."], ...}
        }
    """
    return tasks_router.validation_error_response(exc.result)


def jsonable_errors(exc: RequestValidationError) -> list:
    # pydantic may put exception instances into 'ctx', which are not JSON serializable
    errors = []
    for err in exc.errors():
        err = dict(err)
        if "ctx" in err:
            err["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        errors.append(err)
    return errors


# PUBLIC_INTERFACE
@app.get("/", summary="Health Check", tags=["health"])
def health_check():
    """
    Health check endpoint.

    Returns:
        A JSON object indicating service health.
    """
    return {"message": "Healthy", "backend": _settings.persistence_backend}


# Include routers
app.include_router(tasks_router.router)
