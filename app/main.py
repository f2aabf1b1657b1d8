import logging
from contextlib import asynccontextmanager, contextmanager
from functools import lru_cache
from typing import Annotated, Generator, Optional, Union

from fastapi import FastAPI, Response, Request, Depends, Body, HTTPException, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.config import settings
from app.domain import MessageDraft, MessageStore, Result, ResultKind
from app.logic import MessageLogic
from app.memory_store import InMemoryMessageStore
from app.storage import init_db, check_db_health, get_db, SqlMessageStore
from app.logging_utils import setup_logging, RequestLoggingMiddleware, log_message_operation
from app.metrics import record_message_operation, get_metrics, get_metrics_content_type
from app.schemas import (
    CreateMessageRequest,
    ErrorResponse,
    HealthResponse,
    MessageResponse,
    UpdateMessageRequest,
    ValidationErrorResponse,
)


# Setup structured JSON logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    - Startup: Initialize database and create tables (SQL store only)
    """
    if settings.MESSAGE_STORE == "sql":
        init_db()
    yield


app = FastAPI(
    title="Messages API",
    description="Organization-scoped CRUD service for messages",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)

MESSAGES_PATH = "/api/v1/organizations/{organization_id}/messages"


# =============================================================================
# Dependencies
# =============================================================================

@lru_cache()
def get_memory_store() -> InMemoryMessageStore:
    """Single process-wide in-memory store."""
    return InMemoryMessageStore()


def get_message_store() -> Generator[MessageStore, None, None]:
    """Store for one request; a database session is only opened for the SQL store."""
    if settings.MESSAGE_STORE == "memory":
        yield get_memory_store()
        return

    with contextmanager(get_db)() as db:
        yield SqlMessageStore(db)


def get_message_logic(store: MessageStore = Depends(get_message_store)) -> MessageLogic:
    return MessageLogic(store)


# =============================================================================
# Outcome Mapping
# =============================================================================

def _error_body(result: Result) -> dict:
    if result.kind is ResultKind.VALIDATION_ERROR:
        return ValidationErrorResponse(
            detail=result.detail,
            errors=[{"field": e.field, "message": e.message} for e in result.errors],
        ).model_dump()
    return ErrorResponse(detail=result.detail).model_dump()


def to_response(result: Result, success_status: int = status.HTTP_200_OK, payload=None) -> Response:
    """
    Map a logic Result to an HTTP response.

    success -> success_status, not_found -> 404, conflict -> 409,
    validation_error -> 400.
    """
    if result.kind is ResultKind.SUCCESS:
        if payload is None:
            return Response(status_code=success_status)
        return JSONResponse(status_code=success_status, content=payload)
    if result.kind is ResultKind.NOT_FOUND:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=_error_body(result))
    if result.kind is ResultKind.CONFLICT:
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=_error_body(result))
    if result.kind is ResultKind.VALIDATION_ERROR:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=_error_body(result))
    raise ValueError(f"Unhandled result kind: {result.kind}")


def _draft(body: Optional[Union[CreateMessageRequest, UpdateMessageRequest]]) -> Optional[MessageDraft]:
    if body is None:
        return None
    return MessageDraft(title=body.title, content=body.content)


def _serialize(message) -> dict:
    return MessageResponse.model_validate(message).model_dump(mode="json")


def _fatal(request: Request, operation: str, organization_id: str, message_id: Optional[str] = None):
    logger.exception(f"Failed to {operation} message for organization {organization_id}")
    record_message_operation(operation, "error")
    log_message_operation(request, operation, organization_id, message_id, result="error")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"An error occurred while processing the {operation} request."
    )


def _record(request: Request, operation: str, organization_id: str, result: Result, message_id: Optional[str] = None):
    record_message_operation(operation, result.kind.value)
    log_message_operation(request, operation, organization_id, message_id, result=result.kind.value)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies are reported like any other validation error: 400 with field errors."""
    errors = []
    for err in exc.errors():
        parts = [part for part in err.get("loc", ()) if part != "body"]
        # JSON decode errors carry a character offset, not a field name
        field = ".".join(str(part) for part in parts) if parts and isinstance(parts[0], str) else "request"
        errors.append({"field": field, "message": err.get("msg", "invalid value")})
    logger.info(f"Request validation failed: {len(errors)} error(s)")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "request validation failed", "errors": errors},
    )


# =============================================================================
# Health Check Routes
# =============================================================================

@app.get("/health/live", response_model=HealthResponse)
async def health_live() -> HealthResponse:
    """
    Liveness probe - always returns 200 once the app is running.
    """
    return HealthResponse(status="ok")


@app.get("/health/ready", response_model=HealthResponse)
def health_ready(response: Response) -> HealthResponse:
    """
    Readiness probe - returns 200 only if the configured store is usable.
    For the SQL store that means the DB is reachable and the schema applied.

    Otherwise returns 503 (Service Unavailable).
    """
    if settings.MESSAGE_STORE == "sql" and not check_db_health():
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not_ready",
            reason="Database not reachable or schema not applied"
        )

    return HealthResponse(status="ready")


# =============================================================================
# Message Routes
# =============================================================================

@app.get(
    MESSAGES_PATH,
    response_model=list[MessageResponse],
    responses={500: {"model": ErrorResponse}},
)
def list_messages(
    organization_id: str,
    request: Request,
    logic: MessageLogic = Depends(get_message_logic),
):
    """
    List all messages of an organization.
    Always returns a JSON array, empty when the organization has no messages.
    """
    logger.info(f"GET messages for organization {organization_id}")
    try:
        result = logic.list(organization_id)
    except Exception:
        raise _fatal(request, "list", organization_id)

    _record(request, "list", organization_id, result)
    return to_response(result, payload=[_serialize(m) for m in result.value or []])


@app.get(
    MESSAGES_PATH + "/{message_id}",
    response_model=MessageResponse,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def get_message(
    organization_id: str,
    message_id: str,
    request: Request,
    logic: MessageLogic = Depends(get_message_logic),
):
    """Fetch one message of an organization."""
    try:
        result = logic.get(organization_id, message_id)
    except Exception:
        raise _fatal(request, "get", organization_id, message_id)

    _record(request, "get", organization_id, result, message_id)
    payload = _serialize(result.value) if result.ok else None
    return to_response(result, payload=payload)


@app.post(
    MESSAGES_PATH,
    status_code=status.HTTP_201_CREATED,
    response_model=MessageResponse,
    responses={
        400: {"model": ValidationErrorResponse, "description": "Validation error"},
        409: {"model": ErrorResponse, "description": "Title already exists"},
        500: {"model": ErrorResponse},
    },
)
def create_message(
    organization_id: str,
    request: Request,
    body: Annotated[Optional[CreateMessageRequest], Body()] = None,
    logic: MessageLogic = Depends(get_message_logic),
):
    """
    Create a message in an organization.

    - 201 with the created message and a Location header
    - 400 when title/content break the field rules or the body is missing
    - 409 when an active message with the same title exists in the organization
    """
    logger.info(f"POST message for organization {organization_id}")
    try:
        result = logic.create(organization_id, _draft(body))
    except Exception:
        raise _fatal(request, "create", organization_id)

    if not result.ok:
        _record(request, "create", organization_id, result)
        return to_response(result)

    created = result.value
    _record(request, "create", organization_id, result, created.id)
    response = to_response(result, status.HTTP_201_CREATED, _serialize(created))
    response.headers["Location"] = str(
        request.url_for("get_message", organization_id=organization_id, message_id=created.id)
    )
    return response


@app.put(
    MESSAGES_PATH + "/{message_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        400: {"model": ValidationErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
def update_message(
    organization_id: str,
    message_id: str,
    request: Request,
    body: Annotated[Optional[UpdateMessageRequest], Body()] = None,
    logic: MessageLogic = Depends(get_message_logic),
):
    """
    Replace title and content of an active message.
    Returns 204; fetch the message again for its new state.
    """
    try:
        result = logic.update(organization_id, message_id, _draft(body))
    except Exception:
        raise _fatal(request, "update", organization_id, message_id)

    _record(request, "update", organization_id, result, message_id)
    return to_response(result, status.HTTP_204_NO_CONTENT)


@app.delete(
    MESSAGES_PATH + "/{message_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        400: {"model": ValidationErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
def delete_message(
    organization_id: str,
    message_id: str,
    request: Request,
    logic: MessageLogic = Depends(get_message_logic),
):
    """Delete an active message. Inactive messages are rejected with 400."""
    try:
        result = logic.delete(organization_id, message_id)
    except Exception:
        raise _fatal(request, "delete", organization_id, message_id)

    _record(request, "delete", organization_id, result, message_id)
    return to_response(result, status.HTTP_204_NO_CONTENT)


# =============================================================================
# Metrics Route
# =============================================================================

@app.get("/metrics")
async def metrics() -> Response:
    """
    Expose Prometheus-style metrics.

    Includes:
    - http_requests_total: Total HTTP requests by method, path, status
    - message_operations_total: Message operation outcomes
    - request_latency_seconds: Request latency histogram
    """
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )
