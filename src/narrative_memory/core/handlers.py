"""FastAPI exception handlers for application errors."""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .base import ApplicationError, ErrorCode, ErrorLevel
from .error_context import ErrorContext
from .logging import get_logger

logger = get_logger(__name__)

STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorCode.TOOL_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.DIMENSION_MISMATCH: status.HTTP_409_CONFLICT,
    ErrorCode.SCHEMA_VIOLATION: status.HTTP_409_CONFLICT,
    ErrorCode.AUTHENTICATION_FAILED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorCode.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorCode.STORE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.CIRCUIT_OPEN: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.SERVICE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.EMBEDDING_FAILED: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.MODEL_ERROR: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.SEARCH_FAILED: status.HTTP_502_BAD_GATEWAY,
}


def status_for(error: ApplicationError) -> int:
    return STATUS_BY_CODE.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)


async def application_error_handler(request: Request, error: ApplicationError) -> JSONResponse:
    """Render an ApplicationError as a JSON body with its code and a trace id."""
    context = ErrorContext(error, path=request.url.path, method=request.method)
    status_code = status_for(error)

    level = error.level if status_code < 500 else ErrorLevel.ERROR
    logger.log(level.to_logging_level(), "Request failed", status_code=status_code, error_context=context.to_dict())

    body = context.to_payload()
    body["level"] = error.level.value
    body["details"] = error.details.model_dump(mode="json")
    return JSONResponse(status_code=status_code, content=body)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApplicationError, application_error_handler)  # type: ignore[arg-type]
