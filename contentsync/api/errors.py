"""
Exception handlers: every error leaves the API as ``{success: false, error}``.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..utils.logging import get_logger_for_component
from ..utils.exceptions import (
    AuthorizationError,
    ConfigurationError,
    ContentSyncError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    UpstreamFetchError,
    ValidationError,
)

logger = get_logger_for_component("api.errors")

STATUS_BY_ERROR = (
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (ConfigurationError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (UpstreamFetchError, status.HTTP_502_BAD_GATEWAY),
    (PersistenceError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def error_response(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message, **extra})


def status_for(exc: ContentSyncError) -> int:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def contentsync_exception_handler(request: Request, exc: ContentSyncError) -> JSONResponse:
    status_code = status_for(exc)
    log = logger.error if status_code >= 500 else logger.warning
    log(f"{request.method} {request.url.path} -> {status_code}: {exc}", extra=exc.to_dict())

    if isinstance(exc, AuthorizationError):
        return error_response(status_code, AuthorizationError.GENERIC_MESSAGE)
    if isinstance(exc, ConfigurationError) and exc.config_key:
        return error_response(status_code, exc.user_message, missing=exc.config_key)
    return error_response(status_code, exc.user_message)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        f"{'.'.join(str(x) for x in err.get('loc', []))}: {err.get('msg', 'invalid')}"
        for err in exc.errors()
    ]
    logger.warning(f"Validation error on {request.url.path}: {len(errors)} errors")
    return error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, "Request validation failed", errors=errors)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {exc}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred")


def setup_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ContentSyncError, contentsync_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
