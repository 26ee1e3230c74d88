"""
Global Error Handlers
=====================

Maps VidTube exceptions to HTTP status codes and formats error responses.

Every error body has the same shape:

    {"status": 401, "success": false, "error_type": "TokenReuseError",
     "message": "...", "details": {...}}
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from exceptions import (
    AuthError,
    ConfigurationError,
    ConflictError,
    FileTooLargeError,
    InternalError,
    NotFoundError,
    UploadError,
    ValidationError,
    VidTubeError,
)


logger = logging.getLogger(__name__)


# Map exceptions to HTTP status codes; subclasses inherit their parent's entry
EXCEPTION_STATUS_MAP = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    ConflictError: status.HTTP_409_CONFLICT,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    AuthError: status.HTTP_401_UNAUTHORIZED,
    FileTooLargeError: status.HTTP_413_CONTENT_TOO_LARGE,
    UploadError: status.HTTP_502_BAD_GATEWAY,
    InternalError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ConfigurationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(error: VidTubeError) -> int:
    for cls in type(error).__mro__:
        if cls in EXCEPTION_STATUS_MAP:
            return EXCEPTION_STATUS_MAP[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_body(status_code: int, payload: dict) -> dict:
    return {"status": status_code, "success": False, **payload}


async def vidtube_error_handler(request: Request, exc: VidTubeError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=status_code,
        content=error_body(status_code, exc.to_dict()),
        headers=headers,
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Routing errors, rate limits and other framework HTTP errors, in the same body shape."""
    error_type, message = "HTTPException", str(exc.detail)
    if isinstance(exc, RateLimitExceeded):
        error_type, message = "RateLimitExceeded", f"Rate limit exceeded: {exc.detail}"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, {
            "error_type": error_type,
            "message": message,
            "details": {},
        }),
        headers=getattr(exc, "headers", None),
    )


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [".".join(str(part) for part in err.get("loc", ())[1:]) for err in exc.errors()]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(status.HTTP_400_BAD_REQUEST, {
            "error_type": "ValidationError",
            "message": "Invalid request",
            "details": {"fields": fields},
        }),
    )


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Unexpected errors: hide details unless api_debug is on."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    settings = request.app.state.settings
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(status.HTTP_500_INTERNAL_SERVER_ERROR, {
            "error_type": "InternalServerError",
            "message": "An unexpected error occurred",
            "details": {"error": str(exc)} if settings.api_debug else {},
        }),
    )


def setup_error_handling(app: FastAPI) -> None:
    """Register the exception handlers on the application."""
    app.add_exception_handler(VidTubeError, vidtube_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
