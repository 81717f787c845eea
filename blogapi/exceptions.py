"""
Application error taxonomy and its mapping onto HTTP responses.

Services raise the ``AppError`` subclasses below; the handlers installed by
``register_exception_handlers`` turn them into the standard
``{success, message, errors?}`` envelope.  Anything that is not an
``AppError`` is treated as an internal failure: it is logged with its
traceback and, outside development, answered with a generic message only.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from blogapi.config import settings
from blogapi.responses import error_response

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong"


class AppError(Exception):
    """Base class for errors whose message is safe to show to the caller."""

    status_code: int = 500
    default_message: str = GENERIC_ERROR_MESSAGE

    def __init__(self, message: str | None = None, errors: list[str] | None = None) -> None:
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid input data"


class Conflict(AppError):
    status_code = 400
    default_message = "Resource already exists"


class Unauthorized(AppError):
    status_code = 401
    default_message = "Not authorized"


class InvalidToken(Unauthorized):
    default_message = "Invalid token, please log in again"


class ExpiredToken(Unauthorized):
    default_message = "Your session has expired, please log in again"


class Forbidden(AppError):
    status_code = 403
    default_message = "You are not allowed to modify this resource"


class NotFound(AppError):
    status_code = 404
    default_message = "Resource not found"


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

def _format_validation_errors(exc: RequestValidationError) -> list[str]:
    messages = []
    for err in exc.errors():
        # Drop the leading "body" / "query" / "path" location segment.
        loc = [str(part) for part in err.get("loc", ())[1:]]
        field = ".".join(loc) or "request"
        messages.append(f"{field}: {err.get('msg')}")
    return messages


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.message, errors=exc.errors),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=ValidationError.status_code,
        content=error_response(
            ValidationError.default_message,
            errors=_format_validation_errors(exc),
        ),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404 and exc.detail == "Not Found":
        message = f"Route not found: {request.method} {request.url.path}"
    else:
        message = str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(message),
        headers=getattr(exc, "headers", None),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(
        status_code=Conflict.status_code,
        content=error_response(Conflict.default_message),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    if settings.is_development:
        content = error_response(
            str(exc) or GENERIC_ERROR_MESSAGE,
            error={"type": type(exc).__name__, "detail": [repr(arg) for arg in exc.args]},
        )
    else:
        content = error_response(GENERIC_ERROR_MESSAGE)
    return JSONResponse(status_code=500, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
