"""
API error hierarchy and the FastAPI exception handlers that turn errors
into response envelopes.
"""

import asyncio
import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core import responses

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base exception carrying an envelope code, message and optional data."""

    code = 500
    default_message = responses.ERROR_MSG

    def __init__(self, message: str | None = None, data: Any = None):
        self.message = message or self.default_message
        self.data = data
        super().__init__(self.message)


class ValidationFailed(ApiError):
    code = 400
    default_message = responses.VALIDATION_MSG

    def __init__(self, message: str | None = None, errors: list | None = None):
        super().__init__(message, {"errors": errors or []})


class Unauthorized(ApiError):
    code = 401
    default_message = responses.UNAUTHORIZED_MSG


class NotFound(ApiError):
    code = 404
    default_message = responses.NOT_FOUND_MSG


class ServiceUnavailable(ApiError):
    code = 500
    default_message = "service unavailable"


def field_error(field: str, message: str) -> dict:
    return {"field": field, "message": message}


def _format_validation_errors(exc: RequestValidationError) -> list[dict]:
    errors = []
    for err in exc.errors():
        # loc is ("body", "email") or ("query", "key"); drop the source part
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query")]
        errors.append(field_error(".".join(loc) or "body", err.get("msg", "invalid value")))
    return errors


async def api_error_handler(request: Request, exc: ApiError):
    return responses.error(exc.message, exc.code, exc.data)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = _format_validation_errors(exc)
    logger.info(f"Validation failed on {request.method} {request.url.path}: {errors}")
    return responses.validation_error(errors)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        msg = f"path not found: {request.url.path}"
    else:
        msg = str(exc.detail)
    return responses.error(msg, exc.status_code, headers=getattr(exc, "headers", None))


async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(
        f"Database error on {request.method} {request.url.path}: {exc}", exc_info=exc
    )
    return responses.error("database error", 500)


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}: {exc}",
        exc_info=exc,
    )
    return responses.error("internal server error", 500)


def loop_exception_handler(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    """Log exceptions from tasks nobody awaited instead of letting them vanish."""
    exc = context.get("exception")
    message = context.get("message", "unhandled exception in event loop")
    if exc is not None:
        logger.error(f"Unhandled async exception: {message}", exc_info=exc)
    else:
        logger.error(f"Unhandled async error: {message}")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
