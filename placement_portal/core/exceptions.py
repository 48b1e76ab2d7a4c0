"""
Domain exceptions and their HTTP mapping.

Services raise these; the handlers registered on the app turn them into
{"success": false, "message": ...} responses with the matching status code.
"""

import logging
from typing import Any, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class PortalError(Exception):
    """Base exception for the placement portal"""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PortalError):
    """Bad filters, pagination, fields, format or workflow transition"""
    status_code = 400


class AuthorizationError(PortalError):
    """Role or college scope does not allow the operation"""
    status_code = 403


class NotFoundError(PortalError):
    status_code = 404


class InfrastructureError(PortalError):
    """Database unavailable or query failed"""
    status_code = 503


class PartialBatchFailure(PortalError):
    """Some items of a bulk operation failed; the rest were applied."""
    status_code = 207

    def __init__(self, message: str, succeeded: List[int], failed: List[dict]):
        super().__init__(message)
        self.succeeded = succeeded
        self.failed = failed


def _error_body(message: str, data: Optional[Any] = None) -> dict:
    body = {"success": False, "message": message}
    if data is not None:
        body["data"] = data
    return body


async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    data = None
    if isinstance(exc, PartialBatchFailure):
        data = {"succeeded": exc.succeeded, "failed": exc.failed}
        logger.warning(f"{request.url.path}: {exc.message}")
    elif isinstance(exc, InfrastructureError):
        logger.error(f"{request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, data))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return JSONResponse(status_code=ValidationError.status_code,
                        content=_error_body(f"Invalid request - {problems}"))


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception(f"Database error on {request.url.path}")
    return JSONResponse(status_code=InfrastructureError.status_code,
                        content=_error_body("Database unavailable"))


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    sanitized_error = str(exc).replace('\n', ' ').replace('\r', ' ')[:500]
    logger.error(f"Unexpected error on {request.url.path}: {sanitized_error}")
    return JSONResponse(status_code=500, content=_error_body("Server error"))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PortalError, portal_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
