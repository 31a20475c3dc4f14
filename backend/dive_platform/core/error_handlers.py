"""Flask error handlers producing the ``{"success": false, "error": {...}}`` envelope."""

import logging

from flask import Flask, request
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from dive_platform.core.api_utils import error_response
from dive_platform.core.config import is_production
from dive_platform.core.exceptions import AppError

logger = logging.getLogger(__name__)

_UNIQUE_MARKERS = ("unique constraint", "duplicate key", "23505")
_FOREIGN_KEY_MARKERS = ("foreign key", "23503")

_HTTP_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    413: "PAYLOAD_TOO_LARGE",
    415: "UNSUPPORTED_MEDIA_TYPE",
    429: "TOO_MANY_REQUESTS",
}


def classify_integrity_error(exc: IntegrityError) -> tuple:
    """Return (status, code, message) for a database constraint violation."""
    detail = str(getattr(exc, "orig", exc)).lower()
    pgcode = getattr(getattr(exc, "orig", None), "pgcode", None) or ""
    if pgcode == "23505" or any(m in detail for m in _UNIQUE_MARKERS):
        return 409, "DUPLICATE_ENTRY", "Resource already exists"
    if pgcode == "23503" or any(m in detail for m in _FOREIGN_KEY_MARKERS):
        return 400, "FOREIGN_KEY_VIOLATION", "Referenced resource does not exist"
    return 400, "CONSTRAINT_VIOLATION", "Request violates a data constraint"


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(AppError)
    def handle_app_error(exc: AppError):
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            exc.message,
            extra={
                "context": {
                    "code": exc.code,
                    "status_code": exc.status_code,
                    "path": request.path,
                    "method": request.method,
                }
            },
        )
        return error_response(exc.code, exc.message, exc.status_code, exc.details)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(exc: IntegrityError):
        status, code, message = classify_integrity_error(exc)
        logger.warning(
            "Database constraint violation",
            extra={"context": {"code": code, "path": request.path}},
        )
        return error_response(code, message, status)

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc: HTTPException):
        status = exc.code or 500
        code = _HTTP_CODES.get(status, "HTTP_ERROR")
        if status == 404:
            message = f"Route {request.method} {request.path} not found"
        elif status == 429:
            message = "Too many requests, please try again later"
        else:
            message = exc.description or exc.name
        return error_response(code, message, status)

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        logger.error(
            "Unhandled exception",
            extra={"context": {"path": request.path, "method": request.method}},
            exc_info=exc,
        )
        message = "Internal server error" if is_production() else str(exc)
        return error_response("INTERNAL_ERROR", message, 500)
