"""
Error types and their translation into API responses.

Every error body has the shape
``{"success": false, "message": ..., "errors": {field: message}}`` for
client mistakes, or ``{"success": false, "message": ..., "error": detail}``
for server failures.
"""

import logging
import re
from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Sequence, Union

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

ErrorMap = Dict[str, str]


class ApiError(Exception):
    """Base class for errors that map directly onto an HTTP response."""

    status_code = 500

    def __init__(self, message: str, errors: Optional[ErrorMap] = None, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors
        self.detail = detail


class RecordNotFound(ApiError):
    status_code = 404


class RecordInvalid(ApiError):
    status_code = 400


class FileRejected(ApiError):
    """An upload failed the type or size check."""

    status_code = 400

    def __init__(self, field: str, reason: str):
        super().__init__("File upload rejected", errors={"file": reason})
        self.field = field
        self.reason = reason


class OperationFailed(ApiError):
    status_code = 500


def field_label(name: str) -> str:
    """``firstName`` -> ``First name``."""
    words = re.sub(r"(?<!^)(?=[A-Z])", " ", name).lower()
    return words[:1].upper() + words[1:]


def _message(error: dict) -> str:
    field = str(error["loc"][-1]) if error.get("loc") else ""
    if error.get("type") == "missing" and field:
        return f"{field_label(field)} is required"
    msg = error.get("msg", "Invalid value")
    # pydantic prefixes messages raised from validators
    return msg[len("Value error, "):] if msg.startswith("Value error, ") else msg


def validation_errors(exc: Union[ValidationError, RequestValidationError], skip: int = 0) -> ErrorMap:
    """Collect every violation of a record into a field-keyed map.

    Args:
        exc: The pydantic (or FastAPI request) validation error.
        skip: Number of leading location parts to drop, e.g. ``body``.
    """
    errors: ErrorMap = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ())][skip:]
        key = ".".join(loc) or "general"
        errors.setdefault(key, _message(error))
    return errors


def duplicate_field(exc: DuplicateKeyError, unique_fields: Sequence[str] = ()) -> Optional[str]:
    details = exc.details or {}
    pattern = details.get("keyPattern") or details.get("keyValue")
    if pattern:
        return next(iter(pattern))
    match = re.search(r"index: (\S+?)_-?1\b", str(exc))
    if match:
        return match.group(1)
    if len(unique_fields) == 1:
        return unique_fields[0]
    return None


def record_errors(exc: Exception, unique_fields: Sequence[str] = ()) -> ErrorMap:
    """Classify a failed record write into the error map returned to clients."""
    if isinstance(exc, ValidationError):
        return validation_errors(exc)
    if isinstance(exc, DuplicateKeyError):
        field = duplicate_field(exc, unique_fields)
        if field is None:
            return {"general": "A record with the same unique value already exists."}
        return {field: f"{field[:1].upper() + field[1:]} already exists. Please use a different {field}."}
    if isinstance(exc, FileRejected):
        return {"file": exc.reason}
    return {"general": str(exc) or "An unexpected error occurred. Please try again."}


@contextmanager
def operation(message: str) -> Iterator[None]:
    """Turn unexpected failures inside a handler into a 500 with ``message``."""
    try:
        yield
    except (ApiError, HTTPException):
        raise
    except Exception as exc:
        logger.exception("%s", message)
        raise OperationFailed(message, detail=str(exc)) from exc


def _error_response(status_code: int, message: str, errors: Optional[ErrorMap] = None,
                    detail: Optional[str] = None) -> JSONResponse:
    body: dict = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    if detail:
        body["error"] = detail
    return JSONResponse(status_code=status_code, content=body)


def register_error_handlers(app: FastAPI) -> None:
    """Register the error handlers on the FastAPI application."""

    @app.exception_handler(ApiError)
    async def handle_api_error(_request: Request, exc: ApiError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s: %s", exc.message, exc.detail)
        else:
            logger.info("%s: %s", exc.message, exc.errors or "")
        return _error_response(exc.status_code, exc.message, exc.errors, exc.detail)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error_response(400, "Validation failed", validation_errors(exc, skip=1))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def handle_unexpected(_request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unexpected error: %s", type(exc).__name__)
        return _error_response(500, "Internal server error", detail=str(exc))
