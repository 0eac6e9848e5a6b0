"""
Application error taxonomy and the FastAPI handlers that render it.

Every error leaves the API in the same envelope:
    {"error": {"code": ..., "message": ..., "details": {...}, "path": ...}}
"""

from typing import Any, Dict, List, Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from core.config import settings

logger = structlog.get_logger(__name__)


class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AppError):
    """One or more request fields are invalid. Carries every (field, message) pair."""
    def __init__(self, errors: List[Dict[str, str]], message: str = "Validation failed"):
        self.errors = errors
        super().__init__(message, status.HTTP_400_BAD_REQUEST, {"errors": errors})

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls([{"field": field, "message": message}], message)


class InvalidOwner(ValidationError):
    def __init__(self, message: str = "Invalid owner ID or user is not a store owner"):
        super().__init__([{"field": "ownerId", "message": message}], message)


class AuthenticationError(AppError):
    def __init__(self, message: str = "Not authenticated", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED, details)


class InvalidToken(AuthenticationError):
    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class TokenExpired(AuthenticationError):
    def __init__(self, message: str = "Token expired"):
        super().__init__(message)


class AuthorizationError(AppError):
    def __init__(self, message: str = "Forbidden", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_403_FORBIDDEN, details)


class NotFoundError(AppError):
    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_404_NOT_FOUND, details)


class NotFoundOrUnauthorized(NotFoundError):
    # Same answer for "missing" and "not yours" so store ownership does not leak.
    def __init__(self, message: str = "Rating not found or not authorized"):
        super().__init__(message)


class ConflictError(AppError):
    def __init__(self, message: str = "Conflict", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_409_CONFLICT, details)


class InternalError(AppError):
    def __init__(self, message: str = "An unexpected error occurred. Please try again later."):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)


def _envelope(request: Request, code: str, message: str, details: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details,
            "path": request.url.path,
        }
    }


def _field_name(loc) -> str:
    # ("body", "storeId") -> "storeId"; ("query", "role") -> "role"
    parts = [str(part) for part in loc if part not in ("body", "query", "path", "header")]
    return ".".join(parts) or "body"


def request_validation_errors(exc: RequestValidationError) -> List[Dict[str, str]]:
    errors = []
    for err in exc.errors():
        message = err.get("msg", "Invalid value")
        # pydantic prefixes messages raised from validators
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append({"field": _field_name(err.get("loc", ())), "message": message})
    return errors


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request error", code=exc.__class__.__name__, path=request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content=_envelope(request, exc.__class__.__name__, exc.message, exc.details),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return await app_error_handler(request, ValidationError(request_validation_errors(exc)))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unexpected error occurred", path=request.url.path)
    error = InternalError()
    details = {"exception": repr(exc)} if settings.DEBUG else {}
    return JSONResponse(
        status_code=error.status_code,
        content=_envelope(request, "InternalError", error.message, details),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
