"""
Error taxonomy and global exception handling.

Every handled failure is an ``AppError`` carrying the HTTP status it maps to.
Responses use the flat ``{"error": ..., "details": ...}`` shape the web app
and the provider-facing endpoints expect.
"""

from typing import Any, Optional

import structlog
from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


class AppError(Exception):
    """Base class for all application exceptions."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        details: Optional[Any] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class AuthenticationError(AppError):
    """Missing or invalid bearer token."""
    status_code = status.HTTP_401_UNAUTHORIZED


class InvalidOAuthStateError(AppError):
    """OAuth state or account-selection token is unknown, expired or already used."""
    status_code = status.HTTP_400_BAD_REQUEST


class ValidationError(AppError):
    """Request rejected before any side effect."""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class ProviderError(AppError):
    """The Meta Graph API rejected a call; ``details`` holds the provider error verbatim."""
    status_code = status.HTTP_400_BAD_REQUEST

    @property
    def code(self) -> Optional[str]:
        if isinstance(self.details, dict) and self.details.get("code") is not None:
            return str(self.details["code"])
        return None


class ConfigurationError(AppError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class TransientInfrastructureError(AppError):
    """Store or network failure unrelated to provider semantics."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def error_body(exc: AppError) -> dict:
    body: dict[str, Any] = {"error": exc.message}
    if exc.details is not None:
        body["details"] = exc.details
    return body


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "Request failed",
            error=exc.__class__.__name__,
            message=exc.message,
            path=request.url.path,
        )
    return JSONResponse(status_code=exc.status_code, content=error_body(exc))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render body and query validation failures as a 400 ``ValidationError``."""
    error = ValidationError("Invalid request body", details=jsonable_encoder(exc.errors()))
    return JSONResponse(status_code=error.status_code, content=error_body(error))


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all uncaught exceptions globally."""
    logger.exception("Unexpected error occurred", path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )
