"""Application error hierarchy.

Every error carries an HTTP status and a stable ``code`` so that callers branch
on the type (or the code), never on the message text.
"""
import logging

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base exception for application errors."""
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class NotFoundError(AppError):
    """Raised when a requested row does not exist or is not visible."""
    status_code = 404
    code = "not_found"


class PermissionDeniedError(AppError):
    status_code = 403
    code = "permission_denied"


class ValidationError(AppError):
    """Raised when input is well-formed but not acceptable."""
    status_code = 400
    code = "validation_error"


class ConflictError(AppError):
    status_code = 409
    code = "conflict"


class InvalidTransitionError(ConflictError):
    """Raised when a status change is not allowed from the current status."""
    code = "invalid_transition"


class FileTooLargeError(AppError):
    status_code = 413
    code = "file_too_large"


class AuthenticationError(AppError):
    """Raised when credentials or tokens are rejected.

    ``reason`` is one of ``user_not_found``, ``wrong_password``,
    ``inactive_user`` or ``invalid_token``.
    """
    status_code = 401
    code = "authentication_failed"

    USER_NOT_FOUND = "user_not_found"
    WRONG_PASSWORD = "wrong_password"
    INACTIVE_USER = "inactive_user"
    INVALID_TOKEN = "invalid_token"

    def __init__(self, message: str, reason: str):
        super().__init__(message)
        self.reason = reason


class IntegrationError(AppError):
    """Raised when an external service call fails."""
    status_code = 502
    code = "integration_error"


class ConfigurationError(AppError):
    """Raised when an integration is used without being configured."""
    status_code = 503
    code = "not_configured"


async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}", exc_info=exc.original_error)
    else:
        logger.info(f"{exc.code} on {request.url.path}: {exc.message}")

    content = {"error": exc.code, "detail": exc.message}
    headers = None
    if isinstance(exc, AuthenticationError):
        content["reason"] = exc.reason
        headers = {"WWW-Authenticate": "Bearer"}

    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)
