import logging

from fastapi import Request
from fastapi.responses import JSONResponse, Response

from schoolportal.errors import (
    AccessDeniedError,
    AlreadyUsedError,
    AuthenticationError,
    ExpiredError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Most specific first
USER_ERROR_STATUS: list[tuple[type[Exception], int, str]] = [
    (AuthenticationError, 401, "authentication_error"),
    (AccessDeniedError, 403, "access_denied"),
    (NotFoundError, 404, "not_found"),
    (AlreadyUsedError, 409, "already_used"),
    (ExpiredError, 410, "expired"),
    (ValidationError, 400, "validation_error"),
]


def create_json_error_response(status_code: int, message: str, error_type: str | None = None) -> JSONResponse:
    """Create JSON error response with optional type for machine parsing."""
    content = {"message": message}
    if error_type:
        content["type"] = error_type
    return JSONResponse(status_code=status_code, content=content)


async def user_error_handler(_: Request, exc: Exception) -> Response:
    """Handle all UserError subclasses with appropriate status codes."""
    for error_class, status_code, error_type in USER_ERROR_STATUS:
        if isinstance(exc, error_class):
            return create_json_error_response(status_code=status_code, message=str(exc), error_type=error_type)
    # Default for any other UserError subclass
    return create_json_error_response(status_code=400, message=str(exc), error_type="bad_request")


async def general_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle unexpected and storage errors (500) without leaking details."""
    logger.exception("Unexpected error on %s %s: %s", request.method, request.url.path, exc)
    return create_json_error_response(
        status_code=500, message="An unexpected error occurred.", error_type="internal_server_error"
    )
