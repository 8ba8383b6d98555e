"""
Failure taxonomy for the tenant isolation layer and its HTTP mapping.

    AuthenticationError     -> 401  (no/invalid credential)
    AccountDisabledError    -> 401  (credential resolves to a deactivated outfitter)
    AuthorizationError      -> 403  (valid tenant, insufficient role)
    NotFoundError           -> 404  (absent OR owned by another outfitter)
    PayloadValidationError  -> 400  (malformed payload)
    ConflictError           -> 409  (duplicate or still-referenced record)
    RateLimitExceededError  -> 429  (per-outfitter request budget exhausted)

Cross-tenant access is always reported as NotFoundError so that a caller
cannot learn which ids exist in other outfitters.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .responses import ErrorCodes, error_response

logger = logging.getLogger(__name__)


class GuidebookError(Exception):
    """Base class for errors that map onto a client-facing status code."""

    status_code: int = 500
    code: str = ErrorCodes.INTERNAL_ERROR
    default_message: str = "Something went wrong"

    def __init__(self, message: Optional[str] = None, headers: Optional[dict] = None):
        self.message = message or self.default_message
        self.headers = headers
        super().__init__(self.message)


class AuthenticationError(GuidebookError):
    status_code = 401
    code = ErrorCodes.AUTHENTICATION_REQUIRED
    default_message = "Authentication required. Please sign in."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class AccountDisabledError(AuthenticationError):
    code = ErrorCodes.ACCOUNT_DISABLED
    default_message = "This account has been disabled."


class AuthorizationError(GuidebookError):
    status_code = 403
    code = ErrorCodes.INSUFFICIENT_ROLE
    default_message = "Insufficient permissions"


class NotFoundError(GuidebookError):
    status_code = 404
    code = ErrorCodes.NOT_FOUND
    default_message = "Resource not found"

    @classmethod
    def for_resource(cls, resource_type: str) -> "NotFoundError":
        return cls(f"{resource_type} not found")


class PayloadValidationError(GuidebookError):
    status_code = 400
    code = ErrorCodes.VALIDATION_ERROR
    default_message = "Invalid data provided"


class ConflictError(GuidebookError):
    status_code = 409
    code = ErrorCodes.CONFLICT
    default_message = "Request conflicts with existing data"


class RateLimitExceededError(GuidebookError):
    status_code = 429
    code = ErrorCodes.RATE_LIMITED
    default_message = "Rate limit exceeded"


# ────────────────────────────────────────────────────────────────
# Exception handlers
# ────────────────────────────────────────────────────────────────

async def handle_guidebook_error(request: Request, exc: GuidebookError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(
            f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}"
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.message, exc.code, exc.status_code),
        headers=exc.headers,
    )


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # Field names only; echoing input values back could leak payload contents
    fields = sorted(
        {".".join(str(part) for part in err.get("loc", ())[1:]) for err in exc.errors()} - {""}
    )
    logger.info(f"Validation failed for {request.method} {request.url.path}: {fields}")
    message = "Invalid data provided"
    if fields:
        message = f"Invalid data provided: {', '.join(fields)}"
    return JSONResponse(
        status_code=400,
        content=error_response(message, ErrorCodes.VALIDATION_ERROR, 400),
    )


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(message, status_code=exc.status_code),
        headers=getattr(exc, "headers", None),
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content=error_response("Something went wrong", ErrorCodes.INTERNAL_ERROR, 500),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers that turn every failure into the error envelope."""
    app.add_exception_handler(GuidebookError, handle_guidebook_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected_error)
