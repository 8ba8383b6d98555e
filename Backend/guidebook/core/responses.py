"""
Standardized error envelope.

Every failure leaving the API has the same shape:

    {
        "success": false,
        "message": "Human-readable message",
        "code": "ERROR_CODE"
    }

Successful responses return the resource (or list of resources) directly.

ERROR CODES:
    - AUTHENTICATION_REQUIRED: No valid credential
    - ACCOUNT_DISABLED: Credential is valid but the outfitter is deactivated
    - INSUFFICIENT_ROLE: Authenticated, but the role may not perform the operation
    - NOT_FOUND: Resource absent, or owned by another outfitter (indistinguishable)
    - VALIDATION_ERROR: Request data failed validation
    - CONFLICT: Duplicate record, or a delete blocked by references
    - RATE_LIMITED: Per-outfitter request budget exhausted
    - INTERNAL_ERROR: Server-side error
"""

from typing import Optional

from pydantic import BaseModel


class ErrorEnvelope(BaseModel):
    """Body of every non-2xx response."""
    success: bool = False
    message: str
    code: str


class ErrorCodes:
    """Standard error codes for API responses."""

    # Authentication errors (401)
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    ACCOUNT_DISABLED = "ACCOUNT_DISABLED"

    # Authorization errors (403)
    INSUFFICIENT_ROLE = "INSUFFICIENT_ROLE"

    # Not found errors (404)
    NOT_FOUND = "NOT_FOUND"

    # Validation errors (400)
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Conflict errors (409)
    CONFLICT = "CONFLICT"

    # Throttling (429)
    RATE_LIMITED = "RATE_LIMITED"

    # Server errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"


_CODES_BY_STATUS = {
    400: ErrorCodes.VALIDATION_ERROR,
    401: ErrorCodes.AUTHENTICATION_REQUIRED,
    403: ErrorCodes.INSUFFICIENT_ROLE,
    404: ErrorCodes.NOT_FOUND,
    409: ErrorCodes.CONFLICT,
    422: ErrorCodes.VALIDATION_ERROR,
    429: ErrorCodes.RATE_LIMITED,
}


def code_for_status(status_code: int) -> str:
    return _CODES_BY_STATUS.get(status_code, ErrorCodes.INTERNAL_ERROR)


def error_response(message: str, code: Optional[str] = None, status_code: int = 500) -> dict:
    """Build the error envelope as a plain dict."""
    return ErrorEnvelope(
        message=message,
        code=code or code_for_status(status_code),
    ).model_dump()
