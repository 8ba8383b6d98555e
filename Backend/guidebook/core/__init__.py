"""Core infrastructure: configuration, database, errors and identity."""

from .config import Settings, get_settings
from .errors import (
    AccountDisabledError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    GuidebookError,
    NotFoundError,
    PayloadValidationError,
    RateLimitExceededError,
)
from .request_context import Principal, create_access_token, decode_access_token, resolve_principal

__all__ = [
    "Settings",
    "get_settings",
    "GuidebookError",
    "ConflictError",
    "AuthenticationError",
    "AccountDisabledError",
    "AuthorizationError",
    "NotFoundError",
    "PayloadValidationError",
    "RateLimitExceededError",
    "Principal",
    "create_access_token",
    "decode_access_token",
    "resolve_principal",
]
