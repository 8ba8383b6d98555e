"""
Request Context Resolution Module

This module is the single place identity is resolved. Every tenant route
reaches it through guidebook.tenancy.context.get_tenant_context.

ARCHITECTURE:
    1. resolve_principal() extracts the bearer token from the request
    2. The token is verified with PyJWT; only the `sub` claim is trusted
    3. The user row is loaded and its outfitter is checked for is_active
    4. A frozen Principal is returned; the tenant comes from the user row

AUTH METHOD:
    - JWT Bearer token signed with JWT_SECRET
    - NO fallback to headers, query parameters or a default outfitter
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .errors import AccountDisabledError, AuthenticationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """The authenticated actor, bound to exactly one outfitter."""
    user_id: str
    outfitter_id: int
    role: str
    email: Optional[str] = None


def create_access_token(user_id: str, expires_in: Optional[timedelta] = None) -> str:
    """Issue a bearer token for a user. The token carries identity only."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    expires_in = expires_in or timedelta(minutes=settings.access_token_ttl_minutes)
    payload = {"sub": user_id, "iat": now, "exp": now + expires_in}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict:
    """
    Verify signature and expiry and return the claims.

    Raises:
        AuthenticationError: token is malformed, forged or expired
    """
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Session expired. Please sign in again.")
    except jwt.InvalidTokenError as e:
        logger.warning(f"JWT verification failed: {e}")
        raise AuthenticationError("Invalid or expired token. Please sign in again.")


def _bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError()
    return token.strip()


async def resolve_principal(request: Request, session: AsyncSession) -> Principal:
    """
    Resolve the authenticated principal for a request.

    Tenant identity is read from the persisted user record. Claims such as
    `outfitter_id` or `role` inside the token are never consulted, and
    neither are query parameters, body fields or custom headers.

    Raises:
        AuthenticationError: no credential, invalid credential, unknown user
        AccountDisabledError: the user's outfitter is missing or deactivated
    """
    # Import here to avoid circular dependency
    from ..models import Outfitter, User

    claims = decode_access_token(_bearer_token(request))
    user_id = claims.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise AuthenticationError()

    # Identity lookup precedes tenant resolution
    result = await session.execute(select(User).where(User.id == user_id))  # noqa: tenant-scoping
    user = result.scalar_one_or_none()
    if user is None:
        logger.warning(f"Authentication failed: token subject {user_id} has no user record")
        raise AuthenticationError()

    result = await session.execute(select(Outfitter).where(Outfitter.id == user.outfitter_id))
    outfitter = result.scalar_one_or_none()
    if outfitter is None or not outfitter.is_active:
        logger.warning(
            f"Authentication refused: user {user.id} belongs to inactive outfitter {user.outfitter_id}"
        )
        raise AccountDisabledError()

    logger.debug(f"Resolved principal {user.id} -> outfitter {user.outfitter_id} ({user.role})")
    return Principal(
        user_id=user.id,
        outfitter_id=user.outfitter_id,
        role=user.role,
        email=user.email,
    )
