"""
Tenant context for a request.

The context is resolved once per request from the authenticated principal,
stored on request.state and handed explicitly to every data-access call.
Nothing here keeps tenant identity in module-level state, so concurrently
handled requests cannot observe each other's outfitter.
"""

import logging
from dataclasses import dataclass

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.db import get_session
from ..core.errors import AuthorizationError
from ..core.request_context import resolve_principal
from ..models import UserRole


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TenantContext:
    """
    Immutable context representing the current tenant for a request.

    This object MUST be established before any tenant-specific database operation.

    Attributes:
        outfitter_id: The database ID of the outfitter (outfitters.id)
        user_id: The authenticated user making the request
        role: "admin" or "guide"
    """

    outfitter_id: int
    user_id: str
    role: str = UserRole.GUIDE.value

    def __post_init__(self):
        if not isinstance(self.outfitter_id, int) or self.outfitter_id <= 0:
            raise ValueError(f"outfitter_id must be a positive integer, got {self.outfitter_id!r}")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


# ────────────────────────────────────────────────────────────────
# FastAPI Dependencies
# ────────────────────────────────────────────────────────────────

async def get_tenant_context(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> TenantContext:
    """
    FastAPI dependency that establishes the tenant for a request.

    Installed at router level on every tenant router, so it runs before
    body validation and before any handler logic. Fails closed: a request
    without a resolvable principal is answered with 401.

    Usage:
        router = APIRouter(dependencies=[Depends(get_tenant_context)])

        @router.get("/customers")
        async def list_customers(
            ctx: TenantContext = Depends(get_tenant_context),
            session: AsyncSession = Depends(get_session),
        ):
            return await queries.list_customers(session, ctx)
    """
    principal = await resolve_principal(request, session)
    ctx = TenantContext(
        outfitter_id=principal.outfitter_id,
        user_id=principal.user_id,
        role=principal.role,
    )
    request.state.tenant = ctx
    return ctx


async def require_member(ctx: TenantContext = Depends(get_tenant_context)) -> TenantContext:
    """Any authenticated user of the outfitter (admin or guide)."""
    return ctx


async def require_admin(ctx: TenantContext = Depends(get_tenant_context)) -> TenantContext:
    """Outfitter admins only."""
    if not ctx.is_admin:
        logger.warning(
            f"Authorization failed: user {ctx.user_id} has role {ctx.role}, "
            f"needs admin in outfitter {ctx.outfitter_id}"
        )
        raise AuthorizationError("Access denied. Required role: admin.")
    return ctx


def require_self_or_admin(ctx: TenantContext, user_id: str) -> None:
    """Guides may act on their own records only; admins on any in their outfitter."""
    if ctx.is_admin or ctx.user_id == user_id:
        return
    logger.warning(f"Authorization failed: user {ctx.user_id} tried to act as {user_id}")
    raise AuthorizationError("Access denied. Guides may only view their own records.")


__all__ = [
    "TenantContext",
    "get_tenant_context",
    "require_member",
    "require_admin",
    "require_self_or_admin",
]
