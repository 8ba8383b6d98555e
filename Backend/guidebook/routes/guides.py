"""
Guide self-service views.

Guides may read their own experiences, bookings and stats; admins may read
those of any guide in their outfitter. A guide id from another outfitter
is reported as not found.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.db import get_session
from ..rate_limiter import tenant_rate_limit
from ..schemas import BookingOut, ExperienceOut, GuideStats
from ..tenancy import queries
from ..tenancy.context import TenantContext, get_tenant_context, require_self_or_admin

router = APIRouter(
    prefix="/api/guides",
    tags=["guides"],
    dependencies=[Depends(get_tenant_context), Depends(tenant_rate_limit)],
)


async def _resolve_guide(session: AsyncSession, ctx: TenantContext, guide_id: str) -> str:
    guide = await queries.get_staff_member(session, ctx, guide_id)
    require_self_or_admin(ctx, guide.id)
    return guide.id


@router.get("/{guide_id}/experiences", response_model=list[ExperienceOut])
async def guide_experiences(
    guide_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    guide_id = await _resolve_guide(session, ctx, guide_id)
    return await queries.list_guide_experiences(session, ctx, guide_id)


@router.get("/{guide_id}/bookings", response_model=list[BookingOut])
async def guide_bookings(
    guide_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    guide_id = await _resolve_guide(session, ctx, guide_id)
    return await queries.list_guide_bookings(session, ctx, guide_id)


@router.get("/{guide_id}/stats", response_model=GuideStats)
async def guide_stats(
    guide_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    guide_id = await _resolve_guide(session, ctx, guide_id)
    return await queries.get_guide_stats(session, ctx, guide_id)
