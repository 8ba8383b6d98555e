from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.db import get_session
from ..rate_limiter import tenant_rate_limit
from ..schemas import DashboardStats, UpcomingBooking
from ..tenancy import queries
from ..tenancy.context import TenantContext, get_tenant_context

router = APIRouter(
    prefix="/api/dashboard",
    tags=["dashboard"],
    dependencies=[Depends(get_tenant_context), Depends(tenant_rate_limit)],
)


@router.get("/stats", response_model=DashboardStats)
async def dashboard_stats(
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    return await queries.get_dashboard_stats(session, ctx)


@router.get("/upcoming-bookings", response_model=list[UpcomingBooking])
async def upcoming_bookings(
    limit: int = Query(5, ge=1, le=50),
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    return await queries.get_upcoming_bookings(session, ctx, limit=limit)
