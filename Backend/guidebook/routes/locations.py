from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import (
    AUDIT_LOCATION_CREATED,
    AUDIT_LOCATION_DELETED,
    AUDIT_LOCATION_UPDATED,
    audit_tenant_change,
)
from ..core.db import get_session
from ..models import Location
from ..rate_limiter import tenant_rate_limit
from ..schemas import LocationCreate, LocationOut, LocationUpdate
from ..tenancy import queries
from ..tenancy.context import TenantContext, get_tenant_context, require_admin

router = APIRouter(
    prefix="/api/locations",
    tags=["locations"],
    dependencies=[Depends(get_tenant_context), Depends(tenant_rate_limit)],
)


@router.get("", response_model=list[LocationOut])
async def list_locations(
    active_only: bool = False,
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    return await queries.list_locations(session, ctx, active_only=active_only)


@router.post("", response_model=LocationOut, status_code=201)
async def create_location(
    body: LocationCreate,
    ctx: TenantContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    location = await queries.create_scoped(session, ctx, Location, body.to_payload())
    await audit_tenant_change(session, ctx, AUDIT_LOCATION_CREATED, "location", location.id)
    await session.commit()
    return location


@router.get("/{location_id}", response_model=LocationOut)
async def get_location(
    location_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    return await queries.get_scoped(session, ctx, Location, location_id)


@router.patch("/{location_id}", response_model=LocationOut)
async def update_location(
    location_id: int,
    body: LocationUpdate,
    ctx: TenantContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    location = await queries.update_scoped(session, ctx, Location, location_id, body.to_payload(partial=True))
    await audit_tenant_change(session, ctx, AUDIT_LOCATION_UPDATED, "location", location.id)
    await session.commit()
    return location


@router.delete("/{location_id}", status_code=204)
async def delete_location(
    location_id: int,
    ctx: TenantContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await queries.delete_scoped(session, ctx, Location, location_id)
    await audit_tenant_change(session, ctx, AUDIT_LOCATION_DELETED, "location", location_id)
    await session.commit()
    return Response(status_code=204)
