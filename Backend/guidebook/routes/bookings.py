from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import (
    AUDIT_BOOKING_CREATED,
    AUDIT_BOOKING_DELETED,
    AUDIT_BOOKING_UPDATED,
    AUDIT_GUIDE_ASSIGNED,
    AUDIT_GUIDE_UNASSIGNED,
    audit_tenant_change,
)
from ..core.db import get_session
from ..models import Booking, BookingStatus
from ..rate_limiter import tenant_rate_limit
from ..schemas import (
    BookingCreate,
    BookingGuideCreate,
    BookingGuideOut,
    BookingOut,
    BookingUpdate,
    as_utc,
)
from ..tenancy import queries
from ..tenancy.context import TenantContext, get_tenant_context, require_admin

router = APIRouter(
    prefix="/api/bookings",
    tags=["bookings"],
    dependencies=[Depends(get_tenant_context), Depends(tenant_rate_limit)],
)


@router.get("", response_model=list[BookingOut])
async def list_bookings(
    status: Optional[BookingStatus] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    return await queries.list_bookings(session, ctx, status=status, start=as_utc(start), end=as_utc(end))


@router.post("", response_model=BookingOut, status_code=201)
async def create_booking(
    body: BookingCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    booking = await queries.create_booking(session, ctx, body.to_payload())
    await audit_tenant_change(
        session,
        ctx,
        AUDIT_BOOKING_CREATED,
        "booking",
        booking.id,
        metadata={"booking_number": booking.booking_number},
    )
    await session.commit()
    return booking


@router.get("/{booking_id}", response_model=BookingOut)
async def get_booking(
    booking_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    return await queries.get_scoped(session, ctx, Booking, booking_id)


@router.patch("/{booking_id}", response_model=BookingOut)
async def update_booking(
    booking_id: int,
    body: BookingUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    changes = body.to_payload(partial=True)
    booking = await queries.update_booking(session, ctx, booking_id, changes)
    metadata = {"status": booking.status.value} if "status" in changes else None
    await audit_tenant_change(session, ctx, AUDIT_BOOKING_UPDATED, "booking", booking.id, metadata=metadata)
    await session.commit()
    return booking


@router.delete("/{booking_id}", status_code=204)
async def delete_booking(
    booking_id: int,
    ctx: TenantContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await queries.delete_booking(session, ctx, booking_id)
    await audit_tenant_change(session, ctx, AUDIT_BOOKING_DELETED, "booking", booking_id)
    await session.commit()
    return Response(status_code=204)


# ────────────────────────────────────────────────────────────────
# Guides on a booking
# ────────────────────────────────────────────────────────────────

@router.get("/{booking_id}/guides", response_model=list[BookingGuideOut])
async def list_booking_guides(
    booking_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    return await queries.list_booking_guides(session, ctx, booking_id)


@router.post("/{booking_id}/guides", response_model=BookingGuideOut, status_code=201)
async def assign_booking_guide(
    booking_id: int,
    body: BookingGuideCreate,
    ctx: TenantContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    booking_guide = await queries.assign_guide_to_booking(session, ctx, booking_id, body.guide_id)
    await audit_tenant_change(
        session, ctx, AUDIT_GUIDE_ASSIGNED, "booking", booking_id, metadata={"guide_id": body.guide_id}
    )
    await session.commit()
    return booking_guide


@router.delete("/{booking_id}/guides/{guide_id}", status_code=204)
async def remove_booking_guide(
    booking_id: int,
    guide_id: str,
    ctx: TenantContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await queries.remove_guide_from_booking(session, ctx, booking_id, guide_id)
    await audit_tenant_change(
        session, ctx, AUDIT_GUIDE_UNASSIGNED, "booking", booking_id, metadata={"guide_id": guide_id}
    )
    await session.commit()
    return Response(status_code=204)
