from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import AUDIT_PAYMENT_CREATED, AUDIT_PAYMENT_UPDATED, audit_tenant_change
from ..core.db import get_session
from ..models import Payment
from ..rate_limiter import tenant_rate_limit
from ..schemas import PaymentCreate, PaymentOut, PaymentUpdate
from ..tenancy import queries
from ..tenancy.context import TenantContext, get_tenant_context, require_admin

# Payment records only; no gateway integration
router = APIRouter(
    prefix="/api/payments",
    tags=["payments"],
    dependencies=[Depends(get_tenant_context), Depends(tenant_rate_limit)],
)


@router.get("", response_model=list[PaymentOut])
async def list_payments(
    booking_id: Optional[int] = None,
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    return await queries.list_payments(session, ctx, booking_id=booking_id)


@router.post("", response_model=PaymentOut, status_code=201)
async def create_payment(
    body: PaymentCreate,
    ctx: TenantContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    payment = await queries.create_payment(session, ctx, body.to_payload())
    await audit_tenant_change(
        session,
        ctx,
        AUDIT_PAYMENT_CREATED,
        "payment",
        payment.id,
        metadata={"booking_id": payment.booking_id, "status": payment.status.value},
    )
    await session.commit()
    return payment


@router.get("/{payment_id}", response_model=PaymentOut)
async def get_payment(
    payment_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    return await queries.get_scoped(session, ctx, Payment, payment_id)


@router.patch("/{payment_id}", response_model=PaymentOut)
async def update_payment(
    payment_id: int,
    body: PaymentUpdate,
    ctx: TenantContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    payment = await queries.update_scoped(session, ctx, Payment, payment_id, body.to_payload(partial=True))
    await audit_tenant_change(
        session, ctx, AUDIT_PAYMENT_UPDATED, "payment", payment.id, metadata={"status": payment.status.value}
    )
    await session.commit()
    return payment
