from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import (
    AUDIT_CUSTOMER_CREATED,
    AUDIT_CUSTOMER_DELETED,
    AUDIT_CUSTOMER_UPDATED,
    audit_tenant_change,
)
from ..core.db import get_session
from ..models import Customer
from ..rate_limiter import tenant_rate_limit
from ..schemas import CustomerCreate, CustomerOut, CustomerUpdate
from ..tenancy import queries
from ..tenancy.context import TenantContext, get_tenant_context, require_admin

router = APIRouter(
    prefix="/api/customers",
    tags=["customers"],
    dependencies=[Depends(get_tenant_context), Depends(tenant_rate_limit)],
)


@router.get("", response_model=list[CustomerOut])
async def list_customers(
    search: Optional[str] = None,
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    return await queries.list_customers(session, ctx, search=search)


@router.post("", response_model=CustomerOut, status_code=201)
async def create_customer(
    body: CustomerCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    customer = await queries.create_customer(session, ctx, body.to_payload())
    await audit_tenant_change(session, ctx, AUDIT_CUSTOMER_CREATED, "customer", customer.id)
    await session.commit()
    return customer


@router.get("/{customer_id}", response_model=CustomerOut)
async def get_customer(
    customer_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    return await queries.get_scoped(session, ctx, Customer, customer_id)


@router.patch("/{customer_id}", response_model=CustomerOut)
async def update_customer(
    customer_id: int,
    body: CustomerUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    customer = await queries.update_scoped(session, ctx, Customer, customer_id, body.to_payload(partial=True))
    await audit_tenant_change(session, ctx, AUDIT_CUSTOMER_UPDATED, "customer", customer.id)
    await session.commit()
    return customer


@router.delete("/{customer_id}", status_code=204)
async def delete_customer(
    customer_id: int,
    ctx: TenantContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await queries.delete_scoped(session, ctx, Customer, customer_id)
    await audit_tenant_change(session, ctx, AUDIT_CUSTOMER_DELETED, "customer", customer_id)
    await session.commit()
    return Response(status_code=204)
