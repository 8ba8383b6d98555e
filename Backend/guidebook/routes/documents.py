from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import (
    AUDIT_DOCUMENT_CREATED,
    AUDIT_DOCUMENT_DELETED,
    AUDIT_DOCUMENT_UPDATED,
    audit_tenant_change,
)
from ..core.db import get_session
from ..models import Document
from ..rate_limiter import tenant_rate_limit
from ..schemas import DocumentCreate, DocumentOut, DocumentUpdate
from ..tenancy import queries
from ..tenancy.context import TenantContext, get_tenant_context

# Document metadata only; file storage is handled outside this service
router = APIRouter(
    prefix="/api/documents",
    tags=["documents"],
    dependencies=[Depends(get_tenant_context), Depends(tenant_rate_limit)],
)


@router.get("", response_model=list[DocumentOut])
async def list_documents(
    booking_id: Optional[int] = None,
    customer_id: Optional[int] = None,
    guide_id: Optional[str] = None,
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    return await queries.list_documents(
        session, ctx, booking_id=booking_id, customer_id=customer_id, guide_id=guide_id
    )


@router.post("", response_model=DocumentOut, status_code=201)
async def create_document(
    body: DocumentCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    document = await queries.create_document(session, ctx, body.to_payload())
    await audit_tenant_change(session, ctx, AUDIT_DOCUMENT_CREATED, "document", document.id)
    await session.commit()
    return document


@router.get("/{document_id}", response_model=DocumentOut)
async def get_document(
    document_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    return await queries.get_scoped(session, ctx, Document, document_id)


@router.patch("/{document_id}", response_model=DocumentOut)
async def update_document(
    document_id: int,
    body: DocumentUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    document = await queries.update_document(session, ctx, document_id, body.to_payload(partial=True))
    await audit_tenant_change(session, ctx, AUDIT_DOCUMENT_UPDATED, "document", document.id)
    await session.commit()
    return document


@router.delete("/{document_id}", status_code=204)
async def delete_document(
    document_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    await queries.delete_scoped(session, ctx, Document, document_id)
    await audit_tenant_change(session, ctx, AUDIT_DOCUMENT_DELETED, "document", document_id)
    await session.commit()
    return Response(status_code=204)
