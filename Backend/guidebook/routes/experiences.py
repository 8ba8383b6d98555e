from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import (
    AUDIT_EXPERIENCE_CREATED,
    AUDIT_EXPERIENCE_DELETED,
    AUDIT_EXPERIENCE_UPDATED,
    AUDIT_GUIDE_ASSIGNED,
    AUDIT_GUIDE_UNASSIGNED,
    audit_tenant_change,
)
from ..core.db import get_session
from ..models import Experience
from ..rate_limiter import tenant_rate_limit
from ..schemas import (
    ExperienceCreate,
    ExperienceOut,
    ExperienceUpdate,
    GuideAssignmentCreate,
    GuideAssignmentOut,
)
from ..tenancy import queries
from ..tenancy.context import TenantContext, get_tenant_context, require_admin

router = APIRouter(
    prefix="/api/experiences",
    tags=["experiences"],
    dependencies=[Depends(get_tenant_context), Depends(tenant_rate_limit)],
)


@router.get("", response_model=list[ExperienceOut])
async def list_experiences(
    location_id: Optional[int] = None,
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    return await queries.list_experiences(session, ctx, location_id=location_id)


@router.post("", response_model=ExperienceOut, status_code=201)
async def create_experience(
    body: ExperienceCreate,
    ctx: TenantContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    experience = await queries.create_experience(session, ctx, body.to_payload())
    await audit_tenant_change(session, ctx, AUDIT_EXPERIENCE_CREATED, "experience", experience.id)
    await session.commit()
    return experience


@router.get("/{experience_id}", response_model=ExperienceOut)
async def get_experience(
    experience_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    return await queries.get_scoped(session, ctx, Experience, experience_id)


@router.patch("/{experience_id}", response_model=ExperienceOut)
async def update_experience(
    experience_id: int,
    body: ExperienceUpdate,
    ctx: TenantContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    experience = await queries.update_experience(session, ctx, experience_id, body.to_payload(partial=True))
    await audit_tenant_change(session, ctx, AUDIT_EXPERIENCE_UPDATED, "experience", experience.id)
    await session.commit()
    return experience


@router.delete("/{experience_id}", status_code=204)
async def delete_experience(
    experience_id: int,
    ctx: TenantContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await queries.delete_scoped(session, ctx, Experience, experience_id)
    await audit_tenant_change(session, ctx, AUDIT_EXPERIENCE_DELETED, "experience", experience_id)
    await session.commit()
    return Response(status_code=204)


# ────────────────────────────────────────────────────────────────
# Guide assignments
# ────────────────────────────────────────────────────────────────

@router.get("/{experience_id}/guides", response_model=list[GuideAssignmentOut])
async def list_experience_guides(
    experience_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    return await queries.list_experience_guides(session, ctx, experience_id)


@router.post("/{experience_id}/guides", response_model=GuideAssignmentOut, status_code=201)
async def assign_guide(
    experience_id: int,
    body: GuideAssignmentCreate,
    ctx: TenantContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    assignment = await queries.assign_guide_to_experience(
        session, ctx, experience_id, body.guide_id, is_primary=body.is_primary
    )
    await audit_tenant_change(
        session,
        ctx,
        AUDIT_GUIDE_ASSIGNED,
        "experience",
        experience_id,
        metadata={"guide_id": body.guide_id, "is_primary": body.is_primary},
    )
    await session.commit()
    return assignment


@router.delete("/{experience_id}/guides/{assignment_id}", status_code=204)
async def remove_guide(
    experience_id: int,
    assignment_id: int,
    ctx: TenantContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    assignment = await queries.remove_guide_assignment(session, ctx, experience_id, assignment_id)
    await audit_tenant_change(
        session,
        ctx,
        AUDIT_GUIDE_UNASSIGNED,
        "experience",
        experience_id,
        metadata={"guide_id": assignment.guide_id},
    )
    await session.commit()
    return Response(status_code=204)
