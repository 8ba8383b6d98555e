from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import AUDIT_MEMBER_ADDED, audit_tenant_change
from ..core.db import get_session
from ..models import UserRole
from ..rate_limiter import tenant_rate_limit
from ..schemas import MeResponse, OutfitterOut, StaffCreate, UserOut
from ..tenancy import queries
from ..tenancy.context import TenantContext, get_tenant_context, require_admin

router = APIRouter(
    prefix="/api",
    tags=["users"],
    dependencies=[Depends(get_tenant_context), Depends(tenant_rate_limit)],
)


@router.get("/auth/me", response_model=MeResponse)
async def me(
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    """The signed-in user and the outfitter the request is scoped to."""
    user = await queries.get_staff_member(session, ctx, ctx.user_id)
    outfitter = await queries.get_current_outfitter(session, ctx)
    return MeResponse(
        user=UserOut.model_validate(user),
        outfitter=OutfitterOut.model_validate(outfitter),
    )


@router.get("/users", response_model=list[UserOut])
async def list_users(
    role: Optional[UserRole] = None,
    ctx: TenantContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    roles = [role.value] if role else None
    return await queries.list_staff(session, ctx, roles=roles)


@router.post("/users", response_model=UserOut, status_code=201)
async def create_user(
    body: StaffCreate,
    ctx: TenantContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Add a staff member. The new user always joins the caller's outfitter."""
    user = await queries.create_staff_member(session, ctx, body.to_payload())
    await audit_tenant_change(
        session, ctx, AUDIT_MEMBER_ADDED, "user", user.id, metadata={"role": user.role}
    )
    await session.commit()
    return user
