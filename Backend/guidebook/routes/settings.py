from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import AUDIT_SETTINGS_UPDATED, audit_tenant_change
from ..core.db import get_session
from ..core.errors import NotFoundError, PayloadValidationError
from ..rate_limiter import tenant_rate_limit
from ..schemas import SettingsOut, SettingsUpdate
from ..tenancy import queries
from ..tenancy.context import TenantContext, get_tenant_context, require_admin

router = APIRouter(
    prefix="/api/settings",
    tags=["settings"],
    dependencies=[Depends(get_tenant_context), Depends(tenant_rate_limit)],
)


@router.get("", response_model=SettingsOut)
async def read_settings(
    ctx: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    settings = await queries.get_settings_for_tenant(session, ctx)
    if settings is None:
        raise NotFoundError.for_resource("Settings")
    return settings


@router.put("", response_model=SettingsOut)
async def update_settings(
    body: SettingsUpdate,
    ctx: TenantContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    changes = body.to_payload(partial=True)
    existing = await queries.get_settings_for_tenant(session, ctx)
    if existing is None and not changes.get("company_name"):
        raise PayloadValidationError("Invalid data provided: company_name")

    settings = await queries.upsert_settings(session, ctx, changes)
    await audit_tenant_change(
        session,
        ctx,
        AUDIT_SETTINGS_UPDATED,
        "settings",
        settings.id,
        metadata={"fields": sorted(k for k in changes if k in SettingsUpdate.model_fields)},
    )
    await session.commit()
    return settings
