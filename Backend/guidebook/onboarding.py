"""
Outfitter onboarding.

Creates a new tenant together with its first admin user and default
settings, and returns a bearer token for that admin. The outfitter id is
assigned by the database; nothing in the request can choose it.

This endpoint does NOT require tenant context - it creates the tenant itself.
"""
# tenant-scoping: public

import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import AUDIT_OUTFITTER_CREATED, AUDIT_MEMBER_ADDED, log_audit
from .core.db import get_session
from .core.errors import ConflictError
from .core.request_context import create_access_token
from .models import Outfitter, OutfitterSettings, User, UserRole
from .schemas import EMAIL_PATTERN, OutfitterOut, UserOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["onboarding"])


# === Request/Response Models ===

class OnboardingRequest(BaseModel):
    """Request to register a new outfitter and its first admin."""
    outfitter_name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=255)
    first_name: Optional[str] = Field(None, max_length=255)
    last_name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, pattern=r"^\+?[1-9]\d{1,14}$")

    @field_validator("outfitter_name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Ensure name is not just whitespace."""
        if not v.strip():
            raise ValueError("Outfitter name cannot be empty or whitespace")
        return v.strip()

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class OnboardingResponse(BaseModel):
    outfitter: OutfitterOut
    user: UserOut
    access_token: str
    token_type: str = "bearer"


# === Endpoints ===

@router.post("/onboarding", response_model=OnboardingResponse, status_code=201)
async def onboard_outfitter(
    request: OnboardingRequest,
    db: AsyncSession = Depends(get_session),
):
    """
    Create a new outfitter (global onboarding endpoint).

    Process:
    1. Check outfitter name and admin email uniqueness (409 if taken)
    2. Create outfitter record
    3. Create the admin user inside the new outfitter
    4. Create default settings for the outfitter
    5. Return outfitter, user and a bearer token

    Error Codes:
    - 409: Outfitter name or email already registered
    - 400: Invalid input
    """
    existing_name = await db.execute(
        select(Outfitter.id).where(Outfitter.name == request.outfitter_name)
    )
    if existing_name.scalar_one_or_none() is not None:
        raise ConflictError(f"Outfitter with name '{request.outfitter_name}' already exists")

    # Emails are unique across all outfitters
    existing_email = await db.execute(
        select(User.id).where(User.email == request.email)  # noqa: tenant-scoping
    )
    if existing_email.scalar_one_or_none() is not None:
        raise ConflictError("A user with this email already exists")

    outfitter = Outfitter(
        name=request.outfitter_name,
        email=request.email,
        phone=request.phone,
        is_active=True,
    )
    db.add(outfitter)
    await db.flush()  # Get outfitter.id without committing

    admin = User(
        id=f"usr_{secrets.token_hex(12)}",
        outfitter_id=outfitter.id,
        email=request.email,
        first_name=request.first_name,
        last_name=request.last_name,
        phone=request.phone,
        role=UserRole.ADMIN.value,
    )
    db.add(admin)

    db.add(
        OutfitterSettings(
            outfitter_id=outfitter.id,
            company_name=request.outfitter_name,
            company_email=request.email,
            company_phone=request.phone,
        )
    )
    await db.flush()

    # Note: no PII in metadata
    await log_audit(
        db,
        actor_user_id=admin.id,
        action=AUDIT_OUTFITTER_CREATED,
        outfitter_id=outfitter.id,
        target_type="outfitter",
        target_id=str(outfitter.id),
        metadata={"name": request.outfitter_name},
    )
    await log_audit(
        db,
        actor_user_id=admin.id,
        action=AUDIT_MEMBER_ADDED,
        outfitter_id=outfitter.id,
        target_type="user",
        target_id=admin.id,
        metadata={"role": UserRole.ADMIN.value},
    )

    await db.commit()
    logger.info(f"Onboarded outfitter {outfitter.id} with admin {admin.id}")

    return OnboardingResponse(
        outfitter=OutfitterOut.model_validate(outfitter),
        user=UserOut.model_validate(admin),
        access_token=create_access_token(admin.id),
    )
