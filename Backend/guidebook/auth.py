"""
Audit logging for tenant mutations.

Every create, update and delete on outfitter data records an AuditLog row
in the same transaction as the change, so the audit trail and the data
commit or roll back together.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from .models import AuditLog
from .tenancy.context import TenantContext

logger = logging.getLogger(__name__)


__all__ = [
    "log_audit",
    "audit_tenant_change",
    "AUDIT_OUTFITTER_CREATED",
    "AUDIT_SETTINGS_UPDATED",
    "AUDIT_CUSTOMER_CREATED",
    "AUDIT_CUSTOMER_UPDATED",
    "AUDIT_CUSTOMER_DELETED",
    "AUDIT_LOCATION_CREATED",
    "AUDIT_LOCATION_UPDATED",
    "AUDIT_LOCATION_DELETED",
    "AUDIT_EXPERIENCE_CREATED",
    "AUDIT_EXPERIENCE_UPDATED",
    "AUDIT_EXPERIENCE_DELETED",
    "AUDIT_GUIDE_ASSIGNED",
    "AUDIT_GUIDE_UNASSIGNED",
    "AUDIT_BOOKING_CREATED",
    "AUDIT_BOOKING_UPDATED",
    "AUDIT_BOOKING_DELETED",
    "AUDIT_DOCUMENT_CREATED",
    "AUDIT_DOCUMENT_UPDATED",
    "AUDIT_DOCUMENT_DELETED",
    "AUDIT_PAYMENT_CREATED",
    "AUDIT_PAYMENT_UPDATED",
    "AUDIT_MEMBER_ADDED",
]


async def log_audit(
    session: AsyncSession,
    *,
    actor_user_id: str,
    action: str,
    outfitter_id: Optional[int] = None,
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> AuditLog:
    """
    Create an audit log entry.

    IMPORTANT: Do NOT include PII (phone numbers, emails) in metadata
    unless absolutely necessary for compliance/legal reasons.

    Args:
        session: Database session
        actor_user_id: Who performed the action
        action: Action identifier (e.g., 'booking.created')
        outfitter_id: Tenant the action applies to
        target_type: Type of entity affected (e.g., 'booking')
        target_id: ID of affected entity
        metadata: Additional context (NO PII!)

    Returns:
        The created AuditLog record
    """
    audit_log = AuditLog(
        outfitter_id=outfitter_id,
        actor_user_id=actor_user_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        extra_data=metadata,  # Maps to 'metadata' column in DB
    )
    session.add(audit_log)
    # Don't commit here - let the caller control the transaction
    await session.flush()

    logger.info(
        f"Audit: {action} by {actor_user_id} "
        f"(outfitter={outfitter_id}, target={target_type}:{target_id})"
    )

    return audit_log


async def audit_tenant_change(
    session: AsyncSession,
    ctx: TenantContext,
    action: str,
    target_type: str,
    target_id,
    metadata: Optional[dict] = None,
) -> AuditLog:
    """log_audit for a change made inside the caller's outfitter."""
    return await log_audit(
        session,
        actor_user_id=ctx.user_id,
        action=action,
        outfitter_id=ctx.outfitter_id,
        target_type=target_type,
        target_id=str(target_id),
        metadata=metadata,
    )


# ============================================================================
# COMMON AUDIT ACTIONS
# ============================================================================

# Outfitter lifecycle
AUDIT_OUTFITTER_CREATED = "outfitter.created"
AUDIT_SETTINGS_UPDATED = "settings.updated"

# CRM records
AUDIT_CUSTOMER_CREATED = "customer.created"
AUDIT_CUSTOMER_UPDATED = "customer.updated"
AUDIT_CUSTOMER_DELETED = "customer.deleted"
AUDIT_LOCATION_CREATED = "location.created"
AUDIT_LOCATION_UPDATED = "location.updated"
AUDIT_LOCATION_DELETED = "location.deleted"
AUDIT_EXPERIENCE_CREATED = "experience.created"
AUDIT_EXPERIENCE_UPDATED = "experience.updated"
AUDIT_EXPERIENCE_DELETED = "experience.deleted"
AUDIT_GUIDE_ASSIGNED = "guide.assigned"
AUDIT_GUIDE_UNASSIGNED = "guide.unassigned"

# Bookings and money
AUDIT_BOOKING_CREATED = "booking.created"
AUDIT_BOOKING_UPDATED = "booking.updated"
AUDIT_BOOKING_DELETED = "booking.deleted"
AUDIT_DOCUMENT_CREATED = "document.created"
AUDIT_DOCUMENT_UPDATED = "document.updated"
AUDIT_DOCUMENT_DELETED = "document.deleted"
AUDIT_PAYMENT_CREATED = "payment.created"
AUDIT_PAYMENT_UPDATED = "payment.updated"

# Staff
AUDIT_MEMBER_ADDED = "member.added"
