"""
Tenant-scoped query helpers.

These functions provide safe, tenant-isolated database queries.
ALL queries for tenant data MUST go through these helpers. Routes never
build their own SELECT/UPDATE/DELETE against a tenant-scoped model.

Every helper takes the request's TenantContext explicitly:

    customers = await list_customers(session, ctx, search="smith")
    location = await get_scoped(session, ctx, Location, location_id)

    # Or using composable helpers:
    stmt = scoped_select(Experience, ctx).where(Experience.location_id == 3)

Rules enforced here:
    - reads AND `outfitter_id = ctx.outfitter_id` into every statement
    - get-by-id returns NotFoundError for absent and foreign rows alike
    - creates take the tenant from ctx, never from the payload
    - updates/deletes fetch the row (locked where supported), run the
      ownership guard, then mutate with the same tenant filter
    - ids referenced from a payload must resolve inside the tenant

Nothing here commits. The route commits once the whole operation has
succeeded; an aborted request rolls back when its session closes.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional, Sequence, Type, TypeVar

from sqlalchemy import Select, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import ConflictError, NotFoundError, PayloadValidationError
from ..models import (
    Base,
    Booking,
    BookingGuide,
    BookingStatus,
    Customer,
    Document,
    Experience,
    GuideAssignment,
    Location,
    Outfitter,
    OutfitterSettings,
    Payment,
    PaymentStatus,
    User,
    UserRole,
)
from .config import TENANT_FIELD_IN_PAYLOAD, TENANT_PAYLOAD_KEYS, FORBIDDEN_PAYLOAD_KEYS
from .context import TenantContext
from .ownership import assert_owned, drop_foreign_rows, log_security_event

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Base)


# ────────────────────────────────────────────────────────────────
# Composable Query Helpers
# ────────────────────────────────────────────────────────────────

def tenant_filter(model: Type[T], ctx: TenantContext):
    """
    Return a SQLAlchemy filter clause for outfitter_id.

    Usage:
        stmt = select(Booking).where(tenant_filter(Booking, ctx), Booking.status == status)
    """
    return model.outfitter_id == ctx.outfitter_id


def scoped_select(model: Type[T], ctx: TenantContext) -> Select:
    """
    Create a SELECT statement pre-filtered by outfitter_id.

    Usage:
        stmt = scoped_select(Location, ctx).where(Location.is_active.is_(True))
    """
    return select(model).where(tenant_filter(model, ctx))


def _resource_name(model: Type[T]) -> str:
    return getattr(model, "__resource_name__", model.__name__)


def reject_cleared_columns(model: Type[T], values: dict[str, Any]) -> None:
    """A partial update may omit a NOT NULL column but never set it to null."""
    column_attrs = model.__mapper__.column_attrs
    cleared = sorted(
        key
        for key, value in values.items()
        if value is None and not column_attrs[key].columns[0].nullable
    )
    if cleared:
        raise PayloadValidationError(f"Invalid data provided: {', '.join(cleared)}")


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def clean_payload(model: Type[T], ctx: TenantContext, payload: dict[str, Any]) -> dict[str, Any]:
    """
    Drop server-assigned keys from a client payload.

    Tenant keys are logged as a security event: a well-behaved client
    never sends them. Keys that are not columns of the model are dropped.
    """
    smuggled = sorted(TENANT_PAYLOAD_KEYS.intersection(payload))
    if smuggled:
        log_security_event(
            TENANT_FIELD_IN_PAYLOAD,
            ctx,
            resource=_resource_name(model),
            keys=",".join(smuggled),
            values=",".join(str(payload[key]) for key in smuggled),
        )
    columns = set(model.__mapper__.column_attrs.keys())
    return {
        key: value
        for key, value in payload.items()
        if key not in FORBIDDEN_PAYLOAD_KEYS and key in columns
    }


async def list_scoped(
    session: AsyncSession,
    ctx: TenantContext,
    model: Type[T],
    *criteria,
    order_by: Sequence = (),
    limit: Optional[int] = None,
) -> list[T]:
    """
    List rows of `model` owned by the tenant, filtered by extra criteria.

    Ordering always ends with the primary key so that repeated calls
    return rows in the same order.
    """
    stmt = scoped_select(model, ctx).where(*criteria).order_by(*order_by, model.id)
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await session.execute(stmt)
    return drop_foreign_rows(result.scalars().all(), ctx, _resource_name(model))


async def get_scoped(
    session: AsyncSession,
    ctx: TenantContext,
    model: Type[T],
    entity_id: Any,
    *,
    for_update: bool = False,
) -> T:
    """
    Fetch an entity by ID, validating tenant ownership.

    Raises NotFoundError if the row is missing or belongs to another
    outfitter. With for_update=True the row is re-read from the database
    (never served from the session's identity map) and locked until the
    transaction ends on backends that support row locks.
    """
    stmt = scoped_select(model, ctx).where(model.id == entity_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(stmt)
    return assert_owned(result.scalar_one_or_none(), ctx, _resource_name(model))


async def create_scoped(
    session: AsyncSession,
    ctx: TenantContext,
    model: Type[T],
    payload: dict[str, Any],
) -> T:
    """Insert a row whose outfitter_id is always the caller's tenant."""
    data = clean_payload(model, ctx, payload)
    entity = model(**data)
    entity.outfitter_id = ctx.outfitter_id
    session.add(entity)
    await session.flush()
    logger.info(f"Created {_resource_name(model)} {entity.id} for outfitter {ctx.outfitter_id}")
    return entity


async def update_scoped(
    session: AsyncSession,
    ctx: TenantContext,
    model: Type[T],
    entity_id: Any,
    changes: dict[str, Any],
) -> T:
    """
    Apply changes to an owned row.

    Tenant keys in `changes` are discarded, so an update can never move a
    row to another outfitter.
    """
    entity = await get_scoped(session, ctx, model, entity_id, for_update=True)
    assert_owned(entity, ctx, _resource_name(model))

    values = clean_payload(model, ctx, changes)
    reject_cleared_columns(model, values)
    if values:
        result = await session.execute(
            update(model)
            .where(model.id == entity_id, tenant_filter(model, ctx))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError.for_resource(_resource_name(model))
        await session.refresh(entity)
    return entity


async def delete_scoped(
    session: AsyncSession,
    ctx: TenantContext,
    model: Type[T],
    entity_id: Any,
) -> T:
    """Delete an owned row. A second delete of the same id raises NotFoundError."""
    entity = await get_scoped(session, ctx, model, entity_id, for_update=True)
    assert_owned(entity, ctx, _resource_name(model))

    try:
        result = await session.execute(
            delete(model)
            .where(model.id == entity_id, tenant_filter(model, ctx))
            .execution_options(synchronize_session=False)
        )
    except IntegrityError:
        raise ConflictError(f"{_resource_name(model)} is still referenced by other records")
    if result.rowcount == 0:
        raise NotFoundError.for_resource(_resource_name(model))
    session.expunge(entity)
    logger.info(f"Deleted {_resource_name(model)} {entity_id} for outfitter {ctx.outfitter_id}")
    return entity


async def require_reference(
    session: AsyncSession,
    ctx: TenantContext,
    model: Type[T],
    entity_id: Any,
    field: str,
) -> Optional[T]:
    """
    Resolve an id referenced from a payload inside the caller's tenant.

    Absent and foreign ids raise the same PayloadValidationError.
    """
    if entity_id is None:
        return None
    result = await session.execute(scoped_select(model, ctx).where(model.id == entity_id))
    entity = result.scalar_one_or_none()
    if entity is None:
        raise PayloadValidationError(f"Invalid data provided: {field} does not reference a known record")
    return entity


# ────────────────────────────────────────────────────────────────
# Customer Queries
# ────────────────────────────────────────────────────────────────

async def list_customers(
    session: AsyncSession,
    ctx: TenantContext,
    search: Optional[str] = None,
) -> list[Customer]:
    """List customers, optionally matching first name, last name or email."""
    criteria = []
    if search:
        pattern = f"%{search.strip()}%"
        criteria.append(
            or_(
                Customer.first_name.ilike(pattern),
                Customer.last_name.ilike(pattern),
                Customer.email.ilike(pattern),
                (Customer.first_name + " " + Customer.last_name).ilike(pattern),
            )
        )
    return await list_scoped(session, ctx, Customer, *criteria, order_by=(Customer.last_name, Customer.first_name))


async def create_customer(session: AsyncSession, ctx: TenantContext, payload: dict) -> Customer:
    return await create_scoped(session, ctx, Customer, payload)


# ────────────────────────────────────────────────────────────────
# Location Queries
# ────────────────────────────────────────────────────────────────

async def list_locations(
    session: AsyncSession,
    ctx: TenantContext,
    active_only: bool = False,
) -> list[Location]:
    criteria = [Location.is_active.is_(True)] if active_only else []
    return await list_scoped(session, ctx, Location, *criteria, order_by=(Location.name,))


# ────────────────────────────────────────────────────────────────
# Experience Queries
# ────────────────────────────────────────────────────────────────

async def list_experiences(
    session: AsyncSession,
    ctx: TenantContext,
    location_id: Optional[int] = None,
) -> list[Experience]:
    criteria = [Experience.location_id == location_id] if location_id is not None else []
    return await list_scoped(session, ctx, Experience, *criteria, order_by=(Experience.name,))


async def create_experience(session: AsyncSession, ctx: TenantContext, payload: dict) -> Experience:
    await require_reference(session, ctx, Location, payload.get("location_id"), "location_id")
    return await create_scoped(session, ctx, Experience, payload)


async def update_experience(
    session: AsyncSession,
    ctx: TenantContext,
    experience_id: int,
    changes: dict,
) -> Experience:
    await require_reference(session, ctx, Location, changes.get("location_id"), "location_id")
    return await update_scoped(session, ctx, Experience, experience_id, changes)


# ────────────────────────────────────────────────────────────────
# Guide Assignment Queries
# ────────────────────────────────────────────────────────────────

async def require_staff_member(
    session: AsyncSession,
    ctx: TenantContext,
    user_id: Any,
    field: str = "guide_id",
) -> User:
    """A user id from a payload must belong to the caller's outfitter."""
    return await require_reference(session, ctx, User, user_id, field)


async def list_experience_guides(
    session: AsyncSession,
    ctx: TenantContext,
    experience_id: int,
) -> list[GuideAssignment]:
    await get_scoped(session, ctx, Experience, experience_id)
    return await list_scoped(
        session,
        ctx,
        GuideAssignment,
        GuideAssignment.experience_id == experience_id,
        order_by=(GuideAssignment.is_primary.desc(),),
    )


async def assign_guide_to_experience(
    session: AsyncSession,
    ctx: TenantContext,
    experience_id: int,
    guide_id: str,
    is_primary: bool = False,
) -> GuideAssignment:
    await get_scoped(session, ctx, Experience, experience_id)
    await require_staff_member(session, ctx, guide_id)

    existing = await list_scoped(
        session,
        ctx,
        GuideAssignment,
        GuideAssignment.experience_id == experience_id,
        GuideAssignment.guide_id == guide_id,
    )
    if existing:
        raise ConflictError("Guide is already assigned to this experience")

    if is_primary:
        # Only one primary guide per experience
        await session.execute(
            update(GuideAssignment)
            .where(tenant_filter(GuideAssignment, ctx), GuideAssignment.experience_id == experience_id)
            .values(is_primary=False)
        )
    return await create_scoped(
        session,
        ctx,
        GuideAssignment,
        {"experience_id": experience_id, "guide_id": guide_id, "is_primary": is_primary},
    )


async def remove_guide_assignment(
    session: AsyncSession,
    ctx: TenantContext,
    experience_id: int,
    assignment_id: int,
) -> GuideAssignment:
    assignment = await get_scoped(session, ctx, GuideAssignment, assignment_id, for_update=True)
    if assignment.experience_id != experience_id:
        raise NotFoundError.for_resource("GuideAssignment")
    return await delete_scoped(session, ctx, GuideAssignment, assignment_id)


async def list_guide_experiences(
    session: AsyncSession,
    ctx: TenantContext,
    guide_id: str,
) -> list[Experience]:
    """Experiences a guide is assigned to."""
    assigned = (
        select(GuideAssignment.experience_id)
        .where(tenant_filter(GuideAssignment, ctx), GuideAssignment.guide_id == guide_id)
    )
    return await list_scoped(
        session, ctx, Experience, Experience.id.in_(assigned), order_by=(Experience.name,)
    )


async def list_guide_bookings(
    session: AsyncSession,
    ctx: TenantContext,
    guide_id: str,
) -> list[Booking]:
    """Bookings a guide is assigned to, soonest first."""
    assigned = (
        select(BookingGuide.booking_id)
        .where(tenant_filter(BookingGuide, ctx), BookingGuide.guide_id == guide_id)
    )
    return await list_scoped(
        session, ctx, Booking, Booking.id.in_(assigned), order_by=(Booking.start_date,)
    )


async def get_guide_stats(
    session: AsyncSession,
    ctx: TenantContext,
    guide_id: str,
) -> dict[str, int]:
    now = datetime.now(timezone.utc)
    assigned = (
        select(BookingGuide.booking_id)
        .where(tenant_filter(BookingGuide, ctx), BookingGuide.guide_id == guide_id)
    )

    experiences = await session.scalar(
        select(func.count())
        .select_from(GuideAssignment)
        .where(tenant_filter(GuideAssignment, ctx), GuideAssignment.guide_id == guide_id)
    )
    upcoming = await session.scalar(
        select(func.count())
        .select_from(Booking)
        .where(
            tenant_filter(Booking, ctx),
            Booking.id.in_(assigned),
            Booking.start_date >= now,
            Booking.status != BookingStatus.CANCELLED,
        )
    )
    completed = await session.scalar(
        select(func.count())
        .select_from(Booking)
        .where(
            tenant_filter(Booking, ctx),
            Booking.id.in_(assigned),
            Booking.status == BookingStatus.COMPLETED,
        )
    )
    return {
        "assigned_experiences": experiences or 0,
        "upcoming_bookings": upcoming or 0,
        "completed_trips": completed or 0,
    }


# ────────────────────────────────────────────────────────────────
# Booking Queries
# ────────────────────────────────────────────────────────────────

def generate_booking_number() -> str:
    return f"B-{datetime.now(timezone.utc).year}-{secrets.token_hex(4).upper()}"


async def list_bookings(
    session: AsyncSession,
    ctx: TenantContext,
    status: Optional[BookingStatus] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> list[Booking]:
    criteria = []
    if status is not None:
        criteria.append(Booking.status == status)
    if start is not None:
        criteria.append(Booking.start_date >= start)
    if end is not None:
        criteria.append(Booking.end_date <= end)
    return await list_scoped(session, ctx, Booking, *criteria, order_by=(Booking.start_date.desc(),))


async def create_booking(session: AsyncSession, ctx: TenantContext, payload: dict) -> Booking:
    """
    Create a booking for an experience and customer of the same outfitter.

    The booking number is generated here, and the experience's assigned
    guides are copied onto the booking.
    """
    experience = await require_reference(
        session, ctx, Experience, payload.get("experience_id"), "experience_id"
    )
    await require_reference(session, ctx, Customer, payload.get("customer_id"), "customer_id")

    data = dict(payload)
    data["booking_number"] = generate_booking_number()
    if data.get("total_amount") is None:
        group_size = data.get("group_size") or 1
        data["total_amount"] = Decimal(experience.price) * group_size
    booking = await create_scoped(session, ctx, Booking, data)

    guides = await list_scoped(
        session, ctx, GuideAssignment, GuideAssignment.experience_id == experience.id
    )
    for assignment in guides:
        await create_scoped(
            session,
            ctx,
            BookingGuide,
            {"booking_id": booking.id, "guide_id": assignment.guide_id},
        )
    return booking


async def update_booking(
    session: AsyncSession,
    ctx: TenantContext,
    booking_id: int,
    changes: dict,
) -> Booking:
    changes = {k: v for k, v in changes.items() if k != "booking_number"}
    await require_reference(session, ctx, Experience, changes.get("experience_id"), "experience_id")
    await require_reference(session, ctx, Customer, changes.get("customer_id"), "customer_id")

    # A date change is checked against the other date as currently stored
    if changes.get("start_date") is not None or changes.get("end_date") is not None:
        current = await get_scoped(session, ctx, Booking, booking_id, for_update=True)
        start = changes.get("start_date") or current.start_date
        end = changes.get("end_date") or current.end_date
        if _as_utc(end) < _as_utc(start):
            raise PayloadValidationError("end_date must not be before start_date")
    return await update_scoped(session, ctx, Booking, booking_id, changes)


async def delete_booking(session: AsyncSession, ctx: TenantContext, booking_id: int) -> Booking:
    await get_scoped(session, ctx, Booking, booking_id, for_update=True)
    await session.execute(
        delete(BookingGuide)
        .where(tenant_filter(BookingGuide, ctx), BookingGuide.booking_id == booking_id)
        .execution_options(synchronize_session=False)
    )
    return await delete_scoped(session, ctx, Booking, booking_id)


async def list_booking_guides(
    session: AsyncSession,
    ctx: TenantContext,
    booking_id: int,
) -> list[BookingGuide]:
    await get_scoped(session, ctx, Booking, booking_id)
    return await list_scoped(session, ctx, BookingGuide, BookingGuide.booking_id == booking_id)


async def assign_guide_to_booking(
    session: AsyncSession,
    ctx: TenantContext,
    booking_id: int,
    guide_id: str,
) -> BookingGuide:
    await get_scoped(session, ctx, Booking, booking_id)
    await require_staff_member(session, ctx, guide_id)
    existing = await list_scoped(
        session,
        ctx,
        BookingGuide,
        BookingGuide.booking_id == booking_id,
        BookingGuide.guide_id == guide_id,
    )
    if existing:
        raise ConflictError("Guide is already assigned to this booking")
    return await create_scoped(
        session, ctx, BookingGuide, {"booking_id": booking_id, "guide_id": guide_id}
    )


async def remove_guide_from_booking(
    session: AsyncSession,
    ctx: TenantContext,
    booking_id: int,
    guide_id: str,
) -> BookingGuide:
    await get_scoped(session, ctx, Booking, booking_id)
    rows = await list_scoped(
        session,
        ctx,
        BookingGuide,
        BookingGuide.booking_id == booking_id,
        BookingGuide.guide_id == guide_id,
    )
    if not rows:
        raise NotFoundError.for_resource("BookingGuide")
    return await delete_scoped(session, ctx, BookingGuide, rows[0].id)


# ────────────────────────────────────────────────────────────────
# Document Queries
# ────────────────────────────────────────────────────────────────

async def list_documents(
    session: AsyncSession,
    ctx: TenantContext,
    booking_id: Optional[int] = None,
    customer_id: Optional[int] = None,
    guide_id: Optional[str] = None,
) -> list[Document]:
    criteria = []
    if booking_id is not None:
        criteria.append(Document.booking_id == booking_id)
    if customer_id is not None:
        criteria.append(Document.customer_id == customer_id)
    if guide_id is not None:
        criteria.append(Document.guide_id == guide_id)
    return await list_scoped(session, ctx, Document, *criteria, order_by=(Document.created_at.desc(),))


async def _check_document_links(session: AsyncSession, ctx: TenantContext, payload: dict) -> None:
    await require_reference(session, ctx, Booking, payload.get("booking_id"), "booking_id")
    await require_reference(session, ctx, Customer, payload.get("customer_id"), "customer_id")
    await require_staff_member(session, ctx, payload.get("guide_id"))


async def create_document(session: AsyncSession, ctx: TenantContext, payload: dict) -> Document:
    await _check_document_links(session, ctx, payload)
    return await create_scoped(session, ctx, Document, payload)


async def update_document(
    session: AsyncSession,
    ctx: TenantContext,
    document_id: int,
    changes: dict,
) -> Document:
    await _check_document_links(session, ctx, changes)
    return await update_scoped(session, ctx, Document, document_id, changes)


# ────────────────────────────────────────────────────────────────
# Payment Queries
# ────────────────────────────────────────────────────────────────

async def list_payments(
    session: AsyncSession,
    ctx: TenantContext,
    booking_id: Optional[int] = None,
) -> list[Payment]:
    criteria = [Payment.booking_id == booking_id] if booking_id is not None else []
    return await list_scoped(session, ctx, Payment, *criteria, order_by=(Payment.created_at.desc(),))


async def create_payment(session: AsyncSession, ctx: TenantContext, payload: dict) -> Payment:
    await require_reference(session, ctx, Booking, payload.get("booking_id"), "booking_id")
    return await create_scoped(session, ctx, Payment, payload)


# ────────────────────────────────────────────────────────────────
# Staff Queries
# ────────────────────────────────────────────────────────────────

async def list_staff(
    session: AsyncSession,
    ctx: TenantContext,
    roles: Optional[Sequence[str]] = None,
) -> list[User]:
    criteria = [User.role.in_(list(roles))] if roles else []
    result = await session.execute(
        scoped_select(User, ctx).where(*criteria).order_by(User.last_name, User.first_name, User.id)
    )
    return drop_foreign_rows(result.scalars().all(), ctx, "User")


async def get_staff_member(session: AsyncSession, ctx: TenantContext, user_id: str) -> User:
    return await get_scoped(session, ctx, User, user_id)


async def create_staff_member(session: AsyncSession, ctx: TenantContext, payload: dict) -> User:
    """Add a user to the caller's outfitter. The user id is assigned server-side."""
    # Emails are unique across all outfitters
    email = payload.get("email")
    existing = await session.scalar(select(func.count()).select_from(User).where(User.email == email))
    if existing:
        raise ConflictError("A user with this email already exists")
    data = dict(payload)
    data.setdefault("role", UserRole.GUIDE.value)
    user = User(**clean_payload(User, ctx, data))
    user.id = f"usr_{secrets.token_hex(12)}"
    user.outfitter_id = ctx.outfitter_id
    session.add(user)
    try:
        await session.flush()
    except IntegrityError:
        # Lost a race with a concurrent insert of the same email
        raise ConflictError("A user with this email already exists")
    logger.info(f"Created user {user.id} ({user.role}) for outfitter {ctx.outfitter_id}")
    return user


# ────────────────────────────────────────────────────────────────
# Outfitter Queries
# ────────────────────────────────────────────────────────────────

async def get_current_outfitter(session: AsyncSession, ctx: TenantContext) -> Outfitter:
    """The caller's own outfitter row."""
    result = await session.execute(select(Outfitter).where(Outfitter.id == ctx.outfitter_id))
    outfitter = result.scalar_one_or_none()
    if outfitter is None:
        raise NotFoundError.for_resource("Outfitter")
    return outfitter


# ────────────────────────────────────────────────────────────────
# Settings Queries
# ────────────────────────────────────────────────────────────────

async def get_settings_for_tenant(
    session: AsyncSession,
    ctx: TenantContext,
) -> Optional[OutfitterSettings]:
    result = await session.execute(scoped_select(OutfitterSettings, ctx))
    return result.scalar_one_or_none()


async def upsert_settings(
    session: AsyncSession,
    ctx: TenantContext,
    changes: dict,
) -> OutfitterSettings:
    current = await get_settings_for_tenant(session, ctx)
    if current is None:
        return await create_scoped(session, ctx, OutfitterSettings, changes)
    return await update_scoped(session, ctx, OutfitterSettings, current.id, changes)


# ────────────────────────────────────────────────────────────────
# Dashboard Queries
# ────────────────────────────────────────────────────────────────

ACTIVE_BOOKING_STATUSES = (
    BookingStatus.CONFIRMED,
    BookingStatus.DEPOSIT_PAID,
    BookingStatus.PAID,
    BookingStatus.COMPLETED,
)


async def get_dashboard_stats(session: AsyncSession, ctx: TenantContext) -> dict[str, Any]:
    """Headline numbers for the outfitter dashboard."""
    now = datetime.now(timezone.utc)
    start_of_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    three_months_ago = now - timedelta(days=90)

    upcoming = await session.scalar(
        select(func.count())
        .select_from(Booking)
        .where(
            tenant_filter(Booking, ctx),
            Booking.start_date >= now,
            Booking.status == BookingStatus.CONFIRMED,
        )
    )
    revenue = await session.scalar(
        select(func.coalesce(func.sum(Payment.amount), 0))
        .where(
            tenant_filter(Payment, ctx),
            Payment.created_at >= start_of_month,
            Payment.status == PaymentStatus.COMPLETED,
        )
    )
    active_customers = await session.scalar(
        select(func.count(func.distinct(Booking.customer_id)))
        .where(
            tenant_filter(Booking, ctx),
            Booking.created_at >= three_months_ago,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        )
    )
    completed = await session.scalar(
        select(func.count())
        .select_from(Booking)
        .where(tenant_filter(Booking, ctx), Booking.status == BookingStatus.COMPLETED)
    )
    return {
        "upcoming_bookings": upcoming or 0,
        "monthly_revenue": float(revenue or 0),
        "active_customers": active_customers or 0,
        "completed_trips": completed or 0,
    }


async def get_upcoming_bookings(
    session: AsyncSession,
    ctx: TenantContext,
    limit: int = 5,
) -> list[dict[str, Any]]:
    """Next bookings with experience, customer and guide names."""
    now = datetime.now(timezone.utc)
    result = await session.execute(
        select(Booking, Experience.name, Customer.first_name, Customer.last_name)
        .join(Experience, (Experience.id == Booking.experience_id) & tenant_filter(Experience, ctx))
        .join(Customer, (Customer.id == Booking.customer_id) & tenant_filter(Customer, ctx))
        .where(tenant_filter(Booking, ctx), Booking.start_date >= now)
        .order_by(Booking.start_date, Booking.id)
        .limit(limit)
    )
    rows = result.all()

    upcoming = []
    for booking, experience_name, first_name, last_name in rows:
        assert_owned(booking, ctx, "Booking")
        guides = await session.execute(
            select(User.id, User.first_name, User.last_name)
            .join(BookingGuide, BookingGuide.guide_id == User.id)
            .where(
                tenant_filter(BookingGuide, ctx),
                tenant_filter(User, ctx),
                BookingGuide.booking_id == booking.id,
            )
            .order_by(User.id)
        )
        upcoming.append(
            {
                "id": booking.id,
                "booking_number": booking.booking_number,
                "experience_id": booking.experience_id,
                "experience_name": experience_name,
                "customer_id": booking.customer_id,
                "customer_first_name": first_name,
                "customer_last_name": last_name,
                "start_date": booking.start_date,
                "end_date": booking.end_date,
                "status": booking.status,
                "total_amount": booking.total_amount,
                "guides": [
                    {"guide_id": gid, "first_name": gfirst, "last_name": glast}
                    for gid, gfirst, glast in guides.all()
                ],
            }
        )
    return upcoming
