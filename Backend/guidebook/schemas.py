"""
Request and response models for the /api surface.

Write models never declare outfitter_id. A tenant key sent by a client is
kept aside (not validated, not trusted) and handed to the data-access
layer, which strips it and records a security event.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator, model_validator

from .models import BookingStatus, ExperienceCategory, PaymentStatus, UserRole
from .tenancy.config import TENANT_PAYLOAD_KEYS


EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes from clients are taken to be UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class TenantWriteModel(BaseModel):
    """Base for create/update bodies of tenant-scoped resources."""

    model_config = ConfigDict(extra="ignore")

    _tenant_keys: dict = PrivateAttr(default_factory=dict)

    @model_validator(mode="wrap")
    @classmethod
    def _capture_tenant_keys(cls, data: Any, handler):
        instance = handler(data)
        if isinstance(data, dict):
            instance._tenant_keys = {key: data[key] for key in TENANT_PAYLOAD_KEYS if key in data}
        return instance

    def to_payload(self, partial: bool = False) -> dict:
        """Field values for the data-access layer, tenant keys included for auditing."""
        payload = self.model_dump(exclude_unset=partial)
        payload.update(self._tenant_keys)
        return payload


class OrmModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# === Customers ===

class CustomerCreate(TenantWriteModel):
    first_name: str = Field(..., min_length=1, max_length=255)
    last_name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    notes: Optional[str] = None


class CustomerUpdate(TenantWriteModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=255)
    last_name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[str] = Field(None, pattern=EMAIL_PATTERN, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    notes: Optional[str] = None


class CustomerOut(OrmModel):
    id: int
    outfitter_id: int
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime


# === Locations ===

class LocationCreate(TenantWriteModel):
    name: str = Field(..., min_length=1, max_length=255)
    address: Optional[str] = None
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip: Optional[str] = None
    description: Optional[str] = None
    is_active: bool = True


class LocationUpdate(TenantWriteModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    address: Optional[str] = None
    city: Optional[str] = Field(None, min_length=1)
    state: Optional[str] = Field(None, min_length=1)
    zip: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class LocationOut(OrmModel):
    id: int
    outfitter_id: int
    name: str
    address: Optional[str] = None
    city: str
    state: str
    zip: Optional[str] = None
    description: Optional[str] = None
    is_active: bool


# === Experiences ===

class ExperienceCreate(TenantWriteModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    duration: int = Field(..., ge=1, description="Length in days")
    price: Decimal = Field(..., ge=0)
    capacity: int = Field(..., ge=1)
    category: ExperienceCategory = ExperienceCategory.OTHER_HUNTING
    location_id: Optional[int] = None


class ExperienceUpdate(TenantWriteModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)
    duration: Optional[int] = Field(None, ge=1)
    price: Optional[Decimal] = Field(None, ge=0)
    capacity: Optional[int] = Field(None, ge=1)
    category: Optional[ExperienceCategory] = None
    location_id: Optional[int] = None


class ExperienceOut(OrmModel):
    id: int
    outfitter_id: int
    location_id: Optional[int] = None
    name: str
    description: str
    duration: int
    price: Decimal
    capacity: int
    category: ExperienceCategory


class GuideAssignmentCreate(TenantWriteModel):
    guide_id: str = Field(..., min_length=1)
    is_primary: bool = False


class GuideAssignmentOut(OrmModel):
    id: int
    outfitter_id: int
    experience_id: int
    guide_id: str
    is_primary: bool


# === Bookings ===

class BookingCreate(TenantWriteModel):
    experience_id: int
    customer_id: int
    start_date: datetime
    end_date: datetime
    status: BookingStatus = BookingStatus.PENDING
    total_amount: Optional[Decimal] = Field(None, ge=0)
    group_size: int = Field(1, ge=1)
    notes: Optional[str] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def dates_as_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class BookingUpdate(TenantWriteModel):
    experience_id: Optional[int] = None
    customer_id: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Optional[BookingStatus] = None
    total_amount: Optional[Decimal] = Field(None, ge=0)
    group_size: Optional[int] = Field(None, ge=1)
    notes: Optional[str] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def dates_as_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class BookingOut(OrmModel):
    id: int
    outfitter_id: int
    booking_number: str
    experience_id: int
    customer_id: int
    start_date: datetime
    end_date: datetime
    status: BookingStatus
    total_amount: Decimal
    group_size: int
    notes: Optional[str] = None
    created_at: datetime


class BookingGuideCreate(TenantWriteModel):
    guide_id: str = Field(..., min_length=1)


class BookingGuideOut(OrmModel):
    id: int
    outfitter_id: int
    booking_id: int
    guide_id: str


# === Documents ===

class DocumentCreate(TenantWriteModel):
    name: str = Field(..., min_length=1, max_length=255)
    path: str = Field(..., min_length=1, max_length=1024)
    type: str = Field(..., min_length=1, max_length=128)
    size: int = Field(..., ge=0)
    booking_id: Optional[int] = None
    customer_id: Optional[int] = None
    guide_id: Optional[str] = None


class DocumentUpdate(TenantWriteModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    booking_id: Optional[int] = None
    customer_id: Optional[int] = None
    guide_id: Optional[str] = None


class DocumentOut(OrmModel):
    id: int
    outfitter_id: int
    name: str
    path: str
    type: str
    size: int
    booking_id: Optional[int] = None
    customer_id: Optional[int] = None
    guide_id: Optional[str] = None
    created_at: datetime


# === Payments ===

class PaymentCreate(TenantWriteModel):
    booking_id: int
    amount: Decimal = Field(..., gt=0)
    status: PaymentStatus = PaymentStatus.PENDING
    payment_method: Optional[str] = Field(None, max_length=64)
    transaction_id: Optional[str] = Field(None, max_length=128)


class PaymentUpdate(TenantWriteModel):
    amount: Optional[Decimal] = Field(None, gt=0)
    status: Optional[PaymentStatus] = None
    payment_method: Optional[str] = Field(None, max_length=64)
    transaction_id: Optional[str] = Field(None, max_length=128)


class PaymentOut(OrmModel):
    id: int
    outfitter_id: int
    booking_id: int
    amount: Decimal
    status: PaymentStatus
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None
    created_at: datetime


# === Settings ===

class SettingsUpdate(TenantWriteModel):
    company_name: Optional[str] = Field(None, min_length=1, max_length=255)
    company_address: Optional[str] = None
    company_phone: Optional[str] = Field(None, max_length=32)
    company_email: Optional[str] = Field(None, pattern=EMAIL_PATTERN, max_length=255)
    company_logo: Optional[str] = None
    booking_link: Optional[str] = None


class SettingsOut(OrmModel):
    outfitter_id: int
    company_name: str
    company_address: Optional[str] = None
    company_phone: Optional[str] = None
    company_email: Optional[str] = None
    company_logo: Optional[str] = None
    booking_link: Optional[str] = None


# === Users / staff ===

class StaffCreate(TenantWriteModel):
    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=255)
    first_name: Optional[str] = Field(None, max_length=255)
    last_name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)
    role: UserRole = UserRole.GUIDE

    def to_payload(self, partial: bool = False) -> dict:
        payload = super().to_payload(partial)
        payload["role"] = self.role.value
        return payload


class UserOut(OrmModel):
    id: str
    outfitter_id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    role: str


class OutfitterOut(OrmModel):
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool


class MeResponse(BaseModel):
    user: UserOut
    outfitter: OutfitterOut


# === Dashboard ===

class DashboardStats(BaseModel):
    upcoming_bookings: int
    monthly_revenue: float
    active_customers: int
    completed_trips: int


class UpcomingGuide(BaseModel):
    guide_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class UpcomingBooking(BaseModel):
    id: int
    booking_number: str
    experience_id: int
    experience_name: str
    customer_id: int
    customer_first_name: str
    customer_last_name: str
    start_date: datetime
    end_date: datetime
    status: BookingStatus
    total_amount: Decimal
    guides: list[UpcomingGuide]


class GuideStats(BaseModel):
    assigned_experiences: int
    upcoming_bookings: int
    completed_trips: int
