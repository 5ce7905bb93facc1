"""Pydantic schemas for API serialisation."""

import datetime as dt
import re
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from gymcourt.models.pricing import PriceTier
from gymcourt.models.profile import UserRole
from gymcourt.models.reservation import PaymentStatus, ReservationStatus, SubscriptionType
from gymcourt.services.timeutil import ValidationError, normalize_start_time, normalize_time

TIME_PATTERN = r"^\d{1,2}:\d{2}(:\d{2})?$"


def format_phone_number(value: str) -> str:
    """Normalise a Korean phone number to 010-1234-5678 style."""
    digits = re.sub(r"\D", "", value)
    if len(digits) <= 3:
        return digits
    if len(digits) <= 7:
        return f"{digits[:3]}-{digits[3:]}"
    return f"{digits[:3]}-{digits[3:7]}-{digits[7:11]}"


def _check_time(value: str, field: str) -> str:
    normalize = normalize_start_time if field == "start_time" else normalize_time
    try:
        return normalize(value, field)
    except ValidationError as e:
        raise ValueError(e.message) from None


# --- Courts ---


class CourtOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    slug: str
    name: str
    color: str
    event_rate_per_hour: int


# --- Pricing catalog ---


class PriceRuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    court_id: int | None
    tier: PriceTier
    days_of_week: list[int]
    start_time: str
    end_time: str
    price_per_hour: int
    priority: int


class PackageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    court_id: int
    days_of_week: list[int] | None
    start_time: str
    end_time: str
    total_price: int
    badge_text: str | None
    description: str | None


class QuoteRequest(BaseModel):
    court_id: int
    date: date
    start_time: str = Field(pattern=TIME_PATTERN)
    end_time: str = Field(pattern=TIME_PATTERN)
    people_count: int = Field(default=1, ge=1)
    subscription_type: SubscriptionType = SubscriptionType.DAILY


class QuoteOut(BaseModel):
    court_id: int
    date: date
    start_time: str
    end_time: str
    mode: str
    base_total: float
    discount_percent: int
    total: int
    breakdown: list[str]
    packages: list[PackageOut]


# --- Reservations ---


class ReservationCreate(BaseModel):
    """Public booking request: registered user (token) or guest (name + phone)."""

    court_id: int
    date: date
    start_time: str = Field(pattern=TIME_PATTERN)
    end_time: str = Field(pattern=TIME_PATTERN)
    people_count: int = Field(default=1, ge=1)
    subscription_type: SubscriptionType = SubscriptionType.DAILY
    package_id: int | None = None
    team_name: str | None = Field(default=None, max_length=100)
    purpose: str | None = None
    guest_name: str | None = Field(default=None, max_length=100)
    guest_phone: str | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _valid_time(cls, v: str, info) -> str:
        return _check_time(v, info.field_name)

    @field_validator("guest_phone")
    @classmethod
    def _phone(cls, v: str | None) -> str | None:
        return format_phone_number(v) if v else v


class SlotSelectionIn(BaseModel):
    """A set of half-hour cells picked on the board."""

    court_id: int
    date: date
    slots: list[str] = Field(min_length=1)


class ConflictCheckRequest(BaseModel):
    court_id: int
    dates: list[date] = Field(min_length=1)
    start_time: str = Field(pattern=TIME_PATTERN)
    end_time: str = Field(pattern=TIME_PATTERN)
    exclude_group_id: str | None = None
    exclude_id: int | None = None


class RecurrenceIn(BaseModel):
    days_of_week: list[str | int] = Field(min_length=1)
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def _ordered(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class AdminReservationCreate(BaseModel):
    """Back-office booking: one-time (``date``) or recurring (``recurrence``)."""

    court_id: int
    date: dt.date | None = None
    recurrence: RecurrenceIn | None = None
    start_time: str = Field(pattern=TIME_PATTERN)
    end_time: str = Field(pattern=TIME_PATTERN)
    user_id: str | None = None
    guest_name: str | None = Field(default=None, max_length=100)
    guest_phone: str | None = None
    team_name: str = Field(min_length=1, max_length=100)
    purpose: str | None = None
    people_count: int = Field(default=10, ge=1)
    subscription_type: SubscriptionType = SubscriptionType.DAILY
    color: str | None = Field(default=None, max_length=20)

    @field_validator("start_time", "end_time")
    @classmethod
    def _valid_time(cls, v: str, info) -> str:
        return _check_time(v, info.field_name)

    @field_validator("guest_phone")
    @classmethod
    def _phone(cls, v: str | None) -> str | None:
        return format_phone_number(v) if v else v

    @model_validator(mode="after")
    def _one_mode(self):
        if (self.date is None) == (self.recurrence is None):
            raise ValueError("Provide exactly one of date or recurrence")
        if self.user_id and (self.guest_name or self.guest_phone):
            raise ValueError("A reservation belongs to a user or a guest, not both")
        return self


class SeriesUpdate(BaseModel):
    court_id: int
    recurrence: RecurrenceIn
    start_time: str = Field(pattern=TIME_PATTERN)
    end_time: str = Field(pattern=TIME_PATTERN)
    team_name: str = Field(min_length=1, max_length=100)
    purpose: str | None = None
    people_count: int = Field(default=10, ge=1)
    subscription_type: SubscriptionType = SubscriptionType.DAILY
    color: str | None = Field(default=None, max_length=20)

    @field_validator("start_time", "end_time")
    @classmethod
    def _valid_time(cls, v: str, info) -> str:
        return _check_time(v, info.field_name)


class ReservationUpdate(BaseModel):
    status: ReservationStatus | None = None
    start_time: str | None = Field(default=None, pattern=TIME_PATTERN)
    end_time: str | None = Field(default=None, pattern=TIME_PATTERN)
    final_fee: int | None = Field(default=None, ge=0)
    payment_status: PaymentStatus | None = None
    adjustment_reason: str | None = None
    team_name: str | None = Field(default=None, max_length=100)
    color: str | None = Field(default=None, max_length=20)

    @field_validator("payment_status")
    @classmethod
    def _payment_not_null(cls, v: PaymentStatus | None) -> PaymentStatus:
        if v is None:
            raise ValueError("payment_status cannot be cleared")
        return v


class ReservationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    court_id: int
    date: date
    start_time: str
    end_time: str
    status: ReservationStatus
    user_id: str | None
    guest_name: str | None
    guest_phone: str | None
    team_name: str | None
    purpose: str | None
    people_count: int
    total_price: int
    final_fee: int | None
    payment_status: PaymentStatus
    adjustment_reason: str | None
    subscription_type: SubscriptionType
    package_id: int | None
    group_id: str | None
    recurrence_rule: dict | None
    color: str | None
    created_at: datetime


class ConflictOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    date: date
    start_time: str
    end_time: str
    status: ReservationStatus
    group_id: str | None


class ConflictCheckOut(BaseModel):
    dates: list[date]
    conflicts: list[ConflictOut]


class DeleteResult(BaseModel):
    deleted: int


# --- Schedule board ---


class CellOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    text: str
    row_span: int
    color: str | None
    reservation_id: int | None


class TimeSlotOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    time: str
    courts: dict[str, dict[str, CellOut]]


class ScheduleOut(BaseModel):
    week_start: date
    resolution: int
    courts: list[CourtOut]
    slots: list[TimeSlotOut]


# --- Users ---


class ProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str | None
    name: str
    phone: str | None
    role: UserRole


class RoleUpdate(BaseModel):
    role: UserRole


class ProfileUpdate(BaseModel):
    """Signup completion: the member fills in what the provider did not supply."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    phone: str | None = Field(default=None, min_length=1)

    @field_validator("phone")
    @classmethod
    def _phone(cls, v: str | None) -> str | None:
        return format_phone_number(v) if v else v


class DeletedProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    profile_id: str
    email: str | None
    name: str
    phone: str | None
    reason: str | None
    deleted_at: datetime
