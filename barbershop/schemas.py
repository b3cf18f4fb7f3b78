# barbershop/schemas.py

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from enum import Enum
from datetime import datetime, date as Date, time as Time
from typing import List, Optional

from barbershop.core import parse_hhmm, format_minutes
from barbershop.data import SLOT_MINUTES_CHOICES


def _hhmm(value: str) -> str:
    # only zero-padded HH:mm passes
    return format_minutes(parse_hhmm(value))


class UserRole(str, Enum):
    admin = "admin"
    barber = "barber"
    client = "client"


class AppointmentStatus(str, Enum):
    reserved = "reserved"
    completed = "completed"
    canceled = "canceled"
    pending = "pending"


class PaymentStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    refunded = "refunded"
    expired = "expired"


class BlockKind(str, Enum):
    full_day = "full_day"
    time_range = "time_range"


class DepositPolicy(str, Enum):
    none = "none"
    all = "all"
    new_clients = "new_clients"
    premium_services = "premium_services"


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserPublic(BaseModel):
    id: int
    email: str
    role: UserRole


class UserCreate(BaseModel):
    email: str
    password: str = Field(min_length=8, max_length=72)
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    phone: str = ""


class ClientData(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: str
    phone: str = ""


class ClientPublic(ClientData):
    model_config = ConfigDict(from_attributes=True)

    id: int


class ServiceCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""
    base_price: float = Field(ge=0)
    duration_minutes: Optional[int] = Field(default=None, gt=0)


class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    base_price: Optional[float] = Field(default=None, ge=0)
    duration_minutes: Optional[int] = Field(default=None, gt=0)
    active: Optional[bool] = None


class ServicePublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    base_price: float
    duration_minutes: Optional[int]
    active: bool


class BarberCreate(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: str
    phone: str = ""
    specialty: str = ""
    password: Optional[str] = Field(default=None, min_length=8, max_length=72)


class BarberUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1)
    last_name: Optional[str] = Field(default=None, min_length=1)
    phone: Optional[str] = None
    specialty: Optional[str] = None
    active: Optional[bool] = None


class BarberPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    last_name: str
    email: str
    phone: str
    specialty: str
    active: bool


class BarberSchedule(BaseModel):
    working_days: list[int]     # 0=Mon, 1=Tues....
    day_start: Time
    day_end: Time


class BarberAvailability(BaseModel):
    barber_id: int
    name: str
    available: bool


class AppointmentCreate(BaseModel):
    service_id: int
    date: Date
    time: str
    barber_id: Optional[int] = None
    price: Optional[float] = Field(default=None, ge=0)
    notes: str = Field(default="", max_length=500)
    client: Optional[ClientData] = None  # admin bookings on behalf of a client

    @field_validator("time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        return _hhmm(value)


class AppointmentUpdate(BaseModel):
    service_id: Optional[int] = None
    price: Optional[float] = Field(default=None, ge=0)
    date: Optional[Date] = None
    time: Optional[str] = None
    status: Optional[AppointmentStatus] = None
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("time")
    @classmethod
    def validate_time(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _hhmm(value)


class AssignBarber(BaseModel):
    barber_id: Optional[int] = None


class AppointmentPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    date: Date
    time: str
    client_id: int
    barber_id: Optional[int]
    service_id: int
    status: AppointmentStatus
    price: float
    notes: str
    deposit_required: bool
    payment_status: str
    expires_at: Optional[datetime]


class AppointmentPage(BaseModel):
    items: List[AppointmentPublic]
    total: int
    page: int
    limit: int
    pages: int


class CancelResult(BaseModel):
    appointment: AppointmentPublic
    deposit: Optional[str] = None  # refunded, retained or expired


class MaintenanceResult(BaseModel):
    expired_holds: int
    completed: int


class AvailabilityResponse(BaseModel):
    date: Date
    barber_id: Optional[int]
    available_starts: List[str]


class BlockCreate(BaseModel):
    barber_id: Optional[int] = None
    start_date: Date
    end_date: Date
    kind: BlockKind
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: str = Field(min_length=1, max_length=200)

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        if self.kind == BlockKind.time_range:
            if not self.start_time or not self.end_time:
                raise ValueError("time_range blocks need start_time and end_time")
            self.start_time = _hhmm(self.start_time)
            self.end_time = _hhmm(self.end_time)
            if self.start_time >= self.end_time:
                raise ValueError("end_time must be after start_time")
        else:
            self.start_time = None
            self.end_time = None
        return self


class BlockPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    barber_id: Optional[int]
    start_date: Date
    end_date: Date
    kind: BlockKind
    start_time: Optional[str]
    end_time: Optional[str]
    reason: str


class SettingsPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    open_time: Time
    close_time: Time
    slot_minutes: int
    closed_weekdays: List[int]
    deposits_enabled: bool
    deposit_percentage: int
    deposit_policy: DepositPolicy
    premium_service_ids: List[int]
    cancellation_notice_hours: int
    allow_deposit_refund: bool


class SettingsUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=100)
    open_time: Optional[Time] = None
    close_time: Optional[Time] = None
    slot_minutes: Optional[int] = None
    closed_weekdays: Optional[List[int]] = None
    deposits_enabled: Optional[bool] = None
    deposit_percentage: Optional[int] = Field(default=None, ge=10, le=100)
    deposit_policy: Optional[DepositPolicy] = None
    premium_service_ids: Optional[List[int]] = None
    cancellation_notice_hours: Optional[int] = Field(default=None, ge=0)
    allow_deposit_refund: Optional[bool] = None

    @field_validator("slot_minutes")
    @classmethod
    def validate_slot_minutes(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value not in SLOT_MINUTES_CHOICES:
            raise ValueError(f"slot_minutes must be one of {SLOT_MINUTES_CHOICES}")
        return value

    @field_validator("closed_weekdays")
    @classmethod
    def validate_weekdays(cls, value: Optional[List[int]]) -> Optional[List[int]]:
        if value is not None and any(not (0 <= d <= 6) for d in value):
            raise ValueError("closed_weekdays must be integers between 0 and 6")
        return sorted(set(value)) if value is not None else None


class PaymentPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    appointment_id: int
    client_id: int
    amount: float
    total_amount: float
    percentage: int
    status: PaymentStatus
    provider_reference: Optional[str]
    paid_at: Optional[datetime]
    expires_at: Optional[datetime]
    refund_reason: Optional[str]


class PaymentStatusUpdate(BaseModel):
    status: PaymentStatus
    reference: Optional[str] = None
    reason: Optional[str] = None
