# barbershop/models.py

from typing import Optional, List
from datetime import datetime, date as Date, time

from sqlalchemy.types import JSON, DateTime
from sqlmodel import SQLModel, Field, Column

from barbershop.core import utcnow
from barbershop.data import shop_defaults


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    password_hash: str
    role: str  # admin, barber or client


class Client(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    first_name: str
    last_name: str
    email: str = Field(index=True, unique=True)
    phone: str = ""
    active: bool = True
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class Barber(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    first_name: str
    last_name: str
    email: str = Field(index=True, unique=True)
    phone: str = ""
    specialty: str = ""
    active: bool = Field(default=True, index=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Service(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    description: str = ""
    base_price: float
    duration_minutes: Optional[int] = None
    active: bool = Field(default=True, index=True)


class Appointment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    date: Date = Field(index=True)
    time: str  # HH:mm
    client_id: int = Field(foreign_key="client.id", index=True)
    barber_id: Optional[int] = Field(default=None, foreign_key="barber.id", index=True)
    service_id: int = Field(foreign_key="service.id")
    status: str = Field(default="reserved", index=True)
    price: float
    notes: str = ""

    deposit_required: bool = False
    payment_status: str = "none"  # none, pending, paid, applied, retained
    expires_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class Payment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    appointment_id: int = Field(foreign_key="appointment.id", index=True)
    client_id: int = Field(foreign_key="client.id", index=True)

    amount: float  # deposit
    total_amount: float
    percentage: int

    status: str = Field(default="pending", index=True)
    provider: str = "mercadopago"
    provider_reference: Optional[str] = None

    paid_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    expires_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    refund_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class BarberSchedule(SQLModel, table=True):
    barber_id: int = Field(foreign_key="barber.id", primary_key=True)
    working_days: List[int] = Field(sa_column=Column(JSON))
    day_start: time
    day_end: time


class Block(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    barber_id: Optional[int] = Field(default=None, foreign_key="barber.id", index=True)  # None = whole shop
    start_date: Date = Field(index=True)
    end_date: Date = Field(index=True)
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    kind: str  # "full_day" or "time_range"
    reason: str
    active: bool = True


class BusinessSettings(SQLModel, table=True):
    id: Optional[int] = Field(default=1, primary_key=True)

    name: str = shop_defaults["name"]
    open_time: time = shop_defaults["open_time"]
    close_time: time = shop_defaults["close_time"]
    slot_minutes: int = shop_defaults["slot_minutes"]
    closed_weekdays: List[int] = Field(
        default_factory=lambda: list(shop_defaults["closed_weekdays"]),
        sa_column=Column(JSON),
    )

    deposits_enabled: bool = shop_defaults["deposits_enabled"]
    deposit_percentage: int = shop_defaults["deposit_percentage"]
    deposit_policy: str = shop_defaults["deposit_policy"]
    premium_service_ids: List[int] = Field(
        default_factory=list,
        sa_column=Column(JSON),
    )
    cancellation_notice_hours: int = shop_defaults["cancellation_notice_hours"]
    allow_deposit_refund: bool = shop_defaults["allow_deposit_refund"]
