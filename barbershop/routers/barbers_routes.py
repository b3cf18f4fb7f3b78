# barbershop/routers/barbers_routes.py

import logging
from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from barbershop.db import get_session
from barbershop.models import Barber, BarberSchedule as BarberScheduleModel, Service, User
from barbershop.schemas import (
    BarberAvailability,
    BarberCreate,
    BarberPublic,
    BarberSchedule as BarberScheduleSchema,
    BarberUpdate,
)
from barbershop.auth import get_current_user, hash_password
from barbershop.deps import require_role, barber_profile
from barbershop.core import Slot, MalformedTimeError, format_minutes, parse_hhmm
from barbershop.availability import available_barbers

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/barbers",
    tags=["barbers"],
)


def _get_barber(session: Session, barber_id: int) -> Barber:
    barber = session.get(Barber, barber_id)
    if barber is None:
        raise HTTPException(status_code=404, detail="Barber not found")
    return barber


def _validate_schedule(schedule: BarberScheduleSchema) -> None:
    days = schedule.working_days
    if not days:
        raise HTTPException(status_code=422, detail="working_days must contain at least one day")
    if any(not (0 <= d <= 6) for d in days):
        raise HTTPException(status_code=422, detail="working_days must be integers between 0 and 6")
    if len(days) != len(set(days)):
        raise HTTPException(status_code=422, detail="working_days cannot contain duplicates")
    if schedule.day_start >= schedule.day_end:
        raise HTTPException(status_code=422, detail="day_start must be before day_end")


def _schedule_out(row: BarberScheduleModel) -> dict:
    return {"working_days": row.working_days, "day_start": row.day_start, "day_end": row.day_end}


@router.get("", response_model=List[BarberPublic])
def list_barbers(
    include_inactive: bool = False,
    session: Session = Depends(get_session),
):
    stmt = select(Barber)
    if not include_inactive:
        stmt = stmt.where(Barber.active == True)  # noqa: E712
    return session.exec(stmt.order_by(Barber.last_name, Barber.first_name)).all()


@router.get("/available", response_model=List[BarberAvailability])
def list_available_barbers(
    on_date: date,
    time: str,
    service_id: int,
    session: Session = Depends(get_session),
):
    service = session.get(Service, service_id)
    if service is None:
        raise HTTPException(status_code=404, detail="Service not found")
    try:
        start = format_minutes(parse_hhmm(time))
    except MalformedTimeError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    return available_barbers(session, on_date, Slot(start, service.duration_minutes))


@router.post("", response_model=BarberPublic, status_code=201)
def create_barber(
    barber: BarberCreate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    email = barber.email.strip().lower()

    existing = session.exec(select(Barber).where(Barber.email == email)).first()
    if existing is not None:
        raise HTTPException(status_code=409, detail="A barber with that email already exists")

    db_barber = Barber(
        first_name=barber.first_name,
        last_name=barber.last_name,
        email=email,
        phone=barber.phone,
        specialty=barber.specialty,
    )
    session.add(db_barber)

    # Optional login account for the barber
    if barber.password is not None:
        if session.exec(select(User).where(User.email == email)).first() is not None:
            raise HTTPException(status_code=409, detail="Email already registered")
        session.add(User(email=email, password_hash=hash_password(barber.password), role="barber"))

    session.commit()
    session.refresh(db_barber)
    logger.info("Barber %s created (%s)", db_barber.id, db_barber.email)
    return db_barber


@router.get("/{barber_id}", response_model=BarberPublic)
def get_barber(barber_id: int, session: Session = Depends(get_session)):
    return _get_barber(session, barber_id)


@router.put("/{barber_id}", response_model=BarberPublic)
def update_barber(
    barber_id: int,
    changes: BarberUpdate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    barber = _get_barber(session, barber_id)

    for field, value in changes.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(barber, field, value)

    session.add(barber)
    session.commit()
    session.refresh(barber)
    return barber


@router.delete("/{barber_id}", response_model=BarberPublic)
def deactivate_barber(
    barber_id: int,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    barber = _get_barber(session, barber_id)

    barber.active = False
    session.add(barber)
    session.commit()
    session.refresh(barber)
    logger.info("Barber %s deactivated", barber.id)
    return barber


@router.put("/{barber_id}/schedule", response_model=BarberScheduleSchema)
def set_schedule(
    barber_id: int,
    schedule: BarberScheduleSchema,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin", "barber")
    _get_barber(session, barber_id)
    if current_user["role"] == "barber":
        profile = barber_profile(session, current_user)
        if profile is None or profile.id != barber_id:
            raise HTTPException(status_code=403, detail="Forbidden")

    _validate_schedule(schedule)

    # one row per barber, replaced wholesale
    db_schedule = session.get(BarberScheduleModel, barber_id) or BarberScheduleModel(barber_id=barber_id)
    db_schedule.working_days = sorted(schedule.working_days)
    db_schedule.day_start = schedule.day_start
    db_schedule.day_end = schedule.day_end
    session.add(db_schedule)

    session.commit()
    session.refresh(db_schedule)

    return _schedule_out(db_schedule)


@router.get("/{barber_id}/schedule", response_model=BarberScheduleSchema)
def get_schedule(
    barber_id: int,
    session: Session = Depends(get_session),
):
    db_schedule = session.get(BarberScheduleModel, barber_id)
    if db_schedule is None:
        raise HTTPException(status_code=404, detail="Schedule not set")

    return _schedule_out(db_schedule)
