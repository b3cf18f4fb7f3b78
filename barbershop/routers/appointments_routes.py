# barbershop/routers/appointments_routes.py

import logging
import math
from datetime import datetime, timedelta, date
from typing import Dict, Optional, List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select, func

from barbershop.db import get_session
from barbershop.models import Appointment, Barber, Client, Service
from barbershop.schemas import (
    AppointmentCreate,
    AppointmentPage,
    AppointmentPublic,
    AppointmentStatus,
    AppointmentUpdate,
    AssignBarber,
    BarberAvailability,
    CancelResult,
    MaintenanceResult,
)
from barbershop.auth import get_current_user
from barbershop.deps import require_role, client_profile, barber_profile
from barbershop.core import Slot, combine, overlaps, parse_hhmm, resolve_duration, shop_now
from barbershop.availability import (
    availability_for_appointments,
    barber_has_conflict,
    blocked_ranges,
    blocks_on,
    get_settings,
    is_open_day,
    working_window,
)
from barbershop.data import ACTIVE_STATUSES
from barbershop import payments

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/appointments",
    tags=["appointments"],
)


def _get_appointment(session: Session, appt_id: int) -> Appointment:
    appt = session.get(Appointment, appt_id)
    if appt is None:
        raise HTTPException(status_code=404, detail="Appointment not found")
    return appt


def _get_service(session: Session, service_id: int, active_only: bool = True) -> Service:
    service = session.get(Service, service_id)
    if service is None:
        raise HTTPException(status_code=404, detail="Service not found")
    if active_only and not service.active:
        raise HTTPException(status_code=422, detail="Service not available")
    return service


def _check_barber_free(
    session: Session,
    barber_id: int,
    appt_date: date,
    appt_time: str,
    service: Service,
    exclude_id: Optional[int] = None,
) -> Barber:
    barber = session.get(Barber, barber_id)
    if barber is None:
        raise HTTPException(status_code=404, detail="Barber not found")
    if not barber.active:
        raise HTTPException(status_code=422, detail="Barber is not active")

    candidate = Slot(appt_time, service.duration_minutes)
    start, end = candidate.bounds

    window = working_window(session, barber_id, appt_date, get_settings(session))
    if window is None:
        raise HTTPException(status_code=422, detail="Barber is not scheduled to work that day")
    if start < window[0] or start >= window[1]:
        raise HTTPException(status_code=422, detail="Appointment must be within working hours")

    blocked = blocked_ranges(blocks_on(session, appt_date), barber_id)
    if blocked is None or any(overlaps(start, end, b_start, b_end) for b_start, b_end in blocked):
        raise HTTPException(status_code=409, detail="Appointment overlaps a block")

    if barber_has_conflict(session, barber_id, appt_date, candidate, exclude_id=exclude_id):
        raise HTTPException(status_code=409, detail="Barber already has an appointment at that time")
    return barber


def _validate_booking_time(session: Session, appt_date: date, appt_time: str, service: Service) -> None:
    if combine(appt_date, appt_time) < shop_now():
        raise HTTPException(status_code=422, detail="Cannot book an appointment in the past")

    settings = get_settings(session)
    if not is_open_day(settings, blocks_on(session, appt_date), appt_date):
        raise HTTPException(status_code=422, detail="The shop is closed that day")

    start = parse_hhmm(appt_time)
    if start < parse_hhmm(settings.open_time) or start >= parse_hhmm(settings.close_time):
        raise HTTPException(status_code=422, detail="Appointment must be within business hours")

    # shop-wide time ranges (lunch, meetings)
    start, end = Slot(appt_time, service.duration_minutes).bounds
    for b_start, b_end in blocked_ranges(blocks_on(session, appt_date), None):
        if overlaps(start, end, b_start, b_end):
            raise HTTPException(status_code=409, detail="Appointment overlaps a block")


def _check_status_change(session: Session, appt: Appointment, new_status: str) -> None:
    """Status edits through PUT; cancel, complete and deposit holds have their own flows."""
    if new_status == "canceled":
        raise HTTPException(status_code=422, detail="Use PATCH /appointments/{id}/cancel to cancel an appointment")
    if new_status == "completed":
        raise HTTPException(status_code=422, detail="Use PATCH /appointments/{id}/complete to complete an appointment")
    if new_status == "pending":
        raise HTTPException(status_code=422, detail="Appointments only become pending through a deposit hold")

    # new_status is reserved from here on
    if appt.status == "completed":
        raise HTTPException(status_code=409, detail="Completed appointments cannot be reopened")
    if appt.status == "pending":
        payment = payments.payment_for(session, appt.id)
        if payment is None or payment.status != "approved":
            raise HTTPException(status_code=409, detail="The deposit has not been approved")
    if appt.status == "canceled" and appt.deposit_required:
        raise HTTPException(status_code=409, detail="Canceled deposit bookings must be booked again")


def _find_or_create_client(session: Session, data) -> Client:
    email = data.email.strip().lower()
    client = session.exec(select(Client).where(Client.email == email)).first()
    if client is None:
        client = Client(
            first_name=data.first_name,
            last_name=data.last_name,
            email=email,
            phone=data.phone,
        )
    else:
        client.first_name = data.first_name
        client.last_name = data.last_name
        client.phone = data.phone or client.phone
    session.add(client)
    session.flush()
    return client


def _commit(session: Session, appt: Appointment) -> Appointment:
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=409, detail="Appointment conflicts with existing data")
    session.refresh(appt)
    return appt


def complete_finished_appointments(session: Session, now: Optional[datetime] = None) -> int:
    """Mark reserved appointments whose service has ended as completed. Caller commits."""
    now = now or shop_now()
    durations = {s.id: s.duration_minutes for s in session.exec(select(Service)).all()}

    # only the last few days; older ones were handled by earlier runs
    candidates = session.exec(
        select(Appointment)
        .where(Appointment.status == "reserved")
        .where(Appointment.date >= now.date() - timedelta(days=3))
        .where(Appointment.date <= now.date())
    ).all()

    completed = 0
    for appt in candidates:
        ends_at = combine(appt.date, appt.time) + timedelta(minutes=resolve_duration(durations.get(appt.service_id)))
        if now >= ends_at:
            appt.status = "completed"
            payments.settle_on_complete(appt)
            session.add(appt)
            completed += 1
    return completed


@router.post("", response_model=AppointmentPublic, status_code=201)
def create_appointment(
    appt: AppointmentCreate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "client", "admin")

    # 1) Validate service and time
    service = _get_service(session, appt.service_id)
    _validate_booking_time(session, appt.date, appt.time, service)

    # 2) Resolve the client
    if current_user["role"] == "admin":
        if appt.client is None:
            raise HTTPException(status_code=422, detail="Client data is required")
        client = _find_or_create_client(session, appt.client)
        price = appt.price if appt.price is not None else service.base_price
    else:
        client = client_profile(session, current_user)
        if client is None:
            raise HTTPException(status_code=404, detail="Client profile not found")
        price = service.base_price

    # 3) Optional barber must be free
    if appt.barber_id is not None:
        _check_barber_free(session, appt.barber_id, appt.date, appt.time, service)

    db_appt = Appointment(
        date=appt.date,
        time=appt.time,
        client_id=client.id,
        barber_id=appt.barber_id,
        service_id=service.id,
        status="reserved",
        price=price,
        notes=appt.notes,
    )
    session.add(db_appt)
    session.flush()  # fills db_appt.id

    # 4) Deposit hold when the shop policy asks for one
    settings = get_settings(session)
    if payments.requires_deposit(session, settings, client.id, service.id):
        payments.open_deposit(session, db_appt, settings)

    _commit(session, db_appt)
    logger.info(
        "Appointment %s booked for %s %s (client=%s barber=%s status=%s)",
        db_appt.id, db_appt.date, db_appt.time, client.id, db_appt.barber_id, db_appt.status,
    )
    return db_appt


@router.get("", response_model=AppointmentPage)
def list_appointments(
    status: Optional[str] = None,
    barber_id: Optional[int] = None,
    client_id: Optional[int] = None,
    on_date: Optional[date] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    unassigned: bool = False,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")

    stmt = select(Appointment)

    if status:
        statuses = [s.strip() for s in status.split(",") if s.strip()]
        valid = {s.value for s in AppointmentStatus}
        if any(s not in valid for s in statuses):
            raise HTTPException(status_code=422, detail=f"status must be among {sorted(valid)}")
        stmt = stmt.where(Appointment.status.in_(statuses))
    if barber_id is not None:
        stmt = stmt.where(Appointment.barber_id == barber_id)
    if client_id is not None:
        stmt = stmt.where(Appointment.client_id == client_id)
    if unassigned:
        stmt = stmt.where(Appointment.barber_id == None)  # noqa: E711
    if on_date is not None:
        stmt = stmt.where(Appointment.date == on_date)
    else:
        if date_from is not None:
            stmt = stmt.where(Appointment.date >= date_from)
        if date_to is not None:
            stmt = stmt.where(Appointment.date <= date_to)

    total = session.exec(select(func.count()).select_from(stmt.subquery())).one()

    stmt = (
        stmt.order_by(Appointment.date.desc(), Appointment.time.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    items = session.exec(stmt).all()

    return {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "pages": math.ceil(total / limit) if total else 0,
    }


@router.get("/mine", response_model=List[AppointmentPublic])
def list_my_appointments(
    status: Optional[AppointmentStatus] = None,
    on_date: Optional[date] = None,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "client", "barber")

    if current_user["role"] == "client":
        profile = client_profile(session, current_user)
        column = Appointment.client_id
    else:
        profile = barber_profile(session, current_user)
        column = Appointment.barber_id

    if profile is None:
        return []

    stmt = select(Appointment).where(column == profile.id)
    if status is not None:
        stmt = stmt.where(Appointment.status == status.value)
    if on_date is not None:
        stmt = stmt.where(Appointment.date == on_date)

    stmt = stmt.order_by(Appointment.date, Appointment.time)
    return session.exec(stmt).all()


@router.get("/barber-availability", response_model=Dict[int, List[BarberAvailability]])
def barber_availability_for_appointments(
    ids: List[int] = Query(...),
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    return availability_for_appointments(session, ids)


@router.post("/maintenance", response_model=MaintenanceResult)
def run_maintenance(
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")

    expired = payments.expire_pending_holds(session)
    completed = complete_finished_appointments(session)
    session.commit()

    logger.info("Maintenance: %d holds expired, %d appointments completed", expired, completed)
    return {"expired_holds": expired, "completed": completed}


@router.get("/{appt_id}", response_model=AppointmentPublic)
def get_appointment(
    appt_id: int,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    appt = _get_appointment(session, appt_id)

    if current_user["role"] == "client":
        profile = client_profile(session, current_user)
        if profile is None or profile.id != appt.client_id:
            raise HTTPException(status_code=403, detail="Forbidden")
    elif current_user["role"] == "barber":
        profile = barber_profile(session, current_user)
        if profile is None or profile.id != appt.barber_id:
            raise HTTPException(status_code=403, detail="Forbidden")

    return appt


@router.put("/{appt_id}", response_model=AppointmentPublic)
def update_appointment(
    appt_id: int,
    changes: AppointmentUpdate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    appt = _get_appointment(session, appt_id)

    service = _get_service(session, changes.service_id or appt.service_id, active_only=changes.service_id is not None)
    new_date = changes.date or appt.date
    new_time = changes.time or appt.time
    new_status = changes.status.value if changes.status is not None else appt.status

    if new_status != appt.status:
        _check_status_change(session, appt, new_status)

    moved = (new_date, new_time, service.id) != (appt.date, appt.time, appt.service_id)
    if moved and new_status in ACTIVE_STATUSES:
        _validate_booking_time(session, new_date, new_time, service)
    reactivated = new_status in ACTIVE_STATUSES and appt.status not in ACTIVE_STATUSES
    if appt.barber_id is not None and new_status in ACTIVE_STATUSES and (moved or reactivated):
        _check_barber_free(session, appt.barber_id, new_date, new_time, service, exclude_id=appt.id)

    appt.service_id = service.id
    appt.date = new_date
    appt.time = new_time
    appt.status = new_status
    if changes.price is not None:
        appt.price = changes.price
    if changes.notes is not None:
        appt.notes = changes.notes

    session.add(appt)
    return _commit(session, appt)


@router.patch("/{appt_id}/assign", response_model=AppointmentPublic)
def assign_barber(
    appt_id: int,
    body: AssignBarber,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    appt = _get_appointment(session, appt_id)

    if appt.status not in ACTIVE_STATUSES:
        raise HTTPException(status_code=409, detail="Only active appointments can be assigned")

    if body.barber_id is not None:
        service = _get_service(session, appt.service_id, active_only=False)
        _check_barber_free(session, body.barber_id, appt.date, appt.time, service, exclude_id=appt.id)

    appt.barber_id = body.barber_id
    session.add(appt)
    _commit(session, appt)

    logger.info("Appointment %s assigned to barber %s", appt.id, appt.barber_id)
    return appt


@router.patch("/{appt_id}/cancel", response_model=CancelResult)
def cancel_appointment(
    appt_id: int,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    # 1) Find the appointment in DB
    target = _get_appointment(session, appt_id)

    # 2) Authorization: client who booked, assigned barber or admin
    role = current_user["role"]
    if role == "client":
        profile = client_profile(session, current_user)
        allowed = profile is not None and profile.id == target.client_id
    elif role == "barber":
        profile = barber_profile(session, current_user)
        allowed = profile is not None and profile.id == target.barber_id
    else:
        allowed = role == "admin"
    if not allowed:
        raise HTTPException(status_code=403, detail="Forbidden")

    # 3) Already closed?
    if target.status == "canceled":
        raise HTTPException(status_code=409, detail="Appointment already canceled")
    if target.status == "completed":
        raise HTTPException(status_code=409, detail="Completed appointments cannot be canceled")

    # 4) Settle the deposit, cancel and persist
    deposit = payments.settle_on_cancel(session, target, get_settings(session))
    target.status = "canceled"
    target.expires_at = None
    session.add(target)
    _commit(session, target)

    logger.info("Appointment %s canceled by %s (deposit=%s)", target.id, current_user["email"], deposit)
    return {"appointment": target, "deposit": deposit}


@router.patch("/{appt_id}/complete", response_model=AppointmentPublic)
def complete_appointment(
    appt_id: int,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "barber", "admin")
    appt = _get_appointment(session, appt_id)

    if current_user["role"] == "barber":
        profile = barber_profile(session, current_user)
        if profile is None or profile.id != appt.barber_id:
            raise HTTPException(status_code=403, detail="Forbidden")

    if appt.status != "reserved":
        raise HTTPException(status_code=409, detail="Only reserved appointments can be completed")

    appt.status = "completed"
    payments.settle_on_complete(appt)
    session.add(appt)
    return _commit(session, appt)
