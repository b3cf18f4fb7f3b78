# barbershop/availability.py

import logging
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Union

from sqlmodel import Session, select

from barbershop.core import Slot, combine, has_conflict, generate_slots, parse_hhmm, overlaps, resolve_duration, shop_now
from barbershop.data import ACTIVE_STATUSES, BOOKABLE_DAYS, MIN_BOOKING_NOTICE_MINUTES
from barbershop.models import Appointment, Barber, BarberSchedule, Block, BusinessSettings, Service

logger = logging.getLogger(__name__)


def normalize_date(value: Union[date, datetime, str]) -> date:
    """Reduce any incoming date representation to a calendar ``date``.

    Datetimes keep their own date portion (no timezone shift) and strings are
    cut at ``T`` before parsing, so ``2025-10-01T00:00:00.000Z`` is the 1st
    regardless of the server's local offset.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip().split("T")[0])
        except ValueError:
            raise ValueError(f"Invalid date {value!r}, expected YYYY-MM-DD") from None
    raise ValueError(f"Invalid date {value!r}, expected YYYY-MM-DD")


def get_settings(session: Session) -> BusinessSettings:
    settings = session.get(BusinessSettings, 1)
    if settings is None:
        settings = BusinessSettings(id=1)
        session.add(settings)
        session.commit()
        session.refresh(settings)
    return settings


def service_durations(session: Session) -> dict[int, Optional[int]]:
    return {s.id: s.duration_minutes for s in session.exec(select(Service)).all()}


def appointment_slot(appt: Appointment, durations: dict[int, Optional[int]]) -> Slot:
    return Slot(appt.time, durations.get(appt.service_id))


def barber_availability(
    barbers: Iterable[Barber],
    appointments: Iterable[Appointment],
    candidate: Slot,
    target_date: Union[date, datetime, str],
    durations: Optional[dict[int, Optional[int]]] = None,
) -> dict[int, bool]:
    """Map each active barber id to whether ``candidate`` fits their day."""
    durations = durations or {}
    day = normalize_date(target_date)

    by_barber: dict[int, list[Slot]] = {}
    for appt in appointments:
        if appt.barber_id is None or appt.status not in ACTIVE_STATUSES:
            continue
        if normalize_date(appt.date) != day:
            continue
        by_barber.setdefault(appt.barber_id, []).append(appointment_slot(appt, durations))

    return {
        barber.id: not has_conflict(candidate, by_barber.get(barber.id, []))
        for barber in barbers
        if barber.active
    }


def active_appointments_on(
    session: Session,
    target_date: date,
    barber_id: Optional[int] = None,
    exclude_id: Optional[int] = None,
) -> list[Appointment]:
    stmt = (
        select(Appointment)
        .where(Appointment.date == target_date)
        .where(Appointment.status.in_(ACTIVE_STATUSES))
    )
    if barber_id is not None:
        stmt = stmt.where(Appointment.barber_id == barber_id)
    if exclude_id is not None:
        stmt = stmt.where(Appointment.id != exclude_id)
    return list(session.exec(stmt).all())


def barber_has_conflict(
    session: Session,
    barber_id: int,
    target_date: date,
    candidate: Slot,
    exclude_id: Optional[int] = None,
) -> bool:
    durations = service_durations(session)
    existing = [
        appointment_slot(a, durations)
        for a in active_appointments_on(session, target_date, barber_id=barber_id, exclude_id=exclude_id)
    ]
    return has_conflict(candidate, existing)


def available_barbers(session: Session, target_date: date, candidate: Slot) -> list[dict]:
    barbers = session.exec(select(Barber).where(Barber.active == True)).all()  # noqa: E712
    flags = barber_availability(
        barbers,
        active_appointments_on(session, target_date),
        candidate,
        target_date,
        service_durations(session),
    )
    return [
        {"barber_id": b.id, "name": b.full_name, "available": flags[b.id]}
        for b in barbers
    ]


def availability_for_appointments(session: Session, appointment_ids: Iterable[int]) -> dict[int, list[dict]]:
    ids = list(appointment_ids)
    if not ids:
        return {}

    targets = session.exec(select(Appointment).where(Appointment.id.in_(ids))).all()
    if not targets:
        return {}

    barbers = session.exec(select(Barber).where(Barber.active == True)).all()  # noqa: E712
    durations = service_durations(session)

    days = {t.date for t in targets}
    occupied = session.exec(
        select(Appointment)
        .where(Appointment.date.in_(days))
        .where(Appointment.barber_id != None)  # noqa: E711
        .where(Appointment.status.in_(ACTIVE_STATUSES))
    ).all()

    result: dict[int, list[dict]] = {}
    for target in targets:
        others = [a for a in occupied if a.id != target.id]
        flags = barber_availability(
            barbers, others, appointment_slot(target, durations), target.date, durations
        )
        result[target.id] = [
            {"barber_id": b.id, "name": b.full_name, "available": flags[b.id]}
            for b in barbers
        ]
    return result


def blocks_on(session: Session, target_date: date) -> list[Block]:
    return list(
        session.exec(
            select(Block)
            .where(Block.active == True)  # noqa: E712
            .where(Block.start_date <= target_date)
            .where(Block.end_date >= target_date)
        ).all()
    )


def blocked_ranges(blocks: Iterable[Block], barber_id: Optional[int]) -> Optional[list[tuple[int, int]]]:
    """Blocked minute ranges for one barber (or the shop); None means all day."""
    ranges = []
    for b in blocks:
        if b.barber_id is not None and b.barber_id != barber_id:
            continue
        if b.kind == "full_day":
            return None
        ranges.append((parse_hhmm(b.start_time), parse_hhmm(b.end_time)))
    return ranges


def working_window(
    session: Session, barber_id: int, target_date: date, settings: BusinessSettings
) -> Optional[tuple[int, int]]:
    open_min = parse_hhmm(settings.open_time)
    close_min = parse_hhmm(settings.close_time)

    schedule = session.get(BarberSchedule, barber_id)
    if schedule is None:
        return open_min, close_min
    if target_date.weekday() not in schedule.working_days:
        return None
    return max(open_min, parse_hhmm(schedule.day_start)), min(close_min, parse_hhmm(schedule.day_end))


def is_open_day(settings: BusinessSettings, blocks: Iterable[Block], target_date: date) -> bool:
    if target_date.weekday() in settings.closed_weekdays:
        return False
    return blocked_ranges(blocks, None) is not None


def available_slots(
    session: Session,
    target_date: Union[date, datetime, str],
    barber_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> list[str]:
    day = normalize_date(target_date)
    now = now or shop_now()
    settings = get_settings(session)

    if day < now.date():
        return []

    blocks = blocks_on(session, day)
    if not is_open_day(settings, blocks, day):
        return []

    if barber_id is not None:
        barber_ids = [barber_id]
    else:
        barber_ids = list(
            session.exec(select(Barber.id).where(Barber.active == True)).all()  # noqa: E712
        )
    if not barber_ids:
        return []

    durations = service_durations(session)
    appointments = active_appointments_on(session, day)

    # per-barber state: working window, blocked ranges and booked ranges
    state = {}
    for bid in barber_ids:
        window = working_window(session, bid, day, settings)
        blocked = blocked_ranges(blocks, bid)
        if window is None or blocked is None:
            continue
        booked = [
            appointment_slot(a, durations).bounds for a in appointments if a.barber_id == bid
        ]
        state[bid] = (window, blocked + booked)

    unassigned = [appointment_slot(a, durations).bounds for a in appointments if a.barber_id is None]

    slot_length = resolve_duration(settings.slot_minutes)
    slots = []
    for start_str in generate_slots(settings.open_time, settings.close_time, settings.slot_minutes):
        start = parse_hhmm(start_str)
        end = start + slot_length

        free = 0
        for (win_start, win_end), busy in state.values():
            if not (win_start <= start < win_end):
                continue
            if any(overlaps(start, end, b_start, b_end) for b_start, b_end in busy):
                continue
            free += 1

        if barber_id is None:
            free -= sum(1 for u_start, u_end in unassigned if overlaps(start, end, u_start, u_end))

        if free > 0:
            slots.append(start_str)

    if day == now.date():
        earliest = now + timedelta(minutes=MIN_BOOKING_NOTICE_MINUTES)
        slots = [
            s for s in slots
            if combine(day, s) >= earliest
        ]

    logger.debug("Slots for %s (barber=%s): %d", day, barber_id, len(slots))
    return slots


def available_days(session: Session, today: Optional[date] = None, count: int = BOOKABLE_DAYS) -> list[date]:
    today = today or shop_now().date()
    settings = get_settings(session)

    days = []
    current = today
    # a week of closed weekdays would never terminate
    horizon = today + timedelta(days=count * 7)
    while len(days) < count and current <= horizon:
        if is_open_day(settings, blocks_on(session, current), current):
            days.append(current)
        current += timedelta(days=1)
    return days
