# barbershop/seed.py
"""Fill a development database with synthetic appointments for the stats views.

Usage:
    python -m barbershop.seed --reference --year 2025 --month 9 --count 80 --month 10 --count 100
"""

import argparse
import calendar
import logging
import random
from datetime import date, datetime
from typing import Optional, Sequence

from sqlmodel import Session, select

from barbershop.auth import hash_password
from barbershop.data import STATUS_WEIGHTS, DEMO_BARBERS, DEMO_CLIENTS, DEMO_SERVICES
from barbershop.db import engine, create_db_and_tables
from barbershop.models import Appointment, Barber, Client, Payment, Service, User

logger = logging.getLogger(__name__)


class SeedError(RuntimeError):
    pass


def pick_status(rng: random.Random, weights: dict[str, int] = STATUS_WEIGHTS) -> str:
    total = sum(weights.values())
    if total <= 0:
        raise SeedError("Status weights must contain at least one positive weight")
    roll = rng.random() * total
    cumulative = 0
    for status, weight in weights.items():
        cumulative += weight
        if roll < cumulative:
            return status
    return status


def random_business_datetime(rng: random.Random, year: int, month: int) -> datetime:
    days_in_month = calendar.monthrange(year, month)[1]
    day = date(year, month, rng.randint(1, days_in_month))
    while day.weekday() == 6:  # no Sundays
        day = date(year, month, rng.randint(1, days_in_month))

    hour = rng.randint(9, 17)
    minute = 0 if rng.random() < 0.5 else 30
    return datetime(day.year, day.month, day.day, hour, minute)


def generate_appointments(
    rng: random.Random,
    barbers: Sequence[Barber],
    clients: Sequence[Client],
    services: Sequence[Service],
    year: int,
    month: int,
    count: int,
) -> list[Appointment]:
    appointments = []
    for _ in range(count):
        barber = rng.choice(barbers)
        client = rng.choice(clients)
        service = rng.choice(services)
        when = random_business_datetime(rng, year, month)

        appointments.append(
            Appointment(
                date=when.date(),
                time=when.strftime("%H:%M"),
                barber_id=barber.id,
                client_id=client.id,
                service_id=service.id,
                status=pick_status(rng),
                price=service.base_price,
            )
        )
    return appointments


def _month_bounds(year: int, month: int) -> tuple[date, date]:
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def seed_reference_data(session: Session) -> None:
    for name, (price, duration) in DEMO_SERVICES.items():
        if session.exec(select(Service).where(Service.name == name)).first() is None:
            session.add(Service(name=name, base_price=price, duration_minutes=duration))

    for first, last, email in DEMO_BARBERS:
        if session.exec(select(Barber).where(Barber.email == email)).first() is None:
            session.add(Barber(first_name=first, last_name=last, email=email))
        if session.exec(select(User).where(User.email == email)).first() is None:
            session.add(User(email=email, password_hash=hash_password("barber1234"), role="barber"))

    for first, last, email in DEMO_CLIENTS:
        if session.exec(select(Client).where(Client.email == email)).first() is None:
            session.add(Client(first_name=first, last_name=last, email=email))

    if session.exec(select(User).where(User.role == "admin")).first() is None:
        session.add(User(email="admin@barbershop.test", password_hash=hash_password("admin1234"), role="admin"))

    session.commit()
    logger.info("Reference data ready")


def seed_statistics(
    session: Session,
    year: int,
    months: Sequence[int],
    counts: Sequence[int],
    rng: Optional[random.Random] = None,
) -> dict[int, dict[str, int]]:
    rng = rng or random.Random()

    barbers = session.exec(select(Barber).where(Barber.active == True)).all()  # noqa: E712
    clients = session.exec(select(Client).where(Client.active == True)).all()  # noqa: E712
    services = session.exec(select(Service).where(Service.active == True)).all()  # noqa: E712

    if not barbers:
        raise SeedError("No active barbers in the database")
    if not clients:
        raise SeedError("No active clients in the database")
    if not services:
        raise SeedError("No active services in the database")

    logger.info("Barbers: %d, clients: %d, services: %d", len(barbers), len(clients), len(services))

    report = {}
    for month, count in zip(months, counts):
        first, last = _month_bounds(year, month)
        old = session.exec(
            select(Appointment).where(Appointment.date >= first).where(Appointment.date <= last)
        ).all()
        if old:
            old_ids = [a.id for a in old]
            for payment in session.exec(select(Payment).where(Payment.appointment_id.in_(old_ids))).all():
                session.delete(payment)
            for appt in old:
                session.delete(appt)
            session.flush()
            logger.info("Removed %d existing appointments for %d-%02d", len(old), year, month)

        generated = generate_appointments(rng, barbers, clients, services, year, month, count)
        session.add_all(generated)

        tally = {status: 0 for status in STATUS_WEIGHTS}
        for appt in generated:
            tally[appt.status] += 1
        report[month] = tally

    session.commit()

    for month, tally in report.items():
        logger.info(
            "%d-%02d: total=%d completed=%d canceled=%d reserved=%d",
            year, month, sum(tally.values()), tally["completed"], tally["canceled"], tally["reserved"],
        )
    return report


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Seed demo appointments for statistics")
    parser.add_argument("--year", type=int, default=date.today().year)
    parser.add_argument("--month", type=int, action="append", dest="months")
    parser.add_argument("--count", type=int, action="append", dest="counts")
    parser.add_argument("--seed", type=int, default=None, help="random seed for reproducible runs")
    parser.add_argument("--reference", action="store_true", help="create demo barbers, clients and services first")
    args = parser.parse_args(argv)

    months = args.months or [date.today().month]
    counts = args.counts or [100] * len(months)
    if len(counts) != len(months):
        parser.error("give one --count per --month")

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    create_db_and_tables()
    with Session(engine) as session:
        if args.reference:
            seed_reference_data(session)
        try:
            seed_statistics(session, args.year, months, counts, random.Random(args.seed))
        except SeedError as exc:
            logger.error("%s", exc)
            return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
