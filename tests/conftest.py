import os
from datetime import date, timedelta

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite://")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import SQLModel, Session, create_engine  # noqa: E402

from barbershop import models  # noqa: E402,F401
from barbershop.auth import create_access_token, hash_password  # noqa: E402
from barbershop.db import get_session  # noqa: E402
from barbershop.main import app  # noqa: E402
from barbershop.models import Barber, Client, Service, User  # noqa: E402


def next_weekday(weekday: int, after: date = None) -> date:
    """First date strictly after ``after`` (default today) falling on ``weekday``."""
    day = (after or date.today()) + timedelta(days=1)
    while day.weekday() != weekday:
        day += timedelta(days=1)
    return day


def next_open_day(after: date = None) -> date:
    day = (after or date.today()) + timedelta(days=1)
    while day.weekday() == 6:
        day += timedelta(days=1)
    return day


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture()
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture()
def client(engine):
    def _session_override():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _session_override
    yield TestClient(app)
    app.dependency_overrides.clear()


def _auth(email: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': email})}"}


@pytest.fixture()
def admin_headers(session) -> dict:
    session.add(User(email="admin@barbershop.test", password_hash=hash_password("admin1234"), role="admin"))
    session.commit()
    return _auth("admin@barbershop.test")


@pytest.fixture()
def barbers(session) -> list[Barber]:
    rows = [
        Barber(first_name="Juan", last_name="Pérez", email="juan@barbershop.test"),
        Barber(first_name="Lucas", last_name="Gómez", email="lucas@barbershop.test"),
    ]
    session.add_all(rows)
    session.add(User(email="juan@barbershop.test", password_hash=hash_password("barber1234"), role="barber"))
    session.commit()
    for row in rows:
        session.refresh(row)
    return rows


@pytest.fixture()
def barber_headers(barbers) -> dict:
    return _auth("juan@barbershop.test")


@pytest.fixture()
def customer(session) -> Client:
    row = Client(first_name="Ana", last_name="López", email="ana@example.com")
    session.add(row)
    session.add(User(email="ana@example.com", password_hash=hash_password("client1234"), role="client"))
    session.commit()
    session.refresh(row)
    return row


@pytest.fixture()
def client_headers(customer) -> dict:
    return _auth("ana@example.com")


@pytest.fixture()
def service(session) -> Service:
    row = Service(name="Corte clásico", base_price=8000, duration_minutes=45)
    session.add(row)
    session.commit()
    session.refresh(row)
    return row
