# barbershop/deps.py

from typing import Optional

from fastapi import HTTPException
from sqlmodel import Session, select

from barbershop.models import Barber, Client


def require_role(user: dict, *roles: str):
    if user["role"] not in roles:
        raise HTTPException(status_code=403, detail="Forbidden")


def client_profile(session: Session, user: dict) -> Optional[Client]:
    return session.exec(select(Client).where(Client.email == user["email"])).first()


def barber_profile(session: Session, user: dict) -> Optional[Barber]:
    return session.exec(select(Barber).where(Barber.email == user["email"])).first()
