# barbershop/routers/users_routes.py

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from barbershop.db import get_session
from barbershop.models import Client, User
from barbershop.schemas import UserCreate, UserPublic
from barbershop.auth import get_current_user, hash_password

router = APIRouter(
    tags=["users"],
)


@router.get("/me", response_model=UserPublic)
def me(current_user: dict = Depends(get_current_user)):
    return {
        "id": current_user["id"],
        "email": current_user["email"],
        "role": current_user["role"],
    }


@router.post("/users", status_code=201, response_model=UserPublic)
def register_client(
    user: UserCreate,
    session: Session = Depends(get_session),
):
    email = user.email.strip().lower()

    # 1) Check if email already exists
    existing = session.exec(
        select(User).where(User.email == email)
    ).first()
    if existing is not None:
        raise HTTPException(status_code=409, detail="Email already registered")

    # 2) Self-registration always yields a client account
    db_user = User(
        email=email,
        password_hash=hash_password(user.password),
        role="client",
    )
    session.add(db_user)

    # 3) Link to an existing client profile (admin may have booked for them already)
    profile = session.exec(select(Client).where(Client.email == email)).first()
    if profile is None:
        session.add(Client(
            first_name=user.first_name,
            last_name=user.last_name,
            email=email,
            phone=user.phone,
        ))

    session.commit()
    session.refresh(db_user)

    return {
        "id": db_user.id,
        "email": db_user.email,
        "role": db_user.role,
    }
