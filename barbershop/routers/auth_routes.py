# barbershop/routers/auth_routes.py

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import Session, select

from barbershop.db import get_session
from barbershop.models import User
from barbershop.schemas import Token
from barbershop.auth import verify_password, create_access_token

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
)


@router.post("/login", response_model=Token)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: Session = Depends(get_session),
):
    email = form_data.username.strip().lower()

    user = session.exec(
        select(User).where(User.email == email)
    ).first()

    if user is None or not verify_password(form_data.password, user.password_hash):
        logger.info("Failed login for %s", email)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = create_access_token({"sub": user.email, "role": user.role})
    return {"access_token": token, "token_type": "bearer"}
