# barbershop/routers/payments_routes.py

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from barbershop.db import get_session
from barbershop.models import Payment
from barbershop.schemas import PaymentPublic, PaymentStatus, PaymentStatusUpdate
from barbershop.auth import get_current_user
from barbershop.deps import require_role, client_profile
from barbershop.payments import PaymentTransitionError, apply_payment_status

router = APIRouter(
    prefix="/payments",
    tags=["payments"],
)


def _visible_payment(session: Session, payment_id: int, current_user: dict) -> Payment:
    payment = session.get(Payment, payment_id)
    if payment is None:
        raise HTTPException(status_code=404, detail="Payment not found")
    if current_user["role"] == "client":
        profile = client_profile(session, current_user)
        if profile is None or profile.id != payment.client_id:
            raise HTTPException(status_code=404, detail="Payment not found")
    elif current_user["role"] != "admin":
        raise HTTPException(status_code=403, detail="Forbidden")
    return payment


@router.get("", response_model=List[PaymentPublic])
def list_payments(
    status: Optional[PaymentStatus] = None,
    appointment_id: Optional[int] = None,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin", "client")

    stmt = select(Payment)
    if current_user["role"] == "client":
        profile = client_profile(session, current_user)
        if profile is None:
            return []
        stmt = stmt.where(Payment.client_id == profile.id)
    if status is not None:
        stmt = stmt.where(Payment.status == status.value)
    if appointment_id is not None:
        stmt = stmt.where(Payment.appointment_id == appointment_id)

    return session.exec(stmt.order_by(Payment.created_at.desc())).all()


@router.get("/{payment_id}", response_model=PaymentPublic)
def get_payment(
    payment_id: int,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    return _visible_payment(session, payment_id, current_user)


@router.post("/{payment_id}/status", response_model=PaymentPublic)
def record_payment_status(
    payment_id: int,
    update: PaymentStatusUpdate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    # provider outcomes are recorded by staff
    require_role(current_user, "admin")
    payment = _visible_payment(session, payment_id, current_user)

    try:
        apply_payment_status(session, payment, update.status.value, update.reference, update.reason)
    except PaymentTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc))

    session.commit()
    session.refresh(payment)
    return payment
