# barbershop/payments.py
"""Deposit (seña) policy and payment state transitions.

No payment provider is contacted here: a provider outcome is recorded through
``apply_payment_status`` and the linked appointment follows it.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from sqlmodel import Session, select

from barbershop.core import combine, shop_now, utcnow
from barbershop.data import PAYMENT_EXPIRY_HOURS, PENDING_HOLD_MINUTES
from barbershop.models import Appointment, BusinessSettings, Payment

logger = logging.getLogger(__name__)

PAYMENT_TRANSITIONS = {
    "pending": {"approved", "rejected", "expired"},
    "approved": {"refunded"},
    "rejected": set(),
    "refunded": set(),
    "expired": set(),
}


class PaymentTransitionError(ValueError):
    pass


def deposit_amount(total: float, percentage: int) -> float:
    # whole currency units, halves rounded up
    return float(math.floor(total * percentage / 100 + 0.5))


def requires_deposit(session: Session, settings: BusinessSettings, client_id: int, service_id: int) -> bool:
    if not settings.deposits_enabled:
        return False

    policy = settings.deposit_policy
    if policy == "all":
        return True
    if policy == "premium_services":
        return service_id in (settings.premium_service_ids or [])
    if policy == "new_clients":
        previous = session.exec(
            select(Appointment.id)
            .where(Appointment.client_id == client_id)
            .where(Appointment.status == "completed")
        ).first()
        return previous is None
    return False


def open_deposit(
    session: Session,
    appt: Appointment,
    settings: BusinessSettings,
    now: Optional[datetime] = None,
) -> Payment:
    """Put ``appt`` on hold and create its pending deposit. Caller commits."""
    now = now or utcnow()

    appt.status = "pending"
    appt.deposit_required = True
    appt.payment_status = "pending"
    appt.expires_at = now + timedelta(minutes=PENDING_HOLD_MINUTES)

    payment = Payment(
        appointment_id=appt.id,
        client_id=appt.client_id,
        amount=deposit_amount(appt.price, settings.deposit_percentage),
        total_amount=appt.price,
        percentage=settings.deposit_percentage,
        expires_at=now + timedelta(hours=PAYMENT_EXPIRY_HOURS),
    )
    session.add(appt)
    session.add(payment)
    return payment


def payment_for(session: Session, appointment_id: int) -> Optional[Payment]:
    return session.exec(
        select(Payment)
        .where(Payment.appointment_id == appointment_id)
        .order_by(Payment.created_at.desc())
    ).first()


def apply_payment_status(
    session: Session,
    payment: Payment,
    status: str,
    reference: Optional[str] = None,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Payment:
    now = now or utcnow()

    if status not in PAYMENT_TRANSITIONS.get(payment.status, set()):
        raise PaymentTransitionError(f"Cannot move payment from '{payment.status}' to '{status}'")

    payment.status = status
    if reference:
        payment.provider_reference = reference

    appt = session.get(Appointment, payment.appointment_id)

    if status == "approved":
        payment.paid_at = now
        if appt is not None:
            if appt.status == "pending":
                appt.status = "reserved"
            appt.payment_status = "paid"
            appt.expires_at = None
    elif status in ("rejected", "expired"):
        if appt is not None and appt.status == "pending":
            appt.status = "canceled"
            appt.payment_status = "none"
            appt.expires_at = None
    elif status == "refunded":
        payment.refund_reason = reason or "Canceled in advance"
        if appt is not None:
            appt.payment_status = "none"

    session.add(payment)
    if appt is not None:
        session.add(appt)

    logger.info("Payment %s -> %s (appointment %s)", payment.id, status, payment.appointment_id)
    return payment


def settle_on_cancel(
    session: Session,
    appt: Appointment,
    settings: BusinessSettings,
    now: Optional[datetime] = None,
) -> Optional[str]:
    """Refund or retain the deposit of an appointment being canceled."""
    if not appt.deposit_required:
        return None
    payment = payment_for(session, appt.id)
    if payment is None:
        return None

    now = now or shop_now()

    if payment.status == "pending":
        apply_payment_status(session, payment, "expired")
        return "expired"

    if payment.status == "approved":
        hours_ahead = (combine(appt.date, appt.time) - now).total_seconds() / 3600
        if settings.allow_deposit_refund and hours_ahead >= settings.cancellation_notice_hours:
            apply_payment_status(session, payment, "refunded", reason="Canceled in advance")
            return "refunded"
        appt.payment_status = "retained"
        session.add(appt)
        return "retained"

    return None


def settle_on_complete(appt: Appointment) -> None:
    if appt.payment_status == "paid":
        appt.payment_status = "applied"


def expire_pending_holds(session: Session, now: Optional[datetime] = None) -> int:
    """Cancel pending appointments whose deposit hold ran out. Caller commits."""
    now = now or utcnow()

    stale = session.exec(
        select(Appointment)
        .where(Appointment.status == "pending")
        .where(Appointment.expires_at != None)  # noqa: E711
        .where(Appointment.expires_at <= now)
    ).all()

    for appt in stale:
        payment = payment_for(session, appt.id)
        if payment is not None and payment.status == "pending":
            apply_payment_status(session, payment, "expired", now=now)
        else:
            appt.status = "canceled"
            appt.expires_at = None
            session.add(appt)

    if stale:
        logger.info("Released %d unpaid appointment holds", len(stale))
    return len(stale)
