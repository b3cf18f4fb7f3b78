# barbershop/stats.py

from datetime import date
from typing import Optional

from sqlmodel import Session, select

from barbershop.models import Appointment, Barber

STATUSES = ("reserved", "completed", "canceled", "pending")


def summary(session: Session, date_from: Optional[date] = None, date_to: Optional[date] = None) -> dict:
    stmt = select(Appointment)
    if date_from is not None:
        stmt = stmt.where(Appointment.date >= date_from)
    if date_to is not None:
        stmt = stmt.where(Appointment.date <= date_to)
    appts = session.exec(stmt).all()

    by_status = {s: 0 for s in STATUSES}
    revenue = 0.0
    per_barber: dict[int, dict] = {}

    for a in appts:
        by_status[a.status] = by_status.get(a.status, 0) + 1
        if a.status != "completed":
            continue
        revenue += a.price
        if a.barber_id is not None:
            entry = per_barber.setdefault(a.barber_id, {"completed": 0, "revenue": 0.0})
            entry["completed"] += 1
            entry["revenue"] += a.price

    names = {
        b.id: b.full_name
        for b in session.exec(select(Barber).where(Barber.id.in_(list(per_barber)))).all()
    } if per_barber else {}

    total = len(appts)
    return {
        "date_from": date_from,
        "date_to": date_to,
        "total": total,
        "by_status": by_status,
        "completion_rate": round(by_status["completed"] / total, 4) if total else 0.0,
        "revenue": revenue,
        "barbers": [
            {
                "barber_id": barber_id,
                "name": names.get(barber_id, ""),
                "completed": entry["completed"],
                "revenue": entry["revenue"],
            }
            for barber_id, entry in sorted(per_barber.items(), key=lambda kv: -kv[1]["revenue"])
        ],
    }
