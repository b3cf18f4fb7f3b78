# barbershop/routers/stats_routes.py

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from barbershop.db import get_session
from barbershop.auth import get_current_user
from barbershop.deps import require_role
from barbershop import stats

router = APIRouter(
    prefix="/stats",
    tags=["stats"],
)


@router.get("/summary")
def stats_summary(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    if date_from is not None and date_to is not None and date_from > date_to:
        raise HTTPException(status_code=422, detail="date_from must not be after date_to")
    return stats.summary(session, date_from, date_to)
