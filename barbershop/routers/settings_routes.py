# barbershop/routers/settings_routes.py

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from barbershop.db import get_session
from barbershop.models import Service
from barbershop.schemas import SettingsPublic, SettingsUpdate
from barbershop.auth import get_current_user
from barbershop.deps import require_role
from barbershop.availability import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/settings",
    tags=["settings"],
)


@router.get("", response_model=SettingsPublic)
def read_settings(session: Session = Depends(get_session)):
    return get_settings(session)


@router.put("", response_model=SettingsPublic)
def update_settings(
    changes: SettingsUpdate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    settings = get_settings(session)

    data = {k: v for k, v in changes.model_dump(exclude_unset=True).items() if v is not None}

    open_time = data.get("open_time", settings.open_time)
    close_time = data.get("close_time", settings.close_time)
    if open_time >= close_time:
        raise HTTPException(status_code=422, detail="open_time must be before close_time")

    if "premium_service_ids" in data:
        ids = sorted(set(data["premium_service_ids"]))
        known = set(session.exec(select(Service.id).where(Service.id.in_(ids))).all()) if ids else set()
        missing = [i for i in ids if i not in known]
        if missing:
            raise HTTPException(status_code=422, detail=f"Unknown service ids: {missing}")
        data["premium_service_ids"] = ids

    if "deposit_policy" in data:
        data["deposit_policy"] = data["deposit_policy"].value

    for field, value in data.items():
        setattr(settings, field, value)

    session.add(settings)
    session.commit()
    session.refresh(settings)
    logger.info("Settings updated by %s: %s", current_user["email"], sorted(data))
    return settings
