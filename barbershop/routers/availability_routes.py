# barbershop/routers/availability_routes.py

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from barbershop.db import get_session
from barbershop.models import Barber, Block
from barbershop.schemas import AvailabilityResponse, BlockCreate, BlockPublic
from barbershop.auth import get_current_user
from barbershop.deps import require_role, barber_profile
from barbershop.availability import available_days, available_slots

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/availability",
    tags=["availability"],
)


@router.get("/slots", response_model=AvailabilityResponse)
def get_slots(
    on_date: date,
    barber_id: Optional[int] = None,
    session: Session = Depends(get_session),
):
    if barber_id is not None:
        barber = session.get(Barber, barber_id)
        if barber is None or not barber.active:
            raise HTTPException(status_code=404, detail="Barber not found")

    return {
        "date": on_date,
        "barber_id": barber_id,
        "available_starts": available_slots(session, on_date, barber_id=barber_id),
    }


@router.get("/days", response_model=List[date])
def get_days(session: Session = Depends(get_session)):
    return available_days(session)


@router.get("/blocks", response_model=List[BlockPublic])
def list_blocks(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    barber_id: Optional[int] = None,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin", "barber")

    stmt = select(Block).where(Block.active == True)  # noqa: E712
    if date_from is not None:
        stmt = stmt.where(Block.end_date >= date_from)
    if date_to is not None:
        stmt = stmt.where(Block.start_date <= date_to)
    if barber_id is not None:
        stmt = stmt.where(Block.barber_id == barber_id)

    return session.exec(stmt.order_by(Block.start_date)).all()


@router.post("/blocks", response_model=BlockPublic, status_code=201)
def create_block(
    block: BlockCreate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin", "barber")

    barber_id = block.barber_id
    if current_user["role"] == "barber":
        # barbers may only block their own agenda
        profile = barber_profile(session, current_user)
        if profile is None:
            raise HTTPException(status_code=403, detail="Forbidden")
        if barber_id is not None and barber_id != profile.id:
            raise HTTPException(status_code=403, detail="Forbidden")
        barber_id = profile.id
    elif barber_id is not None and session.get(Barber, barber_id) is None:
        raise HTTPException(status_code=404, detail="Barber not found")

    db_block = Block(
        barber_id=barber_id,
        start_date=block.start_date,
        end_date=block.end_date,
        start_time=block.start_time,
        end_time=block.end_time,
        kind=block.kind.value,
        reason=block.reason,
    )
    session.add(db_block)
    session.commit()
    session.refresh(db_block)

    logger.info(
        "Block %s created: %s %s..%s (barber=%s)",
        db_block.id, db_block.kind, db_block.start_date, db_block.end_date, db_block.barber_id,
    )
    return db_block


@router.delete("/blocks/{block_id}", status_code=204)
def delete_block(
    block_id: int,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin", "barber")

    block = session.get(Block, block_id)
    if block is None or not block.active:
        raise HTTPException(status_code=404, detail="Block not found")

    if current_user["role"] == "barber":
        profile = barber_profile(session, current_user)
        if profile is None or block.barber_id != profile.id:
            raise HTTPException(status_code=403, detail="Forbidden")

    block.active = False
    session.add(block)
    session.commit()
    return None
