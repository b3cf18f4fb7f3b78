# barbershop/routers/services_routes.py

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from barbershop.db import get_session
from barbershop.models import Service
from barbershop.schemas import ServiceCreate, ServicePublic, ServiceUpdate
from barbershop.auth import get_current_user
from barbershop.deps import require_role

router = APIRouter(
    prefix="/services",
    tags=["services"],
)


def _get_service(session: Session, service_id: int) -> Service:
    service = session.get(Service, service_id)
    if service is None:
        raise HTTPException(status_code=404, detail="Service not found")
    return service


def _ensure_unique_name(session: Session, name: str, exclude_id: int = None) -> None:
    stmt = select(Service).where(Service.name == name)
    if exclude_id is not None:
        stmt = stmt.where(Service.id != exclude_id)
    if session.exec(stmt).first() is not None:
        raise HTTPException(status_code=409, detail="A service with that name already exists")


@router.get("", response_model=List[ServicePublic])
def list_services(
    include_inactive: bool = False,
    session: Session = Depends(get_session),
):
    stmt = select(Service)
    if not include_inactive:
        stmt = stmt.where(Service.active == True)  # noqa: E712
    return session.exec(stmt.order_by(Service.name)).all()


@router.get("/{service_id}", response_model=ServicePublic)
def get_service(service_id: int, session: Session = Depends(get_session)):
    return _get_service(session, service_id)


@router.post("", response_model=ServicePublic, status_code=201)
def create_service(
    service: ServiceCreate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    _ensure_unique_name(session, service.name)

    db_service = Service(**service.model_dump())
    session.add(db_service)
    session.commit()
    session.refresh(db_service)
    return db_service


@router.put("/{service_id}", response_model=ServicePublic)
def update_service(
    service_id: int,
    changes: ServiceUpdate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    service = _get_service(session, service_id)

    data = {k: v for k, v in changes.model_dump(exclude_unset=True).items() if v is not None}
    if data.get("name"):
        _ensure_unique_name(session, data["name"], exclude_id=service_id)

    for field, value in data.items():
        setattr(service, field, value)

    session.add(service)
    session.commit()
    session.refresh(service)
    return service


@router.delete("/{service_id}", response_model=ServicePublic)
def deactivate_service(
    service_id: int,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    service = _get_service(session, service_id)

    service.active = False
    session.add(service)
    session.commit()
    session.refresh(service)
    return service
