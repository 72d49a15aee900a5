from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import DBSession
from app.api.auth_deps import get_current_user
from app.infra.models import PropertyORM, PropertyStatus
from app.schemas.properties import PropertyCreate, PropertyOut

router = APIRouter(dependencies=[Depends(get_current_user)])


@router.post("", response_model=PropertyOut, status_code=201)
def create_property(payload: PropertyCreate, db: Session = DBSession):
    prop = PropertyORM(
        title=payload.title.strip(),
        address=payload.address.strip(),
        property_type=payload.property_type,
        price=payload.price,
        status=PropertyStatus.AVAILABLE,
    )
    db.add(prop)
    db.flush()
    db.refresh(prop)
    return prop


@router.get("", response_model=list[PropertyOut])
def list_properties(
    db: Session = DBSession,
    status: Optional[str] = Query(default=None, description="disponible|reserve|vendu"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    stmt = select(PropertyORM).order_by(PropertyORM.id.desc())

    if status:
        try:
            st = PropertyStatus(status)
        except ValueError:
            raise HTTPException(status_code=400, detail="status invalide (disponible|reserve|vendu).")
        stmt = stmt.where(PropertyORM.status == st)

    stmt = stmt.limit(limit).offset(offset)
    return db.execute(stmt).scalars().all()


@router.get("/{property_id}", response_model=PropertyOut)
def get_property(property_id: int, db: Session = DBSession):
    prop = db.get(PropertyORM, property_id)
    if not prop:
        raise HTTPException(status_code=404, detail="Bien introuvable.")
    return prop
