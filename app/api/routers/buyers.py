from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Depends
from sqlalchemy.orm import Session
from sqlalchemy import select, or_
from typing import Optional

from app.api.deps import DBSession
from app.api.auth_deps import get_current_user
from app.infra.models import BuyerORM
from app.schemas.buyers import BuyerCreate, BuyerUpdate, BuyerOut

router = APIRouter(dependencies=[Depends(get_current_user)])


def _clean_phone(phone: Optional[str]) -> Optional[str]:
    if phone is None:
        return None
    cleaned = "".join(ch for ch in phone if ch.isdigit() or ch == "+")
    return cleaned or None


@router.post("", response_model=BuyerOut, status_code=201)
def create_buyer(payload: BuyerCreate, db: Session = DBSession):
    buyer = BuyerORM(
        name=payload.name.strip(),
        phone=_clean_phone(payload.phone),
        email=payload.email.strip().lower() if payload.email else None,
        address=payload.address,
        notes=payload.notes,
    )
    db.add(buyer)
    db.flush()
    return buyer


@router.get("", response_model=list[BuyerOut])
def list_buyers(
    db: Session = DBSession,
    q: Optional[str] = Query(default=None, description="Recherche par nom ou téléphone"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    stmt = select(BuyerORM).order_by(BuyerORM.name.asc(), BuyerORM.id.asc())

    if q:
        qn = q.strip()
        stmt = stmt.where(or_(BuyerORM.name.ilike(f"%{qn}%"), BuyerORM.phone.ilike(f"%{qn}%")))

    stmt = stmt.limit(limit).offset(offset)
    return db.execute(stmt).scalars().all()


@router.get("/{buyer_id}", response_model=BuyerOut)
def get_buyer(buyer_id: int, db: Session = DBSession):
    buyer = db.get(BuyerORM, buyer_id)
    if not buyer:
        raise HTTPException(status_code=404, detail="Acquéreur introuvable.")
    return buyer


@router.put("/{buyer_id}", response_model=BuyerOut)
def update_buyer(buyer_id: int, payload: BuyerUpdate, db: Session = DBSession):
    buyer = db.get(BuyerORM, buyer_id)
    if not buyer:
        raise HTTPException(status_code=404, detail="Acquéreur introuvable.")

    if payload.name is not None:
        buyer.name = payload.name.strip()
    if payload.phone is not None:
        buyer.phone = _clean_phone(payload.phone)
    if payload.email is not None:
        buyer.email = payload.email.strip().lower() or None
    if payload.address is not None:
        buyer.address = payload.address
    if payload.notes is not None:
        buyer.notes = payload.notes

    db.flush()
    return buyer
