from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.deps import DBSession
from app.api.auth_deps import get_current_user
from app.infra.models import PaymentType, SaleORM, SaleStatus
from app.schemas.installments import InstallmentOut
from app.schemas.sales import SaleCreate, SaleOut, SaleStatusUpdate
from app.services.sales_service import create_sale, list_sales, update_sale_status

router = APIRouter(dependencies=[Depends(get_current_user)])


@router.patch("/{sale_id}/status", response_model=SaleOut)
def update_sale_status_endpoint(
    sale_id: int,
    payload: SaleStatusUpdate,
    db: Session = DBSession,
    current_user=Depends(get_current_user),
):
    try:
        sale = update_sale_status(db, sale_id=sale_id, new_status=payload.status, user_id=int(current_user.id))
        return SaleOut.model_validate(sale)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("", response_model=dict, status_code=201)
def create_sale_endpoint(
    payload: SaleCreate,
    db: Session = DBSession,
    current_user=Depends(get_current_user),
):
    """
    user_id vient de la session (current_user), pas du front.
    """
    try:
        sale = create_sale(
            db,
            property_id=payload.property_id,
            buyer_id=payload.buyer_id,
            user_id=int(current_user.id),
            total_price=payload.total_price,
            payment_type=PaymentType(payload.payment_type),
            sale_date=payload.sale_date,
            payment_method=payload.payment_method,
            down_payment=payload.down_payment,
            monthly_payment=payload.monthly_payment,
            total_installments=payload.total_installments,
            notes=payload.notes,
        )
        db.commit()
        db.refresh(sale)

    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "sale": SaleOut.model_validate(sale),
        "installments": [InstallmentOut.model_validate(i) for i in sale.installments],
    }


@router.get("", response_model=dict)
def list_sales_endpoint(
    db: Session = DBSession,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200),
    buyer_id: Optional[int] = Query(None),
    property_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None, description="en_cours|complete|annule"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
):
    try:
        st = SaleStatus(status) if status is not None else None

        items, total = list_sales(
            db,
            page=page,
            page_size=page_size,
            buyer_id=buyer_id,
            property_id=property_id,
            status=st,
            date_from=date_from,
            date_to=date_to,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "items": [SaleOut.model_validate(s) for s in items],
        "total": total,
        "page": page,
        "page_size": page_size,
    }


@router.get("/{sale_id}", response_model=SaleOut)
def get_sale(sale_id: int, db: Session = DBSession):
    sale = db.get(SaleORM, sale_id)
    if not sale:
        raise HTTPException(status_code=404, detail="Vente introuvable.")
    return sale
