from __future__ import annotations
from dataclasses import asdict
from fastapi import APIRouter, HTTPException, Query, Depends
from sqlalchemy.orm import Session
from sqlalchemy import select
from typing import Optional

from app.api.deps import DBSession
from app.api.auth_deps import get_current_user
from app.config import settings
from app.infra.db import commit_or_raise
from app.infra.models import InstallmentORM, InstallmentStatus, ReceiptTemplateORM, SaleStatus
from app.schemas.installments import (
    InstallmentOut,
    InstallmentPay,
    InstallmentRowOut,
    LateOut,
    LateStatsOut,
    ReminderOut,
    UpcomingOut,
    UpcomingStatsOut,
)
from app.services.errors import (
    InstallmentAlreadyPaidError,
    InstallmentNotFoundError,
    PaymentInFlightError,
    PersistenceError,
    ValidationError,
)
from app.services.installment_status import DisplayState, classify_installment
from app.services.installment_views import (
    InstallmentRow,
    all_view,
    late_rows_stats,
    late_view,
    record_from_orm,
    upcoming_stats,
    upcoming_view,
)
from app.services.receipts import RenderedReceipt, ReceiptTemplateConfig, load_template_config, render_receipt
from app.services.reminders import build_reminder
from app.services.sales_service import list_installments, payment_slot, record_payment

router = APIRouter(dependencies=[Depends(get_current_user)])


def _row_out(row: InstallmentRow) -> InstallmentRowOut:
    rec = row.record
    c = row.classification
    return InstallmentRowOut(
        id=rec.id,
        sale_id=rec.sale_id,
        number=rec.number,
        due_date=str(rec.due_date),
        amount=rec.amount,
        status=rec.status,
        paid_date=rec.paid_date,
        paid_amount=rec.paid_amount,
        payment_method=rec.payment_method,
        receipt_number=rec.receipt_number,
        property_title=rec.property_title,
        buyer_name=rec.buyer_name,
        buyer_phone=rec.buyer_phone,
        display_state=c.state.value if c else None,
        days_late=c.days_late if c else None,
        days_until=c.days_until if c else None,
        urgency=c.urgency.value if c and c.urgency else None,
        label=row.label,
    )


def _records(db: Session, sale_id: Optional[int] = None):
    return [record_from_orm(i) for i in list_installments(db, sale_id=sale_id)]


def _get_installment(db: Session, inst_id: int) -> InstallmentORM:
    inst = db.get(InstallmentORM, inst_id)
    if not inst:
        raise HTTPException(status_code=404, detail="Échéance introuvable.")
    return inst


@router.get("", response_model=list[InstallmentRowOut])
def list_installments_endpoint(
    db: Session = DBSession,
    sale_id: Optional[int] = Query(default=None),
    q: Optional[str] = Query(default=None, description="Bien, acquéreur, téléphone ou montant"),
    month: Optional[str] = Query(default=None, description="AAAA-MM"),
):
    try:
        rows = all_view(_records(db, sale_id), query=q, month=month, soon_days=settings.DUE_SOON_DAYS)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return [_row_out(r) for r in rows]


@router.get("/upcoming", response_model=UpcomingOut)
def upcoming_installments(db: Session = DBSession):
    rows = upcoming_view(
        _records(db),
        window_days=settings.UPCOMING_WINDOW_DAYS,
        soon_days=settings.DUE_SOON_DAYS,
    )
    stats = upcoming_stats(rows, soon_days=settings.DUE_SOON_DAYS)
    return UpcomingOut(
        items=[_row_out(r) for r in rows],
        stats=UpcomingStatsOut(**asdict(stats)),
    )


@router.get("/late", response_model=LateOut)
def late_installments(
    db: Session = DBSession,
    q: Optional[str] = Query(default=None),
):
    rows = late_view(_records(db), query=q)
    stats = late_rows_stats(rows, critical_days=settings.CRITICAL_LATE_DAYS)
    return LateOut(
        items=[_row_out(r) for r in rows],
        stats=LateStatsOut(**asdict(stats)),
    )


@router.post("/{inst_id}/pay", response_model=InstallmentOut)
def pay(
    inst_id: int,
    payload: InstallmentPay,
    db: Session = DBSession,
    current_user=Depends(get_current_user),
):
    try:
        with payment_slot(inst_id):
            inst = record_payment(
                db,
                inst_id,
                paid_date=payload.paid_date,
                paid_amount=payload.paid_amount,
                payment_method=payload.payment_method,
                receipt_number=payload.receipt_number,
                user_id=int(current_user.id),
            )
            commit_or_raise(db)
    except InstallmentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (InstallmentAlreadyPaidError, PaymentInFlightError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=409 if e.conflict else 503, detail=str(e))

    db.refresh(inst)
    return inst


@router.get("/{inst_id}/reminder", response_model=ReminderOut)
def reminder(inst_id: int, db: Session = DBSession):
    inst = _get_installment(db, inst_id)
    if inst.status == InstallmentStatus.PAID:
        raise HTTPException(status_code=400, detail="Échéance déjà payée: pas de rappel.")
    if inst.sale.status == SaleStatus.CANCELED:
        raise HTTPException(status_code=400, detail="Vente annulée: pas de rappel.")

    c = classify_installment(inst.due_date, inst.status.value, soon_days=settings.DUE_SOON_DAYS)
    sale = inst.sale
    r = build_reminder(
        buyer_name=sale.buyer.name,
        buyer_phone=sale.buyer.phone,
        buyer_email=sale.buyer.email,
        property_title=sale.property.title,
        amount=inst.amount,
        due_date=inst.due_date,
        is_late=c.state == DisplayState.OVERDUE,
    )
    return ReminderOut(installment_id=inst.id, **asdict(r))


@router.get("/{inst_id}/receipt", response_model=RenderedReceipt)
def receipt(
    inst_id: int,
    db: Session = DBSession,
    template_id: Optional[int] = Query(default=None),
    current_user=Depends(get_current_user),
):
    inst = _get_installment(db, inst_id)
    if inst.status != InstallmentStatus.PAID:
        raise HTTPException(status_code=400, detail="Reçu disponible uniquement pour une échéance payée.")

    stmt = select(ReceiptTemplateORM).where(ReceiptTemplateORM.user_id == current_user.id)
    if template_id is not None:
        stmt = stmt.where(ReceiptTemplateORM.id == template_id)
    else:
        stmt = stmt.where(ReceiptTemplateORM.is_default.is_(True))
    tpl = db.execute(stmt).scalars().first()
    if template_id is not None and tpl is None:
        raise HTTPException(status_code=404, detail="Modèle de reçu introuvable.")

    try:
        config = load_template_config(tpl.config_json) if tpl else ReceiptTemplateConfig()
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    sale = inst.sale
    return render_receipt(
        config,
        issuer_name=current_user.name,
        buyer_name=sale.buyer.name,
        property_title=sale.property.title,
        amount=inst.paid_amount,
        due_date=inst.due_date,
        reference=inst.receipt_number,
    )
