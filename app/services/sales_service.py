from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, date
from decimal import Decimal
from typing import Iterator, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from app.infra.models import (
    SaleORM,
    PropertyORM,
    BuyerORM,
    UserORM,
    InstallmentORM,
    PropertyStatus,
    SaleStatus,
    PaymentType,
    InstallmentStatus,
)
from app.services.activity_log import log_activity
from app.services.errors import (
    InstallmentAlreadyPaidError,
    InstallmentNotFoundError,
    PaymentInFlightError,
    PersistenceError,
    ValidationError,
)
from app.services.id_gen import generate_public_id, generate_receipt_number

logger = logging.getLogger(__name__)


# helpers
def _today() -> date:
    return datetime.now().date()


def _add_months(d: date, months: int) -> date:
    return d + relativedelta(months=months)


def _unique_public_id(db: Session, model, prefix: str) -> str:
    for _ in range(30):
        pid = generate_public_id(prefix)
        exists = db.scalar(select(model.id).where(model.public_id == pid))
        if not exists:
            return pid
    raise RuntimeError(f"Impossible de générer un public_id unique pour prefix={prefix}.")


def _quantize_money(v: Decimal) -> Decimal:
    return v.quantize(Decimal("0.01"))


ALLOWED_TRANSITIONS: dict[SaleStatus, set[SaleStatus]] = {
    SaleStatus.IN_PROGRESS: {SaleStatus.COMPLETE, SaleStatus.CANCELED},
    SaleStatus.COMPLETE: set(),
    SaleStatus.CANCELED: set(),
}


def update_sale_status(db: Session, *, sale_id: int, new_status: SaleStatus, user_id: Optional[int] = None) -> SaleORM:
    sale = db.get(SaleORM, sale_id)
    if not sale:
        raise ValueError("Vente introuvable.")

    current = sale.status
    if current == new_status:
        return sale

    allowed = ALLOWED_TRANSITIONS.get(current, set())
    if new_status not in allowed:
        raise ValueError(f"Transition invalide: {current.value} -> {new_status.value}")

    sale.status = new_status
    if new_status == SaleStatus.CANCELED:
        # le bien redevient disponible
        sale.property.status = PropertyStatus.AVAILABLE

    log_activity(
        db,
        user_id=user_id,
        action="update",
        entity_type="vente_immobiliere",
        entity_id=sale.id,
        description="Vente mise à jour",
        details={"status": new_status.value},
    )
    db.flush()
    return sale


def create_sale(
    db: Session,
    *,
    property_id: int,
    buyer_id: int,
    user_id: int,
    total_price: Decimal,
    payment_type: PaymentType,
    sale_date: Optional[date] = None,
    payment_method: Optional[str] = None,
    down_payment: Optional[Decimal] = None,
    monthly_payment: Optional[Decimal] = None,
    total_installments: Optional[int] = None,
    notes: Optional[str] = None,
) -> SaleORM:
    """
    Enregistre une vente. Au comptant elle est directement soldée; en
    paiement échelonné les échéances mensuelles sont générées, la première
    un mois après la date de vente.
    """
    if not db.get(BuyerORM, buyer_id):
        raise ValueError("buyer_id invalide.")
    if not db.get(UserORM, user_id):
        raise ValueError("user_id invalide.")

    prop = db.get(PropertyORM, property_id)
    if not prop:
        raise ValueError("property_id invalide.")
    if prop.status == PropertyStatus.SOLD:
        raise ValueError("Ce bien est déjà vendu.")

    total_price = _quantize_money(Decimal(total_price))
    if total_price <= 0:
        raise ValueError("total_price doit être supérieur à zéro.")

    if down_payment is not None:
        down_payment = _quantize_money(Decimal(down_payment))
        if down_payment < 0:
            raise ValueError("down_payment ne peut pas être négatif.")
        if down_payment > total_price:
            raise ValueError("L'apport dépasse le prix total.")

    if payment_type == PaymentType.INSTALLMENTS:
        if not total_installments or total_installments < 1:
            raise ValueError("Pour un paiement échelonné, indiquez total_installments (>= 1).")
        if monthly_payment is None:
            remaining = total_price - (down_payment or Decimal("0"))
            monthly_payment = remaining / Decimal(total_installments)
        monthly_payment = _quantize_money(Decimal(monthly_payment))
        if monthly_payment <= 0:
            raise ValueError("monthly_payment doit être supérieur à zéro.")

    sale_day = sale_date or _today()
    is_cash = payment_type == PaymentType.CASH

    sale = SaleORM(
        public_id=_unique_public_id(db, SaleORM, "VEN"),
        property_id=property_id,
        buyer_id=buyer_id,
        user_id=user_id,
        sale_date=sale_day,
        total_price=total_price,
        payment_type=payment_type,
        payment_method=payment_method,
        down_payment=down_payment,
        monthly_payment=monthly_payment if not is_cash else None,
        total_installments=total_installments if not is_cash else None,
        paid_installments=(total_installments or 0) if is_cash else 0,
        status=SaleStatus.COMPLETE if is_cash else SaleStatus.IN_PROGRESS,
        notes=notes,
    )
    db.add(sale)

    prop.status = PropertyStatus.SOLD

    if not is_cash:
        for n in range(1, total_installments + 1):
            sale.installments.append(
                InstallmentORM(
                    number=n,
                    due_date=_add_months(sale_day, n),
                    amount=monthly_payment,
                    status=InstallmentStatus.PENDING,
                )
            )

    db.flush()
    log_activity(
        db,
        user_id=user_id,
        action="create",
        entity_type="vente_immobiliere",
        entity_id=sale.id,
        description="Vente immobilière",
        details={"total_price": total_price, "payment_type": payment_type.value},
    )
    db.flush()
    return sale


def list_sales(
    db: Session,
    *,
    page: int = 1,
    page_size: int = 20,
    buyer_id: Optional[int] = None,
    property_id: Optional[int] = None,
    status: Optional[SaleStatus] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
):
    if page < 1:
        raise ValueError("page doit être >= 1")
    if page_size < 1 or page_size > 200:
        raise ValueError("page_size doit être compris entre 1 et 200")

    q = db.query(SaleORM)

    if buyer_id is not None:
        q = q.filter(SaleORM.buyer_id == buyer_id)
    if property_id is not None:
        q = q.filter(SaleORM.property_id == property_id)
    if status is not None:
        q = q.filter(SaleORM.status == status)
    if date_from is not None:
        q = q.filter(SaleORM.sale_date >= date_from)
    if date_to is not None:
        q = q.filter(SaleORM.sale_date <= date_to)

    total = q.with_entities(func.count(SaleORM.id)).scalar() or 0

    items = (
        q.order_by(SaleORM.sale_date.desc(), SaleORM.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )

    return items, total


def list_installments(db: Session, *, sale_id: Optional[int] = None) -> list[InstallmentORM]:
    stmt = (
        select(InstallmentORM)
        .options(
            selectinload(InstallmentORM.sale).selectinload(SaleORM.buyer),
            selectinload(InstallmentORM.sale).selectinload(SaleORM.property),
        )
        .order_by(InstallmentORM.due_date.asc(), InstallmentORM.id.asc())
    )
    if sale_id is not None:
        stmt = stmt.where(InstallmentORM.sale_id == sale_id)
    return list(db.execute(stmt).scalars().all())


# garde anti double-soumission: une seule écriture en cours par échéance
_in_flight: set[int] = set()
_in_flight_lock = threading.Lock()


@contextmanager
def payment_slot(inst_id: int) -> Iterator[None]:
    with _in_flight_lock:
        if inst_id in _in_flight:
            raise PaymentInFlightError("Un paiement est déjà en cours d'enregistrement pour cette échéance.")
        _in_flight.add(inst_id)
    try:
        yield
    finally:
        with _in_flight_lock:
            _in_flight.discard(inst_id)


def record_payment(
    db: Session,
    inst_id: int,
    *,
    paid_date: Optional[date] = None,
    paid_amount: Optional[Decimal] = None,
    payment_method: Optional[str] = None,
    receipt_number: Optional[str] = None,
    user_id: Optional[int] = None,
) -> InstallmentORM:
    """
    Passe une échéance de `pending` à `paid`.

    Le montant payé n'est pas contrôlé par rapport au montant attendu
    (paiement partiel ou supérieur accepté). Une échéance déjà payée n'est
    jamais réécrite. Le commit reste à la charge de l'appelant.
    """
    inst = db.get(InstallmentORM, inst_id)
    if not inst:
        raise InstallmentNotFoundError("Échéance introuvable.")

    if inst.status == InstallmentStatus.PAID:
        raise InstallmentAlreadyPaidError("Cette échéance est déjà payée.")

    sale = inst.sale
    if sale.status == SaleStatus.CANCELED:
        raise ValidationError("Vente annulée: impossible d'enregistrer un paiement.")

    amount_to_pay = Decimal(paid_amount) if paid_amount is not None else inst.amount
    amount_to_pay = _quantize_money(amount_to_pay)
    if amount_to_pay != inst.amount:
        logger.warning(
            "installment %s paid %s instead of expected %s", inst.id, amount_to_pay, inst.amount
        )

    inst.status = InstallmentStatus.PAID
    inst.paid_date = paid_date or _today()
    inst.paid_amount = amount_to_pay
    inst.payment_method = payment_method or None
    inst.receipt_number = receipt_number or generate_receipt_number()

    sale.paid_installments = (sale.paid_installments or 0) + 1
    # une vente soldée ne repasse jamais en cours
    if sale.paid_installments >= (sale.total_installments or 0):
        sale.status = SaleStatus.COMPLETE

    log_activity(
        db,
        user_id=user_id,
        action="update",
        entity_type="echeance_vente",
        entity_id=inst.id,
        description="Échéance payée",
        details={"amount": amount_to_pay, "method": payment_method},
    )

    try:
        db.flush()
    except StaleDataError as e:
        db.rollback()
        logger.warning("concurrent payment rejected for installment %s", inst_id)
        raise PersistenceError(
            "L'échéance a été modifiée entre-temps. Rechargez la liste.", conflict=True
        ) from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("payment flush failed for installment %s: %s", inst_id, e.__class__.__name__)
        raise PersistenceError("Erreur lors de l'enregistrement du paiement.") from e

    logger.info("installment %s marked as paid (%s)", inst.id, amount_to_pay)
    return inst
