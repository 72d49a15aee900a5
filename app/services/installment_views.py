from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Tuple, Union

from app.services.installment_status import (
    Classification,
    DateLike,
    DisplayState,
    DUE_SOON_DAYS,
    FALLBACK_LABEL,
    classify_installment,
    safe_classify,
    to_calendar_date,
)
from app.services.errors import InvalidDateError, ValidationError

logger = logging.getLogger(__name__)

UPCOMING_WINDOW_DAYS = 30
CRITICAL_LATE_DAYS = 30


@dataclass(frozen=True)
class InstallmentRecord:
    id: int
    sale_id: Optional[int]
    due_date: DateLike
    amount: Decimal
    status: str
    number: Optional[int] = None
    paid_date: Optional[date] = None
    paid_amount: Optional[Decimal] = None
    payment_method: Optional[str] = None
    receipt_number: Optional[str] = None
    property_title: Optional[str] = None
    buyer_name: Optional[str] = None
    buyer_phone: Optional[str] = None
    buyer_email: Optional[str] = None
    sale_status: Optional[str] = None


@dataclass(frozen=True)
class InstallmentRow:
    record: InstallmentRecord
    classification: Optional[Classification]
    # vue "à venir": compte à rebours au lieu de "En attente"
    countdown: bool = False

    @property
    def label(self) -> str:
        c = self.classification
        if c is None:
            return FALLBACK_LABEL
        if self.countdown and c.state == DisplayState.PENDING:
            return f"Dans {c.days_until}j"
        return c.badge


@dataclass(frozen=True)
class UpcomingStats:
    total: int
    today_count: int
    due_soon_count: int
    total_amount: Decimal


@dataclass(frozen=True)
class LateStats:
    total: int
    total_amount: Decimal
    avg_days_late: int
    critical_count: int


def record_from_orm(inst) -> InstallmentRecord:
    sale = inst.sale
    buyer = sale.buyer if sale is not None else None
    prop = sale.property if sale is not None else None
    return InstallmentRecord(
        id=inst.id,
        sale_id=inst.sale_id,
        number=inst.number,
        due_date=inst.due_date,
        amount=inst.amount,
        status=getattr(inst.status, "value", inst.status),
        paid_date=inst.paid_date,
        paid_amount=inst.paid_amount,
        payment_method=inst.payment_method,
        receipt_number=inst.receipt_number,
        property_title=prop.title if prop else None,
        buyer_name=buyer.name if buyer else None,
        buyer_phone=buyer.phone if buyer else None,
        buyer_email=buyer.email if buyer else None,
        sale_status=getattr(sale.status, "value", sale.status) if sale is not None else None,
    )


def amount_text(amount: Decimal) -> str:
    """Montant tel qu'affiché brut: 850000 plutôt que 850000.00."""
    value = Decimal(amount)
    if value == value.to_integral_value():
        return str(int(value))
    return format(value.normalize(), "f")


def matches_query(record: InstallmentRecord, query: Optional[str]) -> bool:
    q = (query or "").strip().lower()
    if not q:
        return True
    haystack = (
        (record.property_title or "").lower(),
        (record.buyer_name or "").lower(),
        (record.buyer_phone or "").lower(),
        amount_text(record.amount),
    )
    return any(q in field for field in haystack)


def parse_month(month: Optional[str]) -> Optional[tuple[int, int]]:
    if not month:
        return None
    try:
        year_s, month_s = month.strip().split("-", 1)
        year, mon = int(year_s), int(month_s)
    except ValueError as e:
        raise ValidationError(f"Mois invalide (attendu AAAA-MM): {month!r}") from e
    if not 1 <= mon <= 12:
        raise ValidationError(f"Mois invalide (attendu AAAA-MM): {month!r}")
    return year, mon


def _due(record: InstallmentRecord) -> Optional[date]:
    try:
        return to_calendar_date(record.due_date)
    except InvalidDateError:
        logger.warning("installment %s has an invalid due date: %r", record.id, record.due_date)
        return None


def _sorted_with_due(records: Iterable[InstallmentRecord]) -> List[Tuple[InstallmentRecord, Optional[date]]]:
    # date calculée une seule fois par ligne; dates illisibles en fin de liste
    keyed = [(rec, _due(rec)) for rec in records]
    keyed.sort(key=lambda pair: (pair[1] is None, pair[1] or date.max, pair[0].id))
    return keyed


def _is_open(record: InstallmentRecord) -> bool:
    """Échéance encore exigible: en attente et vente non annulée."""
    return record.status == "pending" and record.sale_status != "annule"


def _today(now: Optional[Union[date, datetime]]) -> date:
    return to_calendar_date(now) if now is not None else datetime.now().date()


def all_view(
    records: Iterable[InstallmentRecord],
    *,
    now: Optional[Union[date, datetime]] = None,
    query: Optional[str] = None,
    month: Optional[str] = None,
    soon_days: int = DUE_SOON_DAYS,
) -> List[InstallmentRow]:
    today = _today(now)
    wanted_month = parse_month(month)

    rows: List[InstallmentRow] = []
    for rec, due in _sorted_with_due(records):
        if not matches_query(rec, query):
            continue
        if wanted_month is not None:
            if due is None or (due.year, due.month) != wanted_month:
                continue
        classification = safe_classify(due or rec.due_date, rec.status, now=today, soon_days=soon_days)
        rows.append(InstallmentRow(rec, classification))
    return rows


def upcoming_view(
    records: Iterable[InstallmentRecord],
    *,
    now: Optional[Union[date, datetime]] = None,
    window_days: int = UPCOMING_WINDOW_DAYS,
    soon_days: int = DUE_SOON_DAYS,
) -> List[InstallmentRow]:
    """Échéances en attente dues dans [aujourd'hui, aujourd'hui + window_days)."""
    today = _today(now)
    end = today + timedelta(days=window_days)

    rows: List[InstallmentRow] = []
    for rec, due in _sorted_with_due(records):
        if not _is_open(rec):
            continue
        if due is None or not (today <= due < end):
            continue
        classification = classify_installment(due, rec.status, now=today, soon_days=soon_days)
        rows.append(InstallmentRow(rec, classification, countdown=True))
    return rows


def late_view(
    records: Iterable[InstallmentRecord],
    *,
    now: Optional[Union[date, datetime]] = None,
    query: Optional[str] = None,
) -> List[InstallmentRow]:
    """Échéances en attente dont la date est strictement passée, les plus anciennes d'abord."""
    today = _today(now)

    rows: List[InstallmentRow] = []
    for rec, due in _sorted_with_due(records):
        if not _is_open(rec):
            continue
        if due is None or due >= today:
            continue
        if not matches_query(rec, query):
            continue
        rows.append(InstallmentRow(rec, classify_installment(due, rec.status, now=today)))
    return rows


def upcoming_stats(rows: List[InstallmentRow], *, soon_days: int = DUE_SOON_DAYS) -> UpcomingStats:
    today_count = sum(
        1 for r in rows if r.classification and r.classification.state == DisplayState.DUE_TODAY
    )
    due_soon = sum(
        1 for r in rows
        if r.classification and r.classification.days_until is not None and 0 <= r.classification.days_until <= soon_days
    )
    return UpcomingStats(
        total=len(rows),
        today_count=today_count,
        due_soon_count=due_soon,
        total_amount=sum((Decimal(r.record.amount) for r in rows), Decimal("0")),
    )


def late_stats(days_late: List[int], amounts: List[Decimal], *, critical_days: int = CRITICAL_LATE_DAYS) -> LateStats:
    total = len(days_late)
    if total:
        avg = (Decimal(sum(days_late)) / Decimal(total)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    else:
        avg = Decimal("0")
    return LateStats(
        total=total,
        total_amount=sum((Decimal(a) for a in amounts), Decimal("0")),
        avg_days_late=int(avg),
        critical_count=sum(1 for d in days_late if d > critical_days),
    )


def late_rows_stats(rows: List[InstallmentRow], *, critical_days: int = CRITICAL_LATE_DAYS) -> LateStats:
    return late_stats(
        [r.classification.days_late for r in rows if r.classification],
        [r.record.amount for r in rows if r.classification],
        critical_days=critical_days,
    )
