from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Union

from dateutil.parser import isoparse

from app.services.errors import InvalidDateError

DateLike = Union[date, datetime, str]

DUE_SOON_DAYS = 7
URGENT_DAYS = 3
FALLBACK_LABEL = "—"


class DisplayState(str, enum.Enum):
    PAID = "paid"
    OVERDUE = "overdue"
    DUE_TODAY = "due_today"
    DUE_SOON = "due_soon"
    PENDING = "pending"


class Urgency(str, enum.Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    NORMAL = "normal"


@dataclass(frozen=True)
class Classification:
    state: DisplayState
    days_late: Optional[int] = None
    days_until: Optional[int] = None
    soon_days: int = DUE_SOON_DAYS

    @property
    def badge(self) -> str:
        if self.state == DisplayState.PAID:
            return "Payé"
        if self.state == DisplayState.OVERDUE:
            return f"En retard ({self.days_late}j)"
        if self.state == DisplayState.DUE_TODAY:
            return "Aujourd'hui"
        if self.state == DisplayState.DUE_SOON:
            return f"Dans {self.days_until}j"
        return "En attente"

    @property
    def urgency(self) -> Optional[Urgency]:
        """Palier d'urgence des échéances à venir (None si payée ou en retard)."""
        if self.days_until is None:
            return None
        if self.days_until <= URGENT_DAYS:
            return Urgency.CRITICAL
        if self.days_until <= self.soon_days:
            return Urgency.WARNING
        return Urgency.NORMAL


def to_calendar_date(value: DateLike) -> date:
    """
    Ramène une date d'échéance à un jour calendaire.
    Accepte date, datetime ou chaîne ISO-8601 ("2024-01-15", "2024-01-15T10:00:00Z").
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return isoparse(value.strip()).date()
        except (ValueError, OverflowError) as e:
            raise InvalidDateError(value) from e
    raise InvalidDateError(value)


def _today(now: Optional[Union[date, datetime]]) -> date:
    if now is None:
        return datetime.now().date()
    return to_calendar_date(now)


def classify_installment(
    due_date: DateLike,
    status: str,
    *,
    now: Optional[Union[date, datetime]] = None,
    soon_days: int = DUE_SOON_DAYS,
) -> Classification:
    """
    Classe une échéance pour l'affichage.

    Les comparaisons se font sur des jours calendaires: une échéance datée
    d'aujourd'hui est toujours `due_today`, quelle que soit l'heure de `now`.
    Une échéance payée n'est jamais comparée à la date du jour.

    Lève InvalidDateError si la date d'échéance est illisible.
    """
    if str(getattr(status, "value", status)) == "paid":
        return Classification(DisplayState.PAID)

    due = to_calendar_date(due_date)
    today = _today(now)

    delta = (due - today).days
    if delta < 0:
        return Classification(DisplayState.OVERDUE, days_late=-delta)
    if delta == 0:
        return Classification(DisplayState.DUE_TODAY, days_until=0, soon_days=soon_days)
    if delta <= soon_days:
        return Classification(DisplayState.DUE_SOON, days_until=delta, soon_days=soon_days)
    return Classification(DisplayState.PENDING, days_until=delta, soon_days=soon_days)


def safe_classify(
    due_date: DateLike,
    status: str,
    *,
    now: Optional[Union[date, datetime]] = None,
    soon_days: int = DUE_SOON_DAYS,
) -> Optional[Classification]:
    # une ligne illisible ne doit pas casser toute la liste
    try:
        return classify_installment(due_date, status, now=now, soon_days=soon_days)
    except InvalidDateError:
        return None
