from __future__ import annotations

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from app.config import settings


def format_currency(value, *, label: Optional[str] = None) -> str:
    """850000 -> '850 000 F CFA' (pas de centimes, séparateur espace)."""
    label = label if label is not None else settings.CURRENCY_LABEL
    if value is None:
        value = Decimal("0")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    value = value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    s = f"{value:,.0f}".replace(",", " ")
    return f"{s} {label}".strip()


def format_date_fr(d: date, fmt: str = "%d/%m/%Y") -> str:
    return d.strftime(fmt)


_UNITS = [
    "zéro", "un", "deux", "trois", "quatre", "cinq", "six", "sept", "huit", "neuf",
    "dix", "onze", "douze", "treize", "quatorze", "quinze", "seize",
    "dix-sept", "dix-huit", "dix-neuf",
]
_TENS = ["", "dix", "vingt", "trente", "quarante", "cinquante", "soixante", "soixante", "quatre-vingt", "quatre-vingt"]


def _below_100(n: int) -> str:
    if n < 20:
        return _UNITS[n]
    t, u = divmod(n, 10)
    if t in (7, 9):
        # 70-79 et 90-99 se construisent sur dix-...
        rest = _UNITS[10 + u]
        sep = " et " if (t == 7 and u == 1) else "-"
        return _TENS[t] + sep + rest
    if u == 0:
        return _TENS[t] + ("s" if t == 8 else "")
    if u == 1 and t != 8:
        return _TENS[t] + " et un"
    return _TENS[t] + "-" + _UNITS[u]


def _below_1000(n: int) -> str:
    h, rest = divmod(n, 100)
    if h == 0:
        return _below_100(rest)
    prefix = "cent" if h == 1 else _UNITS[h] + " cent"
    if rest == 0:
        return prefix + ("s" if h > 1 else "")
    return prefix + " " + _below_100(rest)


def amount_in_words(value) -> str:
    """Montant entier en toutes lettres (français)."""
    n = int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if n == 0:
        return "zéro"
    if n < 0:
        return "moins " + amount_in_words(-n)

    parts = []
    for size, singular, plural in ((10 ** 9, "milliard", "milliards"), (10 ** 6, "million", "millions")):
        count, n = divmod(n, size)
        if count:
            parts.append(f"{_below_1000(count)} {singular if count == 1 else plural}")

    thousands, n = divmod(n, 1000)
    if thousands == 1:
        parts.append("mille")
    elif thousands:
        words = _below_1000(thousands)
        # cents et quatre-vingts perdent leur s devant mille
        if words.endswith(("cents", "vingts")):
            words = words[:-1]
        parts.append(words + " mille")

    if n:
        parts.append(_below_1000(n))
    return " ".join(parts)
