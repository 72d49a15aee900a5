from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional
from urllib.parse import quote

from app.config import settings
from app.services.formatting import format_currency, format_date_fr


@dataclass(frozen=True)
class Reminder:
    is_late: bool
    subject: str
    message: str
    whatsapp_url: Optional[str]
    mailto_url: Optional[str]


def format_phone_for_whatsapp(phone: str, *, country_code: Optional[str] = None) -> str:
    """
    "77 123 45 67" -> "771234567"; "0771234567" -> "221771234567"; "+33 6..." -> "336...".
    """
    country_code = country_code if country_code is not None else settings.WHATSAPP_DEFAULT_COUNTRY_CODE
    cleaned = re.sub(r"[^\d+]", "", phone or "")

    # numéro local: on préfixe l'indicatif pays
    if cleaned.startswith("0"):
        cleaned = country_code + cleaned[1:]

    if cleaned.startswith("+"):
        cleaned = cleaned[1:]

    return cleaned


def whatsapp_url(phone: str, message: str) -> str:
    return f"https://wa.me/{format_phone_for_whatsapp(phone)}?text={quote(message, safe='')}"


def mailto_url(email: str, subject: str, body: str) -> str:
    return f"mailto:{email}?subject={quote(subject, safe='')}&body={quote(body, safe='')}"


def build_reminder_message(
    *,
    buyer_name: str,
    property_title: str,
    amount: Decimal,
    due_date: date,
    is_late: bool,
) -> str:
    formatted_date = format_date_fr(due_date)
    formatted_amount = format_currency(amount)

    if is_late:
        return (
            f"Bonjour {buyer_name},\n\n"
            f"Nous vous informons que l'échéance de paiement pour le bien \"{property_title}\" "
            f"du {formatted_date} d'un montant de {formatted_amount} est en retard.\n\n"
            "Nous vous prions de bien vouloir régulariser cette situation dans les plus brefs délais.\n\n"
            "Merci de votre compréhension.\n"
            "Cordialement"
        )

    return (
        f"Bonjour {buyer_name},\n\n"
        f"Nous vous rappelons que vous avez une échéance de paiement à venir pour le bien \"{property_title}\".\n\n"
        f"📅 Date d'échéance : {formatted_date}\n"
        f"💰 Montant : {formatted_amount}\n\n"
        "Merci de préparer le règlement pour cette date.\n"
        "Cordialement"
    )


def build_reminder(
    *,
    buyer_name: str,
    buyer_phone: Optional[str],
    buyer_email: Optional[str],
    property_title: str,
    amount: Decimal,
    due_date: date,
    is_late: bool,
) -> Reminder:
    subject = (
        f"Rappel urgent : Échéance en retard - {property_title}"
        if is_late
        else f"Rappel : Échéance de paiement à venir - {property_title}"
    )
    message = build_reminder_message(
        buyer_name=buyer_name,
        property_title=property_title,
        amount=amount,
        due_date=due_date,
        is_late=is_late,
    )
    return Reminder(
        is_late=is_late,
        subject=subject,
        message=message,
        whatsapp_url=whatsapp_url(buyer_phone, message) if buyer_phone else None,
        mailto_url=mailto_url(buyer_email, subject, message) if buyer_email else None,
    )
