from __future__ import annotations

import json
import re
from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from app.services.errors import ValidationError
from app.services.formatting import amount_in_words, format_currency

RECEIPT_SCHEMA_VERSION = 1

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


class ReceiptTemplateConfig(BaseModel):
    """
    Mise en forme d'un reçu de paiement d'échéance.

    Passée explicitement au rendu; `schema_version` permet de refuser un
    modèle enregistré par une version plus récente du service.
    """

    schema_version: int = RECEIPT_SCHEMA_VERSION
    title: str = "REÇU DE PAIEMENT"
    declaration_text: str = (
        "Je soussigné(e), {bailleur}, déclare avoir reçu de {acquereur} la somme de {montant} "
        "au titre de l'échéance du {date} pour le bien {bien}, et lui en donne quittance."
    )
    footer_text: str = "Reçu n° {reference}"
    signature_text: str = "Le vendeur"
    currency_symbol: str = "F CFA"
    date_format: str = "%d/%m/%Y"
    show_amount_in_words: bool = True
    watermark_enabled: bool = False
    watermark_text: Optional[str] = Field(default=None, max_length=60)


class RenderedReceipt(BaseModel):
    title: str
    reference: str
    declaration: str
    amount: str
    amount_in_words: Optional[str] = None
    footer: str
    signature: str
    watermark: Optional[str] = None


def load_template_config(raw_json: str) -> ReceiptTemplateConfig:
    data = json.loads(raw_json)
    version = int(data.get("schema_version", 1))
    if version > RECEIPT_SCHEMA_VERSION:
        raise ValidationError(
            f"Modèle de reçu en version {version}, version supportée: {RECEIPT_SCHEMA_VERSION}."
        )
    return ReceiptTemplateConfig.model_validate(data)


def substitute(text: str, variables: dict[str, str]) -> str:
    # les variables inconnues restent telles quelles
    return _PLACEHOLDER.sub(lambda m: variables.get(m.group(1), m.group(0)), text)


def render_receipt(
    config: ReceiptTemplateConfig,
    *,
    issuer_name: str,
    buyer_name: str,
    property_title: str,
    amount: Decimal,
    due_date: date,
    reference: str,
) -> RenderedReceipt:
    formatted_amount = format_currency(amount, label=config.currency_symbol)
    variables = {
        "bailleur": issuer_name,
        "acquereur": buyer_name,
        "montant": formatted_amount,
        "bien": property_title,
        "date": due_date.strftime(config.date_format),
        "reference": reference,
    }

    words = None
    if config.show_amount_in_words:
        words = f"Soit : {amount_in_words(amount)} francs CFA"

    watermark = None
    if config.watermark_enabled:
        watermark = config.watermark_text or "PAYÉ"

    return RenderedReceipt(
        title=substitute(config.title, variables),
        reference=reference,
        declaration=substitute(config.declaration_text, variables),
        amount=formatted_amount,
        amount_in_words=words,
        footer=substitute(config.footer_text, variables),
        signature=substitute(config.signature_text, variables),
        watermark=watermark,
    )
