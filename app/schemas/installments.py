from __future__ import annotations
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from decimal import Decimal
from datetime import date

class InstallmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    sale_id: int
    number: int
    due_date: date
    amount: Decimal
    status: str
    paid_date: Optional[date]
    paid_amount: Optional[Decimal]
    payment_method: Optional[str]
    receipt_number: Optional[str]

class InstallmentPay(BaseModel):
    # montant libre: paiement partiel ou supérieur accepté
    paid_amount: Optional[Decimal] = None
    paid_date: Optional[date] = None  # si None, aujourd'hui
    payment_method: Optional[str] = Field(default=None, max_length=40)  # especes, virement, cheque, mobile_money
    receipt_number: Optional[str] = Field(default=None, max_length=40)

class InstallmentRowOut(BaseModel):
    id: int
    sale_id: Optional[int]
    number: Optional[int]
    due_date: str
    amount: Decimal
    status: str
    paid_date: Optional[date] = None
    paid_amount: Optional[Decimal] = None
    payment_method: Optional[str] = None
    receipt_number: Optional[str] = None

    property_title: Optional[str] = None
    buyer_name: Optional[str] = None
    buyer_phone: Optional[str] = None

    # classement d'affichage; None quand la date est illisible
    display_state: Optional[str] = None
    days_late: Optional[int] = None
    days_until: Optional[int] = None
    urgency: Optional[str] = None
    label: str

class UpcomingStatsOut(BaseModel):
    total: int
    today_count: int
    due_soon_count: int
    total_amount: Decimal

class LateStatsOut(BaseModel):
    total: int
    total_amount: Decimal
    avg_days_late: int
    critical_count: int

class UpcomingOut(BaseModel):
    items: list[InstallmentRowOut]
    stats: UpcomingStatsOut

class LateOut(BaseModel):
    items: list[InstallmentRowOut]
    stats: LateStatsOut

class ReminderOut(BaseModel):
    installment_id: int
    is_late: bool
    subject: str
    message: str
    whatsapp_url: Optional[str]
    mailto_url: Optional[str]
