from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.infra.models import SaleStatus


class SaleCreate(BaseModel):
    property_id: int
    buyer_id: int

    total_price: Decimal = Field(gt=0)
    sale_date: Optional[date] = None

    payment_type: str = "comptant"  # comptant | echelonne
    payment_method: Optional[str] = Field(default=None, max_length=40)

    down_payment: Optional[Decimal] = Field(default=None, ge=0)
    monthly_payment: Optional[Decimal] = Field(default=None, gt=0)
    total_installments: Optional[int] = Field(default=None, ge=1, le=360)

    notes: Optional[str] = None


class SaleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    public_id: str
    status: str
    payment_type: str
    payment_method: Optional[str] = None

    property_id: int
    buyer_id: int
    user_id: int

    sale_date: date
    total_price: Decimal
    down_payment: Optional[Decimal] = None
    monthly_payment: Optional[Decimal] = None
    total_installments: Optional[int] = None
    paid_installments: int

    notes: Optional[str] = None
    created_at: datetime


class SaleStatusUpdate(BaseModel):
    status: SaleStatus
