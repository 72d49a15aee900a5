from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, ConfigDict


class PropertyCreate(BaseModel):
    title: str = Field(min_length=2, max_length=160)
    address: str = Field(min_length=2, max_length=255)
    property_type: str = Field(default="maison", max_length=40)
    price: Decimal = Field(default=Decimal("0.00"), ge=0)


class PropertyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    address: str
    property_type: str
    price: Decimal
    status: str
    created_at: datetime
