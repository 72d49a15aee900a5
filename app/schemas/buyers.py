from __future__ import annotations

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional


class BuyerCreate(BaseModel):
    name: str = Field(min_length=2, max_length=140)
    phone: Optional[str] = Field(default=None, min_length=6, max_length=30)
    email: Optional[str] = Field(default=None, max_length=160)
    address: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = None


class BuyerUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=140)
    phone: Optional[str] = Field(default=None, min_length=6, max_length=30)
    email: Optional[str] = Field(default=None, max_length=160)
    address: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = None


class BuyerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    phone: Optional[str]
    email: Optional[str]
    address: Optional[str]
    notes: Optional[str]
