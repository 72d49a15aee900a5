from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.services.receipts import ReceiptTemplateConfig


class ReceiptTemplateCreate(BaseModel):
    name: str = Field(min_length=2, max_length=120)
    is_default: bool = False
    config: ReceiptTemplateConfig = Field(default_factory=ReceiptTemplateConfig)


class ReceiptTemplateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    is_default: bool
    schema_version: int
    config: ReceiptTemplateConfig
    created_at: datetime
