"""Discount policy schemas."""

from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from schoolfees.core.enums import DiscountType


class DiscountSettingItem(BaseModel):
    discount_type: DiscountType
    percentage: Decimal = Field(..., ge=0, le=100)
    is_enabled: bool = True


class DiscountSettingsUpdate(BaseModel):
    settings: List[DiscountSettingItem]

    @field_validator("settings")
    @classmethod
    def one_row_per_type(cls, v: List[DiscountSettingItem]) -> List[DiscountSettingItem]:
        types = [s.discount_type for s in v]
        if len(types) != len(set(types)):
            raise ValueError("each discount type may appear only once")
        return v


class DiscountSettingResponse(BaseModel):
    id: UUID
    discount_type: DiscountType
    percentage: Decimal
    is_enabled: bool

    class Config:
        from_attributes = True


class InvoiceDiscountResult(BaseModel):
    invoice_id: UUID
    learner_name: str
    original_amount: Decimal
    discount_amount: Decimal
    discount_reason: Optional[str] = None
