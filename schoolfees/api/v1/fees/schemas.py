"""Fees schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from schoolfees.core.enums import Term


# --- Fee Structure ---
class FeeStructureCreate(BaseModel):
    grade_id: UUID
    academic_year: str = Field(..., min_length=1, max_length=20)
    term: Term
    amount: Decimal = Field(..., ge=0)
    description: Optional[str] = None


class FeeStructureResponse(BaseModel):
    id: UUID
    grade_id: UUID
    academic_year: str
    term: Term
    amount: Decimal
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# --- Payment ---
class FeePaymentCreate(BaseModel):
    learner_id: UUID
    fee_structure_id: UUID
    amount_paid: Decimal = Field(..., gt=0)
    payment_method: str = Field(..., description="CASH, MPESA, BANK, CHEQUE")
    receipt_number: Optional[str] = Field(None, max_length=50)
    payment_date: Optional[datetime] = None
    notes: Optional[str] = None


class FeePaymentResponse(BaseModel):
    id: UUID
    learner_id: UUID
    fee_structure_id: UUID
    amount_paid: Decimal
    payment_method: Optional[str] = None
    receipt_number: Optional[str] = None
    status: str
    payment_date: datetime
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class FeePaymentWithScope(FeePaymentResponse):
    academic_year: str
    term: Term
