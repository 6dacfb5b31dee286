"""Invoice and fee transaction schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from schoolfees.core.enums import InvoiceStatus, Term


class InvoiceGenerateRequest(BaseModel):
    grade_id: UUID
    stream_id: Optional[UUID] = None
    academic_year: str = Field(..., min_length=1, max_length=20)
    term: Term
    due_date: Optional[date] = None


class InvoiceResponse(BaseModel):
    id: UUID
    invoice_number: str
    learner_id: UUID
    grade_id: UUID
    stream_id: Optional[UUID] = None
    fee_structure_id: UUID
    academic_year: str
    term: Term
    total_amount: Decimal
    discount_amount: Decimal = Decimal("0")
    discount_reason: Optional[str] = None
    amount_paid: Decimal
    balance_due: Decimal
    status: InvoiceStatus
    issue_date: date
    due_date: date
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class InvoiceGenerateResponse(BaseModel):
    created: List[InvoiceResponse]
    skipped_learner_ids: List[UUID] = Field(
        default_factory=list, description="Learners that already hold an open invoice for this term"
    )


class InvoiceCancelRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


# --- Transaction ---
class FeeTransactionCreate(BaseModel):
    amount_paid: Decimal = Field(..., gt=0)
    payment_method: str = Field(..., description="CASH, MPESA, BANK, CHEQUE")
    reference_number: Optional[str] = Field(None, max_length=100)
    receipt_number: Optional[str] = Field(None, max_length=50)
    payment_date: Optional[datetime] = None
    notes: Optional[str] = None


class FeeTransactionResponse(BaseModel):
    id: UUID
    transaction_number: str
    invoice_id: UUID
    learner_id: UUID
    amount_paid: Decimal
    payment_method: str
    reference_number: Optional[str] = None
    receipt_number: Optional[str] = None
    payment_date: datetime
    recorded_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
