"""Fee balance schemas."""

from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from schoolfees.core.enums import FeeStatus, Term


class FeeScope(BaseModel):
    """Academic period a balance is computed for. The grade comes from the learner."""

    academic_year: str = Field(..., min_length=1, max_length=20)
    term: Term

    @field_validator("academic_year")
    @classmethod
    def strip_academic_year(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("academic_year must not be blank")
        return value


class FeeBalance(BaseModel):
    total_fees: Decimal
    amount_paid: Decimal
    amount_from_payments: Decimal
    amount_from_transactions: Decimal
    balance: Decimal
    status: FeeStatus
    # Receipt numbers seen in both payment channels; reported, never deducted.
    overlapping_receipts: List[str] = Field(default_factory=list)


class LearnerFeeBalance(FeeBalance):
    learner_id: UUID
    admission_number: str
    learner_name: str
    grade_id: Optional[UUID] = None
    grade_name: Optional[str] = None
    stream_id: Optional[UUID] = None
    stream_name: Optional[str] = None


class FeeBalanceError(BaseModel):
    """Learner whose balance could not be computed in a batch."""

    learner_id: UUID
    admission_number: str
    detail: str


class FeeBalanceSummary(BaseModel):
    learner_count: int
    total_expected: Decimal
    total_collected: Decimal
    total_outstanding: Decimal
    collection_rate: Decimal = Field(..., description="Collected as a percentage of expected")
    paid_count: int
    partial_count: int
    pending_count: int
    error_count: int


class FeeBalanceReport(BaseModel):
    academic_year: str
    term: Term
    grade_id: Optional[UUID] = None
    stream_id: Optional[UUID] = None
    items: List[LearnerFeeBalance]
    errors: List[FeeBalanceError] = Field(default_factory=list)
    summary: FeeBalanceSummary
