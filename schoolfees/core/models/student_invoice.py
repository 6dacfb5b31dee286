"""Student invoice: bills one learner for one grade/year/term."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from schoolfees.core.enums import InvoiceStatus
from schoolfees.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StudentInvoice(Base):
    """
    Invoice for a learner's term fees. Its id scopes fee transactions to a
    (grade, academic_year, term); cancelled invoices keep that scope.
    """

    __tablename__ = "student_invoices"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending','partial','paid','cancelled')",
            name="chk_student_invoice_status",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    invoice_number = Column(String(50), nullable=False, unique=True)
    learner_id = Column(Uuid, ForeignKey("learners.id", ondelete="CASCADE"), nullable=False, index=True)
    grade_id = Column(Uuid, ForeignKey("grades.id", ondelete="RESTRICT"), nullable=False)
    stream_id = Column(Uuid, ForeignKey("streams.id", ondelete="SET NULL"), nullable=True)
    fee_structure_id = Column(Uuid, ForeignKey("fee_structures.id", ondelete="RESTRICT"), nullable=False)
    academic_year = Column(String(20), nullable=False)
    term = Column(String(10), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)  # structure amount less discount
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    discount_reason = Column(String(100), nullable=True)
    amount_paid = Column(Numeric(12, 2), nullable=False, default=0)
    balance_due = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), nullable=False, default=InvoiceStatus.pending.value)
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(String(100), nullable=True)  # subject of the auth provider token
    generated_by = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    learner = relationship("Learner", backref="invoices")
    grade = relationship("Grade")
    stream = relationship("Stream")
    fee_structure = relationship("FeeStructure")
