"""Fee transaction: payment recorded against a student invoice."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from schoolfees.db.session import Base


class FeeTransaction(Base):
    __tablename__ = "fee_transactions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    transaction_number = Column(String(50), nullable=False, unique=True)
    invoice_id = Column(Uuid, ForeignKey("student_invoices.id", ondelete="RESTRICT"), nullable=False, index=True)
    learner_id = Column(Uuid, ForeignKey("learners.id", ondelete="CASCADE"), nullable=False, index=True)
    amount_paid = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(30), nullable=False)
    reference_number = Column(String(100), nullable=True)  # e.g. M-Pesa confirmation code
    receipt_number = Column(String(50), nullable=True)
    payment_date = Column(DateTime(timezone=True), nullable=False)
    notes = Column(Text, nullable=True)
    recorded_by = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    invoice = relationship("StudentInvoice", backref="transactions")
    learner = relationship("Learner", backref="fee_transactions")
