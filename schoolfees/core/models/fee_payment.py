"""Fee payment: legacy channel, a payment applied directly against a fee structure."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from schoolfees.db.session import Base


class FeePayment(Base):
    __tablename__ = "fee_payments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    learner_id = Column(Uuid, ForeignKey("learners.id", ondelete="CASCADE"), nullable=False, index=True)
    fee_structure_id = Column(
        Uuid,
        ForeignKey("fee_structures.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    amount_paid = Column(Numeric(12, 2), nullable=False)
    payment_date = Column(DateTime(timezone=True), nullable=False)
    payment_method = Column(String(30), nullable=True)  # CASH, MPESA, BANK, CHEQUE
    receipt_number = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False, default="completed")
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    learner = relationship("Learner", backref="fee_payments")
    fee_structure = relationship("FeeStructure", backref="payments")
