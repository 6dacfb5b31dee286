"""Fee structure: expected fee per grade per academic year per term."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from schoolfees.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FeeStructure(Base):
    """At most one structure per (grade, academic_year, term); balances take the first match."""

    __tablename__ = "fee_structures"
    __table_args__ = (
        UniqueConstraint(
            "grade_id",
            "academic_year",
            "term",
            name="uq_fee_structure_grade_year_term",
        ),
        CheckConstraint("amount >= 0", name="chk_fee_structure_amount"),
        CheckConstraint("term IN ('term_1','term_2','term_3')", name="chk_fee_structure_term"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    grade_id = Column(Uuid, ForeignKey("grades.id", ondelete="CASCADE"), nullable=False, index=True)
    academic_year = Column(String(20), nullable=False)  # e.g. "2025"
    term = Column(String(10), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    grade = relationship("Grade")
