"""School-wide fee discount policies applied when invoices are issued."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Numeric, String, Uuid

from schoolfees.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DiscountSetting(Base):
    """One row per discount type (staff_parent, sibling); percentage of the term fee."""

    __tablename__ = "discount_settings"
    __table_args__ = (
        CheckConstraint("percentage >= 0 AND percentage <= 100", name="chk_discount_setting_percentage"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    discount_type = Column(String(30), nullable=False, unique=True)
    percentage = Column(Numeric(5, 2), nullable=False)
    is_enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
