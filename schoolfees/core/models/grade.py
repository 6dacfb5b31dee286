"""Grades (e.g. Grade 4, PP2) and the streams inside them."""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from schoolfees.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Grade(Base):
    __tablename__ = "grades"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(50), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class Stream(Base):
    """Stream (class division) within a grade, e.g. Grade 4 East."""

    __tablename__ = "streams"
    __table_args__ = (UniqueConstraint("grade_id", "name", name="uq_stream_grade_name"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    grade_id = Column(Uuid, ForeignKey("grades.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(50), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    grade = relationship("Grade", backref="streams")
