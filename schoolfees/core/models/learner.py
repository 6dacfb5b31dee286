import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from schoolfees.core.enums import LearnerStatus
from schoolfees.db.session import Base


class Learner(Base):
    """
    Learner record. Only the fields the fee screens read are mapped here;
    profile management lives outside this service.
    """

    __tablename__ = "learners"
    __table_args__ = (
        CheckConstraint(
            "status IN ('active','transferred','alumni')",
            name="chk_learner_status",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    admission_number = Column(String(30), nullable=False, unique=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    current_grade_id = Column(Uuid, ForeignKey("grades.id", ondelete="SET NULL"), nullable=True, index=True)
    current_stream_id = Column(Uuid, ForeignKey("streams.id", ondelete="SET NULL"), nullable=True, index=True)
    status = Column(String(20), nullable=False, default=LearnerStatus.active.value)
    is_staff_child = Column(Boolean, nullable=False, default=False)
    # Guardian account in the auth provider; learners sharing it are siblings.
    parent_id = Column(String(100), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    current_grade = relationship("Grade", foreign_keys=[current_grade_id])
    current_stream = relationship("Stream", foreign_keys=[current_stream_id])

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
