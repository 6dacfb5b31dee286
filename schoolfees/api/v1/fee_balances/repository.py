"""Reads the rows a fee balance is computed from. One session per call; never writes."""

from typing import List, NamedTuple, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from schoolfees.core.models import FeePayment, FeeStructure, FeeTransaction, Learner, StudentInvoice

from .schemas import FeeScope


class LearnerFeeRecords(NamedTuple):
    structures: List[FeeStructure]
    payments: List[FeePayment]
    transactions: List[FeeTransaction]
    invoices: List[StudentInvoice]


EMPTY_RECORDS = LearnerFeeRecords([], [], [], [])


def _learner_query():
    return select(Learner).options(
        selectinload(Learner.current_grade),
        selectinload(Learner.current_stream),
    )


async def get_learner(db: AsyncSession, learner_id: UUID) -> Optional[Learner]:
    result = await db.execute(_learner_query().where(Learner.id == learner_id))
    return result.scalar_one_or_none()


async def list_learners(
    db: AsyncSession,
    grade_id: Optional[UUID] = None,
    stream_id: Optional[UUID] = None,
    status: Optional[str] = None,
) -> List[Learner]:
    stmt = _learner_query()
    if grade_id is not None:
        stmt = stmt.where(Learner.current_grade_id == grade_id)
    if stream_id is not None:
        stmt = stmt.where(Learner.current_stream_id == stream_id)
    if status is not None:
        stmt = stmt.where(Learner.status == status)
    stmt = stmt.order_by(Learner.first_name, Learner.last_name, Learner.admission_number)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def fetch_learner_fee_records(
    db: AsyncSession,
    learner: Learner,
    scope: FeeScope,
) -> LearnerFeeRecords:
    grade_id = learner.current_grade_id
    if grade_id is None:
        return EMPTY_RECORDS

    structures = (
        await db.execute(
            select(FeeStructure).where(
                FeeStructure.grade_id == grade_id,
                FeeStructure.academic_year == scope.academic_year,
                FeeStructure.term == scope.term.value,
            ).order_by(FeeStructure.created_at)
        )
    ).scalars().all()

    payments = (
        await db.execute(
            select(FeePayment)
            .join(FeeStructure, FeePayment.fee_structure_id == FeeStructure.id)
            .where(
                FeePayment.learner_id == learner.id,
                FeeStructure.grade_id == grade_id,
                FeeStructure.academic_year == scope.academic_year,
                FeeStructure.term == scope.term.value,
            )
        )
    ).scalars().all()

    transactions = (
        await db.execute(select(FeeTransaction).where(FeeTransaction.learner_id == learner.id))
    ).scalars().all()

    # Cancelled invoices still scope their transactions.
    invoices = (
        await db.execute(
            select(StudentInvoice).where(
                StudentInvoice.learner_id == learner.id,
                StudentInvoice.grade_id == grade_id,
                StudentInvoice.academic_year == scope.academic_year,
                StudentInvoice.term == scope.term.value,
            )
        )
    ).scalars().all()

    return LearnerFeeRecords(list(structures), list(payments), list(transactions), list(invoices))
