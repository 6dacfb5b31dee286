"""Fee balances: per-learner lookup and roster report with bounded concurrent fetches."""

import asyncio
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy.ext.asyncio import async_sessionmaker

from schoolfees.core.config import settings
from schoolfees.core.enums import FeeStatus
from schoolfees.core.exceptions import ServiceError
from schoolfees.core.models import Learner

from . import calculator, repository
from .schemas import (
    FeeBalance,
    FeeBalanceError,
    FeeBalanceReport,
    FeeBalanceSummary,
    FeeScope,
    LearnerFeeBalance,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def _to_item(learner: Learner, result: FeeBalance) -> LearnerFeeBalance:
    grade = learner.current_grade
    stream = learner.current_stream
    return LearnerFeeBalance(
        learner_id=learner.id,
        admission_number=learner.admission_number,
        learner_name=learner.full_name,
        grade_id=learner.current_grade_id,
        grade_name=grade.name if grade else None,
        stream_id=learner.current_stream_id,
        stream_name=stream.name if stream else None,
        **result.model_dump(),
    )


async def _balance_for_learner(
    session_factory: async_sessionmaker,
    learner: Learner,
    scope: FeeScope,
    zero_fee_status: FeeStatus,
) -> LearnerFeeBalance:
    async with session_factory() as db:
        records = await repository.fetch_learner_fee_records(db, learner, scope)
    result = calculator.compute_balance(
        learner,
        scope,
        structures=records.structures,
        payments=records.payments,
        transactions=records.transactions,
        invoices=records.invoices,
        zero_fee_status=zero_fee_status,
    )
    if result.overlapping_receipts:
        logger.warning(
            "Learner %s has receipts counted in both payment channels for %s %s: %s",
            learner.admission_number,
            scope.academic_year,
            scope.term.value,
            ", ".join(result.overlapping_receipts),
        )
    return _to_item(learner, result)


async def get_learner_balance(
    session_factory: async_sessionmaker,
    learner_id: UUID,
    scope: FeeScope,
    zero_fee_status: Optional[FeeStatus] = None,
) -> LearnerFeeBalance:
    async with session_factory() as db:
        learner = await repository.get_learner(db, learner_id)
    if not learner:
        raise ServiceError("Learner not found", status.HTTP_404_NOT_FOUND)
    return await _balance_for_learner(
        session_factory, learner, scope, zero_fee_status or settings.zero_fee_status
    )


def summarize(items: List[LearnerFeeBalance], error_count: int = 0) -> FeeBalanceSummary:
    expected = sum((i.total_fees for i in items), ZERO)
    collected = sum((i.amount_paid for i in items), ZERO)
    outstanding = sum((i.balance for i in items), ZERO)
    rate = ZERO
    if expected > 0:
        rate = (collected / expected * 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return FeeBalanceSummary(
        learner_count=len(items),
        total_expected=expected,
        total_collected=collected,
        total_outstanding=outstanding,
        collection_rate=rate,
        paid_count=sum(1 for i in items if i.status == FeeStatus.paid),
        partial_count=sum(1 for i in items if i.status == FeeStatus.partial),
        pending_count=sum(1 for i in items if i.status == FeeStatus.pending),
        error_count=error_count,
    )


async def get_fee_balances(
    session_factory: async_sessionmaker,
    scope: FeeScope,
    grade_id: Optional[UUID] = None,
    stream_id: Optional[UUID] = None,
    learner_status: Optional[str] = None,
    concurrency: Optional[int] = None,
    zero_fee_status: Optional[FeeStatus] = None,
) -> FeeBalanceReport:
    """
    Balances for every learner on a roster.

    Each learner is fetched and scored in its own task with its own session; at most
    ``concurrency`` tasks hit the database at once. A learner whose fetch or
    calculation fails is reported under ``errors`` and the rest of the batch still
    completes. Items keep roster order (first name, last name).
    """
    async with session_factory() as db:
        learners = await repository.list_learners(
            db, grade_id=grade_id, stream_id=stream_id, status=learner_status
        )

    zero_status = zero_fee_status or settings.zero_fee_status
    semaphore = asyncio.Semaphore(concurrency or settings.fee_balance_concurrency)

    async def _bounded(learner: Learner) -> LearnerFeeBalance:
        async with semaphore:
            return await _balance_for_learner(session_factory, learner, scope, zero_status)

    results = await asyncio.gather(*(_bounded(learner) for learner in learners), return_exceptions=True)

    items: List[LearnerFeeBalance] = []
    errors: List[FeeBalanceError] = []
    for learner, result in zip(learners, results):
        if isinstance(result, Exception):
            logger.warning(
                "Fee balance failed for learner %s (%s): %s",
                learner.admission_number,
                learner.id,
                result,
                exc_info=result,
            )
            errors.append(
                FeeBalanceError(
                    learner_id=learner.id,
                    admission_number=learner.admission_number,
                    detail=getattr(result, "message", None) or str(result),
                )
            )
            continue
        if isinstance(result, BaseException):
            raise result
        items.append(result)

    logger.info(
        "Computed fee balances for %d learners (%d failed) for %s %s",
        len(items),
        len(errors),
        scope.academic_year,
        scope.term.value,
    )
    return FeeBalanceReport(
        academic_year=scope.academic_year,
        term=scope.term,
        grade_id=grade_id,
        stream_id=stream_id,
        items=items,
        errors=errors,
        summary=summarize(items, len(errors)),
    )
