"""Fees service: fee structures per grade/term and payments applied against them."""

import logging
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.core.enums import Term
from schoolfees.core.exceptions import ServiceError
from schoolfees.core.models import FeePayment, FeeStructure, Grade, Learner

from .schemas import (
    FeePaymentCreate,
    FeePaymentResponse,
    FeePaymentWithScope,
    FeeStructureCreate,
    FeeStructureResponse,
)

logger = logging.getLogger(__name__)


# --- Fee Structure ---
async def create_fee_structure(
    db: AsyncSession,
    payload: FeeStructureCreate,
) -> FeeStructureResponse:
    grade = await db.get(Grade, payload.grade_id)
    if not grade:
        raise ServiceError("Invalid grade", status.HTTP_400_BAD_REQUEST)
    academic_year = payload.academic_year.strip()
    if not academic_year:
        raise ServiceError("Academic year is required", status.HTTP_400_BAD_REQUEST)
    try:
        structure = FeeStructure(
            grade_id=payload.grade_id,
            academic_year=academic_year,
            term=payload.term.value,
            amount=payload.amount,
            description=(payload.description or "").strip() or None,
        )
        db.add(structure)
        await db.commit()
        await db.refresh(structure)
    except IntegrityError:
        await db.rollback()
        raise ServiceError(
            "This grade already has a fee structure for this academic year and term",
            status.HTTP_409_CONFLICT,
        )
    logger.info(
        "Fee structure %s set for grade %s %s %s: %s",
        structure.id, grade.name, academic_year, payload.term.value, payload.amount,
    )
    return FeeStructureResponse.model_validate(structure)


async def list_fee_structures(
    db: AsyncSession,
    academic_year: Optional[str] = None,
    term: Optional[Term] = None,
    grade_id: Optional[UUID] = None,
) -> List[FeeStructureResponse]:
    stmt = select(FeeStructure)
    if academic_year:
        stmt = stmt.where(FeeStructure.academic_year == academic_year.strip())
    if term is not None:
        stmt = stmt.where(FeeStructure.term == term.value)
    if grade_id is not None:
        stmt = stmt.where(FeeStructure.grade_id == grade_id)
    stmt = stmt.order_by(FeeStructure.academic_year.desc(), FeeStructure.term, FeeStructure.grade_id)
    result = await db.execute(stmt)
    return [FeeStructureResponse.model_validate(s) for s in result.scalars().all()]


# --- Payment ---
async def record_payment(
    db: AsyncSession,
    payload: FeePaymentCreate,
) -> FeePaymentResponse:
    learner = await db.get(Learner, payload.learner_id)
    if not learner:
        raise ServiceError("Learner not found", status.HTTP_404_NOT_FOUND)
    structure = await db.get(FeeStructure, payload.fee_structure_id)
    if not structure:
        raise ServiceError("Fee structure not found", status.HTTP_404_NOT_FOUND)
    payment = FeePayment(
        learner_id=payload.learner_id,
        fee_structure_id=payload.fee_structure_id,
        amount_paid=payload.amount_paid,
        payment_date=payload.payment_date or datetime.now(timezone.utc),
        payment_method=payload.payment_method.strip().upper(),
        receipt_number=(payload.receipt_number or "").strip() or None,
        status="completed",
        notes=(payload.notes or "").strip() or None,
    )
    db.add(payment)
    await db.commit()
    await db.refresh(payment)
    logger.info(
        "Recorded payment %s of %s for learner %s against structure %s",
        payment.id, payload.amount_paid, learner.admission_number, structure.id,
    )
    return FeePaymentResponse.model_validate(payment)


async def get_payment_history(
    db: AsyncSession,
    learner_id: UUID,
    academic_year: Optional[str] = None,
    term: Optional[Term] = None,
) -> List[FeePaymentWithScope]:
    stmt = (
        select(FeePayment, FeeStructure.academic_year, FeeStructure.term)
        .join(FeeStructure, FeePayment.fee_structure_id == FeeStructure.id)
        .where(FeePayment.learner_id == learner_id)
    )
    if academic_year:
        stmt = stmt.where(FeeStructure.academic_year == academic_year.strip())
    if term is not None:
        stmt = stmt.where(FeeStructure.term == term.value)
    stmt = stmt.order_by(FeePayment.payment_date.desc())
    result = await db.execute(stmt)
    out = []
    for payment, year, term_value in result.all():
        out.append(
            FeePaymentWithScope(
                **FeePaymentResponse.model_validate(payment).model_dump(),
                academic_year=year,
                term=term_value,
            )
        )
    return out
