"""Fees router: fee structures and fee payments."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.auth.rbac import check_permission
from schoolfees.core.enums import Term
from schoolfees.core.exceptions import ServiceError
from schoolfees.db.session import get_db

from .schemas import (
    FeePaymentCreate,
    FeePaymentResponse,
    FeePaymentWithScope,
    FeeStructureCreate,
    FeeStructureResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])


# --- Fee Structure ---
@router.post(
    "/structures",
    response_model=FeeStructureResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def create_fee_structure(
    payload: FeeStructureCreate,
    db: AsyncSession = Depends(get_db),
) -> FeeStructureResponse:
    try:
        return await service.create_fee_structure(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/structures",
    response_model=List[FeeStructureResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_fee_structures(
    academic_year: Optional[str] = Query(None),
    term: Optional[Term] = Query(None),
    grade_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[FeeStructureResponse]:
    return await service.list_fee_structures(db, academic_year=academic_year, term=term, grade_id=grade_id)


# --- Payment ---
@router.post(
    "/payments",
    response_model=FeePaymentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def record_payment(
    payload: FeePaymentCreate,
    db: AsyncSession = Depends(get_db),
) -> FeePaymentResponse:
    try:
        return await service.record_payment(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/payments/{learner_id}",
    response_model=List[FeePaymentWithScope],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_payment_history(
    learner_id: UUID,
    academic_year: Optional[str] = Query(None),
    term: Optional[Term] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[FeePaymentWithScope]:
    return await service.get_payment_history(db, learner_id, academic_year=academic_year, term=term)
