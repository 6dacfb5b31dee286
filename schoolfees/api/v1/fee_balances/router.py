"""Fee balances router: roster report and single learner balance."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import async_sessionmaker

from schoolfees.auth.rbac import check_permission
from schoolfees.core.enums import LearnerStatus, Term
from schoolfees.core.exceptions import ServiceError
from schoolfees.db.session import get_session_factory

from .schemas import FeeBalanceReport, FeeScope, LearnerFeeBalance
from . import service

router = APIRouter(prefix="/api/v1/fee-balances", tags=["fee-balances"])


def _scope(academic_year: str, term: Term) -> FeeScope:
    try:
        return FeeScope(academic_year=academic_year, term=term)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=[err["msg"] for err in e.errors()])


@router.get(
    "",
    response_model=FeeBalanceReport,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def read_fee_balances(
    academic_year: str = Query(..., min_length=1),
    term: Term = Query(...),
    grade_id: Optional[UUID] = Query(None),
    stream_id: Optional[UUID] = Query(None),
    learner_status: Optional[LearnerStatus] = Query(None, description="active, transferred, alumni"),
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> FeeBalanceReport:
    return await service.get_fee_balances(
        session_factory,
        _scope(academic_year, term),
        grade_id=grade_id,
        stream_id=stream_id,
        learner_status=learner_status.value if learner_status else None,
    )


@router.get(
    "/learners/{learner_id}",
    response_model=LearnerFeeBalance,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def read_learner_balance(
    learner_id: UUID,
    academic_year: str = Query(..., min_length=1),
    term: Term = Query(...),
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> LearnerFeeBalance:
    try:
        return await service.get_learner_balance(session_factory, learner_id, _scope(academic_year, term))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
