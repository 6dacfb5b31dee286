"""Invoices router: generate, list, cancel, and pay against invoices."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.auth.dependencies import get_current_user
from schoolfees.auth.rbac import check_permission
from schoolfees.auth.schemas import CurrentUser
from schoolfees.core.enums import InvoiceStatus, Term
from schoolfees.core.exceptions import ServiceError
from schoolfees.db.session import get_db

from .schemas import (
    FeeTransactionCreate,
    FeeTransactionResponse,
    InvoiceCancelRequest,
    InvoiceGenerateRequest,
    InvoiceGenerateResponse,
    InvoiceResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/invoices", tags=["invoices"])


@router.post(
    "/generate",
    response_model=InvoiceGenerateResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("invoices", "create"))],
)
async def generate_term_invoices(
    payload: InvoiceGenerateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> InvoiceGenerateResponse:
    try:
        return await service.generate_term_invoices(db, payload, generated_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[InvoiceResponse],
    dependencies=[Depends(check_permission("invoices", "read"))],
)
async def list_invoices(
    learner_id: Optional[UUID] = Query(None),
    academic_year: Optional[str] = Query(None),
    term: Optional[Term] = Query(None),
    invoice_status: Optional[InvoiceStatus] = Query(None, description="pending, partial, paid, cancelled"),
    db: AsyncSession = Depends(get_db),
) -> List[InvoiceResponse]:
    return await service.list_invoices(
        db,
        learner_id=learner_id,
        academic_year=academic_year,
        term=term,
        status_filter=invoice_status,
    )


@router.post(
    "/{invoice_id}/cancel",
    response_model=InvoiceResponse,
    dependencies=[Depends(check_permission("invoices", "update"))],
)
async def cancel_invoice(
    invoice_id: UUID,
    payload: InvoiceCancelRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> InvoiceResponse:
    try:
        return await service.cancel_invoice(db, invoice_id, payload.reason, cancelled_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{invoice_id}/transactions",
    response_model=FeeTransactionResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("invoices", "create"))],
)
async def record_transaction(
    invoice_id: UUID,
    payload: FeeTransactionCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeTransactionResponse:
    try:
        return await service.record_transaction(db, invoice_id, payload, recorded_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
