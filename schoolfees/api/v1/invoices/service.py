"""Invoices service: term invoice generation, cancellation, and transactions against invoices."""

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.api.v1.discounts import service as discounts
from schoolfees.api.v1.fee_balances.calculator import derive_invoice_status, to_amount
from schoolfees.core.config import settings
from schoolfees.core.enums import InvoiceStatus, LearnerStatus, Term
from schoolfees.core.exceptions import ServiceError
from schoolfees.core.models import FeeStructure, FeeTransaction, Grade, Learner, StudentInvoice

from .schemas import (
    FeeTransactionCreate,
    FeeTransactionResponse,
    InvoiceGenerateRequest,
    InvoiceGenerateResponse,
    InvoiceResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_WINDOW = timedelta(days=30)
NUMBERING_ATTEMPTS = 3


def _invoice_status(total: Decimal, paid: Decimal, balance: Decimal) -> str:
    return derive_invoice_status(total, paid, balance, settings.zero_fee_status)


def _invoice_prefix(academic_year: str, term: Term) -> str:
    return f"INV-{academic_year}-T{term.value[-1]}-"


async def _next_sequence(db: AsyncSession, prefix: str) -> int:
    issued = (
        await db.execute(
            select(func.count(StudentInvoice.id)).where(StudentInvoice.invoice_number.like(f"{prefix}%"))
        )
    ).scalar() or 0
    return issued + 1


async def _build_term_invoices(
    db: AsyncSession,
    payload: InvoiceGenerateRequest,
    academic_year: str,
    generated_by: Optional[str],
) -> Tuple[List[StudentInvoice], List[UUID]]:
    structure = (
        await db.execute(
            select(FeeStructure).where(
                FeeStructure.grade_id == payload.grade_id,
                FeeStructure.academic_year == academic_year,
                FeeStructure.term == payload.term.value,
            )
        )
    ).scalars().first()
    if not structure:
        raise ServiceError("No fee structure defined for this grade and term", status.HTTP_400_BAD_REQUEST)

    learner_stmt = select(Learner).where(
        Learner.current_grade_id == payload.grade_id,
        Learner.status == LearnerStatus.active.value,
    )
    if payload.stream_id is not None:
        learner_stmt = learner_stmt.where(Learner.current_stream_id == payload.stream_id)
    learners = (
        await db.execute(learner_stmt.order_by(Learner.first_name, Learner.last_name))
    ).scalars().all()

    invoiced = set(
        (
            await db.execute(
                select(StudentInvoice.learner_id).where(
                    StudentInvoice.grade_id == payload.grade_id,
                    StudentInvoice.academic_year == academic_year,
                    StudentInvoice.term == payload.term.value,
                    StudentInvoice.status != InvoiceStatus.cancelled.value,
                )
            )
        ).scalars().all()
    )

    policies = await discounts.load_settings(db)
    siblings = await discounts.parents_with_siblings(db, (learner.parent_id for learner in learners))

    prefix = _invoice_prefix(academic_year, payload.term)
    sequence = await _next_sequence(db, prefix)
    original = to_amount(structure.amount, "fee_structures", structure.id)
    issue_date = date.today()
    due_date = payload.due_date or issue_date + DEFAULT_PAYMENT_WINDOW

    created: List[StudentInvoice] = []
    skipped: List[UUID] = []
    for learner in learners:
        if learner.id in invoiced:
            skipped.append(learner.id)
            continue
        discount, reason = discounts.compute_discount(original, learner, learner.parent_id in siblings, policies)
        total = original - discount
        invoice = StudentInvoice(
            invoice_number=f"{prefix}{sequence + len(created):04d}",
            learner_id=learner.id,
            grade_id=payload.grade_id,
            stream_id=learner.current_stream_id,
            fee_structure_id=structure.id,
            academic_year=academic_year,
            term=payload.term.value,
            total_amount=total,
            discount_amount=discount,
            discount_reason=reason,
            amount_paid=Decimal("0"),
            balance_due=total,
            status=_invoice_status(total, Decimal("0"), total),
            issue_date=issue_date,
            due_date=due_date,
            generated_by=generated_by,
        )
        db.add(invoice)
        created.append(invoice)
    return created, skipped


async def generate_term_invoices(
    db: AsyncSession,
    payload: InvoiceGenerateRequest,
    generated_by: Optional[str] = None,
) -> InvoiceGenerateResponse:
    """
    Invoice every active learner in the grade (or stream) that has no open invoice for the term.

    Invoice numbers run per year and term across all grades. When a concurrent
    run takes the same numbers first, the batch is rolled back and rebuilt from
    fresh reads; after NUMBERING_ATTEMPTS collisions the request fails with 409.
    """
    grade = await db.get(Grade, payload.grade_id)
    if not grade:
        raise ServiceError("Invalid grade", status.HTTP_400_BAD_REQUEST)
    grade_name = grade.name
    academic_year = payload.academic_year.strip()

    for attempt in range(1, NUMBERING_ATTEMPTS + 1):
        created, skipped = await _build_term_invoices(db, payload, academic_year, generated_by)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.warning(
                "Invoice number collision generating %s %s %s (attempt %d of %d)",
                grade_name, academic_year, payload.term.value, attempt, NUMBERING_ATTEMPTS,
            )
            continue
        break
    else:
        raise ServiceError(
            "Invoice numbers are being allocated by another request, try again",
            status.HTTP_409_CONFLICT,
        )

    for invoice in created:
        await db.refresh(invoice)
    logger.info(
        "Generated %d invoices for grade %s %s %s (%d skipped)",
        len(created), grade_name, academic_year, payload.term.value, len(skipped),
    )
    return InvoiceGenerateResponse(
        created=[InvoiceResponse.model_validate(i) for i in created],
        skipped_learner_ids=skipped,
    )


async def list_invoices(
    db: AsyncSession,
    learner_id: Optional[UUID] = None,
    academic_year: Optional[str] = None,
    term: Optional[Term] = None,
    status_filter: Optional[InvoiceStatus] = None,
) -> List[InvoiceResponse]:
    stmt = select(StudentInvoice)
    if learner_id is not None:
        stmt = stmt.where(StudentInvoice.learner_id == learner_id)
    if academic_year:
        stmt = stmt.where(StudentInvoice.academic_year == academic_year.strip())
    if term is not None:
        stmt = stmt.where(StudentInvoice.term == term.value)
    if status_filter is not None:
        stmt = stmt.where(StudentInvoice.status == status_filter.value)
    stmt = stmt.order_by(StudentInvoice.issue_date.desc(), StudentInvoice.invoice_number.desc())
    result = await db.execute(stmt)
    return [InvoiceResponse.model_validate(i) for i in result.scalars().all()]


async def _get_invoice(db: AsyncSession, invoice_id: UUID, lock: bool = False) -> StudentInvoice:
    if lock:
        invoice = await db.get(StudentInvoice, invoice_id, with_for_update=True, populate_existing=True)
    else:
        invoice = await db.get(StudentInvoice, invoice_id)
    if not invoice:
        raise ServiceError("Invoice not found", status.HTTP_404_NOT_FOUND)
    return invoice


async def cancel_invoice(
    db: AsyncSession,
    invoice_id: UUID,
    reason: str,
    cancelled_by: Optional[str] = None,
) -> InvoiceResponse:
    invoice = await _get_invoice(db, invoice_id)
    if invoice.status == InvoiceStatus.cancelled.value:
        raise ServiceError("Invoice is already cancelled", status.HTTP_400_BAD_REQUEST)
    invoice.status = InvoiceStatus.cancelled.value
    invoice.cancellation_reason = reason.strip()
    invoice.cancelled_at = datetime.now(timezone.utc)
    invoice.cancelled_by = cancelled_by
    await db.commit()
    await db.refresh(invoice)
    logger.info("Cancelled invoice %s: %s", invoice.invoice_number, invoice.cancellation_reason)
    return InvoiceResponse.model_validate(invoice)


async def record_transaction(
    db: AsyncSession,
    invoice_id: UUID,
    payload: FeeTransactionCreate,
    recorded_by: Optional[str] = None,
) -> FeeTransactionResponse:
    """
    Record a payment against an invoice and restate the invoice from its ledger.

    The invoice row is locked for the rest of the transaction and amount_paid is
    recomputed as the sum of all its transactions, so concurrent payments on one
    invoice are never lost.
    """
    invoice = await _get_invoice(db, invoice_id, lock=True)
    if invoice.status == InvoiceStatus.cancelled.value:
        raise ServiceError("Cannot record a payment against a cancelled invoice", status.HTTP_400_BAD_REQUEST)

    txn = FeeTransaction(
        transaction_number=f"TXN-{uuid.uuid4().hex[:12].upper()}",
        invoice_id=invoice.id,
        learner_id=invoice.learner_id,
        amount_paid=payload.amount_paid,
        payment_method=payload.payment_method.strip().upper(),
        reference_number=(payload.reference_number or "").strip() or None,
        receipt_number=(payload.receipt_number or "").strip() or None,
        payment_date=payload.payment_date or datetime.now(timezone.utc),
        notes=(payload.notes or "").strip() or None,
        recorded_by=recorded_by,
    )
    db.add(txn)
    await db.flush()

    paid = to_amount(
        (
            await db.execute(
                select(func.coalesce(func.sum(FeeTransaction.amount_paid), 0)).where(
                    FeeTransaction.invoice_id == invoice.id
                )
            )
        ).scalar(),
        "fee_transactions",
        invoice.id,
    )
    total = to_amount(invoice.total_amount, "student_invoices", invoice.id)
    balance = max(Decimal("0"), total - paid)
    invoice.amount_paid = paid
    invoice.balance_due = balance
    invoice.status = _invoice_status(total, paid, balance)

    await db.commit()
    await db.refresh(txn)
    logger.info(
        "Recorded transaction %s of %s on invoice %s (now %s)",
        txn.transaction_number, payload.amount_paid, invoice.invoice_number, invoice.status,
    )
    return FeeTransactionResponse.model_validate(txn)
