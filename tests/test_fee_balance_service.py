"""Roster fee balances: fan-out over learners, failure isolation, and summary."""

import asyncio
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from schoolfees.api.v1.fee_balances import repository, service
from schoolfees.api.v1.fee_balances.repository import LearnerFeeRecords
from schoolfees.api.v1.fee_balances.schemas import FeeScope
from schoolfees.core.enums import FeeStatus, Term
from schoolfees.core.exceptions import ServiceError
from schoolfees.core.models import FeePayment, FeeTransaction, StudentInvoice

SCOPE = FeeScope(academic_year="2025", term=Term.term_1)
PAID_AT = datetime(2025, 2, 1, tzinfo=timezone.utc)


async def _pay(db, learner, structure, amount: str, receipt=None) -> None:
    db.add(
        FeePayment(
            learner_id=learner.id,
            fee_structure_id=structure.id,
            amount_paid=Decimal(amount),
            payment_date=PAID_AT,
            payment_method="CASH",
            receipt_number=receipt,
        )
    )
    await db.commit()


async def _invoice_with_transaction(db, learner, structure, amount: str, term: str = "term_1") -> StudentInvoice:
    invoice = StudentInvoice(
        invoice_number=f"INV-2025-{uuid.uuid4().hex[:6]}",
        learner_id=learner.id,
        grade_id=learner.current_grade_id,
        fee_structure_id=structure.id,
        academic_year="2025",
        term=term,
        total_amount=structure.amount,
        amount_paid=Decimal("0"),
        balance_due=structure.amount,
        status="pending",
        issue_date=date(2025, 1, 6),
        due_date=date(2025, 2, 5),
    )
    db.add(invoice)
    await db.flush()
    db.add(
        FeeTransaction(
            transaction_number=f"TXN-{uuid.uuid4().hex[:10]}",
            invoice_id=invoice.id,
            learner_id=learner.id,
            amount_paid=Decimal(amount),
            payment_method="MPESA",
            payment_date=PAID_AT,
        )
    )
    await db.commit()
    return invoice


@pytest.mark.asyncio
async def test_roster_balances_and_summary(session_factory, db_session, grade, stream, add_learner, add_structure) -> None:
    structure = await add_structure(grade.id, "5000")
    wanjiku = await add_learner("Wanjiku", grade_id=grade.id, stream_id=stream.id)
    baraka = await add_learner("Baraka", grade_id=grade.id, stream_id=stream.id)
    chebet = await add_learner("Chebet", grade_id=grade.id)
    await _pay(db_session, wanjiku, structure, "5000")
    await _pay(db_session, baraka, structure, "2000")
    await _invoice_with_transaction(db_session, baraka, structure, "500")
    # Transaction on a term 2 invoice is out of scope for term 1.
    await _invoice_with_transaction(db_session, chebet, structure, "1000", term="term_2")

    report = await service.get_fee_balances(session_factory, SCOPE, grade_id=grade.id)

    assert [i.learner_name for i in report.items] == ["Baraka Otieno", "Chebet Otieno", "Wanjiku Otieno"]
    by_name = {i.learner_name.split()[0]: i for i in report.items}
    assert by_name["Baraka"].amount_paid == Decimal("2500")
    assert by_name["Baraka"].balance == Decimal("2500")
    assert by_name["Baraka"].status == FeeStatus.partial
    assert by_name["Baraka"].stream_name == "East"
    assert by_name["Chebet"].status == FeeStatus.pending
    assert by_name["Chebet"].stream_name is None
    assert by_name["Wanjiku"].status == FeeStatus.paid
    assert by_name["Wanjiku"].grade_name == "Grade 4"

    summary = report.summary
    assert summary.learner_count == 3
    assert summary.total_expected == Decimal("15000")
    assert summary.total_collected == Decimal("7500")
    assert summary.total_outstanding == Decimal("7500")
    assert summary.collection_rate == Decimal("50.00")
    assert (summary.paid_count, summary.partial_count, summary.pending_count) == (1, 1, 1)
    assert report.errors == []


@pytest.mark.asyncio
async def test_stream_and_status_filters(session_factory, grade, stream, add_learner, add_structure) -> None:
    await add_structure(grade.id, "5000")
    await add_learner("Amani", grade_id=grade.id, stream_id=stream.id)
    await add_learner("Brian", grade_id=grade.id)
    await add_learner("Cate", grade_id=grade.id, stream_id=stream.id, status="transferred")

    by_stream = await service.get_fee_balances(session_factory, SCOPE, stream_id=stream.id)
    assert [i.learner_name for i in by_stream.items] == ["Amani Otieno", "Cate Otieno"]

    active = await service.get_fee_balances(session_factory, SCOPE, stream_id=stream.id, learner_status="active")
    assert [i.learner_name for i in active.items] == ["Amani Otieno"]


@pytest.mark.asyncio
async def test_learner_without_grade_is_pending_in_roster(session_factory, add_learner) -> None:
    await add_learner("Dalia")
    report = await service.get_fee_balances(session_factory, SCOPE)
    assert len(report.items) == 1
    assert report.items[0].status == FeeStatus.pending
    assert report.summary.collection_rate == Decimal("0")


@pytest.mark.asyncio
async def test_failed_learner_does_not_abort_batch(
    session_factory, grade, add_learner, add_structure, monkeypatch
) -> None:
    await add_structure(grade.id, "5000")
    ok = await add_learner("Amani", grade_id=grade.id)
    broken = await add_learner("Brian", grade_id=grade.id)
    real_fetch = repository.fetch_learner_fee_records

    async def flaky_fetch(db, learner, scope):
        if learner.id == broken.id:
            raise ConnectionError("connection reset by peer")
        return await real_fetch(db, learner, scope)

    monkeypatch.setattr(repository, "fetch_learner_fee_records", flaky_fetch)

    report = await service.get_fee_balances(session_factory, SCOPE, grade_id=grade.id)

    assert [i.learner_id for i in report.items] == [ok.id]
    assert len(report.errors) == 1
    assert report.errors[0].learner_id == broken.id
    assert report.errors[0].admission_number == broken.admission_number
    assert "connection reset" in report.errors[0].detail
    assert report.summary.error_count == 1


@pytest.mark.asyncio
async def test_corrupt_amount_is_reported_per_learner(
    session_factory, grade, add_learner, add_structure, monkeypatch
) -> None:
    structure = await add_structure(grade.id, "5000")
    ok = await add_learner("Amani", grade_id=grade.id)
    corrupt = await add_learner("Brian", grade_id=grade.id)
    real_fetch = repository.fetch_learner_fee_records

    async def corrupt_fetch(db, learner, scope):
        records = await real_fetch(db, learner, scope)
        if learner.id != corrupt.id:
            return records
        bad = FeePayment(
            id=uuid.uuid4(),
            learner_id=learner.id,
            fee_structure_id=structure.id,
            amount_paid="12,000",
            payment_date=PAID_AT,
        )
        return LearnerFeeRecords(records.structures, [bad], records.transactions, records.invoices)

    monkeypatch.setattr(repository, "fetch_learner_fee_records", corrupt_fetch)

    report = await service.get_fee_balances(session_factory, SCOPE, grade_id=grade.id)

    assert [i.learner_id for i in report.items] == [ok.id]
    assert report.errors[0].learner_id == corrupt.id
    assert "fee_payments" in report.errors[0].detail


@pytest.mark.asyncio
async def test_fetches_respect_concurrency_limit(session_factory, grade, add_learner, monkeypatch) -> None:
    for name in ("Amani", "Baraka", "Chebet", "Dalia", "Eli"):
        await add_learner(name, grade_id=grade.id)
    in_flight = 0
    peak = 0

    async def slow_fetch(db, learner, scope):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return LearnerFeeRecords([], [], [], [])

    monkeypatch.setattr(repository, "fetch_learner_fee_records", slow_fetch)

    report = await service.get_fee_balances(session_factory, SCOPE, grade_id=grade.id, concurrency=2)

    assert len(report.items) == 5
    assert peak <= 2


@pytest.mark.asyncio
async def test_single_learner_balance(session_factory, db_session, grade, add_learner, add_structure) -> None:
    structure = await add_structure(grade.id, "4000")
    learner = await add_learner("Amani", grade_id=grade.id)
    await _pay(db_session, learner, structure, "1000", receipt="R-001")

    result = await service.get_learner_balance(session_factory, learner.id, SCOPE)

    assert result.learner_id == learner.id
    assert result.total_fees == Decimal("4000")
    assert result.balance == Decimal("3000")
    assert result.status == FeeStatus.partial


@pytest.mark.asyncio
async def test_unknown_learner_is_not_found(session_factory) -> None:
    with pytest.raises(ServiceError) as exc:
        await service.get_learner_balance(session_factory, uuid.uuid4(), SCOPE)
    assert exc.value.status_code == 404
