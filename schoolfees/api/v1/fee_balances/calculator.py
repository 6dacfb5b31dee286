"""
Fee balance calculation for one learner in one (academic year, term) scope.

Pure function over rows already fetched by the repository: no I/O, no caching,
no mutation. Money is paid through two independent channels that are summed
without deduplication:

* channel A: fee payments applied to the fee structure of the learner's grade
  for the scope;
* channel B: fee transactions whose invoice belongs to the learner for the
  same grade and scope.
"""

from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Sequence

from schoolfees.core.enums import FeeStatus, InvoiceStatus
from schoolfees.core.exceptions import DataIntegrityError
from schoolfees.core.models import FeePayment, FeeStructure, FeeTransaction, Learner, StudentInvoice

from .schemas import FeeBalance, FeeScope

ZERO = Decimal("0")


def to_amount(value, table: str, record_id=None) -> Decimal:
    """Coerce a stored amount to Decimal, refusing anything that is not a finite number."""
    if value is None or isinstance(value, bool):
        raise DataIntegrityError(f"Missing amount in {table} row {record_id}", table, record_id)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise DataIntegrityError(f"Non-numeric amount {value!r} in {table} row {record_id}", table, record_id)
    if not amount.is_finite():
        raise DataIntegrityError(f"Non-finite amount {value!r} in {table} row {record_id}", table, record_id)
    return amount


def derive_status(
    total_fees: Decimal,
    amount_paid: Decimal,
    balance: Decimal,
    zero_fee_status: FeeStatus = FeeStatus.paid,
) -> FeeStatus:
    if balance == 0:
        # Nothing configured and nothing paid: literally zero balance.
        if total_fees == 0 and amount_paid == 0:
            return zero_fee_status
        return FeeStatus.paid
    if amount_paid > 0:
        return FeeStatus.partial
    return FeeStatus.pending


def derive_invoice_status(
    total: Decimal,
    paid: Decimal,
    balance: Decimal,
    zero_fee_status: FeeStatus = FeeStatus.paid,
) -> str:
    """Stored status of a live invoice; same three rules as a balance."""
    return InvoiceStatus(derive_status(total, paid, balance, zero_fee_status).value).value


def _matches_scope(row, grade_id, scope: FeeScope) -> bool:
    return (
        row.grade_id == grade_id
        and row.academic_year == scope.academic_year
        and row.term == scope.term.value
    )


def _sum_amounts(rows: Iterable, table: str) -> Decimal:
    return sum((to_amount(r.amount_paid, table, r.id) for r in rows), ZERO)


def find_overlapping_receipts(
    payments: Sequence[FeePayment],
    transactions: Sequence[FeeTransaction],
) -> List[str]:
    """Receipt numbers counted in both channels."""
    paid = {p.receipt_number for p in payments if p.receipt_number}
    transacted = set()
    for t in transactions:
        transacted.update(ref for ref in (t.receipt_number, t.reference_number) if ref)
    return sorted(paid & transacted)


def compute_balance(
    learner: Learner,
    scope: FeeScope,
    structures: Sequence[FeeStructure],
    payments: Sequence[FeePayment],
    transactions: Sequence[FeeTransaction],
    invoices: Sequence[StudentInvoice],
    zero_fee_status: FeeStatus = FeeStatus.paid,
) -> FeeBalance:
    grade_id = learner.current_grade_id
    if grade_id is None:
        # No grade, no structure and no scope to pay against.
        return FeeBalance(
            total_fees=ZERO,
            amount_paid=ZERO,
            amount_from_payments=ZERO,
            amount_from_transactions=ZERO,
            balance=ZERO,
            status=FeeStatus.pending,
        )

    matching = [s for s in structures if _matches_scope(s, grade_id, scope)]
    total_fees = ZERO
    if matching:
        structure = matching[0]
        total_fees = to_amount(structure.amount, "fee_structures", structure.id)
        if total_fees < 0:
            raise DataIntegrityError(
                f"Negative fee amount in fee_structures row {structure.id}",
                "fee_structures",
                structure.id,
            )
    structure_ids = {s.id for s in matching}

    scoped_payments = [
        p for p in payments
        if p.learner_id == learner.id and p.fee_structure_id in structure_ids
    ]
    invoice_ids = {
        inv.id for inv in invoices
        if inv.learner_id == learner.id and _matches_scope(inv, grade_id, scope)
    }
    scoped_transactions = [t for t in transactions if t.invoice_id in invoice_ids]

    from_payments = _sum_amounts(scoped_payments, "fee_payments")
    from_transactions = _sum_amounts(scoped_transactions, "fee_transactions")
    amount_paid = from_payments + from_transactions
    balance = max(ZERO, total_fees - amount_paid)

    return FeeBalance(
        total_fees=total_fees,
        amount_paid=amount_paid,
        amount_from_payments=from_payments,
        amount_from_transactions=from_transactions,
        balance=balance,
        status=derive_status(total_fees, amount_paid, balance, zero_fee_status),
        overlapping_receipts=find_overlapping_receipts(scoped_payments, scoped_transactions),
    )
