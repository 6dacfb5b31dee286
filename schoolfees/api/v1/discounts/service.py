"""Discount policies: settings maintenance and applying discounts to invoices."""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional, Set, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.api.v1.fee_balances.calculator import derive_invoice_status, to_amount
from schoolfees.core.config import settings
from schoolfees.core.enums import DiscountType, InvoiceStatus, LearnerStatus
from schoolfees.core.models import DiscountSetting, FeeStructure, FeeTransaction, Learner, StudentInvoice

from .schemas import DiscountSettingResponse, DiscountSettingsUpdate, InvoiceDiscountResult

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

_REASONS = {
    DiscountType.staff_parent.value: "Staff parent discount",
    DiscountType.sibling.value: "Sibling discount",
}


def compute_discount(
    amount: Decimal,
    learner: Learner,
    has_sibling: bool,
    policies: Iterable[DiscountSetting],
) -> Tuple[Decimal, Optional[str]]:
    """
    Largest enabled discount the learner qualifies for, as (amount, reason).
    Discounts do not stack.
    """
    best = Decimal("0")
    reason: Optional[str] = None
    for setting in policies:
        if not setting.is_enabled:
            continue
        if setting.discount_type == DiscountType.staff_parent.value:
            qualifies = bool(learner.is_staff_child)
        elif setting.discount_type == DiscountType.sibling.value:
            qualifies = has_sibling
        else:
            qualifies = False
        if not qualifies:
            continue
        percentage = to_amount(setting.percentage, "discount_settings", setting.id)
        value = (amount * percentage / Decimal("100")).quantize(CENT, rounding=ROUND_HALF_UP)
        if value > best:
            best = value
            reason = f"{_REASONS[setting.discount_type]} ({percentage.normalize():f}%)"
    return min(best, amount), reason


async def load_settings(db: AsyncSession) -> List[DiscountSetting]:
    result = await db.execute(select(DiscountSetting).order_by(DiscountSetting.discount_type))
    return list(result.scalars().all())


async def parents_with_siblings(db: AsyncSession, parent_ids: Iterable[Optional[str]]) -> Set[str]:
    """Parent ids shared by more than one active learner."""
    ids = {p for p in parent_ids if p}
    if not ids:
        return set()
    result = await db.execute(
        select(Learner.parent_id)
        .where(Learner.parent_id.in_(ids), Learner.status == LearnerStatus.active.value)
        .group_by(Learner.parent_id)
        .having(func.count(Learner.id) > 1)
    )
    return set(result.scalars().all())


async def list_settings(db: AsyncSession) -> List[DiscountSettingResponse]:
    return [DiscountSettingResponse.model_validate(s) for s in await load_settings(db)]


async def replace_settings(db: AsyncSession, payload: DiscountSettingsUpdate) -> List[DiscountSettingResponse]:
    """Replace every discount setting with the submitted set in one transaction."""
    await db.execute(delete(DiscountSetting))
    for item in payload.settings:
        db.add(
            DiscountSetting(
                discount_type=item.discount_type.value,
                percentage=item.percentage,
                is_enabled=item.is_enabled,
            )
        )
    await db.commit()
    logger.info("Discount settings replaced: %s", ", ".join(s.discount_type.value for s in payload.settings) or "none")
    return await list_settings(db)


async def recalculate_invoice_discounts(db: AsyncSession) -> List[InvoiceDiscountResult]:
    """Re-apply the current discount settings to every non-cancelled invoice."""
    policies = await load_settings(db)
    rows = (
        await db.execute(
            select(StudentInvoice, Learner, FeeStructure)
            .join(Learner, StudentInvoice.learner_id == Learner.id)
            .join(FeeStructure, StudentInvoice.fee_structure_id == FeeStructure.id)
            .where(StudentInvoice.status != InvoiceStatus.cancelled.value)
            .order_by(StudentInvoice.invoice_number)
        )
    ).all()
    siblings = await parents_with_siblings(db, (learner.parent_id for _, learner, _ in rows))

    results: List[InvoiceDiscountResult] = []
    for invoice, learner, structure in rows:
        original = to_amount(structure.amount, "fee_structures", structure.id)
        discount, reason = compute_discount(original, learner, learner.parent_id in siblings, policies)
        paid = to_amount(
            (
                await db.execute(
                    select(func.coalesce(func.sum(FeeTransaction.amount_paid), 0)).where(
                        FeeTransaction.invoice_id == invoice.id
                    )
                )
            ).scalar(),
            "student_invoices",
            invoice.id,
        )
        total = original - discount
        balance = max(Decimal("0"), total - paid)
        invoice.discount_amount = discount
        invoice.discount_reason = reason
        invoice.total_amount = total
        invoice.amount_paid = paid
        invoice.balance_due = balance
        invoice.status = derive_invoice_status(total, paid, balance, settings.zero_fee_status)
        results.append(
            InvoiceDiscountResult(
                invoice_id=invoice.id,
                learner_name=learner.full_name,
                original_amount=original,
                discount_amount=discount,
                discount_reason=reason,
            )
        )

    await db.commit()
    logger.info("Recalculated discounts on %d invoices", len(results))
    return results
