"""Discounts router: discount policies and re-applying them to invoices."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.auth.rbac import check_permission
from schoolfees.db.session import get_db

from .schemas import DiscountSettingResponse, DiscountSettingsUpdate, InvoiceDiscountResult
from . import service

router = APIRouter(prefix="/api/v1/discounts", tags=["discounts"])


@router.get(
    "/settings",
    response_model=List[DiscountSettingResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_discount_settings(db: AsyncSession = Depends(get_db)) -> List[DiscountSettingResponse]:
    return await service.list_settings(db)


@router.put(
    "/settings",
    response_model=List[DiscountSettingResponse],
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def replace_discount_settings(
    payload: DiscountSettingsUpdate,
    db: AsyncSession = Depends(get_db),
) -> List[DiscountSettingResponse]:
    return await service.replace_settings(db, payload)


@router.post(
    "/recalculate",
    response_model=List[InvoiceDiscountResult],
    dependencies=[Depends(check_permission("invoices", "update"))],
)
async def recalculate_invoice_discounts(db: AsyncSession = Depends(get_db)) -> List[InvoiceDiscountResult]:
    """Apply the current discount settings to every open invoice and report what changed."""
    return await service.recalculate_invoice_discounts(db)
