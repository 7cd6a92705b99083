# kesti/services/credits.py

"""
CREDIT PAYMENTS

A credit sale is paid off in one or more payments. The payment that
brings remaining_amount to zero also records a regular Sale with the
credit's items, so finance and history count it from that day.

Like checkout this is not one transaction: the payment is stored first,
then the sale, then its items.
"""

import logging
from decimal import Decimal

from kesti.core.tenant import TenantContext
from kesti.schemas.checkout import CreditPaymentResponse
from kesti.schemas.credit import CreditSaleResponse
from kesti.schemas.sale import SaleItemCreate, SaleItemResponse
from kesti.services.backend import DataBackend

logger = logging.getLogger("kesti")


class CreditPaymentError(Exception):
    """Payment rejected before anything was written"""


class CreditSaleNotFoundError(CreditPaymentError):
    pass


def compute_payment(
    credit_sale: CreditSaleResponse,
    amount: Decimal | None = None,
    full_payment: bool = False,
) -> tuple[Decimal, Decimal]:
    """Return the new (paid_amount, remaining_amount)."""
    if credit_sale.is_paid:
        raise CreditPaymentError("Credit sale is already paid")

    if full_payment:
        return credit_sale.total_amount, Decimal("0")

    if amount is None or amount <= 0:
        raise CreditPaymentError("Please enter a valid amount")

    if amount > credit_sale.remaining_amount:
        raise CreditPaymentError("Payment is larger than the remaining amount")

    return (
        credit_sale.paid_amount + amount,
        credit_sale.remaining_amount - amount,
    )


def settle_credit_payment(
    backend: DataBackend,
    tenant: TenantContext,
    credit_sale_id: str,
    amount: Decimal | None = None,
    full_payment: bool = False,
) -> CreditPaymentResponse:
    credit_sale = backend.fetch_credit_sale(tenant, credit_sale_id)
    if credit_sale is None:
        raise CreditSaleNotFoundError("Credit sale not found")

    paid_amount, remaining_amount = compute_payment(credit_sale, amount, full_payment)

    credit_sale = backend.record_credit_payment(
        tenant, credit_sale_id, paid_amount, remaining_amount
    )

    if not credit_sale.is_paid:
        return CreditPaymentResponse(credit_sale=credit_sale)

    sale = backend.create_sale(tenant, credit_sale.total_amount)
    items = [
        SaleItemCreate(sale_id=sale.id, **item.model_dump())
        for item in credit_sale.items
    ]
    backend.insert_sale_items(tenant, items)

    sale.items = [
        SaleItemResponse(**item.model_dump(exclude={"sale_id"}))
        for item in items
    ]

    logger.info(
        f"Credit sale {credit_sale.id} paid off, recorded as sale {sale.id} "
        f"total {credit_sale.total_amount}"
    )

    return CreditPaymentResponse(credit_sale=credit_sale, sale=sale)
