# kesti/services/checkout.py

"""
CHECKOUT ORCHESTRATOR

Turns a populated cart into a Sale and its SaleItems, deducts stock for
tracked products, then clears the cart.

The steps are NOT one transaction:
1. create the sale
2. insert its items
3. update stock, product by product
4. clear the cart and refresh the catalog

- A failure in 1 aborts with nothing written.
- A failure in 2 leaves the sale persisted without items. There is no
  compensating delete; SaleItemsInsertError carries the orphaned sale id
  so the caller can report it.
- A failure in 3 is logged and skipped. The sale is complete at that point.

Stock is deducted by order count only. unit_quantity (0.5 kg per order,
etc.) does not reach the stock figure.

Every step works on a deep copy of the cart lines taken up front. The
HTTP layer also refuses cart edits while a checkout holds the session
(see CartSession.editing), so the cart cleared in 4 is the cart sold.

checkout_on_credit runs the same steps against credit_sales and
credit_sale_items instead.
"""

import logging
from decimal import Decimal

from kesti.core.tenant import TenantContext
from kesti.schemas.cart import CartLine
from kesti.schemas.checkout import CheckoutResponse, StockUpdateResponse
from kesti.schemas.credit import CreditSaleItemCreate, CreditSaleItemResponse
from kesti.schemas.sale import SaleItemCreate, SaleItemResponse
from kesti.services.backend import BackendError, DataBackend
from kesti.services.cart_store import CartStore

logger = logging.getLogger("kesti")


class CheckoutError(Exception):
    """Base checkout exception"""


class CheckoutInProgressError(CheckoutError):
    pass


class SaleCreationError(CheckoutError):
    pass


class SaleItemsInsertError(CheckoutError):
    def __init__(self, message: str, sale_id: str):
        super().__init__(message)
        self.sale_id = sale_id


def snapshot_lines(cart: CartStore) -> list[CartLine]:
    # Deep copies: later edits to the cart must not reach a sale in flight
    return [line.model_copy(deep=True) for line in cart.lines]


def lines_total(lines: list[CartLine]) -> Decimal:
    return sum((line.line_total for line in lines), Decimal("0"))


def compute_new_stock(stock_quantity: int, quantity: int) -> int:
    return max(0, stock_quantity - quantity)


def build_sale_items(sale_id: str, lines: list[CartLine]) -> list[SaleItemCreate]:
    # Prices come from the snapshot held by the cart line
    return [
        SaleItemCreate(
            sale_id=sale_id,
            product_id=line.product.id,
            product_name=line.product.name,
            quantity=line.quantity,
            price_at_sale=line.product.selling_price,
            cost_price_at_sale=line.product.cost_price or Decimal("0"),
        )
        for line in lines
    ]


def build_credit_sale_items(credit_sale_id: str, lines: list[CartLine]) -> list[CreditSaleItemCreate]:
    return [
        CreditSaleItemCreate(
            credit_sale_id=credit_sale_id,
            product_id=line.product.id,
            product_name=line.product.name,
            quantity=line.quantity,
            price_at_sale=line.product.selling_price,
            cost_price_at_sale=line.product.cost_price or Decimal("0"),
        )
        for line in lines
    ]


class CheckoutOrchestrator:
    def __init__(self, backend: DataBackend):
        self.backend = backend

    def checkout(self, tenant: TenantContext, cart: CartStore) -> CheckoutResponse:
        lines = snapshot_lines(cart)
        if not lines:
            return CheckoutResponse(status="empty")

        total_amount = lines_total(lines)

        try:
            sale = self.backend.create_sale(tenant, total_amount)
        except BackendError as e:
            logger.error(f"Checkout failed creating sale for {tenant.owner_id}: {e}")
            raise SaleCreationError("Failed to process checkout") from e

        items = build_sale_items(sale.id, lines)

        try:
            self.backend.insert_sale_items(tenant, items)
        except BackendError as e:
            logger.error(
                f"Sale {sale.id} persisted without items for {tenant.owner_id}: {e}"
            )
            raise SaleItemsInsertError("Failed to process checkout", sale_id=sale.id) from e

        sale.items = [
            SaleItemResponse(**item.model_dump(exclude={"sale_id"}))
            for item in items
        ]

        stock_updates = self._deduct_stock(tenant, lines)

        cart.clear_cart()
        logger.info(
            f"Checkout complete: sale {sale.id} "
            f"owner {tenant.owner_id} "
            f"total {total_amount} "
            f"lines {len(lines)}"
        )

        return CheckoutResponse(
            status="completed",
            sale=sale,
            stock_updates=stock_updates,
            products=self._refresh_products(tenant),
        )

    def checkout_on_credit(self, tenant: TenantContext, cart: CartStore, customer_id: str) -> CheckoutResponse:
        """Same steps as checkout, recorded as a credit sale for the customer.

        Stock leaves the shelf now; the regular Sale is written when the
        credit is paid off.
        """
        lines = snapshot_lines(cart)
        if not lines:
            return CheckoutResponse(status="empty")

        total_amount = lines_total(lines)

        try:
            credit_sale = self.backend.create_credit_sale(tenant, customer_id, total_amount)
        except BackendError as e:
            logger.error(f"Credit checkout failed for customer {customer_id}: {e}")
            raise SaleCreationError("Failed to process checkout") from e

        items = build_credit_sale_items(credit_sale.id, lines)

        try:
            self.backend.insert_credit_sale_items(tenant, items)
        except BackendError as e:
            logger.error(
                f"Credit sale {credit_sale.id} persisted without items for {tenant.owner_id}: {e}"
            )
            raise SaleItemsInsertError("Failed to process checkout", sale_id=credit_sale.id) from e

        credit_sale.items = [
            CreditSaleItemResponse(**item.model_dump(exclude={"credit_sale_id"}))
            for item in items
        ]

        stock_updates = self._deduct_stock(tenant, lines)

        cart.clear_cart()
        logger.info(
            f"Credit checkout complete: credit sale {credit_sale.id} "
            f"customer {customer_id} "
            f"total {total_amount}"
        )

        return CheckoutResponse(
            status="completed",
            credit_sale=credit_sale,
            stock_updates=stock_updates,
            products=self._refresh_products(tenant),
        )

    def _deduct_stock(self, tenant, lines):
        updates = []

        for line in lines:
            product = line.product
            if product.stock_quantity is None:
                continue

            new_stock = compute_new_stock(product.stock_quantity, line.quantity)

            try:
                self.backend.update_stock(tenant, product.id, new_stock)
                ok = True
            except BackendError as e:
                logger.error(f"Error updating stock for product {product.name}: {e}")
                ok = False

            updates.append(
                StockUpdateResponse(
                    product_id=product.id,
                    product_name=product.name,
                    new_stock=new_stock,
                    ok=ok,
                )
            )

        return updates

    def _refresh_products(self, tenant):
        try:
            return self.backend.fetch_products(tenant)
        except BackendError as e:
            logger.warning(f"Catalog refresh after checkout failed: {e}")
            return []
