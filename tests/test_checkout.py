import logging
import threading
from decimal import Decimal

import pytest

from conftest import FakeBackend, make_product
from kesti.core.tenant import TenantContext
from kesti.services.cart_sessions import CartSession, CartSessionRegistry
from kesti.services.cart_store import CartStore
from kesti.services.checkout import (
    CheckoutInProgressError,
    CheckoutOrchestrator,
    SaleCreationError,
    SaleItemsInsertError,
    build_sale_items,
    compute_new_stock,
)


TENANT = TenantContext(owner_id="owner-1", device_id="till-1")


def _call_names(backend):
    return [call[0] for call in backend.calls]


def _populated_cart():
    cart = CartStore()
    cart.add_to_cart(make_product("A", price="10.00", cost_price="7.00", stock_quantity=5), 7)
    cart.add_to_cart(
        make_product("B", price="4.50", unit_type="kg", cost_price="2.00", stock_quantity=20),
        2,
        Decimal("0.5"),
    )
    cart.add_to_cart(make_product("C", price="1.00"), 3)
    return cart


def test_empty_cart_makes_no_backend_calls():
    backend = FakeBackend()

    result = CheckoutOrchestrator(backend).checkout(TENANT, CartStore())

    assert result.status == "empty"
    assert result.sale is None
    assert backend.calls == []


def test_checkout_creates_sale_items_and_deducts_stock():
    backend = FakeBackend()
    cart = _populated_cart()

    result = CheckoutOrchestrator(backend).checkout(TENANT, cart)

    assert result.status == "completed"
    assert _call_names(backend) == [
        "create_sale",
        "insert_sale_items",
        "update_stock",
        "update_stock",
        "fetch_products",
    ]
    assert backend.calls[0] == ("create_sale", "owner-1", Decimal("77.50"))
    assert result.sale.total_amount == Decimal("77.50")
    assert len(result.sale.items) == 3

    # product C is not stock-tracked
    assert backend.stock == {"A": 0, "B": 18}
    assert cart.is_empty()
    assert [p.id for p in result.products] == ["A"]


def test_sale_items_snapshot_product_prices():
    lines = _populated_cart().lines

    items = build_sale_items("sale-9", lines)

    first = items[0]
    assert first.sale_id == "sale-9"
    assert first.product_id == "A"
    assert first.product_name == "Product A"
    assert first.quantity == 7
    assert first.price_at_sale == Decimal("10.00")
    assert first.cost_price_at_sale == Decimal("7.00")


def test_stock_deduction_floors_at_zero_and_ignores_unit_quantity():
    assert compute_new_stock(5, 7) == 0
    assert compute_new_stock(20, 2) == 18

    backend = FakeBackend()
    cart = CartStore()
    cart.add_to_cart(
        make_product("K", price="3.00", unit_type="kg", stock_quantity=5),
        7,
        Decimal("0.25"),
    )

    CheckoutOrchestrator(backend).checkout(TENANT, cart)

    assert backend.stock == {"K": 0}


def test_sale_creation_failure_aborts_and_keeps_cart():
    backend = FakeBackend(fail_on="create_sale")
    cart = _populated_cart()

    with pytest.raises(SaleCreationError):
        CheckoutOrchestrator(backend).checkout(TENANT, cart)

    assert _call_names(backend) == ["create_sale"]
    assert len(cart) == 3


def test_sale_items_failure_leaves_orphaned_sale_and_keeps_cart():
    backend = FakeBackend(fail_on="insert_sale_items")
    cart = _populated_cart()

    with pytest.raises(SaleItemsInsertError) as ex:
        CheckoutOrchestrator(backend).checkout(TENANT, cart)

    assert ex.value.sale_id == "sale-1"
    assert len(backend.sales) == 1
    assert "update_stock" not in _call_names(backend)
    assert len(cart) == 3


def test_stock_update_failure_is_logged_and_checkout_continues(caplog):
    backend = FakeBackend(failing_stock_ids={"A"})
    cart = _populated_cart()

    with caplog.at_level(logging.ERROR, logger="kesti"):
        result = CheckoutOrchestrator(backend).checkout(TENANT, cart)

    assert result.status == "completed"
    assert backend.stock == {"B": 18}
    failed = [u for u in result.stock_updates if not u.ok]
    assert [u.product_id for u in failed] == ["A"]
    assert "Error updating stock for product Product A" in caplog.text
    assert cart.is_empty()


def test_catalog_refresh_failure_is_not_fatal():
    backend = FakeBackend(fail_on="fetch_products")
    cart = _populated_cart()

    result = CheckoutOrchestrator(backend).checkout(TENANT, cart)

    assert result.status == "completed"
    assert result.products == []
    assert cart.is_empty()


def test_checkout_guard_rejects_concurrent_checkout():
    session = CartSession()
    entered = threading.Event()
    release = threading.Event()

    def _hold():
        with session.checkout_guard():
            entered.set()
            release.wait(timeout=5)

    worker = threading.Thread(target=_hold)
    worker.start()
    entered.wait(timeout=5)

    try:
        with pytest.raises(CheckoutInProgressError):
            with session.checkout_guard():
                pass
        assert session.processing is True
    finally:
        release.set()
        worker.join(timeout=5)

    assert session.processing is False


def test_checkout_guard_resets_flag_after_failure():
    session = CartSession()

    with pytest.raises(SaleCreationError):
        with session.checkout_guard() as store:
            store.add_to_cart(make_product("A"), 1)
            CheckoutOrchestrator(FakeBackend(fail_on="create_sale")).checkout(TENANT, store)

    assert session.processing is False
    assert len(session.store) == 1


def test_registry_keeps_one_cart_per_owner_and_device():
    registry = CartSessionRegistry()
    till_1 = TenantContext(owner_id="owner-1", device_id="till-1")
    till_2 = TenantContext(owner_id="owner-1", device_id="till-2")

    assert registry.get(till_1) is registry.get(till_1)
    assert registry.get(till_1) is not registry.get(till_2)

    registry.drop(till_1)
    assert registry.get(till_1) is not None


class _CartEditingBackend(FakeBackend):
    """Edits the cart while the sale row is being written."""

    def __init__(self, cart):
        super().__init__()
        self.cart = cart

    def create_sale(self, tenant, total_amount):
        sale = super().create_sale(tenant, total_amount)
        self.cart.increment_quantity("A")
        self.cart.update_quantity("B", 5)
        return sale


def test_checkout_records_the_cart_as_it_was_when_started():
    cart = _populated_cart()
    backend = _CartEditingBackend(cart)

    result = CheckoutOrchestrator(backend).checkout(TENANT, cart)

    assert result.sale.total_amount == Decimal("77.50")
    assert {item.product_id: item.quantity for item in backend.items} == {"A": 7, "B": 2, "C": 3}
    assert backend.stock == {"A": 0, "B": 18}


def test_cart_edits_are_refused_while_checkout_holds_the_session():
    session = CartSession()

    with session.checkout_guard():
        with pytest.raises(CheckoutInProgressError):
            with session.editing():
                pass

    with session.editing() as store:
        store.add_to_cart(make_product("A"), 1)

    assert len(session.store) == 1
