from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi import Depends
from sqlalchemy.orm import Session

from conftest import OTHER_OWNER, OWNER
from kesti.core.tenant import TenantContext
from kesti.database import get_db
from kesti.main import app
from kesti.models.profiles import Profile
from kesti.services.backend import BackendError, SqlAlchemyBackend, get_backend
from kesti.services.cart_sessions import cart_sessions


def _create_product(client, headers, **overrides):
    payload = {
        "name": "Coffee",
        "selling_price": "10.00",
        "cost_price": "6.00",
        "unit_type": "item",
    }
    payload.update(overrides)
    res = client.post("/products", json=payload, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()


def test_health(client):
    res = client.get("/")
    assert res.status_code == 200


def test_missing_owner_header_is_rejected(client):
    res = client.get("/cart")
    assert res.status_code == 401


# ---------------- PRODUCTS ----------------
def test_products_are_scoped_to_owner(client, owner_headers):
    product = _create_product(client, owner_headers)

    other_headers = {"X-Owner-Id": OTHER_OWNER}
    assert client.get("/products", headers=other_headers).json() == []
    assert client.get(f"/products/{product['id']}", headers=other_headers).status_code == 404

    listed = client.get("/products", headers=owner_headers).json()
    assert [p["name"] for p in listed] == ["Coffee"]


def test_update_and_delete_product(client, owner_headers):
    product = _create_product(client, owner_headers, stock_quantity=5)

    res = client.put(
        f"/products/{product['id']}",
        json={"selling_price": "12.50", "stock_quantity": None},
        headers=owner_headers,
    )
    assert res.status_code == 200
    body = res.json()
    assert Decimal(body["selling_price"]) == Decimal("12.50")
    assert body["stock_quantity"] is None

    res = client.put(f"/products/{product['id']}", json={"name": None}, headers=owner_headers)
    assert res.status_code == 400

    res = client.delete(f"/products/{product['id']}", headers=owner_headers)
    assert res.status_code == 204
    assert client.get("/products", headers=owner_headers).json() == []


def test_product_search_matches_category_name(client, owner_headers):
    category = client.post("/products/categories", json={"name": "Bakery"}, headers=owner_headers).json()
    _create_product(client, owner_headers, name="Baguette", category_id=category["id"])
    _create_product(client, owner_headers, name="Tea")

    res = client.get("/products", params={"search": "bake"}, headers=owner_headers)
    assert [p["name"] for p in res.json()] == ["Baguette"]

    res = client.post("/products/categories", json={"name": "Bakery"}, headers=owner_headers)
    assert res.status_code == 409


def test_unknown_category_is_rejected(client, owner_headers):
    res = client.post(
        "/products",
        json={"name": "Tea", "selling_price": "2.00", "category_id": "nope"},
        headers=owner_headers,
    )
    assert res.status_code == 404


def test_low_stock_lists_only_tracked_products_at_threshold(client, owner_headers):
    _create_product(client, owner_headers, name="Low", stock_quantity=2, low_stock_threshold=5)
    _create_product(client, owner_headers, name="Plenty", stock_quantity=50, low_stock_threshold=5)
    _create_product(client, owner_headers, name="Untracked")

    res = client.get("/products/low-stock", headers=owner_headers)
    assert [p["name"] for p in res.json()] == ["Low"]


# ---------------- CART ----------------
def test_cart_flow(client, owner_headers):
    coffee = _create_product(client, owner_headers)
    cheese = _create_product(client, owner_headers, name="Cheese", selling_price="4.50", unit_type="kg")

    client.post("/cart/items", json={"product_id": coffee["id"], "quantity": "1"}, headers=owner_headers)
    res = client.post("/cart/items", json={"product_id": coffee["id"], "quantity": "2"}, headers=owner_headers)
    cart = res.json()
    assert len(cart["lines"]) == 1
    assert cart["lines"][0]["quantity"] == 3
    assert cart["lines"][0]["unit_label"] == "items"
    assert Decimal(cart["total_price"]) == Decimal("30.00")

    res = client.post(
        "/cart/items",
        json={"product_id": cheese["id"], "quantity": "2", "unit_quantity": "0.5"},
        headers=owner_headers,
    )
    cart = res.json()
    cheese_line = next(line for line in cart["lines"] if line["product_id"] == cheese["id"])
    assert Decimal(cheese_line["line_total"]) == Decimal("4.50")
    assert cheese_line["unit_label"] == "kgs"
    assert cart["total_items"] == 5
    assert cart["currency"] == "TND"

    res = client.put(
        f"/cart/items/{cheese['id']}",
        json={"quantity": "2", "unit_quantity": "1"},
        headers=owner_headers,
    )
    assert Decimal(res.json()["total_price"]) == Decimal("39.00")

    client.post(f"/cart/items/{coffee['id']}/decrement", headers=owner_headers)
    res = client.post(f"/cart/items/{coffee['id']}/increment", headers=owner_headers)
    assert res.json()["total_items"] == 5

    res = client.put(f"/cart/items/{cheese['id']}", json={"quantity": "0"}, headers=owner_headers)
    assert [line["product_id"] for line in res.json()["lines"]] == [coffee["id"]]

    res = client.delete("/cart", headers=owner_headers)
    assert res.json()["lines"] == []
    assert Decimal(res.json()["total_price"]) == Decimal("0")


def test_cart_rejects_unparseable_quantities(client, owner_headers):
    coffee = _create_product(client, owner_headers)

    for bad in ("", "abc", "-1", "1.5", "0"):
        res = client.post("/cart/items", json={"product_id": coffee["id"], "quantity": bad}, headers=owner_headers)
        assert res.status_code == 400, bad

    res = client.post(
        "/cart/items",
        json={"product_id": coffee["id"], "quantity": "1", "unit_quantity": "."},
        headers=owner_headers,
    )
    assert res.status_code == 400
    assert client.get("/cart", headers=owner_headers).json()["lines"] == []


def test_cart_unknown_product_and_absent_line(client, owner_headers):
    res = client.post("/cart/items", json={"product_id": "missing"}, headers=owner_headers)
    assert res.status_code == 404

    assert client.post("/cart/items/missing/increment", headers=owner_headers).status_code == 404
    assert client.delete("/cart/items/missing", headers=owner_headers).status_code == 200


def test_carts_are_separate_per_device(client, owner_headers):
    coffee = _create_product(client, owner_headers)
    client.post("/cart/items", json={"product_id": coffee["id"]}, headers=owner_headers)

    other_till = {"X-Owner-Id": owner_headers["X-Owner-Id"], "X-Device-Id": "till-2"}
    assert client.get("/cart", headers=other_till).json()["lines"] == []
    assert len(client.get("/cart", headers=owner_headers).json()["lines"]) == 1


# ---------------- CHECKOUT & SALES ----------------
def test_checkout_empty_cart(client, owner_headers):
    res = client.post("/sales/checkout", headers=owner_headers)
    assert res.status_code == 200
    assert res.json()["status"] == "empty"
    assert client.get("/sales", headers=owner_headers).json() == []


def test_checkout_records_sale_and_deducts_stock(client, owner_headers):
    coffee = _create_product(client, owner_headers, stock_quantity=5)
    cheese = _create_product(
        client, owner_headers, name="Cheese", selling_price="4.50", unit_type="kg", stock_quantity=10
    )

    client.post("/cart/items", json={"product_id": coffee["id"], "quantity": "7"}, headers=owner_headers)
    client.post(
        "/cart/items",
        json={"product_id": cheese["id"], "quantity": "2", "unit_quantity": "0.5"},
        headers=owner_headers,
    )

    res = client.post("/sales/checkout", headers=owner_headers)
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["status"] == "completed"
    assert Decimal(body["sale"]["total_amount"]) == Decimal("74.50")

    stock = {p["name"]: p["stock_quantity"] for p in body["products"]}
    assert stock == {"Cheese": 8, "Coffee": 0}

    assert client.get("/cart", headers=owner_headers).json()["lines"] == []

    sales = client.get("/sales", headers=owner_headers).json()
    assert len(sales) == 1
    sale = client.get(f"/sales/{sales[0]['id']}", headers=owner_headers).json()
    items = {item["product_name"]: item for item in sale["items"]}
    assert items["Coffee"]["quantity"] == 7
    assert Decimal(items["Cheese"]["price_at_sale"]) == Decimal("4.50")
    assert Decimal(items["Coffee"]["cost_price_at_sale"]) == Decimal("6.00")

    assert client.get(f"/sales/{sales[0]['id']}", headers={"X-Owner-Id": OTHER_OWNER}).status_code == 404

    stats = client.get("/sales/stats/today", headers=owner_headers).json()
    assert stats["total_sales"] == 1
    assert Decimal(stats["total_revenue"]) == Decimal("74.50")
    assert Decimal(stats["average_sale"]) == Decimal("74.50")


def test_sales_date_range_validation(client, owner_headers):
    res = client.get(
        "/sales",
        params={"start_date": "2026-02-10", "end_date": "2026-02-01"},
        headers=owner_headers,
    )
    assert res.status_code == 400


def test_checkout_blocked_for_suspended_tenant(client, db, owner_headers):
    db.add(Profile(id=owner_headers["X-Owner-Id"], is_suspended=True))
    db.commit()

    res = client.post("/sales/checkout", headers=owner_headers)
    assert res.status_code == 403

    status_body = client.get("/subscription/status", headers=owner_headers).json()
    assert status_body["active"] is False
    assert status_body["suspended"] is True


def test_checkout_blocked_after_subscription_expiry(client, db, owner_headers):
    coffee = _create_product(client, owner_headers)
    client.post("/cart/items", json={"product_id": coffee["id"]}, headers=owner_headers)

    db.add(
        Profile(
            id=owner_headers["X-Owner-Id"],
            subscription_ends_at=datetime.now(timezone.utc) - timedelta(days=1),
        )
    )
    db.commit()

    res = client.post("/sales/checkout", headers=owner_headers)
    assert res.status_code == 402
    assert len(client.get("/cart", headers=owner_headers).json()["lines"]) == 1


def test_subscription_status_without_profile(client, owner_headers):
    body = client.get("/subscription/status", headers=owner_headers).json()
    assert body == {"active": True, "suspended": False, "subscription_ends_at": None}


def test_product_list_filters_by_category(client, owner_headers):
    bakery = client.post("/products/categories", json={"name": "Bakery"}, headers=owner_headers).json()
    _create_product(client, owner_headers, name="Baguette", category_id=bakery["id"])
    _create_product(client, owner_headers, name="Tea")

    res = client.get("/products", params={"category_id": bakery["id"]}, headers=owner_headers)
    assert [p["name"] for p in res.json()] == ["Baguette"]

    res = client.get("/products", params={"category_id": bakery["id"], "search": "tea"}, headers=owner_headers)
    assert res.json() == []


@pytest.mark.parametrize("zero", ["0", "00", "0.0", "0,0"])
def test_update_to_any_spelling_of_zero_removes_line(client, owner_headers, zero):
    coffee = _create_product(client, owner_headers)
    client.post("/cart/items", json={"product_id": coffee["id"], "quantity": "2"}, headers=owner_headers)

    res = client.put(f"/cart/items/{coffee['id']}", json={"quantity": zero}, headers=owner_headers)

    assert res.status_code == 200
    assert res.json()["lines"] == []


def test_cart_is_locked_while_checkout_runs(client, owner_headers):
    coffee = _create_product(client, owner_headers)
    client.post("/cart/items", json={"product_id": coffee["id"]}, headers=owner_headers)

    session = cart_sessions.get(TenantContext(owner_id=OWNER, device_id="till-1"))
    session.processing = True
    try:
        assert client.post("/cart/items", json={"product_id": coffee["id"]}, headers=owner_headers).status_code == 409
        assert client.post(f"/cart/items/{coffee['id']}/increment", headers=owner_headers).status_code == 409
        assert client.put(f"/cart/items/{coffee['id']}", json={"quantity": "5"}, headers=owner_headers).status_code == 409
        assert client.delete("/cart", headers=owner_headers).status_code == 409
        assert client.post("/sales/checkout", headers=owner_headers).status_code == 409
    finally:
        session.processing = False

    lines = client.get("/cart", headers=owner_headers).json()["lines"]
    assert [line["quantity"] for line in lines] == [1]


# ---------------- CHECKOUT FAILURES ----------------
class _FailingBackend(SqlAlchemyBackend):
    def __init__(self, db, fail_on):
        super().__init__(db)
        self.fail_on = fail_on

    def create_sale(self, tenant, total_amount):
        if self.fail_on == "create_sale":
            raise BackendError("sales table unavailable")
        return super().create_sale(tenant, total_amount)

    def insert_sale_items(self, tenant, items):
        if self.fail_on == "insert_sale_items":
            raise BackendError("sale_items table unavailable")
        return super().insert_sale_items(tenant, items)


@pytest.mark.parametrize("fail_on, sales_written", [("create_sale", 0), ("insert_sale_items", 1)])
def test_checkout_failure_returns_500_and_keeps_cart(client, owner_headers, fail_on, sales_written):
    coffee = _create_product(client, owner_headers, stock_quantity=5)
    client.post("/cart/items", json={"product_id": coffee["id"], "quantity": "2"}, headers=owner_headers)

    def _failing_backend(db: Session = Depends(get_db)):
        return _FailingBackend(db, fail_on)

    app.dependency_overrides[get_backend] = _failing_backend
    try:
        res = client.post("/sales/checkout", headers=owner_headers)
    finally:
        app.dependency_overrides.pop(get_backend)

    assert res.status_code == 500
    assert res.json()["detail"] == "Failed to process checkout"

    lines = client.get("/cart", headers=owner_headers).json()["lines"]
    assert [line["quantity"] for line in lines] == [2]
    assert len(client.get("/sales", headers=owner_headers).json()) == sales_written
    assert client.get(f"/products/{coffee['id']}", headers=owner_headers).json()["stock_quantity"] == 5

    # retry with a healthy backend goes through
    res = client.post("/sales/checkout", headers=owner_headers)
    assert res.json()["status"] == "completed"


# ---------------- CREDITS ----------------
def _create_customer(client, headers, name="Sami"):
    res = client.post("/credits/customers", json={"name": name, "phone": "+216 20 000 000"}, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()


def test_credit_checkout_and_payments(client, owner_headers):
    coffee = _create_product(client, owner_headers, stock_quantity=5)
    customer = _create_customer(client, owner_headers)
    client.post("/cart/items", json={"product_id": coffee["id"], "quantity": "3"}, headers=owner_headers)

    res = client.post("/credits/checkout", json={"customer_id": customer["id"]}, headers=owner_headers)
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["status"] == "completed"
    assert body["sale"] is None
    credit_sale = body["credit_sale"]
    assert Decimal(credit_sale["remaining_amount"]) == Decimal("30.00")
    assert [p["stock_quantity"] for p in body["products"]] == [2]
    assert client.get("/cart", headers=owner_headers).json()["lines"] == []
    assert client.get("/sales", headers=owner_headers).json() == []

    pay_url = f"/credits/{credit_sale['id']}/payments"
    assert client.post(pay_url, json={"amount": "31.00"}, headers=owner_headers).status_code == 400

    res = client.post(pay_url, json={"amount": "10.00"}, headers=owner_headers)
    assert res.status_code == 200
    assert Decimal(res.json()["credit_sale"]["remaining_amount"]) == Decimal("20.00")
    assert res.json()["sale"] is None

    summary = client.get("/credits/summary", headers=owner_headers).json()
    assert Decimal(summary["total_unpaid"]) == Decimal("20.00")
    assert summary["unpaid_count"] == 1

    res = client.post(pay_url, json={"full_payment": True}, headers=owner_headers)
    assert res.status_code == 200
    assert res.json()["credit_sale"]["is_paid"] is True
    assert res.json()["credit_sale"]["paid_at"] is not None

    sales = client.get("/sales", headers=owner_headers).json()
    assert len(sales) == 1
    assert Decimal(sales[0]["total_amount"]) == Decimal("30.00")
    assert [item["quantity"] for item in sales[0]["items"]] == [3]

    assert client.post(pay_url, json={"full_payment": True}, headers=owner_headers).status_code == 400

    paid = client.get("/credits", params={"status": "paid"}, headers=owner_headers).json()
    assert [c["id"] for c in paid] == [credit_sale["id"]]
    assert paid[0]["customer"]["name"] == "Sami"
    assert client.get("/credits", params={"status": "unpaid"}, headers=owner_headers).json() == []


def test_credit_checkout_requires_own_customer(client, owner_headers):
    coffee = _create_product(client, owner_headers)
    client.post("/cart/items", json={"product_id": coffee["id"]}, headers=owner_headers)
    foreign = _create_customer(client, {"X-Owner-Id": OTHER_OWNER}, name="Other")

    res = client.post("/credits/checkout", json={"customer_id": foreign["id"]}, headers=owner_headers)

    assert res.status_code == 404
    assert len(client.get("/cart", headers=owner_headers).json()["lines"]) == 1


def test_credit_sales_are_scoped_to_owner(client, owner_headers):
    coffee = _create_product(client, owner_headers)
    customer = _create_customer(client, owner_headers)
    client.post("/cart/items", json={"product_id": coffee["id"]}, headers=owner_headers)
    credit_sale = client.post(
        "/credits/checkout", json={"customer_id": customer["id"]}, headers=owner_headers
    ).json()["credit_sale"]

    other_headers = {"X-Owner-Id": OTHER_OWNER}
    assert client.get(f"/credits/{credit_sale['id']}", headers=other_headers).status_code == 404
    res = client.post(f"/credits/{credit_sale['id']}/payments", json={"full_payment": True}, headers=other_headers)
    assert res.status_code == 404
    assert client.get("/credits/customers", headers=other_headers).json() == []


# ---------------- EXPENSES ----------------
def test_expense_crud_and_summary(client, owner_headers):
    res = client.post(
        "/expenses",
        json={"description": "Electricity", "amount": "85.40", "category": "Utilities"},
        headers=owner_headers,
    )
    assert res.status_code == 201, res.text
    electricity = res.json()
    assert electricity["expense_type"] == "one_time"
    assert electricity["next_occurrence_date"] is None

    client.post("/expenses", json={"description": "Bags", "amount": "14.60"}, headers=owner_headers)

    summary = client.get("/expenses/summary", params={"period": "today"}, headers=owner_headers).json()
    assert summary["count"] == 2
    assert Decimal(summary["total_amount"]) == Decimal("100.00")

    res = client.get("/expenses", params={"category": "util"}, headers=owner_headers)
    assert [e["description"] for e in res.json()] == ["Electricity"]

    res = client.put(f"/expenses/{electricity['id']}", json={"amount": "90.00"}, headers=owner_headers)
    assert Decimal(res.json()["amount"]) == Decimal("90.00")
    res = client.put(f"/expenses/{electricity['id']}", json={"description": None}, headers=owner_headers)
    assert res.status_code == 400

    assert client.get("/expenses", headers={"X-Owner-Id": OTHER_OWNER}).json() == []
    assert client.delete(f"/expenses/{electricity['id']}", headers={"X-Owner-Id": OTHER_OWNER}).status_code == 404
    assert client.delete(f"/expenses/{electricity['id']}", headers=owner_headers).status_code == 204
    assert len(client.get("/expenses", headers=owner_headers).json()) == 1


def test_recurring_expense_validation_and_processing(client, owner_headers):
    res = client.post(
        "/expenses",
        json={"description": "Rent", "amount": "500", "expense_type": "recurring"},
        headers=owner_headers,
    )
    assert res.status_code == 422

    res = client.post(
        "/expenses",
        json={
            "description": "Rent",
            "amount": "500",
            "expense_type": "recurring",
            "recurring_frequency": "custom",
            "custom_interval_amount": 10,
            "custom_interval_unit": "days",
            "next_occurrence_date": "2026-01-05",
        },
        headers=owner_headers,
    )
    assert res.status_code == 201, res.text
    rent = res.json()

    res = client.post("/expenses/recurring/process", headers=owner_headers)
    assert res.json() == {"processed_count": 1, "errors": []}

    listed = client.get("/expenses", headers=owner_headers).json()
    assert listed[0]["next_occurrence_date"] == "2026-01-15"
    assert listed[0]["id"] == rent["id"]
