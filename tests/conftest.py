from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from kesti.database import Base, get_db
from kesti.core.rate_limiter import limiter
from kesti.main import app
from kesti.models import credits, expenses, products, profiles, sale_items, sales  # noqa: F401
from kesti.schemas.credit import CreditSaleItemResponse, CreditSaleResponse
from kesti.schemas.product import ProductResponse
from kesti.schemas.sale import SaleResponse
from kesti.services.backend import BackendError, DataBackend
from kesti.services.cart_sessions import cart_sessions


OWNER = "owner-1"
OTHER_OWNER = "owner-2"


def make_product(
    product_id="A",
    name=None,
    price="10.00",
    unit_type="item",
    cost_price="6.00",
    stock_quantity=None,
    low_stock_threshold=None,
):
    return ProductResponse(
        id=product_id,
        name=name or f"Product {product_id}",
        selling_price=Decimal(price),
        cost_price=Decimal(cost_price),
        unit_type=unit_type,
        stock_quantity=stock_quantity,
        low_stock_threshold=low_stock_threshold,
    )


class FakeBackend(DataBackend):
    """In-memory backend recording every call in order."""

    def __init__(self, fail_on=None, failing_stock_ids=()):
        self.fail_on = fail_on
        self.failing_stock_ids = set(failing_stock_ids)
        self.calls = []
        self.sales = []
        self.items = []
        self.stock = {}
        self.credit_sales = {}
        self.credit_items = []

    def create_sale(self, tenant, total_amount):
        self.calls.append(("create_sale", tenant.owner_id, total_amount))
        if self.fail_on == "create_sale":
            raise BackendError("insert into sales failed")
        sale = SaleResponse(id=f"sale-{len(self.sales) + 1}", total_amount=total_amount)
        self.sales.append(sale)
        return sale

    def insert_sale_items(self, tenant, items):
        self.calls.append(("insert_sale_items", tenant.owner_id, len(items)))
        if self.fail_on == "insert_sale_items":
            raise BackendError("insert into sale_items failed")
        self.items.extend(items)
        return items

    def update_stock(self, tenant, product_id, stock_quantity):
        self.calls.append(("update_stock", product_id, stock_quantity))
        if product_id in self.failing_stock_ids:
            raise BackendError("update products failed")
        self.stock[product_id] = stock_quantity

    def fetch_products(self, tenant):
        self.calls.append(("fetch_products", tenant.owner_id))
        if self.fail_on == "fetch_products":
            raise BackendError("select products failed")
        return [make_product("A")]

    def fetch_product(self, tenant, product_id):
        return make_product(product_id)

    def create_credit_sale(self, tenant, customer_id, total_amount):
        self.calls.append(("create_credit_sale", customer_id, total_amount))
        if self.fail_on == "create_credit_sale":
            raise BackendError("insert into credit_sales failed")
        credit_sale = CreditSaleResponse(
            id=f"credit-{len(self.credit_sales) + 1}",
            customer_id=customer_id,
            total_amount=total_amount,
            remaining_amount=total_amount,
        )
        self.credit_sales[credit_sale.id] = credit_sale
        return credit_sale

    def insert_credit_sale_items(self, tenant, items):
        self.calls.append(("insert_credit_sale_items", tenant.owner_id, len(items)))
        if self.fail_on == "insert_credit_sale_items":
            raise BackendError("insert into credit_sale_items failed")
        self.credit_items.extend(items)
        return items

    def fetch_credit_sale(self, tenant, credit_sale_id):
        credit_sale = self.credit_sales.get(credit_sale_id)
        if credit_sale is None:
            return None
        items = [
            CreditSaleItemResponse(**item.model_dump(exclude={"credit_sale_id"}))
            for item in self.credit_items
            if item.credit_sale_id == credit_sale_id
        ]
        return credit_sale.model_copy(update={"items": items})

    def record_credit_payment(self, tenant, credit_sale_id, paid_amount, remaining_amount):
        self.calls.append(("record_credit_payment", credit_sale_id, paid_amount, remaining_amount))
        if self.fail_on == "record_credit_payment":
            raise BackendError("update credit_sales failed")
        updated = self.fetch_credit_sale(tenant, credit_sale_id).model_copy(
            update={
                "paid_amount": paid_amount,
                "remaining_amount": remaining_amount,
                "is_paid": remaining_amount == 0,
            }
        )
        self.credit_sales[credit_sale_id] = updated
        return updated


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def _override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    cart_sessions.clear()
    limiter.reset()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    cart_sessions.clear()


@pytest.fixture
def owner_headers():
    return {"X-Owner-Id": OWNER, "X-Device-Id": "till-1"}
