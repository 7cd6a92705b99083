# =========================================================
# DATA BACKEND
#
# The persistence calls checkout depends on, behind one contract.
# Every call is scoped to the tenant passed in; every failure is
# raised as BackendError so callers never see driver exceptions.
# =========================================================

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from decimal import Decimal

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from kesti.database import get_db
from kesti.core.tenant import TenantContext
from kesti.models.credits import CreditCustomer, CreditSale, CreditSaleItem
from kesti.models.products import Product
from kesti.models.sales import Sale
from kesti.models.sale_items import SaleItem
from kesti.schemas.credit import CreditSaleItemCreate, CreditSaleResponse
from kesti.schemas.product import ProductResponse
from kesti.schemas.sale import SaleItemCreate, SaleResponse


class BackendError(Exception):
    """A backend call failed."""


class DataBackend(ABC):
    @abstractmethod
    def create_sale(self, tenant: TenantContext, total_amount: Decimal) -> SaleResponse:
        ...

    @abstractmethod
    def insert_sale_items(self, tenant: TenantContext, items: list[SaleItemCreate]) -> list[SaleItemCreate]:
        ...

    @abstractmethod
    def update_stock(self, tenant: TenantContext, product_id: str, stock_quantity: int) -> None:
        ...

    @abstractmethod
    def fetch_products(self, tenant: TenantContext) -> list[ProductResponse]:
        ...

    @abstractmethod
    def fetch_product(self, tenant: TenantContext, product_id: str) -> ProductResponse | None:
        ...

    # Credit sales

    @abstractmethod
    def create_credit_sale(self, tenant: TenantContext, customer_id: str, total_amount: Decimal) -> CreditSaleResponse:
        ...

    @abstractmethod
    def insert_credit_sale_items(
        self, tenant: TenantContext, items: list[CreditSaleItemCreate]
    ) -> list[CreditSaleItemCreate]:
        ...

    @abstractmethod
    def fetch_credit_sale(self, tenant: TenantContext, credit_sale_id: str) -> CreditSaleResponse | None:
        ...

    @abstractmethod
    def record_credit_payment(
        self,
        tenant: TenantContext,
        credit_sale_id: str,
        paid_amount: Decimal,
        remaining_amount: Decimal,
    ) -> CreditSaleResponse:
        ...


class SqlAlchemyBackend(DataBackend):
    def __init__(self, db: Session):
        self.db = db

    def create_sale(self, tenant, total_amount):
        try:
            sale = Sale(owner_id=tenant.owner_id, total_amount=total_amount)
            self.db.add(sale)
            self.db.commit()
            self.db.refresh(sale)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise BackendError(f"Unable to create sale: {e}") from e

        return SaleResponse.model_validate(sale)

    def insert_sale_items(self, tenant, items):
        if not items:
            return []

        try:
            sale_ids = {item.sale_id for item in items}
            owned = (
                self.db.query(Sale.id)
                .filter(
                    Sale.id.in_(sale_ids),
                    Sale.owner_id == tenant.owner_id,
                )
                .count()
            )
            if owned != len(sale_ids):
                raise BackendError("Sale not found for this owner")

            self.db.add_all([SaleItem(**item.model_dump()) for item in items])
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise BackendError(f"Unable to insert sale items: {e}") from e

        return list(items)

    def update_stock(self, tenant, product_id, stock_quantity):
        try:
            updated = (
                self.db.query(Product)
                .filter(
                    Product.id == product_id,
                    Product.owner_id == tenant.owner_id,
                )
                .update(
                    {Product.stock_quantity: stock_quantity},
                    synchronize_session=False,
                )
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise BackendError(f"Unable to update stock for {product_id}: {e}") from e

        if not updated:
            raise BackendError(f"Product {product_id} not found")

    def fetch_products(self, tenant):
        try:
            products = (
                self.db.query(Product)
                .options(joinedload(Product.category))
                .filter(Product.owner_id == tenant.owner_id)
                .order_by(Product.name)
                .all()
            )
        except SQLAlchemyError as e:
            raise BackendError(f"Unable to fetch products: {e}") from e

        return [ProductResponse.model_validate(p) for p in products]

    def fetch_product(self, tenant, product_id):
        try:
            product = (
                self.db.query(Product)
                .options(joinedload(Product.category))
                .filter(
                    Product.id == product_id,
                    Product.owner_id == tenant.owner_id,
                )
                .first()
            )
        except SQLAlchemyError as e:
            raise BackendError(f"Unable to fetch product {product_id}: {e}") from e

        if product is None:
            return None

        return ProductResponse.model_validate(product)

    # -----------------------------------------------------
    # CREDIT SALES
    # -----------------------------------------------------
    def _owned_credit_sale(self, tenant, credit_sale_id):
        return (
            self.db.query(CreditSale)
            .options(
                joinedload(CreditSale.items),
                joinedload(CreditSale.customer),
            )
            .filter(
                CreditSale.id == credit_sale_id,
                CreditSale.owner_id == tenant.owner_id,
            )
            .first()
        )

    def create_credit_sale(self, tenant, customer_id, total_amount):
        try:
            customer = (
                self.db.query(CreditCustomer)
                .filter(
                    CreditCustomer.id == customer_id,
                    CreditCustomer.owner_id == tenant.owner_id,
                )
                .first()
            )
            if customer is None:
                raise BackendError(f"Customer {customer_id} not found")

            credit_sale = CreditSale(
                owner_id=tenant.owner_id,
                customer_id=customer_id,
                total_amount=total_amount,
                paid_amount=Decimal("0"),
                remaining_amount=total_amount,
                is_paid=False,
            )
            self.db.add(credit_sale)
            self.db.commit()
            self.db.refresh(credit_sale)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise BackendError(f"Unable to create credit sale: {e}") from e

        return CreditSaleResponse.model_validate(credit_sale)

    def insert_credit_sale_items(self, tenant, items):
        if not items:
            return []

        try:
            credit_sale_ids = {item.credit_sale_id for item in items}
            owned = (
                self.db.query(CreditSale.id)
                .filter(
                    CreditSale.id.in_(credit_sale_ids),
                    CreditSale.owner_id == tenant.owner_id,
                )
                .count()
            )
            if owned != len(credit_sale_ids):
                raise BackendError("Credit sale not found for this owner")

            self.db.add_all([CreditSaleItem(**item.model_dump()) for item in items])
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise BackendError(f"Unable to insert credit sale items: {e}") from e

        return list(items)

    def fetch_credit_sale(self, tenant, credit_sale_id):
        try:
            credit_sale = self._owned_credit_sale(tenant, credit_sale_id)
        except SQLAlchemyError as e:
            raise BackendError(f"Unable to fetch credit sale {credit_sale_id}: {e}") from e

        if credit_sale is None:
            return None

        return CreditSaleResponse.model_validate(credit_sale)

    def record_credit_payment(self, tenant, credit_sale_id, paid_amount, remaining_amount):
        try:
            credit_sale = self._owned_credit_sale(tenant, credit_sale_id)
            if credit_sale is None:
                raise BackendError(f"Credit sale {credit_sale_id} not found")

            is_paid = remaining_amount == 0

            credit_sale.paid_amount = paid_amount
            credit_sale.remaining_amount = remaining_amount
            credit_sale.is_paid = is_paid
            credit_sale.paid_at = datetime.now(timezone.utc) if is_paid else None

            self.db.commit()
            self.db.refresh(credit_sale)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise BackendError(f"Unable to record payment for {credit_sale_id}: {e}") from e

        return CreditSaleResponse.model_validate(credit_sale)


def get_backend(db: Session = Depends(get_db)) -> DataBackend:
    return SqlAlchemyBackend(db)
