# kesti/models/credits.py

import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from kesti.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class CreditCustomer(Base):
    __tablename__ = "credit_customers"

    id = Column(String(36), primary_key=True, default=_uuid)
    owner_id = Column(String(36), nullable=False, index=True)

    name = Column(String, nullable=False)
    phone = Column(String, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    credit_sales = relationship("CreditSale", back_populates="customer")


class CreditSale(Base):
    """A sale taken on credit. Becomes a regular Sale once fully paid."""

    __tablename__ = "credit_sales"

    id = Column(String(36), primary_key=True, default=_uuid)
    owner_id = Column(String(36), nullable=False, index=True)

    customer_id = Column(
        String(36),
        ForeignKey("credit_customers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    total_amount = Column(Numeric(10, 2), nullable=False)
    paid_amount = Column(Numeric(10, 2), nullable=False, default=0)
    remaining_amount = Column(Numeric(10, 2), nullable=False)
    is_paid = Column(Boolean, nullable=False, default=False)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    paid_at = Column(DateTime(timezone=True), nullable=True)

    customer = relationship("CreditCustomer", back_populates="credit_sales")
    items = relationship(
        "CreditSaleItem",
        back_populates="credit_sale",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_credit_sales_owner_created", "owner_id", "created_at"),
        CheckConstraint("paid_amount >= 0", name="ck_credit_paid_non_negative"),
        CheckConstraint("remaining_amount >= 0", name="ck_credit_remaining_non_negative"),
    )


class CreditSaleItem(Base):
    __tablename__ = "credit_sale_items"

    id = Column(Integer, primary_key=True, index=True)

    credit_sale_id = Column(
        String(36),
        ForeignKey("credit_sales.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    product_id = Column(String(36), nullable=False)
    product_name = Column(String, nullable=False)

    quantity = Column(Integer, nullable=False)
    price_at_sale = Column(Numeric(10, 2), nullable=False)
    cost_price_at_sale = Column(Numeric(10, 2), nullable=False, default=0)

    credit_sale = relationship("CreditSale", back_populates="items")
