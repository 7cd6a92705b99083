# kesti/models/products.py

import uuid

from sqlalchemy import CheckConstraint, Column, Index, Integer, String, Numeric, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from kesti.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class ProductCategory(Base):
    __tablename__ = "product_categories"

    id = Column(String(36), primary_key=True, default=_uuid)
    owner_id = Column(String(36), nullable=False, index=True)
    name = Column(String, nullable=False)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    products = relationship("Product", back_populates="category")

    __table_args__ = (
        UniqueConstraint("owner_id", "name", name="uq_owner_category_name"),
    )


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=_uuid)
    owner_id = Column(String(36), nullable=False, index=True)

    name = Column(String, nullable=False)
    selling_price = Column(Numeric(10, 2), nullable=False)
    cost_price = Column(Numeric(10, 2), nullable=False, default=0)
    unit_type = Column(String(8), nullable=False, default="item")
    image_url = Column(String, nullable=True)

    category_id = Column(
        String(36),
        ForeignKey("product_categories.id", ondelete="SET NULL"),
        nullable=True,
    )

    # NULL means the product is not stock-tracked
    stock_quantity = Column(Integer, nullable=True)
    low_stock_threshold = Column(Integer, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    category = relationship("ProductCategory", back_populates="products")

    __table_args__ = (
        Index("ix_products_owner_name", "owner_id", "name"),
        CheckConstraint("cost_price >= 0", name="ck_cost_price_non_negative"),
        CheckConstraint("selling_price >= 0", name="ck_selling_price_non_negative"),
        CheckConstraint(
            "unit_type IN ('item', 'kg', 'g', 'l', 'ml')",
            name="ck_unit_type_valid",
        ),
        CheckConstraint(
            "stock_quantity IS NULL OR stock_quantity >= 0",
            name="ck_stock_quantity_non_negative",
        ),
    )
