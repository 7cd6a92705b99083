# models/sale_items.py

from sqlalchemy import Column, Integer, String, ForeignKey, Numeric
from sqlalchemy.orm import relationship

from kesti.database import Base


class SaleItem(Base):
    __tablename__ = "sale_items"

    id = Column(Integer, primary_key=True, index=True)

    sale_id = Column(String(36), ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)

    # Snapshots survive product deletion, so no FK here
    product_id = Column(String(36), nullable=False, index=True)
    product_name = Column(String, nullable=False)

    quantity = Column(Integer, nullable=False)
    price_at_sale = Column(Numeric(10, 2), nullable=False)
    cost_price_at_sale = Column(Numeric(10, 2), nullable=False, default=0)

    sale = relationship("Sale", back_populates="items")
