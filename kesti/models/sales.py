# models/sales.py

import uuid

from sqlalchemy import Column, Index, String, DateTime, Numeric
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from kesti.database import Base


class Sale(Base):
    __tablename__ = "sales"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    owner_id = Column(String(36), nullable=False, index=True)

    total_amount = Column(Numeric(10, 2), nullable=False)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    items = relationship(
        "SaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
    )

    # Composite index for owner and date filtering
    __table_args__ = (
        Index("ix_sales_owner_created", "owner_id", "created_at"),
    )
