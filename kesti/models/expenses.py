# kesti/models/expenses.py

import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, Integer, Numeric, String
from sqlalchemy.sql import func

from kesti.database import Base


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String(36), nullable=False, index=True)

    description = Column(String, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    category = Column(String, nullable=True)

    expense_type = Column(String(16), nullable=False, default="one_time")

    # Recurring expenses only
    recurring_frequency = Column(String(16), nullable=True)
    custom_interval_amount = Column(Integer, nullable=True)
    custom_interval_unit = Column(String(16), nullable=True)
    next_occurrence_date = Column(Date, nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_expense_amount_positive"),
        CheckConstraint(
            "expense_type IN ('one_time', 'recurring')",
            name="ck_expense_type_valid",
        ),
    )
