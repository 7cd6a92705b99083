"""credit_sales_and_expenses

Revision ID: 8e3a47c1f2b6
Revises: 5b1f0c2d9a41
Create Date: 2026-10-20 09:41:07.226815
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8e3a47c1f2b6'
down_revision: Union[str, Sequence[str], None] = '5b1f0c2d9a41'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""

    # CREDIT CUSTOMERS
    op.create_table(
        "credit_customers",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("owner_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_credit_customers_owner_id", "credit_customers", ["owner_id"], unique=False)

    # CREDIT SALES
    op.create_table(
        "credit_sales",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("owner_id", sa.String(length=36), nullable=False),
        sa.Column(
            "customer_id",
            sa.String(length=36),
            sa.ForeignKey("credit_customers.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("paid_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("remaining_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("is_paid", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("paid_amount >= 0", name="ck_credit_paid_non_negative"),
        sa.CheckConstraint("remaining_amount >= 0", name="ck_credit_remaining_non_negative"),
    )
    op.create_index("ix_credit_sales_owner_id", "credit_sales", ["owner_id"], unique=False)
    op.create_index("ix_credit_sales_customer_id", "credit_sales", ["customer_id"], unique=False)
    op.create_index(
        "ix_credit_sales_owner_created",
        "credit_sales",
        ["owner_id", "created_at"],
        unique=False,
    )

    # CREDIT SALE ITEMS
    op.create_table(
        "credit_sale_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "credit_sale_id",
            sa.String(length=36),
            sa.ForeignKey("credit_sales.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("product_id", sa.String(length=36), nullable=False),
        sa.Column("product_name", sa.String(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("price_at_sale", sa.Numeric(10, 2), nullable=False),
        sa.Column("cost_price_at_sale", sa.Numeric(10, 2), nullable=False),
    )
    op.create_index("ix_credit_sale_items_id", "credit_sale_items", ["id"], unique=False)
    op.create_index(
        "ix_credit_sale_items_credit_sale_id",
        "credit_sale_items",
        ["credit_sale_id"],
        unique=False,
    )

    # EXPENSES
    op.create_table(
        "expenses",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("owner_id", sa.String(length=36), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column("expense_type", sa.String(length=16), nullable=False, server_default="one_time"),
        sa.Column("recurring_frequency", sa.String(length=16), nullable=True),
        sa.Column("custom_interval_amount", sa.Integer(), nullable=True),
        sa.Column("custom_interval_unit", sa.String(length=16), nullable=True),
        sa.Column("next_occurrence_date", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("amount > 0", name="ck_expense_amount_positive"),
        sa.CheckConstraint(
            "expense_type IN ('one_time', 'recurring')",
            name="ck_expense_type_valid",
        ),
    )
    op.create_index("ix_expenses_owner_id", "expenses", ["owner_id"], unique=False)
    op.create_index("ix_expenses_created_at", "expenses", ["created_at"], unique=False)
    op.create_index(
        "ix_expenses_next_occurrence_date",
        "expenses",
        ["next_occurrence_date"],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade schema."""

    op.drop_index("ix_expenses_next_occurrence_date", table_name="expenses")
    op.drop_index("ix_expenses_created_at", table_name="expenses")
    op.drop_index("ix_expenses_owner_id", table_name="expenses")
    op.drop_table("expenses")
    op.drop_index("ix_credit_sale_items_credit_sale_id", table_name="credit_sale_items")
    op.drop_index("ix_credit_sale_items_id", table_name="credit_sale_items")
    op.drop_table("credit_sale_items")
    op.drop_index("ix_credit_sales_owner_created", table_name="credit_sales")
    op.drop_index("ix_credit_sales_customer_id", table_name="credit_sales")
    op.drop_index("ix_credit_sales_owner_id", table_name="credit_sales")
    op.drop_table("credit_sales")
    op.drop_index("ix_credit_customers_owner_id", table_name="credit_customers")
    op.drop_table("credit_customers")
