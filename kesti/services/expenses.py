# kesti/services/expenses.py

import calendar
import logging
import math
from datetime import date, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kesti.models.expenses import Expense

logger = logging.getLogger("kesti")


def add_months(day: date, months: int) -> date:
    # Jan 31 + 1 month lands on the last day of February
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def next_occurrence(
    current: date,
    frequency: str,
    interval_amount: int | None = None,
    interval_unit: str | None = None,
) -> date:
    if frequency == "daily":
        return current + timedelta(days=1)
    if frequency == "weekly":
        return current + timedelta(weeks=1)
    if frequency == "monthly":
        return add_months(current, 1)
    if frequency == "yearly":
        return add_months(current, 12)
    if frequency != "custom":
        raise ValueError(f"Unknown recurring frequency: {frequency}")

    amount = interval_amount or 1
    unit = interval_unit or "days"

    if unit in ("minutes", "hours"):
        # Occurrences are whole days; a sub-day interval moves to the next one
        minutes = amount if unit == "minutes" else amount * 60
        return current + timedelta(days=max(1, math.ceil(minutes / (24 * 60))))
    if unit == "days":
        return current + timedelta(days=amount)
    if unit == "weeks":
        return current + timedelta(weeks=amount)
    if unit == "months":
        return add_months(current, amount)
    if unit == "years":
        return add_months(current, 12 * amount)

    raise ValueError(f"Unknown interval unit: {unit}")


def process_recurring_expenses(db: Session, owner_id: str, today: date | None = None) -> dict:
    """Advance every active recurring expense that is due by one period.

    A failure on one expense is reported and the run moves on.
    """
    today = today or date.today()

    due = (
        db.query(Expense)
        .filter(
            Expense.owner_id == owner_id,
            Expense.expense_type == "recurring",
            Expense.is_active.is_(True),
            Expense.next_occurrence_date <= today,
        )
        .order_by(Expense.next_occurrence_date)
        .all()
    )

    processed_count = 0
    errors = []

    for expense in due:
        expense_id = expense.id
        try:
            expense.next_occurrence_date = next_occurrence(
                expense.next_occurrence_date,
                expense.recurring_frequency,
                expense.custom_interval_amount,
                expense.custom_interval_unit,
            )
            db.commit()
            processed_count += 1
        except (SQLAlchemyError, ValueError) as e:
            db.rollback()
            logger.error(f"Recurring expense {expense_id} not processed: {e}")
            errors.append({"expense_id": expense_id, "error": str(e)})

    logger.info(f"Processed {processed_count} recurring expenses for {owner_id}")

    return {"processed_count": processed_count, "errors": errors}
