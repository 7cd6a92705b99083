# kesti/routers/expenses.py

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kesti.database import get_db
from kesti.core.tenant import TenantContext, get_tenant
from kesti.models.expenses import Expense
from kesti.schemas.expense import (
    ExpenseCreate,
    ExpensePeriod,
    ExpenseResponse,
    ExpenseSummaryResponse,
    ExpenseUpdate,
    RecurringRunResponse,
)
from kesti.services.expenses import process_recurring_expenses

router = APIRouter(
    prefix="/expenses",
    tags=["Expenses"],
)

# Days looked back by each period; "today" starts at midnight UTC
PERIOD_DAYS = {"today": 0, "week": 7, "month": 30}


def period_start(period: ExpensePeriod, today: date | None = None) -> datetime | None:
    if period == "all":
        return None
    today = today or datetime.now(timezone.utc).date()
    return datetime.combine(today - timedelta(days=PERIOD_DAYS[period]), time.min)


def _filtered_expenses(db: Session, owner_id: str, period: ExpensePeriod, category: Optional[str]):
    query = db.query(Expense).filter(Expense.owner_id == owner_id)

    start = period_start(period)
    if start is not None:
        query = query.filter(Expense.created_at >= start)

    if category:
        query = query.filter(Expense.category.ilike(f"%{category.strip()}%"))

    return query


def _get_owned_expense(db: Session, owner_id: str, expense_id: str):
    expense = (
        db.query(Expense)
        .filter(
            Expense.id == expense_id,
            Expense.owner_id == owner_id,
        )
        .first()
    )

    if not expense:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Expense not found",
        )

    return expense


# ---------------- CREATE ----------------
@router.post("", response_model=ExpenseResponse, status_code=201)
def create_expense(
    expense: ExpenseCreate,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_tenant),
):
    data = expense.model_dump()

    if expense.expense_type == "recurring":
        data["next_occurrence_date"] = expense.next_occurrence_date or datetime.now(timezone.utc).date()
    else:
        data["recurring_frequency"] = None
        data["custom_interval_amount"] = None
        data["custom_interval_unit"] = None
        data["next_occurrence_date"] = None

    db_expense = Expense(owner_id=tenant.owner_id, **data)

    try:
        db.add(db_expense)
        db.commit()
        db.refresh(db_expense)
    except SQLAlchemyError:
        db.rollback()
        raise HTTPException(status_code=500, detail="Failed to save expense")

    return db_expense


# ---------------- LIST ----------------
@router.get("", response_model=list[ExpenseResponse])
def list_expenses(
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_tenant),
    period: ExpensePeriod = "all",
    category: Optional[str] = None,
):
    return (
        _filtered_expenses(db, tenant.owner_id, period, category)
        .order_by(Expense.created_at.desc())
        .all()
    )


# ---------------- SUMMARY ----------------
@router.get("/summary", response_model=ExpenseSummaryResponse)
def expense_summary(
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_tenant),
    period: ExpensePeriod = "all",
):
    start = period_start(period)

    query = db.query(
        func.count(Expense.id),
        func.coalesce(func.sum(Expense.amount), 0),
    ).filter(Expense.owner_id == tenant.owner_id)

    if start is not None:
        query = query.filter(Expense.created_at >= start)

    count, total_amount = query.one()

    return {
        "period": period,
        "total_amount": Decimal(str(total_amount or 0)),
        "count": count,
    }


# ---------------- RECURRING ----------------
@router.post("/recurring/process", response_model=RecurringRunResponse)
def run_recurring_expenses(
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_tenant),
):
    return process_recurring_expenses(db, tenant.owner_id)


# ---------------- UPDATE ----------------
@router.put("/{expense_id}", response_model=ExpenseResponse)
def update_expense(
    expense_id: str,
    updated: ExpenseUpdate,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_tenant),
):
    expense = _get_owned_expense(db, tenant.owner_id, expense_id)

    changes = updated.model_dump(exclude_unset=True)
    for field in ("description", "amount", "is_active"):
        if field in changes and changes[field] is None:
            raise HTTPException(
                status_code=400,
                detail=f"{field} cannot be cleared",
            )

    for key, value in changes.items():
        setattr(expense, key, value)

    try:
        db.commit()
        db.refresh(expense)
    except SQLAlchemyError:
        db.rollback()
        raise HTTPException(status_code=500, detail="Failed to update expense")

    return expense


# ---------------- DELETE ----------------
@router.delete("/{expense_id}", status_code=204)
def delete_expense(
    expense_id: str,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_tenant),
):
    expense = _get_owned_expense(db, tenant.owner_id, expense_id)

    db.delete(expense)
    db.commit()
