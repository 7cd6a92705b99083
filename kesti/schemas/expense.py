# schemas/expense.py

from pydantic import BaseModel, Field, model_validator
from datetime import date, datetime
from typing import List, Literal, Optional
from decimal import Decimal


ExpenseType = Literal["one_time", "recurring"]
RecurringFrequency = Literal["daily", "weekly", "monthly", "yearly", "custom"]
IntervalUnit = Literal["minutes", "hours", "days", "weeks", "months", "years"]
ExpensePeriod = Literal["all", "today", "week", "month"]


class ExpenseCreate(BaseModel):
    description: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, lt=100_000_000)
    category: Optional[str] = None

    expense_type: ExpenseType = "one_time"
    recurring_frequency: Optional[RecurringFrequency] = None
    custom_interval_amount: Optional[int] = Field(None, ge=1)
    custom_interval_unit: Optional[IntervalUnit] = None

    # Defaults to today for recurring expenses
    next_occurrence_date: Optional[date] = None
    is_active: bool = True

    @model_validator(mode="after")
    def check_recurrence(self):
        if self.expense_type == "recurring" and self.recurring_frequency is None:
            raise ValueError("recurring_frequency is required for recurring expenses")
        return self


class ExpenseUpdate(BaseModel):
    description: Optional[str] = Field(None, min_length=1)
    amount: Optional[Decimal] = Field(None, gt=0, lt=100_000_000)
    category: Optional[str] = None
    recurring_frequency: Optional[RecurringFrequency] = None
    custom_interval_amount: Optional[int] = Field(None, ge=1)
    custom_interval_unit: Optional[IntervalUnit] = None
    next_occurrence_date: Optional[date] = None
    is_active: Optional[bool] = None


class ExpenseResponse(BaseModel):
    id: str
    description: str
    amount: Decimal
    category: Optional[str] = None
    expense_type: ExpenseType
    recurring_frequency: Optional[RecurringFrequency] = None
    custom_interval_amount: Optional[int] = None
    custom_interval_unit: Optional[IntervalUnit] = None
    next_occurrence_date: Optional[date] = None
    is_active: bool
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class ExpenseSummaryResponse(BaseModel):
    period: ExpensePeriod
    total_amount: Decimal
    count: int


class RecurringRunError(BaseModel):
    expense_id: str
    error: str


class RecurringRunResponse(BaseModel):
    processed_count: int
    errors: List[RecurringRunError] = []
