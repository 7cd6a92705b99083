# schemas/credit.py

from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Literal, Optional
from decimal import Decimal


class CreditCustomerCreate(BaseModel):
    name: str = Field(..., min_length=1)
    phone: Optional[str] = None


class CreditCustomerResponse(BaseModel):
    id: str
    name: str
    phone: Optional[str] = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class CreditSaleItemCreate(BaseModel):
    credit_sale_id: str
    product_id: str
    product_name: str
    quantity: int
    price_at_sale: Decimal
    cost_price_at_sale: Decimal = Decimal("0")


class CreditSaleItemResponse(BaseModel):
    product_id: str
    product_name: str
    quantity: int
    price_at_sale: Decimal
    cost_price_at_sale: Decimal

    class Config:
        from_attributes = True


class CreditSaleResponse(BaseModel):
    id: str
    customer_id: str
    total_amount: Decimal
    paid_amount: Decimal = Decimal("0")
    remaining_amount: Decimal
    is_paid: bool = False
    created_at: datetime | None = None
    paid_at: datetime | None = None
    customer: CreditCustomerResponse | None = None
    items: List[CreditSaleItemResponse] = []

    class Config:
        from_attributes = True


class CreditCheckoutRequest(BaseModel):
    customer_id: str


class CreditPaymentRequest(BaseModel):
    # Ignored when full_payment is set
    amount: Optional[Decimal] = Field(None, gt=0)
    full_payment: bool = False


CreditStatus = Literal["paid", "unpaid"]


class CreditSummaryResponse(BaseModel):
    total_credit: Decimal
    total_unpaid: Decimal
    unpaid_count: int
