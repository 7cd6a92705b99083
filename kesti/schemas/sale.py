# schemas/sale.py

from pydantic import BaseModel
from datetime import datetime
from typing import List
from decimal import Decimal


class SaleItemCreate(BaseModel):
    sale_id: str
    product_id: str
    product_name: str
    quantity: int
    price_at_sale: Decimal
    cost_price_at_sale: Decimal = Decimal("0")


class SaleItemResponse(BaseModel):
    product_id: str
    product_name: str
    quantity: int
    price_at_sale: Decimal
    cost_price_at_sale: Decimal

    class Config:
        from_attributes = True


class SaleResponse(BaseModel):
    id: str
    total_amount: Decimal
    created_at: datetime | None = None
    items: List[SaleItemResponse] = []

    class Config:
        from_attributes = True


class TodayStatsResponse(BaseModel):
    total_sales: int
    total_revenue: Decimal
    average_sale: Decimal
