# schemas/checkout.py

from pydantic import BaseModel
from typing import List, Literal

from kesti.schemas.credit import CreditSaleResponse
from kesti.schemas.product import ProductResponse
from kesti.schemas.sale import SaleResponse


class StockUpdateResponse(BaseModel):
    product_id: str
    product_name: str
    new_stock: int
    ok: bool


class CheckoutResponse(BaseModel):
    status: Literal["empty", "completed"]
    # Exactly one of these is set on a completed checkout
    sale: SaleResponse | None = None
    credit_sale: CreditSaleResponse | None = None
    stock_updates: List[StockUpdateResponse] = []
    products: List[ProductResponse] = []


class CreditPaymentResponse(BaseModel):
    credit_sale: CreditSaleResponse
    # Set once the credit is settled and recorded as a regular sale
    sale: SaleResponse | None = None
