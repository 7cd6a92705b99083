# schemas/cart.py

from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field

from kesti.schemas.product import ProductResponse


class CartLine(BaseModel):
    product: ProductResponse
    quantity: int
    unit_quantity: Decimal = Decimal("1")
    line_total: Decimal = Decimal("0")


# Quantities arrive as raw text from the till's input fields and are
# parsed server side with the same rules as the cart line editor.
class CartItemAdd(BaseModel):
    product_id: str
    quantity: str = "1"
    unit_quantity: str | None = None


class CartItemUpdate(BaseModel):
    quantity: str
    unit_quantity: str | None = None


class CartLineResponse(BaseModel):
    product_id: str
    name: str
    unit_type: str
    unit_label: str
    selling_price: Decimal
    quantity: int
    unit_quantity: Decimal
    line_total: Decimal


class CartResponse(BaseModel):
    lines: List[CartLineResponse] = Field(default_factory=list)
    total_price: Decimal
    total_items: int
    currency: str
