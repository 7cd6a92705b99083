from decimal import Decimal
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Literal


UnitType = Literal["item", "kg", "g", "l", "ml"]


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1)


class CategoryResponse(BaseModel):
    id: str
    name: str

    class Config:
        from_attributes = True


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1)

    selling_price: Decimal = Field(
        ...,
        ge=0,
        lt=100_000_000,
        description="Selling price must be below 100 million"
    )

    cost_price: Decimal = Field(
        Decimal("0"),
        ge=0,
        lt=100_000_000,
        description="Cost price must be below 100 million"
    )

    unit_type: UnitType = "item"
    image_url: str | None = None
    category_id: str | None = None

    # Leave empty to disable stock tracking
    stock_quantity: int | None = Field(None, ge=0)
    low_stock_threshold: int | None = Field(None, ge=0)


class ProductUpdate(BaseModel):
    name: str | None = None
    selling_price: Decimal | None = Field(None, ge=0)
    cost_price: Decimal | None = Field(None, ge=0)
    unit_type: UnitType | None = None
    image_url: str | None = None
    category_id: str | None = None
    stock_quantity: int | None = Field(None, ge=0)
    low_stock_threshold: int | None = Field(None, ge=0)


class ProductResponse(BaseModel):
    """Product as seen by the cart and checkout.

    Cart lines hold this snapshot; it is never re-fetched while the line
    lives in the cart.
    """

    id: str
    name: str
    selling_price: Decimal
    cost_price: Decimal = Decimal("0")
    unit_type: UnitType = "item"
    image_url: str | None = None
    category_id: str | None = None
    stock_quantity: int | None = None
    low_stock_threshold: int | None = None
    created_at: datetime | None = None
    category: CategoryResponse | None = None

    class Config:
        from_attributes = True
