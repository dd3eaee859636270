from pydantic import BaseModel, Field
from typing import Any, List
from decimal import Decimal

from app.schemas.base import ORMSchema, TimestampSchema


class CartItemSchema(ORMSchema):
    product_id: int
    quantity: int


class CartSchema(TimestampSchema):
    id: int
    user_id: int
    total_amount: Decimal
    items: List[CartItemSchema] = []


class AddCartItemRequest(BaseModel):
    product_id: Any = Field(..., description="商品ID")
    quantity: Any = Field(..., description="数量")


class UpdateCartItemRequest(BaseModel):
    quantity: Any = Field(..., description="数量")
