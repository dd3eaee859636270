# app/schemas/order.py
from pydantic import BaseModel, Field
from typing import Any, List, Optional
from decimal import Decimal
from datetime import datetime

from app.models.order import OrderStatus
from app.schemas.base import ORMSchema, TimestampSchema


class OrderItemSchema(ORMSchema):
    product_id: int
    quantity: int


class OrderSchema(TimestampSchema):
    id: int
    user_id: int
    total_amount: Decimal
    payment_method: str
    status: OrderStatus
    is_paid: bool
    items: List[OrderItemSchema] = []


# 直接下单请求（明细的合法性由服务层统一校验）
class PlaceOrderRequest(BaseModel):
    items: List[Any] = Field(
        ...,
        description="订单项列表 [{\"product_id\": 1, \"quantity\": 2}, ...]"
    )
    payment_method: Optional[str] = Field(
        None,
        max_length=32,
        description="支付方式标签，默认 COD"
    )


# 购物车结算请求
class CheckoutRequest(BaseModel):
    payment_method: Optional[str] = Field(
        None,
        max_length=32,
        description="支付方式标签，默认 COD"
    )


# 订单状态变更请求
class OrderStatusUpdateRequest(BaseModel):
    status: str = Field(
        ...,
        description="目标状态：pending / confirmed / shipped / delivered / cancelled"
    )


class OrderResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    order: OrderSchema
