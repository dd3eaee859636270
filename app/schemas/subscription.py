from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime

from app.models.subscription import Frequency, SubscriptionStatus
from app.schemas.base import TimestampSchema


class SubscriptionSchema(TimestampSchema):
    id: int
    user_id: int
    product_id: int
    quantity: int
    frequency: Frequency
    start_date: datetime
    next_delivery_date: datetime
    status: SubscriptionStatus


class CreateSubscriptionRequest(BaseModel):
    product_id: Any = Field(..., description="商品ID")
    quantity: Any = Field(..., description="每期数量")
    frequency: Optional[str] = Field(None, description="daily / weekly / monthly")
    start_date: Optional[str] = Field(None, description="开始日期（ISO 8601）")


class SubscriptionStatusUpdateRequest(BaseModel):
    status: str = Field(..., description="paused / cancelled")


class ProcessSubscriptionsRequest(BaseModel):
    now: Optional[datetime] = Field(None, description="处理基准时间，默认当前 UTC 时间")


class RunSummaryCounts(BaseModel):
    total_due: int
    processed: int
    skipped: int
    failed: int


class RunSummaryResponse(BaseModel):
    success: bool
    summary: RunSummaryCounts
    processed: List[Dict[str, Any]] = []
    skipped: List[Dict[str, Any]] = []
    failed: List[Dict[str, Any]] = []
