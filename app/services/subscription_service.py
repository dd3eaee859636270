"""订阅服务：创建、查询、暂停/取消"""

import logging
from datetime import date, datetime
from typing import List, Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import to_naive_utc
from app.core.exceptions import (
    InvalidInput,
    InvalidTransition,
    ProductInactive,
    ProductNotFound,
    SubscriptionNotFound,
)
from app.models.product import Product
from app.models.subscription import Frequency, Subscription, SubscriptionStatus
from app.services.aggregation import MAX_QUANTITY, coerce_positive_int
from app.services.audit_service import AuditSink
from app.services.subscription_cycle import step

logger = logging.getLogger(__name__)


def parse_start_date(value: Union[str, date, datetime, None]) -> datetime:
    """解析开始日期，统一为不带时区的 UTC 时间"""
    if value is None or value == "":
        raise InvalidInput("需要有效的开始日期")

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise InvalidInput("需要有效的开始日期")
    else:
        raise InvalidInput("需要有效的开始日期")

    return to_naive_utc(parsed)


class SubscriptionService:

    def __init__(self, db: Session, audit: Optional[AuditSink] = None):
        self.db = db
        self.audit = audit or AuditSink()

    def create_subscription(self, user_id: int, product_id, quantity, frequency,
                            start_date) -> Subscription:
        product_id = coerce_positive_int(product_id)
        quantity = coerce_positive_int(quantity, MAX_QUANTITY)
        if product_id is None or quantity is None:
            raise InvalidInput("需要有效的商品ID和数量")

        try:
            frequency = Frequency(frequency)
        except ValueError:
            raise InvalidInput("需要有效的配送频率")

        start = parse_start_date(start_date)

        product = self.db.get(Product, product_id)
        if product is None:
            raise ProductNotFound("商品不存在")
        if not product.is_active:
            raise ProductInactive()

        subscription = Subscription(
            user_id=user_id,
            product_id=product_id,
            quantity=quantity,
            frequency=frequency,
            start_date=start,
            next_delivery_date=step(start, frequency),
            status=SubscriptionStatus.ACTIVE,
        )
        self.db.add(subscription)
        self._commit()

        logger.info(
            f"订阅已创建: subscription_id={subscription.id}, user_id={user_id}, "
            f"product_id={product_id}, frequency={frequency.value}"
        )
        self.audit.record("subscription.created", "subscription", subscription.id, actor_id=user_id)
        return subscription

    def list_for_user(self, user_id: int) -> List[Subscription]:
        return list(self.db.execute(
            select(Subscription)
            .where(Subscription.user_id == user_id)
            .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        ).scalars().all())

    def list_all(self) -> List[Subscription]:
        return list(self.db.execute(
            select(Subscription).order_by(Subscription.created_at.desc(), Subscription.id.desc())
        ).scalars().all())

    def update_status(self, user_id: int, subscription_id: int, status) -> Subscription:
        """暂停或取消订阅；已取消的订阅不可再修改"""
        try:
            target = SubscriptionStatus(status)
        except ValueError:
            raise InvalidInput("状态只能是 paused 或 cancelled")
        if target == SubscriptionStatus.ACTIVE:
            raise InvalidInput("状态只能是 paused 或 cancelled")
        if coerce_positive_int(subscription_id) is None:
            raise SubscriptionNotFound()

        subscription = self.db.execute(
            select(Subscription).where(
                Subscription.id == subscription_id,
                Subscription.user_id == user_id,
            )
        ).scalar_one_or_none()
        if subscription is None:
            raise SubscriptionNotFound()

        current = SubscriptionStatus(subscription.status)
        if current == SubscriptionStatus.CANCELLED:
            raise InvalidTransition(current.value, target.value)
        if current == target:
            return subscription
        if not current.can_transition_to(target):
            raise InvalidTransition(current.value, target.value)

        subscription.status = target
        self._commit()

        logger.info(f"订阅状态变更: subscription_id={subscription_id}, {current.value} -> {target.value}")
        self.audit.record(
            "subscription.status_change",
            "subscription",
            subscription.id,
            actor_id=user_id,
            metadata={"from_status": current.value, "to_status": target.value},
        )
        return subscription

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
