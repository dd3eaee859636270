"""到期订阅处理（由外部调度器触发，可重复、可并发执行）

对每个到期订阅（active 且 next_delivery_date <= now）：
1. 商品不存在 / 已下架 / 未配置库存 -> failed，日期不动，下次继续处理
2. 当天已有同用户、同商品、同数量的单明细订阅订单 -> skipped，推进日期
3. 认领本期：条件更新 next_delivery_date（仍为读到的旧值才更新），
   认领失败说明另一轮处理已接手 -> skipped
4. 条件扣减库存，失败 -> failed（库存不足），日期恢复为旧值
5. 创建订单，失败则归还库存、恢复日期后抛出
6. 回填扣减流水的订单ID -> processed

单个订阅失败不会中断整批处理。
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import day_bounds, utcnow
from app.core.exceptions import ConsistencyError
from app.models.order import SUBSCRIPTION_PAYMENT_METHOD, Order, OrderItem
from app.models.product import Product
from app.models.subscription import Subscription, SubscriptionStatus
from app.services.aggregation import LineItem
from app.services.audit_service import AuditSink
from app.services.order_service import OrderService, line_total
from app.services.reservation_service import ReservationCoordinator
from app.services.subscription_cycle import advance_past_now

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    total_due: int = 0
    processed: List[Dict[str, Any]] = field(default_factory=list)
    skipped: List[Dict[str, Any]] = field(default_factory=list)
    failed: List[Dict[str, Any]] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "summary": {
                "total_due": self.total_due,
                "processed": len(self.processed),
                "skipped": len(self.skipped),
                "failed": len(self.failed),
            },
            "processed": self.processed,
            "skipped": self.skipped,
            "failed": self.failed,
        }


class SubscriptionProcessor:

    def __init__(self, db: Session, audit: Optional[AuditSink] = None,
                 coordinator: Optional[ReservationCoordinator] = None,
                 orders: Optional[OrderService] = None):
        self.db = db
        self.audit = audit or AuditSink()
        self.coordinator = coordinator or ReservationCoordinator(db, self.audit)
        self.orders = orders or OrderService(db, self.audit)

    def due_query(self, now: datetime):
        return (
            select(Subscription)
            .where(
                Subscription.status == SubscriptionStatus.ACTIVE,
                Subscription.next_delivery_date <= now,
            )
            .order_by(Subscription.id)
        )

    def count_due(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        return self.db.execute(
            select(func.count()).select_from(self.due_query(now).subquery())
        ).scalar_one()

    def process_due(self, now: Optional[datetime] = None) -> RunSummary:
        now = now or utcnow()
        summary = RunSummary()

        due_subscriptions = self.db.execute(self.due_query(now)).scalars().all()
        summary.total_due = len(due_subscriptions)
        logger.info(f"本次到期订阅 {summary.total_due} 个: now={now.isoformat()}")

        for subscription in due_subscriptions:
            subscription_id = subscription.id
            try:
                self._process_one(subscription, now, summary)
            except ConsistencyError as e:
                logger.critical(f"🚨 订阅处理出现一致性错误: subscription_id={subscription_id}, error={e}")
                summary.failed.append({
                    "subscription_id": subscription_id,
                    "reason": str(e),
                    "fatal": True,
                })
            except Exception as e:
                self.db.rollback()
                logger.error(f"处理订阅失败: subscription_id={subscription_id}, error={e}")
                summary.failed.append({"subscription_id": subscription_id, "reason": str(e)})

        logger.info(
            f"订阅处理完成: due={summary.total_due}, processed={len(summary.processed)}, "
            f"skipped={len(summary.skipped)}, failed={len(summary.failed)}"
        )
        return summary

    def _process_one(self, subscription: Subscription, now: datetime, summary: RunSummary) -> None:
        subscription_id = subscription.id
        user_id = subscription.user_id
        product_id = subscription.product_id
        quantity = subscription.quantity
        due_date = subscription.next_delivery_date
        next_date = advance_past_now(due_date, subscription.frequency, now)

        product = self.db.get(Product, product_id, populate_existing=True)
        if product is None:
            summary.failed.append({"subscription_id": subscription_id, "reason": "Product not found"})
            return
        if not product.is_active:
            summary.failed.append({"subscription_id": subscription_id, "reason": "Product is not active"})
            return
        if not isinstance(product.stock, int):
            summary.failed.append({
                "subscription_id": subscription_id,
                "reason": "Product stock is not configured",
            })
            return
        unit_price = product.price

        existing = self.find_today_order(user_id, product_id, quantity, now)
        if existing is not None:
            self.claim_cycle(subscription_id, due_date, next_date)
            summary.skipped.append({
                "subscription_id": subscription_id,
                "reason": "Order already created today",
                "order_id": existing.id,
            })
            return

        if not self.claim_cycle(subscription_id, due_date, next_date):
            logger.info(f"订阅本期已被其他处理认领: subscription_id={subscription_id}")
            summary.skipped.append({
                "subscription_id": subscription_id,
                "reason": "Already claimed by another run",
            })
            return

        entry_id = self.coordinator.reserve_single(product_id, quantity, source="subscription")
        if entry_id is None:
            self.claim_cycle(subscription_id, next_date, due_date)
            summary.failed.append({"subscription_id": subscription_id, "reason": "Insufficient stock"})
            return

        try:
            order = self.orders.create_order(
                user_id,
                [LineItem(product_id=product_id, quantity=quantity)],
                line_total(unit_price, quantity),
                SUBSCRIPTION_PAYMENT_METHOD,
                created_at=now,
            )
        except Exception:
            try:
                self.coordinator.release_single(product_id, quantity)
            finally:
                self.claim_cycle(subscription_id, next_date, due_date)
            raise

        try:
            self.coordinator.link_reservation(entry_id, order.id)
        except SQLAlchemyError as e:
            logger.warning(f"回填扣减流水失败: entry_id={entry_id}, order_id={order.id}, error={e}")

        summary.processed.append({"subscription_id": subscription_id, "order_id": order.id})
        self.audit.record(
            "subscription.order_created",
            "subscription",
            subscription_id,
            actor_id=user_id,
            metadata={"order_id": order.id},
        )

    def claim_cycle(self, subscription_id: int, expected: datetime, next_date: datetime) -> bool:
        """比较并交换 next_delivery_date：仅当订阅仍为 active 且日期仍为 expected 时更新

        同一周期只有一个处理方能认领成功；恢复日期时反向调用。
        """
        try:
            result = self.db.execute(
                update(Subscription)
                .where(
                    Subscription.id == subscription_id,
                    Subscription.status == SubscriptionStatus.ACTIVE,
                    Subscription.next_delivery_date == expected,
                )
                .values(next_delivery_date=next_date)
                .execution_options(synchronize_session=False)
            )
            claimed = result.rowcount == 1
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        # 会话内的订阅对象以库中值为准
        self.db.get(Subscription, subscription_id, populate_existing=True)
        return claimed

    def find_today_order(self, user_id: int, product_id: int, quantity: int,
                         now: datetime) -> Optional[Order]:
        """当天是否已有该订阅生成的订单（启发式：同商品、同数量、单明细）"""
        start_of_day, end_of_day = day_bounds(now)
        single_item_orders = (
            select(OrderItem.order_id)
            .group_by(OrderItem.order_id)
            .having(func.count(OrderItem.id) == 1)
        )
        return self.db.execute(
            select(Order)
            .join(OrderItem, OrderItem.order_id == Order.id)
            .where(
                Order.user_id == user_id,
                Order.payment_method == SUBSCRIPTION_PAYMENT_METHOD,
                Order.created_at >= start_of_day,
                Order.created_at < end_of_day,
                OrderItem.product_id == product_id,
                OrderItem.quantity == quantity,
                Order.id.in_(single_item_orders),
            )
            .order_by(Order.id)
            .limit(1)
        ).scalars().first()

