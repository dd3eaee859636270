"""库存预占协调器（Saga）

没有跨行事务可用，于是：
1. 先创建待预占订单；
2. 按商品首次出现顺序逐个做条件扣减，每次单独提交；
3. 任一扣减失败，归还已成功的扣减并删除订单（硬删除），再报库存不足。

补偿本身失败会抛 StockCompensationError，需要人工介入。
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import InsufficientStock, StockCompensationError
from app.models.order import Order
from app.services.aggregation import AggregatedItems, aggregate_line_items
from app.services.audit_service import AuditSink
from app.services.order_service import OrderService
from app.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)


class ReservationCoordinator:
    """下单 + 预占 + 补偿"""

    def __init__(self, db: Session, audit: Optional[AuditSink] = None,
                 ledger: Optional[StockLedger] = None,
                 orders: Optional[OrderService] = None):
        self.db = db
        self.audit = audit or AuditSink()
        self.ledger = ledger or StockLedger(db)
        self.orders = orders or OrderService(db, self.audit)

    def place_order(self, user_id: int, raw_items: Iterable[Any],
                    payment_method: Optional[str] = None) -> Order:
        """直接下单"""
        aggregated = aggregate_line_items(raw_items)
        return self.fulfill(user_id, aggregated, payment_method, source="order")

    def fulfill(self, user_id: int, aggregated: AggregatedItems,
                payment_method: Optional[str] = None, source: str = "order") -> Order:
        order = self.orders.assemble_order(user_id, aggregated, payment_method)
        self.reserve_order(order, aggregated.quantities, source=source)

        self.audit.record(
            "order.created",
            "order",
            order.id,
            actor_id=user_id,
            metadata={"source": source, "total_amount": str(order.total_amount)},
        )
        return order

    def reserve_order(self, order: Order, quantities: Dict[int, int],
                      source: str = "order") -> None:
        """为订单预占全部商品库存，要么全部成功要么全部回滚"""
        order_id = order.id
        committed: List[Tuple[int, int]] = []

        for product_id, quantity in quantities.items():
            try:
                reserved = self.ledger.reserve(product_id, quantity, order_id=order_id, source=source)
            except SQLAlchemyError as e:
                logger.error(f"预占库存异常: order_id={order_id}, product_id={product_id}, error={e}")
                self._compensate(order, committed)
                raise

            if not reserved:
                self._compensate(order, committed)
                raise InsufficientStock("一个或多个商品库存不足")

            committed.append((product_id, quantity))

        logger.info(f"订单预占完成: order_id={order_id}, items={len(committed)}")

    def _compensate(self, order: Order, committed: List[Tuple[int, int]]) -> None:
        order_id = order.id
        failed: List[Tuple[int, int]] = []

        # 归还顺序无关（加法可交换），但必须全部尝试
        for product_id, quantity in committed:
            try:
                self.ledger.release(product_id, quantity, order_id=order_id)
            except StockCompensationError as e:
                logger.critical(f"🚨 补偿归还失败: order_id={order_id}, product_id={product_id}, error={e}")
                failed.append((product_id, quantity))

        order_deleted = True
        try:
            self.db.delete(order)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            order_deleted = False
            logger.critical(f"🚨 删除临时订单失败: order_id={order_id}, error={e}")

        if failed or not order_deleted:
            self.audit.record(
                "inventory.compensation_failed",
                "order",
                order_id,
                metadata={"failed_releases": failed, "order_deleted": order_deleted},
            )
            raise StockCompensationError(
                f"订单补偿失败: order_id={order_id}",
                failed_releases=failed,
                order_id=order_id,
            )

        logger.info(f"订单补偿完成: order_id={order_id}, released={len(committed)}")

    # ---------- 单商品路径（订阅） ----------

    def reserve_single(self, product_id: int, quantity: int,
                       source: str = "subscription") -> Optional[int]:
        """单商品扣减，成功返回流水ID（订单尚未创建，流水暂不关联订单）"""
        return self.ledger.reserve_entry(product_id, quantity, source=source)

    def link_reservation(self, entry_id: int, order_id: int) -> bool:
        return self.ledger.link_order(entry_id, order_id)

    def release_single(self, product_id: int, quantity: int, source: str = "subscription") -> None:
        try:
            self.ledger.release(product_id, quantity, source=source)
        except StockCompensationError as e:
            logger.critical(f"🚨 订阅补偿归还失败: product_id={product_id}, quantity={quantity}, error={e}")
            self.audit.record(
                "inventory.compensation_failed",
                "product",
                product_id,
                metadata={"quantity": quantity, "source": source},
            )
            raise
