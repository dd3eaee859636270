"""订单服务：订单组装、查询与状态流转"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    InsufficientStock,
    InvalidInput,
    InvalidTransition,
    OrderNotFound,
    ProductInactive,
    ProductNotFound,
    StockNotConfigured,
)
from app.models.order import Order, OrderItem, OrderStatus
from app.models.product import Product
from app.services.aggregation import AggregatedItems, LineItem, coerce_positive_int
from app.services.audit_service import AuditSink

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def line_total(price, quantity: int) -> Decimal:
    return (Decimal(str(price)) * quantity).quantize(CENT)


def normalize_payment_method(payment_method: Optional[str]) -> str:
    if payment_method is None or not str(payment_method).strip():
        return settings.DEFAULT_PAYMENT_METHOD
    return str(payment_method).strip()


class OrderService:
    """订单核心服务类"""

    def __init__(self, db: Session, audit: Optional[AuditSink] = None):
        self.db = db
        self.audit = audit or AuditSink()

    def fetch_products(self, product_ids: Iterable[int]) -> Dict[int, Product]:
        """批量查询商品（绕过 identity map，读取最新库存）"""
        ids = list(product_ids)
        if not ids:
            return {}
        products = self.db.execute(
            select(Product)
            .where(Product.id.in_(ids))
            .execution_options(populate_existing=True)
        ).scalars().all()
        return {product.id: product for product in products}

    def assemble_order(self, user_id: int, aggregated: AggregatedItems,
                       payment_method: Optional[str] = None) -> Order:
        """校验商品并创建待预占的订单

        这里的库存检查只是预检，不做预占；真正的扣减由
        ReservationCoordinator 通过条件更新完成。
        """
        products = self.fetch_products(aggregated.product_ids)
        if len(products) != len(aggregated.quantities):
            raise ProductNotFound()

        for product_id, quantity in aggregated.quantities.items():
            product = products[product_id]
            if not product.is_active:
                raise ProductInactive(f"商品 {product.name} 已下架")
            if not isinstance(product.stock, int):
                raise StockNotConfigured(f"商品 {product.name} 未配置库存")
            if product.stock < quantity:
                raise InsufficientStock(f"商品 {product.name} 库存不足")

        total = sum(
            (line_total(products[item.product_id].price, item.quantity)
             for item in aggregated.line_items),
            Decimal("0.00"),
        )

        return self.create_order(user_id, aggregated.line_items, total, payment_method)

    def create_order(self, user_id: int, line_items: List[LineItem], total_amount: Decimal,
                     payment_method: Optional[str] = None,
                     created_at: Optional[datetime] = None) -> Order:
        order = Order(
            user_id=user_id,
            total_amount=total_amount,
            payment_method=normalize_payment_method(payment_method),
            status=OrderStatus.PENDING,
            is_paid=False,
            items=[
                OrderItem(product_id=item.product_id, quantity=item.quantity, position=position)
                for position, item in enumerate(line_items)
            ],
        )
        if created_at is not None:
            order.created_at = created_at

        self.db.add(order)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(f"订单已创建: order_id={order.id}, user_id={user_id}, total={total_amount}")
        return order

    def get_order(self, order_id: int) -> Order:
        if coerce_positive_int(order_id) is None:
            raise OrderNotFound()
        order = self.db.get(Order, order_id)
        if order is None:
            raise OrderNotFound()
        return order

    def list_for_user(self, user_id: int) -> List[Order]:
        return list(self.db.execute(
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
        ).scalars().all())

    def list_all(self) -> List[Order]:
        """全部订单（管理端），最新的在前"""
        return list(self.db.execute(
            select(Order).order_by(Order.created_at.desc(), Order.id.desc())
        ).scalars().all())

    def transition_status(self, order_id: int, new_status: Union[OrderStatus, str],
                          actor_id: Optional[int] = None) -> Order:
        """订单状态流转（取消不回补库存）"""
        try:
            target = OrderStatus(new_status)
        except ValueError:
            raise InvalidInput("无效的订单状态")

        order = self.get_order(order_id)
        current = OrderStatus(order.status)

        if current == target:
            return order

        if not current.can_transition_to(target):
            raise InvalidTransition(current.value, target.value)

        order.status = target
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(f"订单状态变更: order_id={order_id}, {current.value} -> {target.value}")
        self.audit.record(
            "order.status_change",
            "order",
            order.id,
            actor_id=actor_id,
            metadata={"from_status": current.value, "to_status": target.value},
        )
        return order
