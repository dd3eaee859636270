"""购物车结算：从购物车取数，走与直接下单相同的预占流程，成功后清空购物车"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.core.exceptions import EmptyCart
from app.models.order import Order
from app.services.aggregation import aggregate_line_items
from app.services.audit_service import AuditSink
from app.services.cart_service import CartService
from app.services.reservation_service import ReservationCoordinator

logger = logging.getLogger(__name__)


class CheckoutService:

    def __init__(self, db: Session, audit: Optional[AuditSink] = None,
                 coordinator: Optional[ReservationCoordinator] = None,
                 carts: Optional[CartService] = None):
        self.db = db
        self.audit = audit or AuditSink()
        self.coordinator = coordinator or ReservationCoordinator(db, self.audit)
        self.carts = carts or CartService(db)

    def checkout(self, user_id: int, payment_method: Optional[str] = None) -> Order:
        cart = self.carts.find_cart(user_id)
        if cart is None or not cart.items:
            raise EmptyCart()

        aggregated = aggregate_line_items(
            [{"product_id": item.product_id, "quantity": item.quantity} for item in cart.items]
        )

        # 失败时购物车保持原样，临时订单已由协调器删除
        order = self.coordinator.fulfill(user_id, aggregated, payment_method, source="checkout")

        self.carts.clear(user_id)
        logger.info(f"结算成功: user_id={user_id}, order_id={order.id}")
        return order
