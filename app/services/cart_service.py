"""购物车服务（总金额为派生值，每次变更后按当前价格重算）"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import (
    CartItemNotFound,
    CartNotFound,
    InsufficientStock,
    InvalidInput,
    ProductInactive,
    ProductNotFound,
)
from app.models.cart import Cart, CartItem
from app.models.product import Product
from app.services.aggregation import MAX_QUANTITY, coerce_positive_int
from app.services.order_service import line_total

logger = logging.getLogger(__name__)


class CartService:

    def __init__(self, db: Session):
        self.db = db

    def find_cart(self, user_id: int) -> Optional[Cart]:
        return self.db.execute(
            select(Cart).where(Cart.user_id == user_id)
        ).scalar_one_or_none()

    def get_cart(self, user_id: int) -> Cart:
        """读取购物车，不存在则创建"""
        cart = self.find_cart(user_id)
        if cart is None:
            cart = Cart(user_id=user_id, total_amount=Decimal("0.00"), items=[])
            self.db.add(cart)
            self._commit()
        return cart

    def add_item(self, user_id: int, product_id, quantity) -> Cart:
        product_id, quantity = self._validate(product_id, quantity)
        product = self._orderable_product(product_id)

        cart = self.get_cart(user_id)
        item = self._find_item(cart, product_id)
        new_quantity = quantity + (item.quantity if item else 0)
        if new_quantity > MAX_QUANTITY:
            raise InvalidInput("商品数量超出范围")
        self._check_stock(product, new_quantity)

        if item:
            item.quantity = new_quantity
        else:
            cart.items.append(CartItem(product_id=product_id, quantity=quantity))

        return self._save(cart)

    def update_item(self, user_id: int, product_id, quantity) -> Cart:
        product_id, quantity = self._validate(product_id, quantity)
        product = self._orderable_product(product_id)
        self._check_stock(product, quantity)

        cart = self.find_cart(user_id)
        if cart is None:
            raise CartNotFound()
        item = self._find_item(cart, product_id)
        if item is None:
            raise CartItemNotFound()

        item.quantity = quantity
        return self._save(cart)

    def remove_item(self, user_id: int, product_id) -> Cart:
        cart = self.find_cart(user_id)
        if cart is None:
            raise CartNotFound()
        item = self._find_item(cart, coerce_positive_int(product_id))
        if item is None:
            raise CartItemNotFound()

        cart.items.remove(item)
        return self._save(cart)

    def clear(self, user_id: int) -> Cart:
        cart = self.get_cart(user_id)
        cart.items.clear()
        cart.total_amount = Decimal("0.00")
        self._commit()
        return cart

    def recalculate_total(self, cart: Cart) -> Decimal:
        if not cart.items:
            cart.total_amount = Decimal("0.00")
            return cart.total_amount

        product_ids = [item.product_id for item in cart.items]
        prices = dict(self.db.execute(
            select(Product.id, Product.price).where(Product.id.in_(product_ids))
        ).all())

        cart.total_amount = sum(
            (line_total(prices.get(item.product_id, 0), item.quantity) for item in cart.items),
            Decimal("0.00"),
        )
        return cart.total_amount

    # ---------- 内部方法 ----------

    @staticmethod
    def _validate(product_id, quantity):
        product_id = coerce_positive_int(product_id)
        quantity = coerce_positive_int(quantity, MAX_QUANTITY)
        if product_id is None or quantity is None:
            raise InvalidInput("需要有效的商品ID和数量")
        return product_id, quantity

    def _orderable_product(self, product_id: int) -> Product:
        product = self.db.get(Product, product_id, populate_existing=True)
        if product is None:
            raise ProductNotFound("商品不存在")
        if not product.is_active:
            raise ProductInactive()
        return product

    @staticmethod
    def _check_stock(product: Product, quantity: int) -> None:
        # 未配置库存的商品允许加入购物车，结算时再拦截
        if isinstance(product.stock, int) and quantity > product.stock:
            raise InsufficientStock()

    @staticmethod
    def _find_item(cart: Cart, product_id) -> Optional[CartItem]:
        for item in cart.items:
            if item.product_id == product_id:
                return item
        return None

    def _save(self, cart: Cart) -> Cart:
        self.recalculate_total(cart)
        self._commit()
        logger.debug(f"购物车已更新: user_id={cart.user_id}, total={cart.total_amount}")
        return cart

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
