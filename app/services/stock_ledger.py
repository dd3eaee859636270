"""库存账本：单个商品库存的原子条件扣减 / 无条件归还

所有影响库存不变量的写入都必须经过这里。扣减是一条带条件的 UPDATE，
"读-判断-写" 在数据库内一次完成，不存在先查后改的竞态窗口。
"""

import logging
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import StockCompensationError
from app.models.inventory_logs import ChangeType, InventoryLog
from app.models.product import Product

logger = logging.getLogger(__name__)


class StockLedger:
    """库存原子操作"""

    def __init__(self, db: Session, operator: str = "fulfillment"):
        self.db = db
        self.operator = operator

    def reserve(self, product_id: int, quantity: int,
                order_id: Optional[int] = None, source: str = "order") -> bool:
        """条件扣减：仅当商品可售且库存 >= quantity 时扣减

        Returns:
            是否扣减成功（False 表示条件不满足：已下架、未配置库存或库存不足）
        """
        return self.reserve_entry(product_id, quantity, order_id=order_id, source=source) is not None

    def reserve_entry(self, product_id: int, quantity: int,
                      order_id: Optional[int] = None, source: str = "order") -> Optional[int]:
        """同 reserve，成功时返回 RESERVE 流水ID，条件不满足返回 None"""
        try:
            result = self.db.execute(
                update(Product)
                .where(
                    Product.id == product_id,
                    Product.is_active.is_(True),
                    Product.stock.is_not(None),
                    Product.stock >= quantity,
                )
                .values(stock=Product.stock - quantity)
                .execution_options(synchronize_session=False)
            )

            if result.rowcount != 1:
                self.db.rollback()
                logger.warning(
                    f"预占库存失败（条件不满足）: product_id={product_id}, quantity={quantity}"
                )
                return None

            entry = InventoryLog(
                product_id=product_id,
                order_id=order_id,
                change_type=ChangeType.RESERVE,
                quantity=-quantity,
                operator=self.operator,
                source=source,
            )
            self.db.add(entry)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(f"预占库存成功: order_id={order_id}, product_id={product_id}, quantity={quantity}")
        return entry.id

    def link_order(self, entry_id: int, order_id: int) -> bool:
        """订单创建晚于扣减时（订阅），回填流水的订单ID"""
        try:
            result = self.db.execute(
                update(InventoryLog)
                .where(InventoryLog.id == entry_id, InventoryLog.order_id.is_(None))
                .values(order_id=order_id)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return result.rowcount == 1

    def release(self, product_id: int, quantity: int,
                order_id: Optional[int] = None, source: str = "compensation") -> None:
        """无条件归还（补偿），失败即一致性错误"""
        try:
            result = self.db.execute(
                update(Product)
                .where(Product.id == product_id)
                .values(stock=Product.stock + quantity)
                .execution_options(synchronize_session=False)
            )

            if result.rowcount != 1:
                self.db.rollback()
                raise StockCompensationError(
                    f"归还库存失败，商品不存在: product_id={product_id}",
                    failed_releases=[(product_id, quantity)],
                    order_id=order_id,
                )

            self.db.add(InventoryLog(
                product_id=product_id,
                order_id=order_id,
                change_type=ChangeType.RELEASE,
                quantity=quantity,
                operator=self.operator,
                source=source,
            ))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StockCompensationError(
                f"归还库存失败: product_id={product_id}, quantity={quantity}, error={e}",
                failed_releases=[(product_id, quantity)],
                order_id=order_id,
            ) from e

        logger.info(f"归还库存成功: order_id={order_id}, product_id={product_id}, quantity={quantity}")
