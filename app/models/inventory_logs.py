import enum

from sqlalchemy import (
    Column,
    BigInteger,
    String,
    Integer,
    DateTime,
    Enum,
    Index,
)
from app.core.clock import utcnow
from app.db.base import Base, BigIntPK

# 1定义库存变更类型
class ChangeType(str, enum.Enum):
    RESERVE = "RESERVE"   # 下单预占（扣减）
    RELEASE = "RELEASE"   # 补偿回滚（归还）
# 2️库存流水表（与库存变更同一事务提交）
class InventoryLog(Base):
    __tablename__ = "inventory_logs"

    id = Column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )

    product_id = Column(
        BigInteger,
        nullable=False,
        index=True,
        comment="商品ID",
    )

    order_id = Column(
        BigInteger,
        nullable=True,
        index=True,
        comment="订单ID（订阅预占时订单尚未创建，可能为空）",
    )

    change_type = Column(
        Enum(
            ChangeType,
            name="inventory_change_type",
        ),
        nullable=False,
        comment="库存变更类型",
    )

    quantity = Column(
        Integer,
        nullable=False,
        comment="变更数量（扣减为负）",
    )

    created_at = Column(
        DateTime,
        default=utcnow,
        nullable=False,
    )
    operator = Column(
        String(64),
        nullable=True,
        comment="操作人/服务名",
    )

    source = Column(
        String(50),
        nullable=True,
        comment="来源：order / checkout / subscription / compensation",
    )

# 3️组合索引（高频查询优化）


Index(
    "idx_inventory_logs_product_created_desc",
    InventoryLog.product_id,
    InventoryLog.created_at.desc(),
)
