import enum

from sqlalchemy import (
    Column,
    BigInteger,
    String,
    Integer,
    Numeric,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.db.base import Base, BigIntPK


# 1️ 订单状态枚举

class OrderStatus(str, enum.Enum):
    PENDING = "pending"       # 待确认
    CONFIRMED = "confirmed"   # 已确认
    SHIPPED = "shipped"       # 已发货
    DELIVERED = "delivered"   # 已送达
    CANCELLED = "cancelled"   # 已取消

    def can_transition_to(self, target: "OrderStatus") -> bool:
        return target in ORDER_STATUS_TRANSITIONS[self]


# 订单状态流转表（唯一定义处）
ORDER_STATUS_TRANSITIONS = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# 订阅自动生成订单的支付方式标记
SUBSCRIPTION_PAYMENT_METHOD = "SUBSCRIPTION"


# 2️ 订单表

class Order(Base):
    __tablename__ = "orders"

    id = Column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )

    user_id = Column(
        BigInteger,
        nullable=False,
        index=True,
        comment="下单用户ID",
    )

    # 创建时的价格快照，之后不再重算
    total_amount = Column(
        Numeric(12, 2),
        nullable=False,
        comment="订单总金额",
    )

    payment_method = Column(
        String(32),
        nullable=False,
        default="COD",
        comment="支付方式标签",
    )

    status = Column(
        Enum(
            OrderStatus,
            name="order_status_type",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=OrderStatus.PENDING,
        comment="订单状态",
    )

    is_paid = Column(
        Boolean,
        nullable=False,
        default=False,
        comment="是否已支付",
    )

    created_at = Column(
        DateTime,
        default=utcnow,
        nullable=False,
    )

    updated_at = Column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    items = relationship(
        "OrderItem",
        order_by="OrderItem.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


# 3️ 订单明细表（创建后不可变）

class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )

    order_id = Column(
        BigInteger,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="订单ID",
    )

    product_id = Column(
        BigInteger,
        ForeignKey("products.id"),
        nullable=False,
        index=True,
        comment="商品ID",
    )

    quantity = Column(
        Integer,
        nullable=False,
        comment="购买数量",
    )

    position = Column(
        Integer,
        nullable=False,
        default=0,
        comment="明细顺序",
    )

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
    )


# 4️ 订阅幂等查询索引

Index(
    "idx_orders_user_payment_created",
    Order.user_id,
    Order.payment_method,
    Order.created_at,
)
