import enum

from sqlalchemy import (
    Column,
    BigInteger,
    Integer,
    DateTime,
    Enum,
    ForeignKey,
    CheckConstraint,
    Index,
)

from app.core.clock import utcnow
from app.db.base import Base, BigIntPK


# 1️ 配送频率

class Frequency(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


# 2️ 订阅状态

class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "active"         # 生效中
    PAUSED = "paused"         # 已暂停
    CANCELLED = "cancelled"   # 已取消（终态）

    def can_transition_to(self, target: "SubscriptionStatus") -> bool:
        return target in SUBSCRIPTION_STATUS_TRANSITIONS[self]


SUBSCRIPTION_STATUS_TRANSITIONS = {
    SubscriptionStatus.ACTIVE: frozenset(
        {SubscriptionStatus.PAUSED, SubscriptionStatus.CANCELLED}
    ),
    SubscriptionStatus.PAUSED: frozenset({SubscriptionStatus.CANCELLED}),
    SubscriptionStatus.CANCELLED: frozenset(),
}


# 3️ 订阅表

class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )

    user_id = Column(
        BigInteger,
        nullable=False,
        index=True,
        comment="用户ID",
    )

    product_id = Column(
        BigInteger,
        ForeignKey("products.id"),
        nullable=False,
        comment="商品ID",
    )

    quantity = Column(
        Integer,
        nullable=False,
        comment="每期数量",
    )

    frequency = Column(
        Enum(
            Frequency,
            name="subscription_frequency_type",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        comment="配送频率",
    )

    start_date = Column(
        DateTime,
        nullable=False,
        comment="开始日期",
    )

    # 只会向后推进
    next_delivery_date = Column(
        DateTime,
        nullable=False,
        comment="下次配送时间",
    )

    status = Column(
        Enum(
            SubscriptionStatus,
            name="subscription_status_type",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=SubscriptionStatus.ACTIVE,
        comment="订阅状态",
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

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_subscriptions_quantity_positive"),
    )


# 4️ 到期扫描索引

Index(
    "idx_subscriptions_status_next_delivery",
    Subscription.status,
    Subscription.next_delivery_date,
)
