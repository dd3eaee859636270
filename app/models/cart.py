from sqlalchemy import (
    Column,
    BigInteger,
    Integer,
    Numeric,
    DateTime,
    ForeignKey,
    CheckConstraint,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.db.base import Base, BigIntPK


class Cart(Base):
    __tablename__ = "carts"

    id = Column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )

    # 每个用户只有一个购物车
    user_id = Column(
        BigInteger,
        nullable=False,
        unique=True,
        comment="用户ID",
    )

    # 派生字段：每次变更后按当前价格重算
    total_amount = Column(
        Numeric(12, 2),
        nullable=False,
        default=0,
        comment="购物车总金额",
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
        "CartItem",
        order_by="CartItem.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )

    cart_id = Column(
        BigInteger,
        ForeignKey("carts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="购物车ID",
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
        comment="数量",
    )

    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", name="uq_cart_product"),
        CheckConstraint("quantity >= 1", name="ck_cart_items_quantity_positive"),
    )
