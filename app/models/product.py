from sqlalchemy import (
    Column,
    String,
    Integer,
    Numeric,
    Boolean,
    DateTime,
    CheckConstraint,
    Index,
)
from app.core.clock import utcnow
from app.db.base import Base, BigIntPK


class Product(Base):
    __tablename__ = "products"

    id = Column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )

    sku = Column(
        String(64),
        nullable=False,
        unique=True,
        comment="商品唯一SKU",
    )

    name = Column(
        String(255),
        nullable=False,
        comment="商品名称",
    )

    price = Column(
        Numeric(10, 2),
        nullable=False,
        default=0,
        comment="单价",
    )

    # NULL 表示不跟踪库存，不允许下单预占
    stock = Column(
        Integer,
        nullable=True,
        comment="当前可售库存",
    )

    is_active = Column(
        Boolean,
        nullable=False,
        default=True,
        comment="是否可售（下架即软删除）",
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
        CheckConstraint(
            "stock IS NULL OR stock >= 0",
            name="ck_products_stock_non_negative",
        ),
        CheckConstraint(
            "price >= 0",
            name="ck_products_price_non_negative",
        ),
    )


Index(
    "idx_products_name",
    Product.name,
)
