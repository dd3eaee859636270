"""测试配置和 fixtures"""
import itertools
from decimal import Decimal

import pytest
from unittest.mock import Mock
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from redis import Redis

import app.models  # noqa: F401  注册全部模型
from app.db.base import Base
from app.models.product import Product
from app.services.audit_service import AuditSink


@pytest.fixture
def engine():
    """内存 SQLite 数据库（多线程共享同一连接）"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def mock_db_session(session_factory):
    """数据库会话"""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def mock_redis():
    """创建模拟 Redis 客户端"""
    redis_mock = Mock(spec=Redis)
    redis_mock.ping.return_value = True
    redis_mock.pipeline.return_value = Mock()
    return redis_mock


@pytest.fixture
def audit_sink():
    """不落 Redis 的审计实例（可断言调用）"""
    return Mock(spec=AuditSink)


@pytest.fixture
def make_product(mock_db_session):
    """商品工厂"""
    counter = itertools.count(1)

    def _make(stock=10, price="10.00", is_active=True, name=None):
        n = next(counter)
        product = Product(
            sku=f"TEST{n:03d}",
            name=name or f"测试商品{n}",
            price=Decimal(price),
            stock=stock,
            is_active=is_active,
        )
        mock_db_session.add(product)
        mock_db_session.commit()
        return product

    return _make


def current_stock(db, product_id):
    """直接查库存（绕过 identity map）"""
    return db.execute(select(Product.stock).where(Product.id == product_id)).scalar_one()


@pytest.fixture
def stock_of(mock_db_session):
    """查询商品当前库存"""
    def _stock(product_id):
        return current_stock(mock_db_session, product_id)
    return _stock


@pytest.fixture
def make_subscription(mock_db_session):
    """订阅工厂（直接落库，便于构造到期场景）"""
    from app.models.subscription import Frequency, Subscription, SubscriptionStatus

    def _make(product_id, next_delivery_date, quantity=1, frequency="daily",
              user_id=1, status=SubscriptionStatus.ACTIVE):
        subscription = Subscription(
            user_id=user_id,
            product_id=product_id,
            quantity=quantity,
            frequency=Frequency(frequency),
            start_date=next_delivery_date,
            next_delivery_date=next_delivery_date,
            status=status,
        )
        mock_db_session.add(subscription)
        mock_db_session.commit()
        return subscription

    return _make
