"""依赖注入配置模块"""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException
from redis.exceptions import RedisError

# 数据库会话依赖
from app.db.session import SessionLocal
from sqlalchemy.orm import Session

# Redis 依赖
from app.core.redis import redis_client

from app.services.aggregation import MAX_ID
from app.services.audit_service import AuditSink
from app.services.cart_service import CartService
from app.services.checkout_service import CheckoutService
from app.services.order_service import OrderService
from app.services.reservation_service import ReservationCoordinator
from app.services.subscription_processor import SubscriptionProcessor
from app.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)


def get_redis():
    """获取同步 Redis 客户端（不可用时返回 None）"""
    try:
        redis_client.ping()
    except (RedisError, OSError) as e:
        logger.warning(f"⚠️  Redis 不可用，审计日志仅写本地: {e}")
        return None
    return redis_client

def get_db() -> Session:
    """获取数据库会话"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> int:
    """由上游网关认证后透传的用户ID"""
    if not x_user_id or not x_user_id.strip().isdigit():
        raise HTTPException(status_code=401, detail="未认证的请求")
    user_id = int(x_user_id)
    if not 1 <= user_id <= MAX_ID:
        raise HTTPException(status_code=401, detail="未认证的请求")
    return user_id


def get_audit_sink(redis = Depends(get_redis)) -> AuditSink:
    """获取审计日志实例"""
    return AuditSink(redis=redis)


def get_order_service(
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink)
) -> OrderService:
    return OrderService(db=db, audit=audit)


def get_reservation_coordinator(
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink)
) -> ReservationCoordinator:
    return ReservationCoordinator(db=db, audit=audit)


def get_checkout_service(
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink)
) -> CheckoutService:
    return CheckoutService(db=db, audit=audit)


def get_cart_service(db: Session = Depends(get_db)) -> CartService:
    return CartService(db=db)


def get_subscription_service(
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink)
) -> SubscriptionService:
    return SubscriptionService(db=db, audit=audit)


def get_subscription_processor(
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink)
) -> SubscriptionProcessor:
    return SubscriptionProcessor(db=db, audit=audit)


# 常用的依赖注入别名
CurrentUserDep = Depends(get_current_user_id)
