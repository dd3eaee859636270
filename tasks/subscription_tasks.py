"""订阅相关的 Celery 任务"""

from datetime import datetime
from typing import Optional

from celery_app import app
from app.core.clock import to_naive_utc
from app.db.session import SessionLocal
from app.services.audit_service import AuditSink
from app.services.subscription_processor import SubscriptionProcessor
from app.core.redis import redis_client
import logging

logger = logging.getLogger(__name__)

@app.task(name='tasks.subscriptions.process_due_subscriptions')
def process_due_subscriptions(now: Optional[str] = None):
    """处理到期订阅

    Args:
        now: ISO 8601 时间字符串，默认当前 UTC 时间

    Returns:
        本次运行汇总
    """
    db = SessionLocal()
    try:
        run_at = to_naive_utc(datetime.fromisoformat(now)) if now else None
        processor = SubscriptionProcessor(db, AuditSink(redis_client))
        result = processor.process_due(run_at).as_dict()
        logger.info(f"订阅处理任务完成: {result['summary']}")
        return result
    except Exception as e:
        logger.error(f"订阅处理任务执行失败: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()

# 导出任务
__all__ = [
    'process_due_subscriptions',
]
