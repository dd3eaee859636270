"""审计日志（尽力而为，失败不影响业务）"""

import json
import logging
from typing import Any, Dict, Optional

from redis import Redis
from redis.exceptions import RedisError

from app.core.clock import utcnow
from app.core.config import settings

logger = logging.getLogger(__name__)


class AuditSink:
    """把业务动作推入 Redis 列表，由外部审计服务消费"""

    def __init__(self, redis: Optional[Redis] = None,
                 key: str = settings.AUDIT_LOG_KEY,
                 max_len: int = settings.AUDIT_LOG_MAX_LEN):
        self.redis = redis
        self.key = key
        self.max_len = max_len

    def record(self, action: str, entity_type: str, entity_id: Any,
               actor_id: Optional[int] = None,
               metadata: Optional[Dict[str, Any]] = None) -> None:
        entry = {
            "action": action,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "actor_id": actor_id,
            "metadata": metadata or {},
            "created_at": utcnow().isoformat(),
        }
        logger.debug(f"审计: {entry}")

        if not self.redis:
            return

        try:
            pipe = self.redis.pipeline()
            pipe.lpush(self.key, json.dumps(entry, default=str, ensure_ascii=False))
            pipe.ltrim(self.key, 0, self.max_len - 1)
            pipe.execute()
        except RedisError as e:
            logger.warning(f"⚠️  审计日志写入失败: action={action}, error={e}")
