"""审计日志测试"""
import json
from unittest.mock import Mock

from redis.exceptions import ConnectionError as RedisConnectionError

from app.services.audit_service import AuditSink


class TestAuditSink:

    def test_record_pushes_and_trims(self, mock_redis):
        pipe = mock_redis.pipeline.return_value
        sink = AuditSink(mock_redis, key="audit:test", max_len=100)

        sink.record("order.created", "order", 7, actor_id=1, metadata={"source": "order"})

        key, payload = pipe.lpush.call_args.args
        entry = json.loads(payload)
        assert key == "audit:test"
        assert entry["action"] == "order.created"
        assert entry["entity_type"] == "order"
        assert entry["entity_id"] == 7
        assert entry["actor_id"] == 1
        assert entry["metadata"] == {"source": "order"}
        assert "created_at" in entry
        pipe.ltrim.assert_called_once_with("audit:test", 0, 99)
        pipe.execute.assert_called_once()

    def test_without_redis(self):
        # 仅写本地日志
        AuditSink().record("order.created", "order", 1)

    def test_redis_failure_does_not_raise(self, mock_redis):
        pipe = Mock()
        pipe.execute.side_effect = RedisConnectionError("连接失败")
        mock_redis.pipeline.return_value = pipe

        AuditSink(mock_redis).record("subscription.created", "subscription", 3)

        pipe.execute.assert_called_once()
