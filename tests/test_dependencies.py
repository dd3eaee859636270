"""依赖注入单元测试"""
import pytest
from unittest.mock import Mock, patch
from fastapi import HTTPException
from sqlalchemy.orm import Session
from redis import Redis
from redis.exceptions import ConnectionError as RedisConnectionError

from app.core.dependencies import (
    get_audit_sink,
    get_checkout_service,
    get_current_user_id,
    get_db,
    get_redis,
    get_subscription_processor,
)
from app.services.audit_service import AuditSink
from app.services.checkout_service import CheckoutService
from app.services.subscription_processor import SubscriptionProcessor


class TestDependencies:
    """依赖注入测试类"""

    def test_get_db(self):
        """测试数据库会话依赖"""
        with patch('app.core.dependencies.SessionLocal') as mock_session_local:
            db_mock = Mock(spec=Session)
            mock_session_local.return_value = db_mock

            gen = get_db()
            db = next(gen)

            assert db == db_mock
            mock_session_local.assert_called_once()

            # 测试清理
            gen.close()
            db_mock.close.assert_called_once()

    def test_get_redis_success(self):
        """测试 Redis 连接成功"""
        with patch('app.core.dependencies.redis_client') as mock_redis_client:
            mock_redis_client.ping.return_value = True

            redis_conn = get_redis()

            assert redis_conn == mock_redis_client
            mock_redis_client.ping.assert_called_once()

    def test_get_redis_failure(self):
        """测试 Redis 连接失败"""
        with patch('app.core.dependencies.redis_client') as mock_redis_client:
            mock_redis_client.ping.side_effect = RedisConnectionError("连接失败")

            # 连接失败应该返回 None
            assert get_redis() is None

    @pytest.mark.parametrize("header,expected", [("1", 1), (" 42 ", 42)])
    def test_get_current_user_id(self, header, expected):
        assert get_current_user_id(header) == expected

    @pytest.mark.parametrize("header", [None, "", "abc", "0", "-3", str(2 ** 63), "9" * 40])
    def test_get_current_user_id_rejected(self, header):
        with pytest.raises(HTTPException) as exc_info:
            get_current_user_id(header)
        assert exc_info.value.status_code == 401

    def test_get_audit_sink(self):
        """测试审计日志依赖"""
        redis_mock = Mock(spec=Redis)

        assert get_audit_sink(redis_mock).redis == redis_mock
        assert get_audit_sink(None).redis is None

    def test_get_checkout_service(self):
        db_mock = Mock(spec=Session)
        audit = AuditSink()

        service = get_checkout_service(db_mock, audit)

        assert isinstance(service, CheckoutService)
        assert service.db == db_mock
        assert service.audit is audit
        assert service.coordinator.db == db_mock

    def test_get_subscription_processor(self):
        db_mock = Mock(spec=Session)

        processor = get_subscription_processor(db_mock, AuditSink())

        assert isinstance(processor, SubscriptionProcessor)
        assert processor.db == db_mock
