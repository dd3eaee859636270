"""订阅服务测试"""
import pytest
from datetime import date, datetime

from app.core.exceptions import (
    InvalidInput,
    InvalidTransition,
    ProductInactive,
    ProductNotFound,
    SubscriptionNotFound,
)
from app.models.subscription import Frequency, SubscriptionStatus
from app.services.subscription_service import SubscriptionService, parse_start_date


class TestParseStartDate:

    @pytest.mark.parametrize("value,expected", [
        ("2026-03-10", datetime(2026, 3, 10)),
        ("2026-03-10T08:30:00", datetime(2026, 3, 10, 8, 30)),
        ("2026-03-10T08:30:00Z", datetime(2026, 3, 10, 8, 30)),
        ("2026-03-10T16:30:00+08:00", datetime(2026, 3, 10, 8, 30)),
        (date(2026, 3, 10), datetime(2026, 3, 10)),
    ])
    def test_valid(self, value, expected):
        assert parse_start_date(value) == expected

    @pytest.mark.parametrize("value", [None, "", "not-a-date", "2026-13-01", 20260310])
    def test_invalid(self, value):
        with pytest.raises(InvalidInput):
            parse_start_date(value)


class TestSubscriptionService:

    def test_create_subscription(self, mock_db_session, make_product, audit_sink):
        product = make_product()

        subscription = SubscriptionService(mock_db_session, audit_sink).create_subscription(
            1, product.id, 2, "weekly", "2026-03-10"
        )

        assert subscription.id is not None
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.frequency == Frequency.WEEKLY
        assert subscription.start_date == datetime(2026, 3, 10)
        assert subscription.next_delivery_date == datetime(2026, 3, 17)
        audit_sink.record.assert_called_once()

    def test_create_monthly_clamps_to_month_end(self, mock_db_session, make_product):
        product = make_product()

        subscription = SubscriptionService(mock_db_session).create_subscription(
            1, product.id, 1, "monthly", "2026-01-31"
        )

        assert subscription.next_delivery_date == datetime(2026, 2, 28)

    @pytest.mark.parametrize("product_id,quantity,frequency,start_date", [
        (None, 1, "daily", "2026-03-10"),
        (1, 0, "daily", "2026-03-10"),
        (1, 1, "hourly", "2026-03-10"),
        (1, 1, None, "2026-03-10"),
        (1, 1, "daily", "garbage"),
        (1, 2 ** 31, "daily", "2026-03-10"),
        (1, 2 ** 70, "daily", "2026-03-10"),
        (2 ** 70, 1, "daily", "2026-03-10"),
    ])
    def test_create_invalid_input(self, mock_db_session, make_product,
                                  product_id, quantity, frequency, start_date):
        make_product()
        with pytest.raises(InvalidInput):
            SubscriptionService(mock_db_session).create_subscription(
                1, product_id, quantity, frequency, start_date
            )

    def test_create_missing_product(self, mock_db_session):
        with pytest.raises(ProductNotFound):
            SubscriptionService(mock_db_session).create_subscription(1, 999, 1, "daily", "2026-03-10")

    def test_create_inactive_product(self, mock_db_session, make_product):
        product = make_product(is_active=False)
        with pytest.raises(ProductInactive):
            SubscriptionService(mock_db_session).create_subscription(
                1, product.id, 1, "daily", "2026-03-10"
            )

    def test_list_for_user(self, mock_db_session, make_product):
        product = make_product()
        service = SubscriptionService(mock_db_session)
        mine = service.create_subscription(1, product.id, 1, "daily", "2026-03-10")
        service.create_subscription(2, product.id, 1, "daily", "2026-03-10")

        assert [s.id for s in service.list_for_user(1)] == [mine.id]

    @pytest.mark.parametrize("path", [["paused", "cancelled"], ["cancelled"]])
    def test_allowed_status_changes(self, mock_db_session, make_product, audit_sink, path):
        product = make_product()
        service = SubscriptionService(mock_db_session, audit_sink)
        subscription = service.create_subscription(1, product.id, 1, "daily", "2026-03-10")

        for status in path:
            subscription = service.update_status(1, subscription.id, status)

        assert subscription.status == SubscriptionStatus.CANCELLED

    @pytest.mark.parametrize("status", ["paused", "cancelled"])
    def test_cancelled_is_terminal(self, mock_db_session, make_product, status):
        product = make_product()
        service = SubscriptionService(mock_db_session)
        subscription = service.create_subscription(1, product.id, 1, "daily", "2026-03-10")
        service.update_status(1, subscription.id, "cancelled")

        with pytest.raises(InvalidTransition):
            service.update_status(1, subscription.id, status)

    def test_paused_to_paused_is_noop(self, mock_db_session, make_product, audit_sink):
        product = make_product()
        service = SubscriptionService(mock_db_session, audit_sink)
        subscription = service.create_subscription(1, product.id, 1, "daily", "2026-03-10")
        service.update_status(1, subscription.id, "paused")
        audit_sink.reset_mock()

        result = service.update_status(1, subscription.id, "paused")

        assert result.status == SubscriptionStatus.PAUSED
        audit_sink.record.assert_not_called()

    @pytest.mark.parametrize("status", ["active", "resumed", ""])
    def test_invalid_target_status(self, mock_db_session, make_product, status):
        product = make_product()
        service = SubscriptionService(mock_db_session)
        subscription = service.create_subscription(1, product.id, 1, "daily", "2026-03-10")

        with pytest.raises(InvalidInput):
            service.update_status(1, subscription.id, status)

    def test_other_users_subscription_not_found(self, mock_db_session, make_product):
        product = make_product()
        service = SubscriptionService(mock_db_session)
        subscription = service.create_subscription(1, product.id, 1, "daily", "2026-03-10")

        with pytest.raises(SubscriptionNotFound):
            service.update_status(2, subscription.id, "paused")

    def test_out_of_range_id_not_found(self, mock_db_session):
        with pytest.raises(SubscriptionNotFound):
            SubscriptionService(mock_db_session).update_status(1, 2 ** 70, "paused")

    def test_list_all_newest_first(self, mock_db_session, make_product):
        product = make_product()
        service = SubscriptionService(mock_db_session)
        first = service.create_subscription(1, product.id, 1, "daily", "2026-03-10")
        second = service.create_subscription(2, product.id, 1, "weekly", "2026-03-10")
        first.created_at = datetime(2026, 3, 1)
        second.created_at = datetime(2026, 3, 2)
        mock_db_session.commit()

        assert [s.id for s in service.list_all()] == [second.id, first.id]
