"""下单数量聚合单元测试"""
import pytest
from decimal import Decimal

from app.core.exceptions import InvalidLineItem
from app.services.aggregation import (
    MAX_ID,
    MAX_QUANTITY,
    LineItem,
    aggregate_line_items,
    coerce_positive_int,
)


class TestCoercePositiveInt:

    @pytest.mark.parametrize("value,expected", [
        (3, 3),
        (2.0, 2),
        ("4", 4),
        (" 5 ", 5),
        ("6.0", 6),
        (Decimal("7"), 7),
    ])
    def test_valid_values(self, value, expected):
        assert coerce_positive_int(value) == expected

    @pytest.mark.parametrize("value", [
        0, -1, 1.5, "2.5", "abc", "", None, True, False, "nan", [1], {"q": 1},
    ])
    def test_invalid_values(self, value):
        assert coerce_positive_int(value) is None

    def test_upper_bound(self):
        """超出 BIGINT / INTEGER 范围的值视为非法"""
        assert coerce_positive_int(MAX_ID) == MAX_ID
        assert coerce_positive_int(MAX_ID + 1) is None
        assert coerce_positive_int(str(2 ** 70)) is None
        assert coerce_positive_int(MAX_QUANTITY, MAX_QUANTITY) == MAX_QUANTITY
        assert coerce_positive_int(MAX_QUANTITY + 1, MAX_QUANTITY) is None


class TestAggregateLineItems:

    def test_merges_duplicate_products_in_first_appearance_order(self):
        """重复商品合并，顺序按首次出现"""
        result = aggregate_line_items([
            {"product_id": 2, "quantity": 1},
            {"product_id": 1, "quantity": 3},
            {"product_id": 2, "quantity": "4"},
        ])

        assert result.quantities == {2: 5, 1: 3}
        assert list(result.quantities) == [2, 1]
        assert result.product_ids == [2, 1]
        assert result.line_items == [
            LineItem(product_id=2, quantity=1),
            LineItem(product_id=1, quantity=3),
            LineItem(product_id=2, quantity=4),
        ]

    def test_accepts_product_alias_key(self):
        """兼容 product 字段名"""
        result = aggregate_line_items([{"product": "9", "quantity": 2}])
        assert result.quantities == {9: 2}

    def test_accepts_objects_with_attributes(self):
        result = aggregate_line_items([LineItem(product_id=3, quantity=2)])
        assert result.quantities == {3: 2}

    def test_rejects_whole_batch_on_single_invalid_item(self):
        """任一条目非法即整体拒绝"""
        with pytest.raises(InvalidLineItem):
            aggregate_line_items([
                {"product_id": 1, "quantity": 1},
                {"product_id": 2, "quantity": 0},
            ])

    @pytest.mark.parametrize("raw", [
        [{"quantity": 1}],
        [{"product_id": 1}],
        [{"product_id": "abc", "quantity": 1}],
        [{"product_id": 1, "quantity": 1.5}],
        ["not-a-mapping"],
    ])
    def test_rejects_malformed_items(self, raw):
        with pytest.raises(InvalidLineItem):
            aggregate_line_items(raw)

    @pytest.mark.parametrize("raw", [[], None, "items", {"product_id": 1, "quantity": 1}])
    def test_rejects_empty_or_non_list_input(self, raw):
        with pytest.raises(InvalidLineItem):
            aggregate_line_items(raw)


class TestAggregateOutOfRange:

    @pytest.mark.parametrize("item", [
        {"product_id": 2 ** 70, "quantity": 1},
        {"product_id": 1, "quantity": 2 ** 31},
        {"product_id": 1, "quantity": 2 ** 70},
    ])
    def test_out_of_range_rejected(self, item):
        with pytest.raises(InvalidLineItem):
            aggregate_line_items([item])

    def test_merged_quantity_out_of_range(self):
        """单行合法但合并后超出 INTEGER 范围"""
        with pytest.raises(InvalidLineItem):
            aggregate_line_items([
                {"product_id": 1, "quantity": MAX_QUANTITY},
                {"product_id": 1, "quantity": 1},
            ])
