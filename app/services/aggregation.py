"""下单商品数量聚合

把请求体 / 购物车中的 (商品, 数量) 列表规整为：
- quantities: 商品ID -> 合计数量（按首次出现顺序）
- line_items: 规整后的明细（保持原始顺序，用于写入订单）

任一条目非法即整体拒绝，不做部分接受。
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional

from app.core.exceptions import InvalidLineItem


@dataclass(frozen=True)
class LineItem:
    product_id: int
    quantity: int


@dataclass
class AggregatedItems:
    quantities: Dict[int, int] = field(default_factory=dict)
    line_items: List[LineItem] = field(default_factory=list)

    @property
    def product_ids(self) -> List[int]:
        return list(self.quantities)


# 与列类型一致：ID 为 BIGINT，数量为 INTEGER
MAX_ID = 2 ** 63 - 1
MAX_QUANTITY = 2 ** 31 - 1


def coerce_positive_int(value: Any, maximum: int = MAX_ID) -> Optional[int]:
    """把数量/ID 转成 [1, maximum] 内的整数，无法转换时返回 None"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        number = value
    elif isinstance(value, float):
        if not value.is_integer():
            return None
        number = int(value)
    elif isinstance(value, (str, Decimal)):
        try:
            parsed = Decimal(str(value).strip())
        except InvalidOperation:
            return None
        if not parsed.is_finite() or parsed != parsed.to_integral_value():
            return None
        number = int(parsed)
    else:
        return None
    return number if 1 <= number <= maximum else None


def _field(item: Any, *names: str) -> Any:
    if isinstance(item, Mapping):
        for name in names:
            if name in item:
                return item[name]
        return None
    for name in names:
        if hasattr(item, name):
            return getattr(item, name)
    return None


def aggregate_line_items(raw_items: Iterable[Any]) -> AggregatedItems:
    if raw_items is None or isinstance(raw_items, (str, bytes, Mapping)):
        raise InvalidLineItem("订单项不能为空")

    aggregated = AggregatedItems()
    for item in raw_items:
        product_id = coerce_positive_int(_field(item, "product_id", "product"))
        quantity = coerce_positive_int(_field(item, "quantity"), MAX_QUANTITY)
        if product_id is None or quantity is None:
            raise InvalidLineItem()

        aggregated.quantities[product_id] = aggregated.quantities.get(product_id, 0) + quantity
        if aggregated.quantities[product_id] > MAX_QUANTITY:
            raise InvalidLineItem("商品数量超出范围")
        aggregated.line_items.append(LineItem(product_id=product_id, quantity=quantity))

    if not aggregated.line_items:
        raise InvalidLineItem("订单项不能为空")

    return aggregated
