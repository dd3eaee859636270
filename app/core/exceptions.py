"""业务异常定义

ServiceError 及其子类是可预期的失败（参数校验、前置条件、状态流转），
由路由层转换为 4xx 响应，不会留下任何副作用。

ConsistencyError 单独成一支：补偿（回滚库存 / 删除临时订单）本身失败，
库存不变量可能已被破坏，必须告警并交由运维处理。
"""

from typing import Optional


class ServiceError(Exception):
    """业务异常基类"""

    status_code = 400
    code = "SERVICE_ERROR"
    default_message = "请求处理失败"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ==================== 参数校验 ====================

class InvalidLineItem(ServiceError):
    code = "INVALID_LINE_ITEM"
    default_message = "订单项必须包含有效的商品ID和数量"


class InvalidInput(ServiceError):
    code = "INVALID_INPUT"
    default_message = "请求参数无效"


# ==================== 前置条件 ====================

class ProductNotFound(ServiceError):
    status_code = 404
    code = "PRODUCT_NOT_FOUND"
    default_message = "一个或多个商品不存在"


class ProductInactive(ServiceError):
    code = "PRODUCT_INACTIVE"
    default_message = "商品已下架"


class StockNotConfigured(ServiceError):
    code = "STOCK_NOT_CONFIGURED"
    default_message = "商品未配置库存"


class InsufficientStock(ServiceError):
    code = "INSUFFICIENT_STOCK"
    default_message = "库存不足"


class EmptyCart(ServiceError):
    code = "EMPTY_CART"
    default_message = "购物车为空"


# ==================== 资源不存在 ====================

class NotFound(ServiceError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "资源不存在"


class OrderNotFound(NotFound):
    code = "ORDER_NOT_FOUND"
    default_message = "订单不存在"


class SubscriptionNotFound(NotFound):
    code = "SUBSCRIPTION_NOT_FOUND"
    default_message = "订阅不存在"


class CartNotFound(NotFound):
    code = "CART_NOT_FOUND"
    default_message = "购物车不存在"


class CartItemNotFound(NotFound):
    code = "CART_ITEM_NOT_FOUND"
    default_message = "购物车中没有该商品"


# ==================== 状态流转 ====================

class InvalidTransition(ServiceError):
    code = "INVALID_TRANSITION"
    default_message = "非法的状态流转"

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"非法的状态流转: {from_status} -> {to_status}")


# ==================== 一致性 ====================

class ConsistencyError(Exception):
    """补偿失败，库存不变量可能被破坏"""

    status_code = 500
    code = "CONSISTENCY_ERROR"


class StockCompensationError(ConsistencyError):
    """回滚已预占库存或删除临时订单失败"""

    def __init__(self, message: str, failed_releases=None, order_id=None):
        self.failed_releases = list(failed_releases or [])
        self.order_id = order_id
        super().__init__(message)
