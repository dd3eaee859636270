"""订单 API 路由"""

from fastapi import APIRouter, Body, Depends, HTTPException, Path
from typing import List, Optional
import logging

from app.core.dependencies import (
    CurrentUserDep,
    get_checkout_service,
    get_order_service,
    get_reservation_coordinator,
)
from app.core.exceptions import ConsistencyError, ServiceError
from app.services.aggregation import MAX_ID
from app.services.checkout_service import CheckoutService
from app.services.order_service import OrderService
from app.services.reservation_service import ReservationCoordinator
from app.schemas.order import (
    CheckoutRequest,
    OrderResponse,
    OrderSchema,
    OrderStatusUpdateRequest,
    PlaceOrderRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/orders",
    tags=["订单"],
    responses={
        400: {"description": "请求参数错误或库存不足"},
        401: {"description": "未认证"},
        404: {"description": "资源未找到"},
        500: {"description": "服务器内部错误"}
    }
)

@router.post(
    "",
    response_model=OrderResponse,
    status_code=201,
    summary="直接下单",
    description="""校验商品并创建订单，逐个商品原子扣减库存。

    **特点：**
    - 条件更新扣减，不会超卖
    - 任一商品扣减失败，已扣减的库存全部归还，订单删除
    """,
)
def place_order(
    request: PlaceOrderRequest = Body(...),
    user_id: int = CurrentUserDep,
    coordinator: ReservationCoordinator = Depends(get_reservation_coordinator)
):
    """直接下单（防超卖核心接口）"""
    try:
        order = coordinator.place_order(user_id, request.items, request.payment_method)
        return {"success": True, "message": "下单成功", "order": OrderSchema.model_validate(order)}
    except (ServiceError, ConsistencyError):
        # 透传业务异常
        raise
    except Exception as e:
        logger.error(f"下单失败: {str(e)}")
        # 未知异常统一抛 500
        raise HTTPException(status_code=500, detail=str(e))

@router.post(
    "/checkout",
    response_model=OrderResponse,
    status_code=201,
    summary="购物车结算",
)
def checkout(
    request: Optional[CheckoutRequest] = Body(None),
    user_id: int = CurrentUserDep,
    service: CheckoutService = Depends(get_checkout_service)
):
    """购物车结算，成功后清空购物车"""
    try:
        payment_method = request.payment_method if request else None
        order = service.checkout(user_id, payment_method)
        return {"success": True, "message": "下单成功", "order": OrderSchema.model_validate(order)}
    except (ServiceError, ConsistencyError):
        raise
    except Exception as e:
        logger.error(f"结算失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.get(
    "/mine",
    response_model=List[OrderSchema],
    summary="我的订单",
)
def list_my_orders(
    user_id: int = CurrentUserDep,
    service: OrderService = Depends(get_order_service)
):
    try:
        return [OrderSchema.model_validate(order) for order in service.list_for_user(user_id)]
    except Exception as e:
        logger.error(f"查询订单失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.get(
    "",
    response_model=List[OrderSchema],
    summary="全部订单（管理）",
    description="按创建时间倒序返回所有用户的订单。",
)
def list_all_orders(
    user_id: int = CurrentUserDep,
    service: OrderService = Depends(get_order_service)
):
    try:
        return [OrderSchema.model_validate(order) for order in service.list_all()]
    except Exception as e:
        logger.error(f"查询全部订单失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.patch(
    "/{order_id}/status",
    response_model=OrderSchema,
    summary="订单状态流转",
    description="""pending → confirmed / cancelled，confirmed → shipped / cancelled，
    shipped → delivered。目标状态与当前相同视为成功。取消不回补库存。""",
)
def update_order_status(
    order_id: int = Path(..., gt=0, le=MAX_ID, description="订单ID"),
    request: OrderStatusUpdateRequest = Body(...),
    user_id: int = CurrentUserDep,
    service: OrderService = Depends(get_order_service)
):
    try:
        order = service.transition_status(order_id, request.status, actor_id=user_id)
        return OrderSchema.model_validate(order)
    except (ServiceError, ConsistencyError):
        raise
    except Exception as e:
        logger.error(f"订单状态变更失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
