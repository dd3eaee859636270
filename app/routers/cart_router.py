"""购物车 API 路由"""

from fastapi import APIRouter, Body, Depends, HTTPException, Path
import logging

from app.core.dependencies import CurrentUserDep, get_cart_service
from app.core.exceptions import ServiceError
from app.services.aggregation import MAX_ID
from app.services.cart_service import CartService
from app.schemas.cart import AddCartItemRequest, CartSchema, UpdateCartItemRequest

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/cart",
    tags=["购物车"],
    responses={
        400: {"description": "请求参数错误"},
        401: {"description": "未认证"},
        404: {"description": "资源未找到"},
    }
)


def _run(action, *args):
    try:
        return CartSchema.model_validate(action(*args))
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"购物车操作失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("", response_model=CartSchema, summary="我的购物车")
def get_cart(user_id: int = CurrentUserDep, service: CartService = Depends(get_cart_service)):
    return _run(service.get_cart, user_id)


@router.post("/items", response_model=CartSchema, summary="加入购物车")
def add_item(
    request: AddCartItemRequest = Body(...),
    user_id: int = CurrentUserDep,
    service: CartService = Depends(get_cart_service)
):
    return _run(service.add_item, user_id, request.product_id, request.quantity)


@router.put("/items/{product_id}", response_model=CartSchema, summary="修改数量")
def update_item(
    product_id: int = Path(..., gt=0, le=MAX_ID, description="商品ID"),
    request: UpdateCartItemRequest = Body(...),
    user_id: int = CurrentUserDep,
    service: CartService = Depends(get_cart_service)
):
    return _run(service.update_item, user_id, product_id, request.quantity)


@router.delete("/items/{product_id}", response_model=CartSchema, summary="移除商品")
def remove_item(
    product_id: int = Path(..., gt=0, le=MAX_ID, description="商品ID"),
    user_id: int = CurrentUserDep,
    service: CartService = Depends(get_cart_service)
):
    return _run(service.remove_item, user_id, product_id)


@router.delete("", response_model=CartSchema, summary="清空购物车")
def clear_cart(user_id: int = CurrentUserDep, service: CartService = Depends(get_cart_service)):
    return _run(service.clear, user_id)
