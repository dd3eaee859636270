"""订阅 API 路由"""

from fastapi import APIRouter, Body, Depends, HTTPException, Path
from typing import List, Optional
import logging

from app.core.clock import to_naive_utc
from app.core.dependencies import (
    CurrentUserDep,
    get_subscription_processor,
    get_subscription_service,
)
from app.core.exceptions import ServiceError
from app.services.aggregation import MAX_ID
from app.services.subscription_processor import SubscriptionProcessor
from app.services.subscription_service import SubscriptionService
from app.schemas.base import CeleryTaskResponse, TaskStatusResponse
from app.schemas.subscription import (
    CreateSubscriptionRequest,
    ProcessSubscriptionsRequest,
    RunSummaryResponse,
    SubscriptionSchema,
    SubscriptionStatusUpdateRequest,
)
from tasks.subscription_tasks import process_due_subscriptions as celery_process_task

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/subscriptions",
    tags=["订阅"],
    responses={
        400: {"description": "请求参数错误"},
        401: {"description": "未认证"},
        404: {"description": "资源未找到"},
        500: {"description": "服务器内部错误"}
    }
)

@router.post(
    "",
    response_model=SubscriptionSchema,
    status_code=201,
    summary="创建订阅",
)
def create_subscription(
    request: CreateSubscriptionRequest = Body(...),
    user_id: int = CurrentUserDep,
    service: SubscriptionService = Depends(get_subscription_service)
):
    """创建周期订阅，下次配送时间 = 开始日期 + 一个周期"""
    try:
        subscription = service.create_subscription(
            user_id,
            request.product_id,
            request.quantity,
            request.frequency,
            request.start_date,
        )
        return SubscriptionSchema.model_validate(subscription)
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"创建订阅失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.get("/mine", response_model=List[SubscriptionSchema], summary="我的订阅")
def list_my_subscriptions(
    user_id: int = CurrentUserDep,
    service: SubscriptionService = Depends(get_subscription_service)
):
    try:
        return [SubscriptionSchema.model_validate(s) for s in service.list_for_user(user_id)]
    except Exception as e:
        logger.error(f"查询订阅失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.get("", response_model=List[SubscriptionSchema], summary="全部订阅（管理）")
def list_all_subscriptions(
    user_id: int = CurrentUserDep,
    service: SubscriptionService = Depends(get_subscription_service)
):
    """按创建时间倒序返回所有用户的订阅"""
    try:
        return [SubscriptionSchema.model_validate(s) for s in service.list_all()]
    except Exception as e:
        logger.error(f"查询全部订阅失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.patch(
    "/{subscription_id}/status",
    response_model=SubscriptionSchema,
    summary="暂停 / 取消订阅",
)
def update_subscription_status(
    subscription_id: int = Path(..., gt=0, le=MAX_ID, description="订阅ID"),
    request: SubscriptionStatusUpdateRequest = Body(...),
    user_id: int = CurrentUserDep,
    service: SubscriptionService = Depends(get_subscription_service)
):
    try:
        subscription = service.update_status(user_id, subscription_id, request.status)
        return SubscriptionSchema.model_validate(subscription)
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"订阅状态变更失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.post(
    "/process",
    response_model=RunSummaryResponse,
    summary="处理到期订阅",
    description="""扫描到期订阅并生成订单（方式一：API 直接调用 Service）。

    **保证：**
    - 同一订阅同一天最多生成一个订单
    - 单个订阅失败不影响其他订阅
    - 错过的周期直接跳过，不补单
    """,
)
def process_subscriptions(
    request: Optional[ProcessSubscriptionsRequest] = Body(None),
    processor: SubscriptionProcessor = Depends(get_subscription_processor)
):
    try:
        now = to_naive_utc(request.now) if request and request.now else None
        return processor.process_due(now).as_dict()
    except Exception as e:
        logger.error(f"处理到期订阅失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.post("/process/celery", response_model=CeleryTaskResponse)
async def celery_process_subscriptions():
    """触发 Celery 异步处理任务（方式二：Celery 调用）"""
    try:
        task = celery_process_task.delay()
        return {
            "success": True,
            "message": "已提交订阅处理任务",
            "task_id": task.id
        }
    except Exception as e:
        logger.error(f"Celery 任务提交失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.get("/process/status/{task_id}", response_model=TaskStatusResponse)
async def get_process_status(task_id: str):
    """查询 Celery 任务执行状态"""
    try:
        from celery_app import app
        task = app.AsyncResult(task_id)

        if task.state == 'PENDING':
            status = "任务等待中"
        elif task.state == 'SUCCESS':
            status = f"任务完成: {task.result}"
        elif task.state == 'FAILURE':
            status = f"任务失败: {str(task.info)}"
        else:
            status = f"任务状态: {task.state}"

        return {
            "task_id": task_id,
            "status": status,
            "state": task.state
        }
    except Exception as e:
        logger.error(f"查询任务状态失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
