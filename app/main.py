from contextlib import asynccontextmanager
import logging
from typing import Any, Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.dependencies import get_db
from app.core.exceptions import ConsistencyError, ServiceError
from app.core.redis import async_redis
from app.db import engine, init_db
from app.routers import cart_router, order_router, subscription_router

import uvicorn

SERVICE_NAME = "greencart-fulfillment"
SERVICE_VERSION = "1.0.0"
API_PREFIX = "/api/v1"

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {SERVICE_NAME}...")

    # 数据库不可用时直接启动失败
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        logger.info("✅ Database connection successful")
    except Exception as e:
        logger.error("❌ Database connection failed: %s", e)
        raise

    if settings.AUTO_CREATE_TABLES:
        init_db()
        logger.info("✅ Database tables ready")

    # Redis 只承载审计日志和 Celery，不可用时降级运行
    try:
        await async_redis.ping()
        logger.info("✅ Redis connected successfully")
    except Exception as e:
        logger.warning(f"⚠️  Redis connection failed: {e}")
        logger.warning("⚠️  Audit entries will only be written to the local log")

    yield

    await async_redis.aclose()
    logger.info(f"{SERVICE_NAME} stopped")


app = FastAPI(
    title="Greencart 履约服务 API",
    description="生鲜电商下单、结算与周期订阅服务，库存防超卖",
    version=SERVICE_VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 生产环境中应该指定具体域名
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (order_router, cart_router, subscription_router):
    app.include_router(module.router, prefix=API_PREFIX)


def error_response(status_code: int, message: Any, code: Optional[str] = None,
                   **extra) -> JSONResponse:
    """统一错误响应：{"success": false, "code": ..., "message": ...}"""
    content = {"success": False, "message": message}
    if code:
        content["code"] = code
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


# ==================== 全局异常处理 ====================

@app.exception_handler(ServiceError)
async def service_exception_handler(request: Request, exc: ServiceError):
    logger.warning(f"{request.method} {request.url.path} -> {exc.code}: {exc.message}")
    return error_response(exc.status_code, exc.message, exc.code)


@app.exception_handler(ConsistencyError)
async def consistency_exception_handler(request: Request, exc: ConsistencyError):
    # 库存不变量可能已被破坏，需要人工介入
    logger.critical(f"🚨 {request.method} {request.url.path} -> consistency error: {exc}", exc_info=True)
    return error_response(500, "服务器内部错误", exc.code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"Validation error: {exc}")
    return error_response(422, "请求参数验证失败", "VALIDATION_ERROR", details=exc.errors())


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    logger.error(f"HTTP error: {exc.status_code} - {exc.detail}")
    return error_response(exc.status_code, exc.detail)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return error_response(500, "服务器内部错误")


# ==================== 基础端点 ====================

@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """健康检查接口（含数据库连通性）"""
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        logger.error(f"健康检查数据库不可用: {e}")
        database = "unavailable"

    return {
        "status": "healthy" if database == "ok" else "degraded",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "database": database,
    }


@app.get("/")
async def read_root():
    """API 根路径"""
    return {
        "message": "欢迎使用 Greencart 履约服务",
        "docs": "/docs",
        "health": "/health",
        "api": API_PREFIX,
    }


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
