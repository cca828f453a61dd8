"""
shiptrack API - 主应用入口

多数据源货运追踪解析服务。

特性：
- 按成本和可靠性排序的数据源选择
- 限流感知的顺序获取，高可靠结果提前停止
- 多数据源时间线合并
- 数据源全部失败时返回旧数据
"""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shiptrack.api.routes import tracking_router, health_router, metrics_router
from shiptrack.api.dependencies import get_settings, get_service_container
from shiptrack.api.schemas import ErrorResponse
from shiptrack.config import LOGGING_CONFIG
from shiptrack.infrastructure.errors import AggregateFailureError, ShipTrackError
from shiptrack.infrastructure.logging import get_logger, setup_logging
from shiptrack.infrastructure.security import SecurityHeadersMiddleware


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    setup_logging(**LOGGING_CONFIG)
    logger.info("shiptrack API 正在启动...")

    container = get_service_container()
    report = container.tracking_service.get_provider_health()
    logger.info(
        f"服务容器初始化完成，数据源状态: {report.overall_health.value}，"
        f"已配置 {sum(1 for p in report.providers if p.available)}/{len(report.providers)}"
    )

    yield

    logger.info("shiptrack API 正在关闭...")
    await container.aclose()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    settings = get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        description="多数据源货运追踪解析 API：集装箱号、订舱号、提单号、船舶。",
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(SecurityHeadersMiddleware)

    # 请求日志中间件
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.perf_counter()
        request_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)

        logger.info(
            f"{request.method} {request.url.path}",
            extra={"request_id": request_id},
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"请求失败: {e}",
                extra={"request_id": request_id, "duration_ms": duration},
            )
            raise

        duration = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"完成 {response.status_code}",
            extra={"request_id": request_id, "duration_ms": duration},
        )
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration:.2f}ms"
        return response

    @app.exception_handler(ShipTrackError)
    async def shiptrack_exception_handler(request: Request, exc: ShipTrackError):
        logger.warning(f"业务异常: {exc.error_code.value} {exc.message}")
        status_code = 400
        if isinstance(exc, AggregateFailureError):
            status_code = exc.tracking_error.status_code
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error_code=exc.error_code.value,
                error_message=exc.message,
            ).model_dump(),
        )

    # 全局异常处理
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"未处理的异常: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error_code="INTERNAL_ERROR",
                error_message="服务器内部错误，请稍后重试",
            ).model_dump(),
        )

    app.include_router(health_router)
    app.include_router(tracking_router)
    app.include_router(metrics_router)

    return app


# 创建应用实例
app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "shiptrack.api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
