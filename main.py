"""
FastAPI应用主入口
"""
import time
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from api.routes import vr as vr_routes
from api.routes import ws as ws_routes
from api.middleware import RequestIDMiddleware, LoggingMiddleware
from core.config import settings
from core.exceptions import register_exception_handlers
from core.response import success_response
from core.logging_config import get_logger, configure_logging
from application.services.realtime_service import build_realtime_service


# 初始化日志：在入口处显式配置，避免模块导入时的副作用
configure_logging()
logger = get_logger(__name__)

_started_at = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 初始化实时通信（WebSocket relay）：进程内唯一实例，显式挂到 app.state
    realtime = build_realtime_service(
        greeting=settings.RELAY_GREETING_MESSAGE,
        shutdown_close_code=settings.RELAY_SHUTDOWN_CLOSE_CODE,
    )
    app.state.realtime_service = realtime
    logger.info("realtime_initialized", ws_path=settings.RELAY_WS_PATH)

    yield

    # 关闭时断开所有客户端
    await realtime.shutdown()
    logger.info("application_shutdown", message="Application shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="VR 会话实时消息中继（WebSocket）",
)

# 添加中间件（注意顺序：从下往上执行）
# 1. Request ID中间件（最先执行，为后续中间件提供request_id）
app.add_middleware(RequestIDMiddleware)

# 2. 日志中间件（依赖request_id）
app.add_middleware(LoggingMiddleware)

# 3. CORS中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册全局异常处理器
register_exception_handlers(app)


# 注册路由
app.include_router(vr_routes.router, prefix="/api/v1")
app.include_router(ws_routes.router)


# 根路径
@app.get("/", tags=["Root"])
async def root():
    """API根路径"""
    return success_response(
        data={
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "environment": settings.ENVIRONMENT,
            "websocket": settings.RELAY_WS_PATH,
        },
        message="Welcome to the VR relay",
    )


# 健康检查
@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """健康检查端点"""
    realtime = getattr(request.app.state, "realtime_service", None)
    return success_response(
        data={
            "status": "healthy",
            "connected_clients": realtime.connected_count() if realtime else 0,
            "uptime": round(time.monotonic() - _started_at, 3),
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        },
        message="OK",
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
