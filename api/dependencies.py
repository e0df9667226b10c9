"""
API依赖项 - 实时服务注入
"""
from fastapi import Request, HTTPException, status

from application.services.realtime_service import RealtimeService


async def get_realtime_service(request: Request) -> RealtimeService:
    """从 app.state 获取进程内唯一的 RealtimeService 实例。"""
    svc = getattr(request.app.state, "realtime_service", None)
    if svc is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Realtime service not initialized",
        )
    return svc
