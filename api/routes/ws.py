"""WebSocket route for the realtime relay.

One long-lived connection per client; every data frame (text or
binary) is handed to the relay's dispatcher. Idle timeouts are left
to the ASGI server.
"""
from __future__ import annotations

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from application.services.realtime_service import RealtimeService
from core.config import settings
from core.logging_config import get_logger


logger = get_logger(__name__)


router = APIRouter(tags=["WebSocket"])


def get_realtime_service_from_app(ws: WebSocket) -> RealtimeService:
    svc = getattr(ws.app.state, "realtime_service", None)
    if svc is None:
        raise RuntimeError("Realtime service not initialized. Ensure lifespan sets app.state.realtime_service.")
    return svc


def _remote_address(ws: WebSocket) -> str | None:
    forwarded = ws.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return ws.client.host if ws.client else None


async def _receive_frame(ws: WebSocket) -> str | bytes:
    """Next data frame; binary frames are passed through as bytes."""
    message = await ws.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
    text = message.get("text")
    if text is not None:
        return text
    return message.get("bytes") or b""


@router.websocket(settings.RELAY_WS_PATH)
async def websocket_endpoint(ws: WebSocket) -> None:
    rt = get_realtime_service_from_app(ws)
    await ws.accept()
    conn = await rt.connect(ws, remote_address=_remote_address(ws))
    code: int | None = None
    reason: str | None = None
    try:
        while True:
            raw = await _receive_frame(ws)
            await rt.dispatch(conn.id, raw)
    except WebSocketDisconnect as exc:
        code, reason = exc.code, getattr(exc, "reason", None) or None
    except Exception as exc:
        logger.error("ws_error", client_id=conn.id, error=str(exc), exc_info=True)
        code = 1011
        try:
            await ws.close(code=code)
        except Exception as close_exc:
            logger.debug("ws_close_failed", client_id=conn.id, error=str(close_exc))
    finally:
        await rt.disconnect(conn.id, code=code, reason=reason)
