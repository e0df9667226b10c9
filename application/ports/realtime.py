"""
Realtime port and message DTOs (contracts-first).

This module defines the outbound frame envelope and re-exports the
Transport protocol so the application layer can remain decoupled from
the concrete WebSocket implementation (api/infrastructure).
"""
from __future__ import annotations

import json
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone

from domain.relay.entity import Transport


def _utc_now_z() -> str:
    ts = datetime.now(timezone.utc)
    s = ts.isoformat(timespec="milliseconds")
    return s.replace("+00:00", "Z")


class Envelope(BaseModel):
    """Unified outbound frame passed around the relay.

    Fields:
      - type: semantic message type (speed_update, pong, error, ...)
      - timestamp: server-generated UTC timestamp (ISO8601 with Z);
        ``None`` for error frames
      - source: id of the relaying client, absent for server/API sends
      - any extra keyword becomes a top-level payload field
    """

    model_config = ConfigDict(extra="allow")

    type: str
    timestamp: Optional[str] = Field(default_factory=_utc_now_z)
    source: Optional[str] = None

    @classmethod
    def error(cls, message: str) -> "Envelope":
        return cls(type="error", message=message, timestamp=None)

    def to_frame(self) -> dict[str, Any]:
        frame = self.model_dump()
        for key in ("timestamp", "source"):
            if frame.get(key) is None:
                frame.pop(key, None)
        return frame

    def to_text(self) -> str:
        # strict JSON: NaN/Infinity raise ValueError
        return json.dumps(self.to_frame(), ensure_ascii=False, default=str, allow_nan=False)


__all__ = ["Envelope", "Transport"]
