"""DTOs for the HTTP façade over the relay's outbound API."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ValueDTO(BaseModel):
    """Body shared by every ``/vr/*`` write route."""

    value: Any = Field(..., description="Value broadcast to every connected client")


class TopicPublishDTO(BaseModel):
    type: str = Field(..., min_length=1, description="Outbound message type")
    data: dict[str, Any] = Field(default_factory=dict, description="Payload fields merged into the frame")


class DeliveryDTO(BaseModel):
    delivered: int = Field(..., ge=0, description="Number of clients that received the frame")


class ClientDTO(BaseModel):
    clientId: str
    remoteAddress: str | None = None
    connectedAt: str
    subscriptions: list[str] = Field(default_factory=list)


class ClientListDTO(BaseModel):
    count: int
    clients: list[ClientDTO]
