"""Domain entity representing one live relay connection."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Optional, Protocol, Set


class Transport(Protocol):
    """Bidirectional text transport handed to the relay by the web layer.

    Starlette's ``WebSocket`` satisfies this contract as-is.
    """

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


class LiveState(IntEnum):
    """Connection state; only ever advances toward CLOSED."""

    OPEN = 0
    CLOSING = 1
    CLOSED = 2


@dataclass(eq=False)
class Connection:
    """A client session registered with the relay."""

    id: str
    handle: Transport
    remote_address: Optional[str] = None
    subscriptions: Set[str] = field(default_factory=set)
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    live_state: LiveState = LiveState.OPEN
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def is_open(self) -> bool:
        return self.live_state == LiveState.OPEN

    def _advance(self, state: LiveState) -> None:
        if state > self.live_state:
            self.live_state = state

    def mark_closing(self) -> None:
        self._advance(LiveState.CLOSING)

    def mark_closed(self) -> None:
        self._advance(LiveState.CLOSED)

    def subscribe(self, topics: list[str]) -> None:
        self.subscriptions.update(topics)

    def unsubscribe(self, topics: list[str]) -> None:
        self.subscriptions.difference_update(topics)

    def is_subscribed(self, topic: str) -> bool:
        return topic in self.subscriptions
