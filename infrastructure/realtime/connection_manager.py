"""In-process WebSocket connection registry.

Keeps track of relay connections by client id. Mutations and snapshots
are serialized with an asyncio lock; visitors run against a snapshot
outside the lock so they may remove entries while iterating.
"""
from __future__ import annotations

import asyncio
import inspect
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from domain.relay.entity import Connection
from core.logging_config import get_logger


logger = get_logger(__name__)


class ConnectionRegistry:
    """Map client id -> Connection for this process."""

    def __init__(self) -> None:
        self._by_id: Dict[str, Connection] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def new_id() -> str:
        return f"client_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"

    async def add(self, connection: Connection) -> str:
        async with self._lock:
            # ids are generated per accept; a clash means the caller reused one
            while connection.id in self._by_id:
                connection.id = self.new_id()
            self._by_id[connection.id] = connection
        logger.debug("registry_added", client_id=connection.id, total=len(self._by_id))
        return connection.id

    async def remove(self, client_id: str) -> Optional[Connection]:
        async with self._lock:
            conn = self._by_id.pop(client_id, None)
        if conn is None:
            return None
        conn.mark_closed()
        logger.debug("registry_removed", client_id=client_id, total=len(self._by_id))
        return conn

    def get(self, client_id: str) -> Optional[Connection]:
        return self._by_id.get(client_id)

    async def snapshot(self) -> List[Connection]:
        async with self._lock:
            return list(self._by_id.values())

    async def for_each(self, visit: Callable[[Connection], Any]) -> None:
        """Visit every connection; ``visit`` may be sync or async and may remove entries."""
        for conn in await self.snapshot():
            result = visit(conn)
            if inspect.isawaitable(result):
                await result

    async def clear(self) -> List[Connection]:
        async with self._lock:
            conns = list(self._by_id.values())
            self._by_id.clear()
        for conn in conns:
            conn.mark_closed()
        return conns

    def count(self) -> int:
        return len(self._by_id)
