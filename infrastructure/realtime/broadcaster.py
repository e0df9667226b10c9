"""Fan-out of outbound envelopes to registered connections.

Each broadcast is two-phase: targets are collected from a registry
snapshot, the frame is serialized once and written outside the
registry lock, then every connection whose write failed (or that was
no longer open) is evicted. Writes to a single connection are
serialized by its ``send_lock``.
"""
from __future__ import annotations

from typing import Callable, List

from application.ports.realtime import Envelope
from domain.relay.entity import Connection
from infrastructure.realtime.connection_manager import ConnectionRegistry
from core.logging_config import get_logger


logger = get_logger(__name__)


class Broadcaster:
    def __init__(self, registry: ConnectionRegistry) -> None:
        self._registry = registry

    async def broadcast_all(self, envelope: Envelope) -> int:
        return await self._broadcast(envelope, lambda conn: True, context={"mode": "all"})

    async def broadcast_except(self, sender_id: str, envelope: Envelope) -> int:
        return await self._broadcast(
            envelope,
            lambda conn: conn.id != sender_id,
            context={"mode": "except", "sender_id": sender_id},
        )

    async def broadcast_to_topic(self, topic: str, envelope: Envelope) -> int:
        return await self._broadcast(
            envelope,
            lambda conn: conn.is_subscribed(topic),
            context={"mode": "topic", "topic": topic},
        )

    async def send_to(self, client_id: str, envelope: Envelope) -> bool:
        """Write to one client; a failed write evicts it."""
        conn = self._registry.get(client_id)
        if conn is None:
            return False
        if not conn.is_open:
            await self._registry.remove(client_id)
            return False
        if await self._write(conn, envelope.to_text()):
            return True
        await self._evict([client_id], context={"mode": "direct"})
        return False

    async def _broadcast(self, envelope: Envelope, accept: Callable[[Connection], bool], context: dict) -> int:
        text = envelope.to_text()
        targets: List[Connection] = []
        stale: List[str] = []

        def visit(conn: Connection) -> None:
            if not conn.is_open:
                stale.append(conn.id)
            elif accept(conn):
                targets.append(conn)

        await self._registry.for_each(visit)

        delivered = 0
        for conn in targets:
            if await self._write(conn, text):
                delivered += 1
            else:
                stale.append(conn.id)

        if stale:
            await self._evict(stale, context=context)
        logger.debug("broadcast_sent", type=envelope.type, delivered=delivered, evicted=len(stale), **context)
        return delivered

    async def _write(self, conn: Connection, text: str) -> bool:
        async with conn.send_lock:
            if not conn.is_open:
                return False
            try:
                await conn.handle.send_text(text)
                return True
            except Exception as exc:
                conn.mark_closed()
                logger.warning("ws_send_failed", client_id=conn.id, error=str(exc))
                return False

    async def _evict(self, client_ids: List[str], context: dict) -> None:
        for client_id in client_ids:
            if await self._registry.remove(client_id) is not None:
                logger.info("broadcast_evicted", client_id=client_id, **context)
