"""Opt-in topic subscriptions for relay connections."""
from __future__ import annotations

from typing import Any, Optional

from application.ports.realtime import Envelope
from domain.relay.messages import parse_topics
from infrastructure.realtime.broadcaster import Broadcaster
from infrastructure.realtime.connection_manager import ConnectionRegistry
from core.logging_config import get_logger


logger = get_logger(__name__)


class SubscriptionService:
    def __init__(self, *, registry: ConnectionRegistry, broadcaster: Broadcaster) -> None:
        self._registry = registry
        self._broadcaster = broadcaster

    async def subscribe(self, client_id: str, topic_or_topics: Any) -> Optional[list[str]]:
        """Add topics to the client's set and confirm with the resulting set.

        Returns the current subscriptions, or ``None`` when the client is
        no longer registered (nothing is sent in that case).
        """
        topics = parse_topics(topic_or_topics)
        conn = self._registry.get(client_id)
        if conn is None:
            return None
        conn.subscribe(topics)
        logger.info("ws_subscribed", client_id=client_id, topics=topics)
        return await self._confirm(client_id, "subscription_confirmed", conn.subscriptions)

    async def unsubscribe(self, client_id: str, topic_or_topics: Any) -> Optional[list[str]]:
        topics = parse_topics(topic_or_topics)
        conn = self._registry.get(client_id)
        if conn is None:
            return None
        conn.unsubscribe(topics)
        logger.info("ws_unsubscribed", client_id=client_id, topics=topics)
        return await self._confirm(client_id, "unsubscription_confirmed", conn.subscriptions)

    async def _confirm(self, client_id: str, type_: str, subscriptions: set[str]) -> list[str]:
        current = sorted(subscriptions)
        await self._broadcaster.send_to(client_id, Envelope(type=type_, subscriptions=current))
        return current
