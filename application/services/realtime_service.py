"""Application service for the realtime relay.

Keeps relay logic (dispatch, validation, fan-out policy) separate from
the concrete connection registry and the WebSocket transport. The same
instance is the entry point for the HTTP layer, which injects state
changes through the outbound API without holding a connection itself.
"""
from __future__ import annotations

import json
from typing import Any, Awaitable, Callable, Dict, List, Optional

from application.ports.realtime import Envelope, Transport
from application.services.subscription_service import SubscriptionService
from domain.common.exceptions import (
    BusinessException,
    DomainValidationException,
    InvalidFrameException,
    UnknownMessageTypeException,
)
from domain.relay.entity import Connection
from domain.relay.messages import (
    PICKUP_ZONES,
    SPEED_ERROR,
    InboundMessage,
    MessageType,
    is_non_negative,
    is_valid_speed,
    parse_message,
)
from infrastructure.realtime.broadcaster import Broadcaster
from infrastructure.realtime.connection_manager import ConnectionRegistry
from core.logging_config import get_logger


logger = get_logger(__name__)

Handler = Callable[[str, InboundMessage], Awaitable[None]]

_RESERVED_KEYS = {"type", "timestamp", "source"}

NON_FINITE_ERROR = "payload must not contain NaN or Infinity"


def _reject_constant(token: str) -> Any:
    raise ValueError(f"non-standard JSON constant: {token}")


class RealtimeService:
    def __init__(
        self,
        *,
        registry: ConnectionRegistry,
        broadcaster: Broadcaster,
        subscriptions: SubscriptionService,
        greeting: str = "Connected",
        shutdown_close_code: int = 1001,
    ) -> None:
        self._registry = registry
        self._broadcaster = broadcaster
        self._subscriptions = subscriptions
        self._greeting = greeting
        self._shutdown_close_code = shutdown_close_code
        self._handlers: Dict[MessageType, Handler] = {
            MessageType.PING: self._handle_ping,
            MessageType.SUBSCRIBE: self._handle_subscribe,
            MessageType.UNSUBSCRIBE: self._handle_unsubscribe,
        }
        # every remaining tag is a state update relayed to the other clients
        for tag in MessageType:
            self._handlers.setdefault(tag, self._handle_state_update)

    # Connection lifecycle management
    async def connect(self, transport: Transport, remote_address: Optional[str] = None) -> Connection:
        """Register a freshly accepted transport and greet it."""
        conn = Connection(id=ConnectionRegistry.new_id(), handle=transport, remote_address=remote_address)
        await self._registry.add(conn)
        logger.info("ws_connected", client_id=conn.id, remote_address=remote_address)
        await self._broadcaster.send_to(
            conn.id,
            Envelope(type="connection", message=self._greeting, clientId=conn.id),
        )
        return conn

    async def disconnect(self, client_id: str, code: Optional[int] = None, reason: Optional[str] = None) -> None:
        conn = await self._registry.remove(client_id)
        if conn is not None:
            logger.info("ws_disconnected", client_id=client_id, code=code, reason=reason)

    async def shutdown(self) -> None:
        """Close every registered connection and empty the registry."""
        conns = await self._registry.clear()
        for conn in conns:
            try:
                await conn.handle.close(code=self._shutdown_close_code)
            except Exception as exc:
                logger.warning("ws_close_failed", client_id=conn.id, error=str(exc))
        logger.info("relay_shutdown", closed=len(conns))

    # Inbound dispatch
    async def dispatch(self, client_id: str, raw: str | bytes) -> None:
        """Handle one raw inbound frame. Never raises."""
        if self._registry.get(client_id) is None:
            return
        try:
            message = json.loads(raw, parse_constant=_reject_constant)
        except (TypeError, ValueError) as exc:
            logger.warning("ws_invalid_json", client_id=client_id, error=str(exc))
            await self._reply_error(client_id, InvalidFrameException().message)
            return
        await self.handle_message(client_id, message)

    async def handle_message(self, client_id: str, message: Any) -> None:
        if self._registry.get(client_id) is None:
            return
        payload = message if isinstance(message, dict) else {}
        tag = payload.get("type")
        logger.info("relay_message_received", client_id=client_id, type=tag)
        try:
            message_type = MessageType.lookup(tag)
            if message_type is None:
                raise UnknownMessageTypeException(tag)
            parsed = parse_message(message_type, payload)
            await self._handlers[message_type](client_id, parsed)
        except BusinessException as exc:
            logger.info("relay_message_rejected", client_id=client_id, type=tag, error=exc.message)
            await self._reply_error(client_id, exc.message)
        except Exception as exc:
            logger.error("relay_handler_failed", client_id=client_id, type=tag, error=str(exc), exc_info=True)
            await self._reply_error(client_id, str(exc) or exc.__class__.__name__)

    async def _handle_ping(self, client_id: str, message: InboundMessage) -> None:
        await self._broadcaster.send_to(client_id, Envelope(type="pong"))

    async def _handle_subscribe(self, client_id: str, message: InboundMessage) -> None:
        await self._subscriptions.subscribe(client_id, message.topics)

    async def _handle_unsubscribe(self, client_id: str, message: InboundMessage) -> None:
        await self._subscriptions.unsubscribe(client_id, message.topics)

    async def _handle_state_update(self, client_id: str, message: InboundMessage) -> None:
        if not message.has_content():
            logger.info("relay_message_skipped", client_id=client_id, type=message.relay_type)
            return
        fields = message.relay_fields()
        delivered = await self._broadcaster.broadcast_except(
            client_id,
            Envelope(type=message.relay_type, source=client_id, **fields),
        )
        logger.info("relay_state_update", client_id=client_id, type=message.relay_type, fields=fields, delivered=delivered)
        if message.confirm:
            await self._broadcaster.send_to(
                client_id,
                Envelope(type=f"{message.relay_type}_confirmed", **fields),
            )

    async def _reply_error(self, client_id: str, message: str) -> None:
        await self._broadcaster.send_to(client_id, Envelope.error(message))

    # Outbound API (server-initiated, broadcast to everyone)
    async def send_table(self, value: Any) -> int:
        return await self._inject("table_update", table=value)

    async def send_speed(self, value: Any) -> int:
        if not is_valid_speed(value):
            raise DomainValidationException(SPEED_ERROR, field="speed")
        return await self._inject("speed_update", speed=value)

    async def send_game_start(self, value: Any) -> int:
        return await self._inject("game_start_update", gameStart=value)

    async def send_products(self, kind: Any) -> int:
        return await self._inject("products_update", product=kind)

    async def send_sorted_objects(self, kind: Any) -> int:
        return await self._inject("sorted_objects", object=kind)

    async def send_unsorted_objects(self, kind: Any) -> int:
        return await self._inject("unsorted_objects", object=kind)

    async def send_errors(self, count: Any) -> int:
        if not is_non_negative(count):
            raise DomainValidationException("errors must be a non-negative number", field="errors")
        return await self._inject("errors_update", errors=count)

    async def send_pickup_from_zone(self, zone: Any) -> int:
        if zone not in PICKUP_ZONES:
            raise DomainValidationException(
                f"zone must be one of {', '.join(PICKUP_ZONES)}",
                field="zone",
                details={"allowed": list(PICKUP_ZONES)},
            )
        return await self._inject("pickup_from_zone", zone=zone)

    async def send_to_topic(self, topic: str, type_: str, payload: Optional[dict] = None) -> int:
        fields = {k: v for k, v in (payload or {}).items() if k not in _RESERVED_KEYS}
        try:
            delivered = await self._broadcaster.broadcast_to_topic(topic, Envelope(type=type_, **fields))
        except ValueError as exc:
            raise DomainValidationException(NON_FINITE_ERROR) from exc
        logger.info("relay_topic_publish", topic=topic, type=type_, delivered=delivered)
        return delivered

    async def _inject(self, type_: str, **fields: Any) -> int:
        try:
            delivered = await self._broadcaster.broadcast_all(Envelope(type=type_, **fields))
        except ValueError as exc:
            raise DomainValidationException(NON_FINITE_ERROR) from exc
        logger.info("relay_api_broadcast", type=type_, fields=fields, delivered=delivered)
        return delivered

    # Introspection
    def connected_count(self) -> int:
        return self._registry.count()

    async def list_clients(self) -> List[dict]:
        return [
            {
                "clientId": conn.id,
                "remoteAddress": conn.remote_address,
                "connectedAt": conn.connected_at.isoformat().replace("+00:00", "Z"),
                "subscriptions": sorted(conn.subscriptions),
            }
            for conn in await self._registry.snapshot()
        ]

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def subscriptions(self) -> SubscriptionService:
        return self._subscriptions


def build_realtime_service(
    *,
    greeting: str = "Connected",
    shutdown_close_code: int = 1001,
) -> RealtimeService:
    """Assemble registry, broadcaster and subscription manager into one relay."""
    registry = ConnectionRegistry()
    broadcaster = Broadcaster(registry)
    subscriptions = SubscriptionService(registry=registry, broadcaster=broadcaster)
    return RealtimeService(
        registry=registry,
        broadcaster=broadcaster,
        subscriptions=subscriptions,
        greeting=greeting,
        shutdown_close_code=shutdown_close_code,
    )
