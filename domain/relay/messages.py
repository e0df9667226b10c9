"""Closed set of relay message types and their payload validators.

Every inbound tag maps to one pydantic model (a tagged variant). Models
are pure: ``parse_message`` turns a decoded payload into a validated
message or raises ``MessageValidationError`` with a human readable
reason that is sent back to the originating client verbatim.

Permissive telemetry messages relay only the fields that were present
in the payload (``exclude_unset``); a field explicitly sent as ``null``
is present and is relayed as such.
"""
from __future__ import annotations

import math
from enum import Enum
from typing import Any, ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from domain.common.exceptions import MessageValidationError


SPEED_MIN = 0.2
SPEED_MAX = 1.0
HANDS = ("left", "right")
PICKUP_ZONES = ("red", "green", "yellow")

SPEED_ERROR = "Speed must be a number between 0.2 and 1"
HAND_ERROR = "hand must be 'left' or 'right'"
HAND_COUNT_ERROR = "handCount must be a non-negative number"
TOPICS_ERROR = "data must be a topic string or a list of topic strings"


class MessageType(str, Enum):
    """Inbound message tags understood by the relay."""

    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"
    PING = "ping"
    SPEED_UPDATE = "speed_update"
    DEBIT_UPDATE = "debit_update"
    TABLE_UPDATE = "table_update"
    GAME_START_UPDATE = "game_start_update"
    GAME_START_CONFIRMATION = "game_start_confirmation"
    GAME_END_UPDATE = "game_end_update"
    ZONES_TOGGLE_UPDATE = "zones_toggle_update"
    DESTROYED_TRASH = "DestroyedTrash"
    COUNTER = "counter"
    ZONE_ENTERED = "zone_entered"
    HAND_PICKUP_OBJECT = "hand_pickup_object"
    EMERGENCY_STOP = "emergency_stop"

    @classmethod
    def lookup(cls, tag: Any) -> Optional["MessageType"]:
        if not isinstance(tag, str):
            return None
        try:
            return cls(tag)
        except ValueError:
            return None


def is_number(value: Any) -> bool:
    """JSON number check: bools are not numbers, NaN and infinities are rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return isinstance(value, int) or math.isfinite(value)


def is_valid_speed(value: Any) -> bool:
    return is_number(value) and SPEED_MIN <= value <= SPEED_MAX


def is_non_negative(value: Any) -> bool:
    return is_number(value) and value >= 0


def parse_topics(data: Any) -> list[str]:
    """Normalize a subscribe/unsubscribe ``data`` field into a topic list."""
    if isinstance(data, str):
        return [data]
    if isinstance(data, list) and all(isinstance(t, str) for t in data):
        return list(data)
    raise MessageValidationError(TOPICS_ERROR, field="data")


class InboundMessage(BaseModel):
    """Base for all inbound variants.

    ``relay_type`` is the outbound ``type`` used when the message is
    fanned out; ``confirm`` controls the ``<type>_confirmed`` reply.
    """

    model_config = ConfigDict(extra="ignore")

    relay_type: ClassVar[str] = ""
    confirm: ClassVar[bool] = True

    def relay_fields(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)

    def has_content(self) -> bool:
        """False when there is nothing to relay; the message is then dropped silently."""
        return True


class Ping(InboundMessage):
    relay_type: ClassVar[str] = "pong"
    confirm: ClassVar[bool] = False


class SubscriptionRequest(InboundMessage):
    data: Any = Field(default=None, validate_default=True)

    @field_validator("data")
    @classmethod
    def check_topics(cls, v: Any) -> list[str]:
        try:
            return parse_topics(v)
        except MessageValidationError as exc:
            raise ValueError(exc.message) from exc

    @property
    def topics(self) -> list[str]:
        return list(self.data)


class SpeedUpdate(InboundMessage):
    relay_type: ClassVar[str] = MessageType.SPEED_UPDATE.value

    speed: Any = Field(default=None, validate_default=True)

    @field_validator("speed")
    @classmethod
    def check_speed(cls, v: Any) -> Any:
        if not is_valid_speed(v):
            raise ValueError(SPEED_ERROR)
        return v


class TableUpdate(InboundMessage):
    """``debit_update`` and ``table_update`` both fan out as ``table_update``."""

    relay_type: ClassVar[str] = MessageType.TABLE_UPDATE.value

    table: Any = None
    debit: Any = None


class GameStartUpdate(InboundMessage):
    relay_type: ClassVar[str] = MessageType.GAME_START_UPDATE.value

    gameStart: Any = None
    isGameStarted: Any = None


class GameStartConfirmation(InboundMessage):
    """Sent by the headset once a game actually started; relayed, never confirmed."""

    relay_type: ClassVar[str] = MessageType.GAME_START_CONFIRMATION.value
    confirm: ClassVar[bool] = False

    gameStart: Any = None


class GameEndUpdate(InboundMessage):
    relay_type: ClassVar[str] = MessageType.GAME_END_UPDATE.value

    isGameOver: Any = None


class ZonesToggleUpdate(InboundMessage):
    relay_type: ClassVar[str] = MessageType.ZONES_TOGGLE_UPDATE.value

    isZoneOn: Any = None


class ProductDestroyed(InboundMessage):
    relay_type: ClassVar[str] = MessageType.DESTROYED_TRASH.value

    object_name: Any = None


class EmergencyStop(InboundMessage):
    relay_type: ClassVar[str] = MessageType.EMERGENCY_STOP.value

    isEmergencyStop: Any = None


class _LastFieldWins(InboundMessage):
    """Only the last present candidate field is relayed.

    A payload carrying several candidates is reduced to one value per frame;
    a payload carrying none is a no-op.
    """

    candidate_fields: ClassVar[tuple[str, ...]] = ()

    def present_fields(self) -> list[str]:
        return [name for name in self.candidate_fields if name in self.model_fields_set]

    def has_content(self) -> bool:
        return bool(self.present_fields())

    def relay_fields(self) -> dict[str, Any]:
        present = self.present_fields()
        if not present:
            return {}
        last = present[-1]
        return {last: getattr(self, last)}


class CounterUpdate(_LastFieldWins):
    relay_type: ClassVar[str] = MessageType.COUNTER.value
    candidate_fields: ClassVar[tuple[str, ...]] = ("TotalEchec", "TotalReussite", "TotalOublie")

    TotalEchec: Any = None
    TotalReussite: Any = None
    TotalOublie: Any = None


class ZoneEntered(_LastFieldWins):
    relay_type: ClassVar[str] = MessageType.ZONE_ENTERED.value
    candidate_fields: ClassVar[tuple[str, ...]] = ("green", "red", "orange")

    green: Any = None
    red: Any = None
    orange: Any = None


class HandPickupObject(InboundMessage):
    relay_type: ClassVar[str] = MessageType.HAND_PICKUP_OBJECT.value

    hand: Any = Field(default=None, validate_default=True)
    handCount: Any = Field(default=None, validate_default=True)

    @field_validator("hand")
    @classmethod
    def check_hand(cls, v: Any) -> Any:
        if v not in HANDS:
            raise ValueError(HAND_ERROR)
        return v

    @field_validator("handCount")
    @classmethod
    def check_hand_count(cls, v: Any) -> Any:
        if not is_non_negative(v):
            raise ValueError(HAND_COUNT_ERROR)
        return v


MESSAGE_MODELS: dict[MessageType, type[InboundMessage]] = {
    MessageType.SUBSCRIBE: SubscriptionRequest,
    MessageType.UNSUBSCRIBE: SubscriptionRequest,
    MessageType.PING: Ping,
    MessageType.SPEED_UPDATE: SpeedUpdate,
    MessageType.DEBIT_UPDATE: TableUpdate,
    MessageType.TABLE_UPDATE: TableUpdate,
    MessageType.GAME_START_UPDATE: GameStartUpdate,
    MessageType.GAME_START_CONFIRMATION: GameStartConfirmation,
    MessageType.GAME_END_UPDATE: GameEndUpdate,
    MessageType.ZONES_TOGGLE_UPDATE: ZonesToggleUpdate,
    MessageType.DESTROYED_TRASH: ProductDestroyed,
    MessageType.COUNTER: CounterUpdate,
    MessageType.ZONE_ENTERED: ZoneEntered,
    MessageType.HAND_PICKUP_OBJECT: HandPickupObject,
    MessageType.EMERGENCY_STOP: EmergencyStop,
}


def _first_error(exc: ValidationError) -> tuple[str, Optional[str]]:
    err = exc.errors()[0]
    field = ".".join(str(part) for part in err.get("loc", ())) or None
    cause = (err.get("ctx") or {}).get("error")
    if cause is not None:
        return str(cause), field
    return f"{field}: {err.get('msg')}" if field else str(err.get("msg")), field


def parse_message(tag: MessageType, payload: dict[str, Any]) -> InboundMessage:
    """Validate ``payload`` against the variant registered for ``tag``."""
    model = MESSAGE_MODELS[tag]
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        reason, field = _first_error(exc)
        raise MessageValidationError(reason, message_type=tag.value, field=field) from exc


__all__ = [
    "MessageType",
    "InboundMessage",
    "MESSAGE_MODELS",
    "parse_message",
    "parse_topics",
    "is_number",
    "is_valid_speed",
    "is_non_negative",
    "SPEED_ERROR",
    "PICKUP_ZONES",
]
