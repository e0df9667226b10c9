import asyncio
import json
import math

import pytest

from application.ports.realtime import Envelope
from domain.relay.entity import Connection
from infrastructure.realtime.broadcaster import Broadcaster
from infrastructure.realtime.connection_manager import ConnectionRegistry


pytestmark = pytest.mark.asyncio


async def _setup(n: int, factory):
    registry = ConnectionRegistry()
    broadcaster = Broadcaster(registry)
    pairs = []
    for _ in range(n):
        transport = factory()
        conn = Connection(id=ConnectionRegistry.new_id(), handle=transport)
        await registry.add(conn)
        pairs.append((conn, transport))
    return registry, broadcaster, pairs


async def test_broadcast_all_reaches_every_open_connection(transport_factory):
    _, broadcaster, pairs = await _setup(3, transport_factory)
    delivered = await broadcaster.broadcast_all(Envelope(type="table_update", table=4))
    assert delivered == 3
    for _, transport in pairs:
        assert transport.sent[0]["type"] == "table_update"
        assert transport.sent[0]["table"] == 4
        assert "source" not in transport.sent[0]
        assert transport.sent[0]["timestamp"].endswith("Z")


async def test_broadcast_except_skips_sender(transport_factory):
    _, broadcaster, [(a, ta), (b, tb), (c, tc)] = await _setup(3, transport_factory)
    delivered = await broadcaster.broadcast_except(a.id, Envelope(type="x", source=a.id))
    assert delivered == 2
    assert ta.sent == []
    assert tb.sent[0]["source"] == a.id
    assert tc.sent[0]["type"] == "x"


async def test_broadcast_to_topic_hits_only_subscribers(transport_factory):
    _, broadcaster, [(a, ta), (b, tb), (c, tc)] = await _setup(3, transport_factory)
    a.subscribe(["alerts"])
    c.subscribe(["alerts", "stats"])
    b.subscribe(["stats"])

    delivered = await broadcaster.broadcast_to_topic("alerts", Envelope(type="alert"))
    assert delivered == 2
    assert ta.types() == ["alert"]
    assert tb.sent == []
    assert tc.types() == ["alert"]


async def test_failed_write_evicts_without_aborting_loop(transport_factory):
    registry, broadcaster, [(a, ta), (b, tb), (c, tc)] = await _setup(3, transport_factory)
    tb.fail = True

    delivered = await broadcaster.broadcast_all(Envelope(type="ping_all"))

    assert delivered == 2
    assert registry.count() == 2
    assert registry.get(b.id) is None
    assert not b.is_open
    assert ta.types() == ["ping_all"]
    assert tc.types() == ["ping_all"]


async def test_non_open_connection_is_evicted_without_write(transport_factory):
    registry, broadcaster, [(a, ta), (b, tb)] = await _setup(2, transport_factory)
    b.mark_closing()
    delivered = await broadcaster.broadcast_except(a.id, Envelope(type="x"))
    assert delivered == 0
    assert tb.sent == []
    assert registry.get(b.id) is None
    assert registry.count() == 1


async def test_send_to_unknown_or_failing_client(transport_factory):
    registry, broadcaster, [(a, ta)] = await _setup(1, transport_factory)
    assert await broadcaster.send_to("client_nope", Envelope(type="x")) is False

    ta.fail = True
    assert await broadcaster.send_to(a.id, Envelope(type="x")) is False
    assert registry.count() == 0


async def test_error_envelope_has_no_timestamp(transport_factory):
    _, broadcaster, [(a, ta)] = await _setup(1, transport_factory)
    await broadcaster.send_to(a.id, Envelope.error("boom"))
    assert ta.sent == [{"type": "error", "message": "boom"}]


async def test_explicit_null_payload_field_is_kept(transport_factory):
    _, broadcaster, [(a, ta)] = await _setup(1, transport_factory)
    await broadcaster.broadcast_all(Envelope(type="game_end_update", isGameOver=None))
    assert "isGameOver" in ta.sent[0]
    assert ta.sent[0]["isGameOver"] is None


async def test_non_finite_payload_is_refused_before_any_write(transport_factory):
    registry, broadcaster, pairs = await _setup(2, transport_factory)
    with pytest.raises(ValueError):
        await broadcaster.broadcast_all(Envelope(type="table_update", table=math.nan))
    assert all(transport.sent == [] for _, transport in pairs)
    assert registry.count() == 2


class _SlowTransport:
    """Yields to the loop mid-write and records how many writes overlap."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []
        self.active = 0
        self.max_active = 0

    async def send_text(self, data: str) -> None:
        kind = json.loads(data)["type"]
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.events.append(("start", kind))
        await asyncio.sleep(0.01)
        self.events.append(("end", kind))
        self.active -= 1

    async def close(self, code: int = 1000) -> None:
        pass


async def test_concurrent_broadcast_and_confirm_do_not_interleave():
    registry, broadcaster, [(a, ta)] = await _setup(1, _SlowTransport)

    await asyncio.gather(
        broadcaster.broadcast_all(Envelope(type="table_update", table=1)),
        broadcaster.send_to(a.id, Envelope(type="speed_update_confirmed", speed=0.5)),
        broadcaster.broadcast_all(Envelope(type="game_end_update", isGameOver=True)),
    )

    assert ta.max_active == 1
    assert len(ta.events) == 6
    for start, end in zip(ta.events[::2], ta.events[1::2]):
        assert start[0] == "start"
        assert end == ("end", start[1])
    assert registry.count() == 1
