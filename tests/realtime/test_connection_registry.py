import pytest

from domain.relay.entity import Connection, LiveState
from infrastructure.realtime.connection_manager import ConnectionRegistry


pytestmark = pytest.mark.asyncio


class _NullTransport:
    async def send_text(self, data: str) -> None:
        pass

    async def close(self, code: int = 1000) -> None:
        pass


def _conn() -> Connection:
    return Connection(id=ConnectionRegistry.new_id(), handle=_NullTransport())


async def test_add_returns_unique_ids_and_counts():
    registry = ConnectionRegistry()
    ids = {await registry.add(_conn()) for _ in range(50)}
    assert len(ids) == 50
    assert registry.count() == 50
    assert all(i.startswith("client_") for i in ids)


async def test_add_replaces_colliding_id():
    registry = ConnectionRegistry()
    first, second = _conn(), _conn()
    second.id = first.id
    await registry.add(first)
    new_id = await registry.add(second)
    assert new_id != first.id
    assert registry.get(first.id) is first
    assert registry.get(new_id) is second


async def test_remove_is_idempotent_and_closes():
    registry = ConnectionRegistry()
    conn = _conn()
    cid = await registry.add(conn)

    assert await registry.remove(cid) is conn
    assert conn.live_state == LiveState.CLOSED
    assert registry.get(cid) is None
    assert await registry.remove(cid) is None
    assert await registry.remove("client_missing") is None
    assert registry.count() == 0


async def test_for_each_tolerates_removal_inside_visitor():
    registry = ConnectionRegistry()
    for _ in range(5):
        await registry.add(_conn())
    visited = []

    async def visit(conn):
        visited.append(conn.id)
        await registry.remove(conn.id)

    await registry.for_each(visit)
    assert len(visited) == 5
    assert registry.count() == 0


async def test_for_each_accepts_sync_visitor():
    registry = ConnectionRegistry()
    await registry.add(_conn())
    await registry.add(_conn())
    seen = []
    await registry.for_each(lambda c: seen.append(c))
    assert len(seen) == 2


async def test_clear_empties_and_marks_closed():
    registry = ConnectionRegistry()
    conns = [_conn() for _ in range(3)]
    for c in conns:
        await registry.add(c)
    cleared = await registry.clear()
    assert set(cleared) == set(conns)
    assert registry.count() == 0
    assert all(c.live_state == LiveState.CLOSED for c in conns)


async def test_live_state_never_reopens():
    conn = _conn()
    conn.mark_closed()
    conn.mark_closing()
    assert conn.live_state == LiveState.CLOSED
    assert not conn.is_open
