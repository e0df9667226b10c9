"""Pytest bootstrap configuration.

Provides an in-memory transport that records every frame written to it
and can be switched to fail writes, plus a fresh relay per test.
"""
import json
import os

os.environ.setdefault("DEBUG", "true")

import pytest

from application.services.realtime_service import RealtimeService, build_realtime_service


class FakeTransport:
    """Stand-in for a WebSocket: decodes and stores outbound frames."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[dict] = []
        self.fail = fail
        self.closed_with: int | None = None

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise RuntimeError("peer closed")
        self.sent.append(json.loads(data))

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code

    def types(self) -> list[str]:
        return [frame["type"] for frame in self.sent]


@pytest.fixture
def relay() -> RealtimeService:
    return build_realtime_service()


@pytest.fixture
def connect(relay):
    """Connect a FakeTransport to the relay; the greeting is dropped by default."""

    async def _connect(*, keep_greeting: bool = False, address: str = "127.0.0.1"):
        transport = FakeTransport()
        conn = await relay.connect(transport, remote_address=address)
        if not keep_greeting:
            transport.sent.clear()
        return conn, transport

    return _connect


@pytest.fixture
def transport_factory():
    return FakeTransport
