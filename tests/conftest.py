"""
Shared fixtures: a fake WebSocket, a scripted request executor and helpers
for waiting on background receive loops.
"""

import asyncio
from typing import Dict, List
from unittest.mock import AsyncMock, Mock, patch

import pytest

from binance_sdk.exchange.exchange_config import ClientConfig
from binance_sdk.exchange.websocket_manager import WebSocketManager


class FakeWebSocket:
    """
    Stand-in for a websockets client connection.

    Frames (or exceptions to raise from recv) are queued with push().
    """

    def __init__(self, url: str):
        self.url = url
        self.transport = Mock()
        self.close_calls = 0
        self._frames: asyncio.Queue = asyncio.Queue()

    def push(self, item) -> None:
        self._frames.put_nowait(item)

    async def recv(self):
        item = await self._frames.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self):
        self.close_calls += 1

    @property
    def aborted(self) -> bool:
        return self.transport.abort.called


class FakeExecutor:
    """
    Answers the user data stream calls from per-method queues.

    stream_get_listen_key hands out the configured listen keys in order;
    stream_keepalive and stream_close answer {} unless a response was
    queued. A queued exception is raised.
    """

    def __init__(self, listen_keys=("abc123", "xyz789"), config: ClientConfig = None):
        self.config = config or ClientConfig(keep_alive_interval=3600, reset_interval=7200)
        self.has_api_key = True
        self.responses: Dict[str, List] = {
            "stream_get_listen_key": list(listen_keys),
            "stream_keepalive": [],
            "stream_close": []
        }
        self.key_authenticated_call = AsyncMock(side_effect=self._respond)

    async def _respond(self, method, **params):
        queued = self.responses[method]
        if queued:
            item = queued.pop(0)
            if isinstance(item, BaseException):
                raise item
            return item
        # Out of keys: python-binance would have raised on the missing field
        return None if method == "stream_get_listen_key" else {}

    @property
    def methods(self) -> List[str]:
        return [c.args[0] for c in self.key_authenticated_call.call_args_list]


async def _wait_until(predicate, timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.001)


@pytest.fixture
def wait_until():
    """Poll a predicate until it holds, yielding to background tasks."""
    return _wait_until


@pytest.fixture
def executor():
    return FakeExecutor()


class SocketFactory:
    """Replacement for websockets.connect that records a FakeWebSocket per handshake."""

    def __init__(self):
        self.created: Dict[str, List[FakeWebSocket]] = {}
        self.connect = AsyncMock(side_effect=self._connect)

    async def _connect(self, url, *args, **kwargs):
        ws = FakeWebSocket(url)
        self.created.setdefault(url, []).append(ws)
        return ws

    def latest(self, url: str) -> FakeWebSocket:
        return self.created[url][-1]

    def all(self) -> List[FakeWebSocket]:
        return [ws for ws_list in self.created.values() for ws in ws_list]


@pytest.fixture
def sockets():
    """Patch websockets.connect with fake sockets."""
    factory = SocketFactory()
    with patch("binance_sdk.exchange.socket_supervisor.websockets.connect", new=factory.connect):
        yield factory


@pytest.fixture
async def manager(executor, sockets):
    """WebSocketManager wired to the fake executor and fake sockets."""
    manager = WebSocketManager(executor)
    yield manager
    await manager.shutdown()
    # Flagged loops exit at their next frame
    for ws in sockets.all():
        ws.push("teardown")
    await manager.wait_closed(timeout=1.0)


@pytest.fixture
def received(manager):
    """Status events published by the manager, in order."""
    events = []
    manager.subscribe(events.append)
    return events
