"""
Lifecycle of individual WebSocket connections.

Each connection goes through: ensure session, handshake, register, receive
loop, unregister and dispose. Status changes and payloads are published on
the StatusEventBus.
"""

import asyncio
from typing import Optional, Set

import websockets
from websockets.exceptions import ConnectionClosedOK, ConnectionClosed, WebSocketException

from .connection_registry import ConnectionRegistry
from .events import StatusEventBus
from .exchange_config import ClientConfig
from .listen_key import SessionKeyManager
from .exceptions import InvalidStreamError
from .models import StatusCategory, StreamIdentity
from ..utils.logger import get_logger, log_stream_event, EventType

logger = get_logger(__name__)


class SocketSupervisor:
    """
    Drives one socket per stream URL from handshake to teardown.

    The receive loop polls the registry's cancellation flag at every frame
    boundary; a flagged connection is aborted without a close handshake.
    """

    def __init__(
        self,
        config: ClientConfig,
        session: SessionKeyManager,
        registry: ConnectionRegistry,
        events: StatusEventBus
    ):
        """
        Initialize supervisor.

        Args:
            config: Client configuration (stream base URL)
            session: Listen key manager, started before every connection
            registry: Registry of open sockets
            events: Status event channel
        """
        self.config = config
        self.session = session
        self.registry = registry
        self.events = events

        # Background receive loops
        self._tasks: Set[asyncio.Task] = set()

    @property
    def active_tasks(self) -> int:
        return len(self._tasks)

    def resolve_url(self, identity: StreamIdentity) -> str:
        """Full endpoint URL of a stream, using the current listen key for user data."""
        return self.config.stream_url(identity.path(self.session.listen_key))

    async def _emit(self, message: str, category: StatusCategory) -> None:
        await self.events.emit(message, category, self.session.is_active)

    async def connect(self, identity: StreamIdentity, announce: bool = True) -> bool:
        """
        Open a socket for a stream and start its receive loop.

        Args:
            identity: Stream to open
            announce: Publish the "opened" event (False when rotation reopens the user data stream)

        Returns:
            True if the socket was opened and registered
        """
        # The user data URL is only known once a key exists
        if identity.requires_listen_key and not await self.session.ensure_started():
            return False

        try:
            url = self.resolve_url(identity)
        except InvalidStreamError as e:
            # The key was dropped while STARTED observers ran
            logger.warning("User data stream URL unavailable", error=str(e))
            await self._emit(f"!ERROR! None - {e}", StatusCategory.CONNECTION_STATUS_ERROR)
            return False

        if self.registry.contains(url):
            await self._report_duplicate(url)
            return False

        if not await self.session.ensure_started():
            return False

        try:
            ws = await websockets.connect(url)
        except (WebSocketException, OSError, asyncio.TimeoutError) as e:
            logger.error("WebSocket handshake failed", url=url, error=str(e))
            await self._emit(f"!ERROR!   ({url})\r\n{e!r}", StatusCategory.ENDPOINT_STATUS_ERROR)
            return False

        # A concurrent connect for the same URL may have registered first
        if not self.registry.try_register(url, identity):
            await self._dispose(ws, url)
            await self._report_duplicate(url)
            return False

        log_stream_event(logger, EventType.WEBSOCKET_CONNECTED, url, stream=identity.stream_type.value)
        if announce:
            await self._emit(f"Websocket endpoint connection opened. ({url})", StatusCategory.ENDPOINT_STATUS)

        task = asyncio.create_task(self._receive_loop(url, ws), name=f"ws:{url}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def wait_closed(self, timeout: Optional[float] = None) -> None:
        """Wait until every receive loop has exited."""
        if self._tasks:
            await asyncio.wait(list(self._tasks), timeout=timeout)

    async def _report_duplicate(self, url: str) -> None:
        log_stream_event(logger, EventType.WEBSOCKET_DUPLICATE, url)
        await self._emit(
            f"Could not open web socket.  Connection already exists. ({url})",
            StatusCategory.ENDPOINT_STATUS
        )

    async def _receive_loop(self, url: str, ws) -> None:
        try:
            while True:
                try:
                    frame = await ws.recv()
                except ConnectionClosedOK:
                    # Remote close; the library completes the close handshake
                    self.registry.record_frame(url)
                    break

                if self.registry.is_cancel_requested(url):
                    self._abort(ws, url)
                    break

                self.registry.record_frame(url)

                payload = frame.decode("utf-8") if isinstance(frame, bytes) else frame
                await self._emit(payload, StatusCategory.ENDPOINT_DATA_RECEIVED)

        except ConnectionClosed as e:
            if self.registry.is_cancel_requested(url):
                logger.debug("Cancelled WebSocket dropped by peer", url=url, error=str(e))
            else:
                logger.warning("WebSocket closed abnormally", url=url, error=str(e))
                await self._emit(f"!ERROR!   ({url})\r\n{e!r}", StatusCategory.ENDPOINT_STATUS_ERROR)
        except (WebSocketException, OSError, UnicodeDecodeError) as e:
            if self.registry.is_cancel_requested(url):
                logger.debug("Cancelled WebSocket failed", url=url, error=str(e))
            else:
                logger.error("Error in receive loop", url=url, error=str(e), exc_info=True)
                await self._emit(f"!ERROR!   ({url})\r\n{e!r}", StatusCategory.ENDPOINT_STATUS_ERROR)
        finally:
            entry = self.registry.unregister(url)
            await self._dispose(ws, url)

            log_stream_event(
                logger,
                EventType.WEBSOCKET_DISCONNECTED,
                url,
                frames=entry.frames_received if entry else 0
            )
            if entry is None or not entry.quiet_close:
                await self._emit(f"Websocket endpoint connection closed. ({url})", StatusCategory.ENDPOINT_STATUS)

    @staticmethod
    def _abort(ws, url: str) -> None:
        """Drop the connection without a close handshake."""
        log_stream_event(logger, EventType.WEBSOCKET_ABORTED, url)
        transport = getattr(ws, "transport", None)
        if transport is not None:
            transport.abort()

    @staticmethod
    async def _dispose(ws, url: str) -> None:
        try:
            await ws.close()
        except (WebSocketException, OSError) as e:
            logger.debug("Error while disposing socket", url=url, error=str(e))
