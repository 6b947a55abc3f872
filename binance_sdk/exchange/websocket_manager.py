"""
WebSocket Manager for Binance streams.

Public surface for the named streams:
- Market depth, klines and aggregate trades
- User data stream on a rotating listen key
- Status events (connection status, endpoint status, payloads) via observers
"""

from typing import Callable, List, Optional, Union

from .connection_registry import ConnectionRegistry
from .events import StatusEventBus
from .exchange_config import ClientConfig
from .listen_key import SessionKeyManager
from .models import ConnectionEntry, KlineInterval, StatusCategory, StatusEvent, StreamIdentity
from .rest_client import SignedRequestExecutor
from .socket_supervisor import SocketSupervisor
from ..utils.logger import get_logger

logger = get_logger(__name__)


class WebSocketManager:
    """
    Manages WebSocket connections for market data and user data streams.

    Features:
    - Multiple concurrent stream connections, one per URL
    - Listen key keep-alive and rotation for user data
    - Event-driven observer system for status updates and payloads
    """

    def __init__(
        self,
        executor: SignedRequestExecutor,
        config: Optional[ClientConfig] = None
    ):
        """
        Initialize WebSocket manager.

        Args:
            executor: Request executor used for the listen key endpoints
            config: Client configuration (defaults to the executor's)
        """
        self.config = config or executor.config

        self.events = StatusEventBus()
        self.registry = ConnectionRegistry()
        self.session = SessionKeyManager(executor, self.registry, self.events, self.config)
        self.supervisor = SocketSupervisor(self.config, self.session, self.registry, self.events)

        self.session.set_user_stream_reopener(
            lambda: self.supervisor.connect(StreamIdentity.user_data(), announce=False)
        )

        logger.info("WebSocket manager initialized", base_url=self.config.websocket_base_url)

    @property
    def is_session_active(self) -> bool:
        return self.session.is_active

    # ========================================================================
    # Observers
    # ========================================================================

    def subscribe(self, callback: Callable[[StatusEvent], None]) -> None:
        """Register an observer for all status events."""
        self.events.subscribe(callback)

    def unsubscribe(self, callback: Callable[[StatusEvent], None]) -> None:
        self.events.unsubscribe(callback)

    # ========================================================================
    # Session
    # ========================================================================

    async def open_websockets(self) -> bool:
        """Start the user data stream session without opening a socket."""
        return await self.session.ensure_started()

    async def shutdown(self) -> None:
        """Cancel every socket and terminate the user data stream session."""
        await self.session.stop()

    # ========================================================================
    # Open
    # ========================================================================

    async def open_depth(self, symbol: str) -> bool:
        """
        Open the depth stream of a symbol.

        Args:
            symbol: Trading symbol (e.g., "BTCUSDT")

        Returns:
            True if a new connection was opened
        """
        return await self.supervisor.connect(StreamIdentity.depth(symbol))

    async def open_klines(
        self,
        symbol: str,
        interval: Union[KlineInterval, str] = KlineInterval.MINUTE_1
    ) -> bool:
        """
        Open the kline (candlestick) stream of a symbol.

        Args:
            symbol: Trading symbol (e.g., "BTCUSDT")
            interval: Kline interval (e.g., KlineInterval.MINUTE_1 or "1m")
        """
        return await self.supervisor.connect(StreamIdentity.klines(symbol, interval))

    async def open_agg_trades(self, symbol: str) -> bool:
        """Open the aggregate trade stream of a symbol."""
        return await self.supervisor.connect(StreamIdentity.agg_trades(symbol))

    async def open_user_data(self) -> bool:
        """Open the user data stream (order updates, balance changes)."""
        return await self.supervisor.connect(StreamIdentity.user_data())

    # ========================================================================
    # Close
    # ========================================================================

    async def close_depth(self, symbol: str) -> bool:
        return await self._close(StreamIdentity.depth(symbol))

    async def close_klines(
        self,
        symbol: str,
        interval: Union[KlineInterval, str] = KlineInterval.MINUTE_1
    ) -> bool:
        return await self._close(StreamIdentity.klines(symbol, interval))

    async def close_agg_trades(self, symbol: str) -> bool:
        return await self._close(StreamIdentity.agg_trades(symbol))

    async def close_user_data(self) -> bool:
        return await self._close(StreamIdentity.user_data())

    async def close_stream(self, url: str) -> bool:
        """
        Request closure of a connection by its URL.

        Returns:
            Whether a matching connection existed
        """
        if self.registry.request_close(url):
            logger.info("Close requested", url=url)
            return True

        await self.events.emit(
            f"No matching active connection exists. ({url})",
            StatusCategory.ENDPOINT_STATUS,
            self.session.is_active
        )
        return False

    async def _close(self, identity: StreamIdentity) -> bool:
        if identity.requires_listen_key and not self.session.is_active:
            url = self.config.stream_url("<no listen key>")
        else:
            url = self.supervisor.resolve_url(identity)
        return await self.close_stream(url)

    def close_all(self) -> int:
        """
        Request closure of every connection. The session stays active.

        Returns:
            Number of connections flagged
        """
        return self.registry.request_close_all()

    # ========================================================================
    # Inspection
    # ========================================================================

    def list_active(self) -> List[ConnectionEntry]:
        """Snapshot of the open connections."""
        return self.registry.list()

    async def wait_closed(self, timeout: Optional[float] = None) -> None:
        """Wait until every receive loop has exited."""
        await self.supervisor.wait_closed(timeout)
