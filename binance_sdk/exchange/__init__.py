"""
Exchange module for Binance REST and WebSocket integration.
"""

from .exceptions import (
    ExchangeError,
    ExchangeAPIError,
    TransientError,
    PermanentError,
    RateLimitError,
    InvalidOrderError,
    InsufficientBalanceError,
    ConnectionError,
    MissingCredentialsError,
    InvalidStreamError
)
from .models import (
    KlineInterval,
    OrderSide,
    OrderType,
    TimeInForce,
    StreamType,
    StatusCategory,
    StreamIdentity,
    SessionToken,
    ConnectionEntry,
    StatusEvent,
    APIResponse,
    ListenKeyResponse,
    OrderBook,
    AggTrade,
    Candle,
    Ticker24hr,
    SymbolPrice,
    BookTicker,
    Order,
    Balance,
    AccountInfo,
    AccountTrade
)
from .exchange_config import (
    ClientConfig,
    format_symbol,
    load_key_file,
    map_api_error
)
from .decoder import ResponseDecoder
from .rest_client import SignedRequestExecutor
from .events import StatusEventBus
from .connection_registry import ConnectionRegistry
from .listen_key import SessionKeyManager
from .socket_supervisor import SocketSupervisor
from .websocket_manager import WebSocketManager
from .binance_gateway import BinanceGateway

__all__ = [
    # Gateway
    "BinanceGateway",
    "SignedRequestExecutor",
    "ResponseDecoder",

    # Exceptions
    "ExchangeError",
    "ExchangeAPIError",
    "TransientError",
    "PermanentError",
    "RateLimitError",
    "InvalidOrderError",
    "InsufficientBalanceError",
    "ConnectionError",
    "MissingCredentialsError",
    "InvalidStreamError",

    # Enumerations
    "KlineInterval",
    "OrderSide",
    "OrderType",
    "TimeInForce",
    "StreamType",
    "StatusCategory",

    # Stream models
    "StreamIdentity",
    "SessionToken",
    "ConnectionEntry",
    "StatusEvent",

    # REST models
    "APIResponse",
    "ListenKeyResponse",
    "OrderBook",
    "AggTrade",
    "Candle",
    "Ticker24hr",
    "SymbolPrice",
    "BookTicker",
    "Order",
    "Balance",
    "AccountInfo",
    "AccountTrade",

    # Config
    "ClientConfig",
    "format_symbol",
    "load_key_file",
    "map_api_error",

    # WebSocket
    "StatusEventBus",
    "ConnectionRegistry",
    "SessionKeyManager",
    "SocketSupervisor",
    "WebSocketManager"
]
