"""
Data models for the Binance client.

Stream-side models (stream identities, session tokens, registry entries and
status events) plus typed REST responses decoded from JSON bodies.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple, Union

from binance import enums as binance_enums

from .exceptions import InvalidStreamError


# ============================================================================
# Enumerations
# ============================================================================

class KlineInterval(Enum):
    """Kline (candlestick) intervals."""
    MINUTE_1 = binance_enums.KLINE_INTERVAL_1MINUTE
    MINUTE_3 = binance_enums.KLINE_INTERVAL_3MINUTE
    MINUTE_5 = binance_enums.KLINE_INTERVAL_5MINUTE
    MINUTE_15 = binance_enums.KLINE_INTERVAL_15MINUTE
    MINUTE_30 = binance_enums.KLINE_INTERVAL_30MINUTE
    HOUR_1 = binance_enums.KLINE_INTERVAL_1HOUR
    HOUR_2 = binance_enums.KLINE_INTERVAL_2HOUR
    HOUR_4 = binance_enums.KLINE_INTERVAL_4HOUR
    HOUR_6 = binance_enums.KLINE_INTERVAL_6HOUR
    HOUR_8 = binance_enums.KLINE_INTERVAL_8HOUR
    HOUR_12 = binance_enums.KLINE_INTERVAL_12HOUR
    DAY_1 = binance_enums.KLINE_INTERVAL_1DAY
    DAY_3 = binance_enums.KLINE_INTERVAL_3DAY
    WEEK_1 = binance_enums.KLINE_INTERVAL_1WEEK
    MONTH_1 = binance_enums.KLINE_INTERVAL_1MONTH


class OrderSide(Enum):
    """Order side enumeration."""
    BUY = binance_enums.SIDE_BUY
    SELL = binance_enums.SIDE_SELL


class OrderType(Enum):
    """Order type enumeration."""
    LIMIT = binance_enums.ORDER_TYPE_LIMIT
    MARKET = binance_enums.ORDER_TYPE_MARKET
    STOP_LOSS = binance_enums.ORDER_TYPE_STOP_LOSS
    STOP_LOSS_LIMIT = binance_enums.ORDER_TYPE_STOP_LOSS_LIMIT
    TAKE_PROFIT = binance_enums.ORDER_TYPE_TAKE_PROFIT
    TAKE_PROFIT_LIMIT = binance_enums.ORDER_TYPE_TAKE_PROFIT_LIMIT
    LIMIT_MAKER = binance_enums.ORDER_TYPE_LIMIT_MAKER


class TimeInForce(Enum):
    """Time in force enumeration."""
    GTC = binance_enums.TIME_IN_FORCE_GTC  # Good Till Cancel
    IOC = binance_enums.TIME_IN_FORCE_IOC  # Immediate or Cancel
    FOK = binance_enums.TIME_IN_FORCE_FOK  # Fill or Kill


class StreamType(Enum):
    """Named WebSocket streams."""
    DEPTH = "depth"
    KLINES = "klines"
    AGG_TRADES = "aggTrades"
    USER_DATA = "userData"


class StatusCategory(Enum):
    """Category of a status event published to observers."""
    CONNECTION_STATUS = "ConnectionStatus"
    CONNECTION_STATUS_ERROR = "ConnectionStatusError"
    ENDPOINT_STATUS = "EndpointStatus"
    ENDPOINT_STATUS_ERROR = "EndpointStatusError"
    ENDPOINT_DATA_RECEIVED = "EndpointDataReceived"


# ============================================================================
# Stream models
# ============================================================================

@dataclass(frozen=True)
class StreamIdentity:
    """
    Logical descriptor of a stream subscription.

    USER_DATA identities never carry a listen key: the path is resolved
    against the session's current key every time it is needed.
    """
    stream_type: StreamType
    symbol: Optional[str] = None
    interval: Optional[KlineInterval] = None

    def __post_init__(self):
        if self.stream_type != StreamType.USER_DATA and not self.symbol:
            raise InvalidStreamError(f"{self.stream_type.value} stream requires a symbol")
        if self.stream_type == StreamType.KLINES and self.interval is None:
            raise InvalidStreamError("klines stream requires an interval")

    @classmethod
    def depth(cls, symbol: str) -> "StreamIdentity":
        return cls(StreamType.DEPTH, symbol=symbol)

    @classmethod
    def klines(cls, symbol: str, interval: Union[KlineInterval, str]) -> "StreamIdentity":
        if not isinstance(interval, KlineInterval):
            try:
                interval = KlineInterval(interval)
            except ValueError:
                raise InvalidStreamError(f"Unknown kline interval: {interval}")
        return cls(StreamType.KLINES, symbol=symbol, interval=interval)

    @classmethod
    def agg_trades(cls, symbol: str) -> "StreamIdentity":
        return cls(StreamType.AGG_TRADES, symbol=symbol)

    @classmethod
    def user_data(cls) -> "StreamIdentity":
        return cls(StreamType.USER_DATA)

    @property
    def requires_listen_key(self) -> bool:
        return self.stream_type == StreamType.USER_DATA

    def path(self, listen_key: Optional[str] = None) -> str:
        """
        Resolve the stream path appended to the WebSocket base URL.

        Args:
            listen_key: Current listen key (only used by USER_DATA)

        Returns:
            Stream path, e.g. "btcusdt@depth"

        Raises:
            InvalidStreamError: If a USER_DATA path is requested without a key
        """
        if self.stream_type == StreamType.USER_DATA:
            if not listen_key:
                raise InvalidStreamError("user data stream requires an active listen key")
            return listen_key

        symbol = self.symbol.lower()
        if self.stream_type == StreamType.DEPTH:
            return f"{symbol}@depth"
        if self.stream_type == StreamType.KLINES:
            return f"{symbol}@kline_{self.interval.value}"
        return f"{symbol}@aggTrade"


@dataclass
class SessionToken:
    """Listen key issued by the exchange for the user data stream."""
    listen_key: str
    created_at: datetime
    last_keep_alive: Optional[datetime] = None
    is_active: bool = True


@dataclass
class ConnectionEntry:
    """
    A live socket connection as tracked by the ConnectionRegistry.

    Only the registry mutates entries; callers receive copies.
    """
    identity: StreamIdentity
    url: str
    opened_at: datetime
    frames_received: int = 0
    cancel_requested: bool = False
    quiet_close: bool = False          # Close notification suppressed (rotation)


@dataclass
class StatusEvent:
    """Status update delivered to every registered observer."""
    message: str
    session_active: bool
    category: StatusCategory


# ============================================================================
# REST responses
# ============================================================================

@dataclass
class APIResponse:
    """Result of a call whose body carries no data beyond a possible error."""
    code: Optional[int] = None
    msg: Optional[str] = None

    @property
    def has_errors(self) -> bool:
        return self.msg is not None or self.code is not None


@dataclass
class ListenKeyResponse(APIResponse):
    """Response of the user data stream endpoints."""
    listen_key: Optional[str] = None


@dataclass
class OrderBook:
    """Order book snapshot."""
    symbol: str
    last_update_id: int
    bids: List[Tuple[Decimal, Decimal]]  # [(price, quantity), ...]
    asks: List[Tuple[Decimal, Decimal]]

    @property
    def best_bid(self) -> Optional[Decimal]:
        """Get best bid price."""
        return self.bids[0][0] if self.bids else None

    @property
    def best_ask(self) -> Optional[Decimal]:
        """Get best ask price."""
        return self.asks[0][0] if self.asks else None

    @property
    def spread(self) -> Optional[Decimal]:
        """Calculate bid-ask spread."""
        if self.best_bid and self.best_ask:
            return self.best_ask - self.best_bid
        return None


@dataclass
class AggTrade:
    """Compressed trade: fills at the same time, order and price aggregated."""
    agg_trade_id: int
    price: Decimal
    quantity: Decimal
    first_trade_id: int
    last_trade_id: int
    time: datetime
    is_buyer_maker: bool
    is_best_match: bool

    def __post_init__(self):
        if not isinstance(self.price, Decimal):
            self.price = Decimal(str(self.price))
        if not isinstance(self.quantity, Decimal):
            self.quantity = Decimal(str(self.quantity))


@dataclass
class Candle:
    """
    OHLCV candle data.

    Klines are uniquely identified by their open time.
    """
    symbol: str
    interval: str                    # "1m", "5m", "1h", etc.
    open_time: datetime
    close_time: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal                  # Base asset volume
    quote_volume: Decimal = Decimal("0")
    trades: int = 0

    def __post_init__(self):
        """Ensure Decimal types."""
        for field_name in ['open', 'high', 'low', 'close', 'volume', 'quote_volume']:
            value = getattr(self, field_name)
            if not isinstance(value, Decimal):
                setattr(self, field_name, Decimal(str(value)))


@dataclass
class Ticker24hr:
    """24 hour price change statistics."""
    symbol: str
    price_change: Decimal
    price_change_percent: Decimal
    weighted_avg_price: Decimal
    prev_close_price: Decimal
    last_price: Decimal
    last_qty: Decimal
    bid_price: Decimal
    bid_qty: Decimal
    ask_price: Decimal
    ask_qty: Decimal
    open_price: Decimal
    high_price: Decimal
    low_price: Decimal
    volume: Decimal
    quote_volume: Decimal
    open_time: datetime
    close_time: datetime
    first_id: int
    last_id: int
    count: int


@dataclass
class SymbolPrice:
    """Latest price for a symbol."""
    symbol: str
    price: Decimal


@dataclass
class BookTicker:
    """Best price/qty on the order book for a symbol."""
    symbol: str
    bid_price: Decimal
    bid_qty: Decimal
    ask_price: Decimal
    ask_qty: Decimal


@dataclass
class Order:
    """
    Order as reported by the order endpoints.

    For MARKET orders price is None.
    """
    # Identifiers
    order_id: int
    client_order_id: str

    # Order details
    symbol: str
    side: str                        # "BUY" or "SELL"
    order_type: str                  # "LIMIT", "MARKET", ...
    status: str                      # "NEW", "FILLED", "CANCELED", ...
    time_in_force: Optional[str]

    # Quantities and pricing
    price: Optional[Decimal]
    orig_qty: Decimal
    executed_qty: Decimal
    stop_price: Optional[Decimal] = None
    iceberg_qty: Optional[Decimal] = None

    time: Optional[datetime] = None

    @property
    def is_filled(self) -> bool:
        """Check if order is fully filled."""
        return self.status == "FILLED"

    @property
    def is_active(self) -> bool:
        """Check if order is active (can be filled)."""
        return self.status in ("NEW", "PARTIALLY_FILLED")


@dataclass
class Balance:
    """Account balance for one asset."""
    asset: str
    free: Decimal                    # Available balance
    locked: Decimal                  # Locked in orders

    @property
    def total(self) -> Decimal:
        return self.free + self.locked


@dataclass
class AccountInfo:
    """Account information and non-zero balances."""
    maker_commission: int
    taker_commission: int
    can_trade: bool
    can_withdraw: bool
    can_deposit: bool
    update_time: datetime
    balances: List[Balance] = field(default_factory=list)


@dataclass
class AccountTrade:
    """One of the account's own trades."""
    trade_id: int
    order_id: int
    symbol: str
    price: Decimal
    quantity: Decimal
    commission: Decimal
    commission_asset: str
    time: datetime
    is_buyer: bool
    is_maker: bool
    is_best_match: bool
