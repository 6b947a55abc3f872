"""
Binance gateway implementation.

Maps typed method calls to python-binance spot REST calls, decodes the
responses into data models and owns the WebSocketManager that shares its
request executor.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from .decoder import ResponseDecoder
from .exceptions import ExchangeAPIError, InvalidOrderError
from .exchange_config import ClientConfig, format_symbol
from .models import (
    APIResponse,
    AccountInfo,
    AccountTrade,
    AggTrade,
    BookTicker,
    Candle,
    KlineInterval,
    Order,
    OrderBook,
    OrderSide,
    OrderType,
    SymbolPrice,
    Ticker24hr,
    TimeInForce
)
from .rest_client import SignedRequestExecutor
from .websocket_manager import WebSocketManager
from ..utils.logger import get_logger


logger = get_logger(__name__)


def _ms(value: Optional[datetime]) -> Optional[int]:
    return int(value.timestamp() * 1000) if value else None


class BinanceGateway:
    """
    Binance REST and WebSocket client.

    REST errors are raised as mapped exceptions; stream failures are
    published as status events through ``ws_manager``.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        config: Optional[ClientConfig] = None
    ):
        """
        Initialize Binance gateway.

        Args:
            api_key: Binance API key (needed for user data and account calls)
            api_secret: Binance API secret (needed for signed calls)
            config: Client configuration
        """
        self.config = config or ClientConfig()
        self.executor = SignedRequestExecutor(api_key, api_secret, self.config)
        self.decoder = ResponseDecoder()

        # Initialize WebSocket manager
        self.ws_manager = WebSocketManager(self.executor, self.config)

        self._is_connected = False

        logger.info("Binance gateway initialized", testnet=self.config.testnet)

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    async def connect(self) -> None:
        """Create the python-binance client and verify connectivity."""
        await self.executor.start()
        server_time = await self.get_server_time()
        self._is_connected = True
        logger.info("Connected to Binance", server_time=server_time, testnet=self.config.testnet)

    async def disconnect(self) -> None:
        """Terminate the user data stream session and close the python-binance client."""
        await self.ws_manager.shutdown()
        await self.ws_manager.wait_closed(timeout=5.0)
        await self.executor.close()
        self._is_connected = False
        logger.info("Disconnected from Binance")

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()

    # ========================================================================
    # REST API Methods - General
    # ========================================================================

    async def ping(self) -> bool:
        """Test connectivity to the REST API."""
        await self.executor.public_call("ping")
        return True

    async def get_server_time(self) -> datetime:
        """Get the current server time."""
        payload = await self.executor.public_call("get_server_time")
        return datetime.fromtimestamp(self.decoder.decode_server_time(payload) / 1000)

    # ========================================================================
    # REST API Methods - Market Data
    # ========================================================================

    async def get_order_book(self, symbol: str, limit: Optional[int] = None) -> OrderBook:
        """
        Get current order book.

        Args:
            symbol: Trading symbol (e.g., "BTCUSDT")
            limit: Depth limit (5, 10, 20, 50, 100, 500, 1000, 5000)
        """
        symbol = format_symbol(symbol)
        try:
            payload = await self.executor.public_call("get_order_book", symbol=symbol, limit=limit)
            return self.decoder.decode_order_book(payload, symbol)
        except ExchangeAPIError as e:
            logger.error("Binance API error in get_order_book", error=str(e), code=e.error_code)
            raise

    async def get_agg_trades(
        self,
        symbol: str,
        from_id: Optional[int] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> List[AggTrade]:
        """
        Get compressed, aggregate trades.

        If both start_time and end_time are sent, limit should not be sent
        and the window must be under 24 hours.
        """
        params = {
            "symbol": format_symbol(symbol),
            "fromId": from_id,
            "startTime": _ms(start_time),
            "endTime": _ms(end_time),
            "limit": limit
        }
        try:
            payload = await self.executor.public_call("get_aggregate_trades", **params)
            return self.decoder.decode_agg_trades(payload)
        except ExchangeAPIError as e:
            logger.error("Binance API error in get_agg_trades", error=str(e), code=e.error_code)
            raise

    async def get_klines(
        self,
        symbol: str,
        interval: Union[KlineInterval, str] = KlineInterval.MINUTE_30,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> List[Candle]:
        """
        Get kline/candlestick bars for a symbol.

        Args:
            symbol: Trading symbol
            interval: Candle interval
            start_time: Start timestamp (optional)
            end_time: End timestamp (optional)
            limit: Number of candles to fetch

        Returns:
            List of Candle objects
        """
        interval = interval if isinstance(interval, KlineInterval) else KlineInterval(interval)
        symbol = format_symbol(symbol)
        params = {
            "symbol": symbol,
            "interval": interval,
            "startTime": _ms(start_time),
            "endTime": _ms(end_time),
            "limit": limit
        }
        try:
            payload = await self.executor.public_call("get_klines", **params)
            candles = self.decoder.decode_klines(payload, symbol, interval.value)
        except ExchangeAPIError as e:
            logger.error("Binance API error in get_klines", error=str(e), code=e.error_code)
            raise

        logger.debug("Fetched klines", symbol=symbol, interval=interval.value, count=len(candles))
        return candles

    async def get_ticker_24hr(self, symbol: str) -> Ticker24hr:
        """Get 24 hour price change statistics."""
        try:
            payload = await self.executor.public_call("get_ticker", symbol=format_symbol(symbol))
            return self.decoder.decode_ticker_24hr(payload)
        except ExchangeAPIError as e:
            logger.error("Binance API error in get_ticker_24hr", error=str(e), code=e.error_code)
            raise

    async def get_all_prices(self) -> List[SymbolPrice]:
        """Latest price for all symbols."""
        payload = await self.executor.public_call("get_all_tickers")
        return self.decoder.decode_prices(payload)

    async def get_all_book_tickers(self) -> List[BookTicker]:
        """Best price/qty on the order book for all symbols."""
        payload = await self.executor.public_call("get_orderbook_tickers")
        return self.decoder.decode_book_tickers(payload)

    # ========================================================================
    # REST API Methods - Orders
    # ========================================================================

    async def new_order(
        self,
        symbol: str,
        side: OrderSide,
        order_type: OrderType,
        quantity: Union[float, str],
        price: Optional[Union[float, str]] = None,
        time_in_force: Optional[TimeInForce] = None,
        new_client_order_id: Optional[str] = None,
        stop_price: Optional[Union[float, str]] = None,
        iceberg_qty: Optional[Union[float, str]] = None,
        test: bool = False
    ) -> Union[Order, APIResponse]:
        """
        Send in a new order.

        Args:
            symbol: Trading symbol
            side: BUY or SELL
            order_type: LIMIT, MARKET, ...
            quantity: Order quantity
            price: Limit price (omit for MARKET orders)
            time_in_force: GTC, IOC or FOK (LIMIT orders)
            new_client_order_id: Unique id for the order (generated by the exchange if omitted)
            stop_price: Trigger price for stop orders
            iceberg_qty: Visible quantity for iceberg orders
            test: Validate the order without sending it to the matching engine

        Returns:
            Order, or an empty APIResponse for a test order
        """
        if order_type == OrderType.LIMIT and price is None:
            raise InvalidOrderError("LIMIT orders require a price")

        params: Dict[str, Any] = {
            "symbol": format_symbol(symbol),
            "side": side,
            "type": order_type,
            "quantity": quantity,
            "price": price,
            "timeInForce": time_in_force,
            "newClientOrderId": new_client_order_id,
            "stopPrice": stop_price,
            "icebergQty": iceberg_qty
        }
        method = "create_test_order" if test else "create_order"

        try:
            payload = await self.executor.signed_call(method, **params)
            if test:
                return self.decoder.decode_test_order(payload)
            order = self.decoder.decode_order(payload)
        except ExchangeAPIError as e:
            logger.error("Binance API error in new_order", error=str(e), code=e.error_code, symbol=symbol)
            raise

        logger.info(
            "Order submitted",
            order_id=order.order_id,
            symbol=order.symbol,
            side=order.side,
            type=order.order_type,
            status=order.status
        )
        return order

    async def get_order(
        self,
        symbol: str,
        order_id: Optional[int] = None,
        orig_client_order_id: Optional[str] = None
    ) -> Order:
        """Check an order's status by exchange or client order id."""
        if order_id is None and orig_client_order_id is None:
            raise InvalidOrderError("Either order_id or orig_client_order_id must be given")

        params = {
            "symbol": format_symbol(symbol),
            "orderId": order_id,
            "origClientOrderId": orig_client_order_id
        }
        payload = await self.executor.signed_call("get_order", **params)
        return self.decoder.decode_order(payload)

    async def cancel_order(
        self,
        symbol: str,
        order_id: Optional[int] = None,
        orig_client_order_id: Optional[str] = None,
        new_client_order_id: Optional[str] = None
    ) -> Order:
        """Cancel an active order."""
        if order_id is None and orig_client_order_id is None:
            raise InvalidOrderError("Either order_id or orig_client_order_id must be given")

        params = {
            "symbol": format_symbol(symbol),
            "orderId": order_id,
            "origClientOrderId": orig_client_order_id,
            "newClientOrderId": new_client_order_id
        }
        try:
            payload = await self.executor.signed_call("cancel_order", **params)
            order = self.decoder.decode_order(payload)
        except ExchangeAPIError as e:
            logger.error("Binance API error in cancel_order", error=str(e), code=e.error_code, order_id=order_id)
            raise

        logger.info("Order canceled", order_id=order.order_id, symbol=order.symbol)
        return order

    async def get_open_orders(self, symbol: Optional[str] = None) -> List[Order]:
        """Get all open orders, optionally for one symbol."""
        params = {"symbol": format_symbol(symbol)} if symbol else {}
        payload = await self.executor.signed_call("get_open_orders", **params)
        return self.decoder.decode_orders(payload)

    async def get_all_orders(
        self,
        symbol: str,
        order_id: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Order]:
        """Get all account orders: active, canceled, or filled."""
        params = {"symbol": format_symbol(symbol), "orderId": order_id, "limit": limit}
        payload = await self.executor.signed_call("get_all_orders", **params)
        return self.decoder.decode_orders(payload)

    # ========================================================================
    # REST API Methods - Account
    # ========================================================================

    async def get_account(self) -> AccountInfo:
        """Get current account information."""
        try:
            payload = await self.executor.signed_call("get_account")
            return self.decoder.decode_account(payload)
        except ExchangeAPIError as e:
            logger.error("Binance API error in get_account", error=str(e), code=e.error_code)
            raise

    async def get_my_trades(
        self,
        symbol: str,
        limit: Optional[int] = None,
        from_id: Optional[int] = None
    ) -> List[AccountTrade]:
        """Get trades for a specific account and symbol."""
        params = {"symbol": format_symbol(symbol), "limit": limit, "fromId": from_id}
        payload = await self.executor.signed_call("get_my_trades", **params)
        return self.decoder.decode_my_trades(payload)
