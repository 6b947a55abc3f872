"""
Unit tests for BinanceGateway.

The request executor's calls are replaced with AsyncMocks returning canned
python-binance payloads, so the gateway logic is tested without network access.
"""

from datetime import datetime
from decimal import Decimal

import pytest
from unittest.mock import AsyncMock

from binance_sdk.exchange.binance_gateway import BinanceGateway
from binance_sdk.exchange.exceptions import (
    InsufficientBalanceError,
    InvalidOrderError,
    RateLimitError,
    TransientError
)
from binance_sdk.exchange.exchange_config import map_api_error
from binance_sdk.exchange.models import (
    APIResponse,
    KlineInterval,
    OrderSide,
    OrderType,
    TimeInForce
)


ORDER_RESPONSE = {
    "symbol": "BTCUSDT",
    "orderId": 12345,
    "clientOrderId": "myOrder1",
    "transactTime": 1507725176595,
    "price": "50000.00",
    "origQty": "0.001",
    "executedQty": "0",
    "status": "NEW",
    "timeInForce": "GTC",
    "type": "LIMIT",
    "side": "BUY"
}


@pytest.fixture
def gateway():
    """Gateway with mocked executor calls."""
    gateway = BinanceGateway(api_key="test_key", api_secret="test_secret")
    gateway.executor.start = AsyncMock()
    gateway.executor.close = AsyncMock()
    gateway.executor.public_call = AsyncMock(return_value={})
    gateway.executor.signed_call = AsyncMock(return_value={})
    return gateway


# ============================================================================
# Connection Tests
# ============================================================================

@pytest.mark.asyncio
@pytest.mark.unit
async def test_gateway_initialization(gateway):
    assert gateway.executor.api_key == "test_key"
    assert gateway.ws_manager.session.executor is gateway.executor
    assert not gateway.is_connected


@pytest.mark.asyncio
@pytest.mark.unit
async def test_connect_checks_server_time(gateway):
    gateway.executor.public_call.return_value = {"serverTime": 1499827319559}

    await gateway.connect()

    assert gateway.is_connected
    gateway.executor.start.assert_awaited_once()
    gateway.executor.public_call.assert_awaited_once_with("get_server_time")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_disconnect_closes_client(gateway):
    gateway.executor.public_call.return_value = {"serverTime": 1499827319559}
    await gateway.connect()
    await gateway.disconnect()

    assert not gateway.is_connected
    gateway.executor.close.assert_awaited_once()
    assert not gateway.ws_manager.is_session_active


@pytest.mark.asyncio
@pytest.mark.unit
async def test_ping(gateway):
    assert await gateway.ping() is True

    gateway.executor.public_call.assert_awaited_once_with("ping")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_get_server_time(gateway):
    gateway.executor.public_call.return_value = {"serverTime": 1499827319559}

    server_time = await gateway.get_server_time()

    assert server_time == datetime.fromtimestamp(1499827319.559)


# ============================================================================
# Market Data Tests
# ============================================================================

@pytest.mark.asyncio
@pytest.mark.unit
async def test_get_order_book(gateway):
    gateway.executor.public_call.return_value = {
        "lastUpdateId": 1,
        "bids": [["50000.00", "1.5"]],
        "asks": [["50001.00", "2.0"]]
    }

    book = await gateway.get_order_book("btcusdt", limit=5)

    gateway.executor.public_call.assert_awaited_once_with("get_order_book", symbol="BTCUSDT", limit=5)
    assert book.symbol == "BTCUSDT"
    assert book.spread == Decimal("1.00")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_get_klines(gateway):
    gateway.executor.public_call.return_value = [[
        1609459200000, "29000.00", "29500.00", "28800.00", "29200.00", "100.5",
        1609459259999, "2934600.00", 1500, "50.2", "1467300.00", "0"
    ]]
    start = datetime.fromtimestamp(1609459200)

    candles = await gateway.get_klines("BTCUSDT", "1m", start_time=start, limit=1)

    call = gateway.executor.public_call.call_args
    assert call.args == ("get_klines",)
    assert call.kwargs["interval"] == KlineInterval.MINUTE_1
    assert call.kwargs["startTime"] == 1609459200000
    assert call.kwargs["endTime"] is None
    assert candles[0].interval == "1m"
    assert candles[0].close == Decimal("29200.00")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_get_agg_trades(gateway):
    gateway.executor.public_call.return_value = [{
        "a": 26129, "p": "0.01633102", "q": "4.70443515", "f": 27781,
        "l": 27781, "T": 1498793709153, "m": True, "M": True
    }]

    trades = await gateway.get_agg_trades("bnbbtc", from_id=26129)

    assert gateway.executor.public_call.call_args.args == ("get_aggregate_trades",)
    assert gateway.executor.public_call.call_args.kwargs["fromId"] == 26129
    assert trades[0].agg_trade_id == 26129


@pytest.mark.asyncio
@pytest.mark.unit
async def test_get_all_prices_and_book_tickers(gateway):
    gateway.executor.public_call.side_effect = [
        [{"symbol": "LTCBTC", "price": "4.00000200"}],
        [{"symbol": "LTCBTC", "bidPrice": "4.0", "bidQty": "431.0", "askPrice": "4.2", "askQty": "9.0"}]
    ]

    prices = await gateway.get_all_prices()
    tickers = await gateway.get_all_book_tickers()

    methods = [c.args[0] for c in gateway.executor.public_call.call_args_list]
    assert methods == ["get_all_tickers", "get_orderbook_tickers"]
    assert prices[0].price == Decimal("4.00000200")
    assert tickers[0].bid_qty == Decimal("431.0")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_get_order_book_rate_limited(gateway):
    gateway.executor.public_call.side_effect = map_api_error(-1003, "Too many requests.", 429)

    with pytest.raises(RateLimitError):
        await gateway.get_order_book("BTCUSDT")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_get_ticker_24hr_transient_error(gateway):
    gateway.executor.public_call.side_effect = map_api_error(
        -1001, "Internal error; unable to process your request.", 500
    )

    with pytest.raises(TransientError):
        await gateway.get_ticker_24hr("BTCUSDT")

    assert gateway.executor.public_call.call_args.args == ("get_ticker",)


# ============================================================================
# Order Tests
# ============================================================================

@pytest.mark.asyncio
@pytest.mark.unit
async def test_new_limit_order(gateway):
    gateway.executor.signed_call.return_value = ORDER_RESPONSE

    order = await gateway.new_order(
        symbol="btcusdt",
        side=OrderSide.BUY,
        order_type=OrderType.LIMIT,
        quantity="0.001",
        price="50000.00",
        time_in_force=TimeInForce.GTC
    )

    call = gateway.executor.signed_call.call_args
    assert call.args == ("create_order",)
    assert call.kwargs["symbol"] == "BTCUSDT"
    assert call.kwargs["type"] == OrderType.LIMIT
    assert order.order_id == 12345
    assert order.price == Decimal("50000.00")
    assert order.is_active


@pytest.mark.asyncio
@pytest.mark.unit
async def test_new_test_order(gateway):
    result = await gateway.new_order("BTCUSDT", OrderSide.SELL, OrderType.MARKET, "0.001", test=True)

    assert gateway.executor.signed_call.call_args.args == ("create_test_order",)
    assert isinstance(result, APIResponse)
    assert not result.has_errors


@pytest.mark.asyncio
@pytest.mark.unit
async def test_limit_order_requires_price(gateway):
    with pytest.raises(InvalidOrderError):
        await gateway.new_order("BTCUSDT", OrderSide.BUY, OrderType.LIMIT, "0.001")

    gateway.executor.signed_call.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.unit
async def test_new_order_rejected(gateway):
    gateway.executor.signed_call.side_effect = map_api_error(
        -2010, "Account has insufficient balance for requested action.", 400
    )

    with pytest.raises(InsufficientBalanceError):
        await gateway.new_order("BTCUSDT", OrderSide.BUY, OrderType.MARKET, "100")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_get_order_requires_an_id(gateway):
    with pytest.raises(InvalidOrderError):
        await gateway.get_order("BTCUSDT")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_get_order_by_client_id(gateway):
    gateway.executor.signed_call.return_value = ORDER_RESPONSE

    order = await gateway.get_order("btcusdt", orig_client_order_id="myOrder1")

    gateway.executor.signed_call.assert_awaited_once_with(
        "get_order", symbol="BTCUSDT", orderId=None, origClientOrderId="myOrder1"
    )
    assert order.client_order_id == "myOrder1"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancel_order(gateway):
    gateway.executor.signed_call.return_value = {**ORDER_RESPONSE, "status": "CANCELED"}

    order = await gateway.cancel_order("BTCUSDT", order_id=12345)

    call = gateway.executor.signed_call.call_args
    assert call.args == ("cancel_order",)
    assert call.kwargs["orderId"] == 12345
    assert order.status == "CANCELED"
    assert not order.is_active


@pytest.mark.asyncio
@pytest.mark.unit
async def test_get_open_orders_without_symbol(gateway):
    gateway.executor.signed_call.return_value = [ORDER_RESPONSE]

    orders = await gateway.get_open_orders()

    gateway.executor.signed_call.assert_awaited_once_with("get_open_orders")
    assert len(orders) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_get_all_orders(gateway):
    gateway.executor.signed_call.return_value = [ORDER_RESPONSE, {**ORDER_RESPONSE, "orderId": 12346}]

    orders = await gateway.get_all_orders("btcusdt", limit=2)

    gateway.executor.signed_call.assert_awaited_once_with("get_all_orders", symbol="BTCUSDT", orderId=None, limit=2)
    assert [o.order_id for o in orders] == [12345, 12346]


# ============================================================================
# Account Tests
# ============================================================================

@pytest.mark.asyncio
@pytest.mark.unit
async def test_get_account(gateway):
    gateway.executor.signed_call.return_value = {
        "makerCommission": 10, "takerCommission": 10, "canTrade": True,
        "canWithdraw": False, "canDeposit": True, "updateTime": 1609459200000,
        "balances": [
            {"asset": "USDT", "free": "1000.00", "locked": "50.00"},
            {"asset": "ETH", "free": "0", "locked": "0"}
        ]
    }

    account = await gateway.get_account()

    gateway.executor.signed_call.assert_awaited_once_with("get_account")
    assert len(account.balances) == 1
    assert account.balances[0].total == Decimal("1050.00")
    assert not account.can_withdraw


@pytest.mark.asyncio
@pytest.mark.unit
async def test_get_my_trades(gateway):
    gateway.executor.signed_call.return_value = [{
        "symbol": "BNBBTC", "id": 28457, "orderId": 100234, "price": "4.00000100",
        "qty": "12.00000000", "commission": "10.10000000", "commissionAsset": "BNB",
        "time": 1499865549590, "isBuyer": True, "isMaker": False, "isBestMatch": True
    }]

    trades = await gateway.get_my_trades("bnbbtc", limit=10)

    gateway.executor.signed_call.assert_awaited_once_with("get_my_trades", symbol="BNBBTC", limit=10, fromId=None)
    assert trades[0].trade_id == 28457
    assert trades[0].commission_asset == "BNB"
