"""
Unit tests for ResponseDecoder.

Payloads are the parsed dicts and lists python-binance returns.
"""

from decimal import Decimal

import pytest

from binance_sdk.exchange.decoder import ResponseDecoder
from binance_sdk.exchange.exceptions import ExchangeAPIError


@pytest.fixture
def decoder():
    return ResponseDecoder()


# ============================================================================
# Market data
# ============================================================================

@pytest.mark.unit
def test_decode_order_book(decoder):
    payload = {
        "lastUpdateId": 1027024,
        "bids": [["4.00000000", "431.00000000"]],
        "asks": [["4.00000200", "12.00000000"]]
    }

    book = decoder.decode_order_book(payload, "BNBBTC")

    assert book.last_update_id == 1027024
    assert book.best_bid == Decimal("4.00000000")
    assert book.spread == Decimal("0.00000200")


@pytest.mark.unit
def test_decode_klines(decoder):
    payload = [[
        1499040000000, "0.01634790", "0.80000000", "0.01575800", "0.01577100",
        "148976.11427815", 1499644799999, "2434.19055334", 308,
        "1756.87402397", "28.46694368", "17928899.62484339"
    ]]

    candles = decoder.decode_klines(payload, "BNBBTC", "1m")

    assert len(candles) == 1
    candle = candles[0]
    assert candle.symbol == "BNBBTC"
    assert candle.interval == "1m"
    assert candle.open == Decimal("0.01634790")
    assert candle.close == Decimal("0.01577100")
    assert candle.quote_volume == Decimal("2434.19055334")
    assert candle.trades == 308


@pytest.mark.unit
def test_decode_agg_trades(decoder):
    payload = [{
        "a": 26129, "p": "0.01633102", "q": "4.70443515", "f": 27781,
        "l": 27781, "T": 1498793709153, "m": True, "M": True
    }]

    trades = decoder.decode_agg_trades(payload)

    assert trades[0].agg_trade_id == 26129
    assert trades[0].price == Decimal("0.01633102")
    assert trades[0].is_buyer_maker


@pytest.mark.unit
def test_decode_prices_and_book_tickers(decoder):
    prices = decoder.decode_prices([{"symbol": "LTCBTC", "price": "4.00000200"}])
    tickers = decoder.decode_book_tickers([{
        "symbol": "LTCBTC", "bidPrice": "4.00000000", "bidQty": "431.00000000",
        "askPrice": "4.00000200", "askQty": "9.00000000"
    }])

    assert prices[0].price == Decimal("4.00000200")
    assert tickers[0].ask_qty == Decimal("9.00000000")


# ============================================================================
# Account
# ============================================================================

@pytest.mark.unit
def test_decode_market_order_drops_zero_price(decoder):
    payload = {
        "symbol": "BTCUSDT", "orderId": 28, "clientOrderId": "6gCrw2kRUAF9CvJDGP16IP",
        "transactTime": 1507725176595, "price": "0.00000000", "origQty": "10.00000000",
        "executedQty": "10.00000000", "status": "FILLED", "timeInForce": "GTC",
        "type": "MARKET", "side": "SELL"
    }

    order = decoder.decode_order(payload)

    assert order.order_id == 28
    assert order.price is None
    assert order.executed_qty == Decimal("10")
    assert order.time is not None


@pytest.mark.unit
def test_decode_account_keeps_non_zero_balances(decoder):
    payload = {
        "makerCommission": 15, "takerCommission": 15, "buyerCommission": 0,
        "sellerCommission": 0, "canTrade": True, "canWithdraw": True,
        "canDeposit": True, "updateTime": 123456789,
        "balances": [
            {"asset": "BTC", "free": "4723846.89208129", "locked": "0.00000000"},
            {"asset": "LTC", "free": "0.00000000", "locked": "0.00000000"}
        ]
    }

    account = decoder.decode_account(payload)

    assert [b.asset for b in account.balances] == ["BTC"]
    assert account.can_trade


@pytest.mark.unit
def test_decode_server_time(decoder):
    assert decoder.decode_server_time({"serverTime": 1499827319559}) == 1499827319559

    with pytest.raises(ExchangeAPIError):
        decoder.decode_server_time({})
