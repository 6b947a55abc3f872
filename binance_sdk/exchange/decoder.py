"""
Response decoder for converting parsed Binance REST payloads to typed models.

python-binance returns dicts and lists and raises on error payloads, so the
decoder only maps shapes.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .exceptions import ExchangeAPIError
from .models import (
    APIResponse,
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


def _ms(value: int) -> datetime:
    return datetime.fromtimestamp(int(value) / 1000)


def _optional_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))


class ResponseDecoder:
    """Decoder for Binance REST responses."""

    # ========================================================================
    # Market data
    # ========================================================================

    def decode_server_time(self, payload: Dict[str, Any]) -> int:
        """Server time in milliseconds."""
        try:
            return int(payload["serverTime"])
        except (KeyError, TypeError, ValueError) as e:
            raise ExchangeAPIError(f"Unexpected server time response: {e}")

    def decode_order_book(self, payload: Any, symbol: str) -> OrderBook:
        return OrderBook(
            symbol=symbol,
            last_update_id=int(payload["lastUpdateId"]),
            bids=[(Decimal(price), Decimal(qty)) for price, qty in payload["bids"]],
            asks=[(Decimal(price), Decimal(qty)) for price, qty in payload["asks"]]
        )

    def decode_agg_trades(self, payload: Any) -> List[AggTrade]:
        return [
            AggTrade(
                agg_trade_id=int(t["a"]),
                price=Decimal(t["p"]),
                quantity=Decimal(t["q"]),
                first_trade_id=int(t["f"]),
                last_trade_id=int(t["l"]),
                time=_ms(t["T"]),
                is_buyer_maker=bool(t["m"]),
                is_best_match=bool(t["M"])
            )
            for t in payload
        ]

    def decode_klines(self, payload: Any, symbol: str, interval: str) -> List[Candle]:
        """
        Decode kline rows.

        Each row is [open_time, open, high, low, close, volume, close_time,
        quote_volume, trades, ...].
        """
        return [
            Candle(
                symbol=symbol,
                interval=interval,
                open_time=_ms(k[0]),
                close_time=_ms(k[6]),
                open=Decimal(k[1]),
                high=Decimal(k[2]),
                low=Decimal(k[3]),
                close=Decimal(k[4]),
                volume=Decimal(k[5]),
                quote_volume=Decimal(k[7]),
                trades=int(k[8])
            )
            for k in payload
        ]

    def decode_ticker_24hr(self, t: Dict[str, Any]) -> Ticker24hr:
        return Ticker24hr(
            symbol=t["symbol"],
            price_change=Decimal(t["priceChange"]),
            price_change_percent=Decimal(t["priceChangePercent"]),
            weighted_avg_price=Decimal(t["weightedAvgPrice"]),
            prev_close_price=Decimal(t["prevClosePrice"]),
            last_price=Decimal(t["lastPrice"]),
            last_qty=Decimal(t["lastQty"]),
            bid_price=Decimal(t["bidPrice"]),
            bid_qty=Decimal(t["bidQty"]),
            ask_price=Decimal(t["askPrice"]),
            ask_qty=Decimal(t["askQty"]),
            open_price=Decimal(t["openPrice"]),
            high_price=Decimal(t["highPrice"]),
            low_price=Decimal(t["lowPrice"]),
            volume=Decimal(t["volume"]),
            quote_volume=Decimal(t["quoteVolume"]),
            open_time=_ms(t["openTime"]),
            close_time=_ms(t["closeTime"]),
            first_id=int(t["firstId"]),
            last_id=int(t["lastId"]),
            count=int(t["count"])
        )

    def decode_prices(self, payload: Any) -> List[SymbolPrice]:
        return [SymbolPrice(symbol=p["symbol"], price=Decimal(p["price"])) for p in payload]

    def decode_book_tickers(self, payload: Any) -> List[BookTicker]:
        return [
            BookTicker(
                symbol=b["symbol"],
                bid_price=Decimal(b["bidPrice"]),
                bid_qty=Decimal(b["bidQty"]),
                ask_price=Decimal(b["askPrice"]),
                ask_qty=Decimal(b["askQty"])
            )
            for b in payload
        ]

    # ========================================================================
    # Account
    # ========================================================================

    def _order(self, o: Dict[str, Any]) -> Order:
        price = _optional_decimal(o.get("price"))
        # MARKET orders report a zero price
        if price is not None and price == 0 and o.get("type") == "MARKET":
            price = None

        order_time = o.get("time") or o.get("transactTime")

        return Order(
            order_id=int(o["orderId"]),
            client_order_id=o.get("clientOrderId") or o.get("origClientOrderId", ""),
            symbol=o["symbol"],
            side=o.get("side", ""),
            order_type=o.get("type", ""),
            status=o.get("status", ""),
            time_in_force=o.get("timeInForce"),
            price=price,
            orig_qty=Decimal(str(o.get("origQty", "0"))),
            executed_qty=Decimal(str(o.get("executedQty", "0"))),
            stop_price=_optional_decimal(o.get("stopPrice")),
            iceberg_qty=_optional_decimal(o.get("icebergQty")),
            time=_ms(order_time) if order_time else None
        )

    def decode_order(self, payload: Dict[str, Any]) -> Order:
        return self._order(payload)

    def decode_test_order(self, payload: Any) -> APIResponse:
        """The test order endpoint answers {} on success."""
        return APIResponse()

    def decode_orders(self, payload: Any) -> List[Order]:
        return [self._order(o) for o in payload]

    def decode_account(self, a: Dict[str, Any]) -> AccountInfo:
        balances = []
        for b in a.get("balances", []):
            balance = Balance(asset=b["asset"], free=Decimal(b["free"]), locked=Decimal(b["locked"]))
            # Only include non-zero balances
            if balance.total > 0:
                balances.append(balance)

        return AccountInfo(
            maker_commission=int(a["makerCommission"]),
            taker_commission=int(a["takerCommission"]),
            can_trade=bool(a["canTrade"]),
            can_withdraw=bool(a["canWithdraw"]),
            can_deposit=bool(a["canDeposit"]),
            update_time=_ms(a["updateTime"]),
            balances=balances
        )

    def decode_my_trades(self, payload: Any) -> List[AccountTrade]:
        return [
            AccountTrade(
                trade_id=int(t["id"]),
                order_id=int(t["orderId"]),
                symbol=t["symbol"],
                price=Decimal(t["price"]),
                quantity=Decimal(t["qty"]),
                commission=Decimal(t["commission"]),
                commission_asset=t["commissionAsset"],
                time=_ms(t["time"]),
                is_buyer=bool(t["isBuyer"]),
                is_maker=bool(t["isMaker"]),
                is_best_match=bool(t["isBestMatch"])
            )
            for t in payload
        ]
