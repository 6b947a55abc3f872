"""
Command line stream monitor.

Loads configuration, opens the requested Binance streams and logs every
status event until interrupted.
"""

import asyncio
import argparse
import json
import signal
from pathlib import Path
from typing import List, Optional, Tuple

from .exchange.binance_gateway import BinanceGateway
from .exchange.exceptions import ExchangeError, MissingCredentialsError
from .exchange.exchange_config import ClientConfig, load_key_file
from .exchange.models import StatusCategory, StatusEvent
from .utils.logger import setup_logger, log_system_event, EventType


def parse_kline_arg(value: str) -> Tuple[str, str]:
    """Split "SYMBOL:INTERVAL" (interval defaults to 1m)."""
    symbol, _, interval = value.partition(":")
    if not symbol:
        raise argparse.ArgumentTypeError(f"Invalid kline stream: {value!r}")
    return symbol, interval or "1m"


class StreamMonitor:
    """Opens streams on a gateway and logs their status events."""

    def __init__(self, config_path: str):
        """
        Initialize the monitor.

        Args:
            config_path: Path to configuration file
        """
        self.config_path = config_path
        self.config = self._load_config()
        self.logger = setup_logger(
            log_level=self.config.get("logging", {}).get("level", "INFO"),
            log_dir=self.config.get("logging", {}).get("log_dir", "logs"),
            log_format=self.config.get("logging", {}).get("format", "json"),
            service_name="binance-sdk-monitor"
        )

        api_key, api_secret = self._load_credentials()
        self.gateway = BinanceGateway(
            api_key,
            api_secret,
            ClientConfig.from_dict(self.config.get("client", {}))
        )
        self.gateway.ws_manager.subscribe(self.on_status)

        self.running = False
        self._stop_event = asyncio.Event()

    def _load_config(self) -> dict:
        """Load configuration from JSON file."""
        config_file = Path(self.config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(config_file, 'r') as f:
            return json.load(f)

    def _load_credentials(self) -> Tuple[Optional[str], Optional[str]]:
        key_file = self.config.get("key_file")
        if key_file:
            return load_key_file(key_file)
        return self.config.get("api_key"), self.config.get("api_secret")

    def on_status(self, event: StatusEvent) -> None:
        if event.category == StatusCategory.ENDPOINT_DATA_RECEIVED:
            self.logger.info("stream_data", payload=event.message)
        elif event.category in (StatusCategory.CONNECTION_STATUS_ERROR, StatusCategory.ENDPOINT_STATUS_ERROR):
            self.logger.error("stream_status", message=event.message, category=event.category.value)
        else:
            self.logger.info(
                "stream_status",
                message=event.message,
                category=event.category.value,
                session_active=event.session_active
            )

    async def start(
        self,
        depth: List[str],
        klines: List[Tuple[str, str]],
        trades: List[str],
        user_data: bool
    ):
        """Connect, open the requested streams and wait for shutdown."""
        self.running = True
        log_system_event(
            self.logger,
            EventType.STARTUP,
            "Stream monitor starting",
            config_path=self.config_path,
            depth=depth,
            klines=[f"{s}:{i}" for s, i in klines],
            trades=trades,
            user_data=user_data
        )

        try:
            await self.gateway.connect()

            ws = self.gateway.ws_manager
            for symbol in depth:
                await ws.open_depth(symbol)
            for symbol, interval in klines:
                await ws.open_klines(symbol, interval)
            for symbol in trades:
                await ws.open_agg_trades(symbol)
            if user_data:
                await ws.open_user_data()

            self.logger.info("Streams requested", active=len(ws.list_active()))

            await self._stop_event.wait()

        except MissingCredentialsError as e:
            self.logger.error("missing_credentials", error=str(e))
            raise
        except ExchangeError as e:
            self.logger.error(
                "critical_error",
                error=str(e),
                error_type=type(e).__name__
            )
            raise
        finally:
            await self.shutdown()

    def request_shutdown(self) -> None:
        self.logger.warning("shutdown_signal_received")
        self._stop_event.set()

    async def shutdown(self):
        """Close every stream, the listen key and the HTTP session."""
        if not self.running:
            return

        self.running = False
        log_system_event(
            self.logger,
            EventType.SHUTDOWN,
            "Stream monitor shutting down gracefully"
        )

        await self.gateway.disconnect()

        self.logger.info("Shutdown complete")


async def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Binance WebSocket stream monitor"
    )
    parser.add_argument(
        "--config",
        type=str,
        default="config/config.json",
        help="Path to configuration file"
    )
    parser.add_argument("--depth", action="append", default=[], metavar="SYMBOL", help="Open a depth stream")
    parser.add_argument(
        "--klines",
        action="append",
        default=[],
        type=parse_kline_arg,
        metavar="SYMBOL:INTERVAL",
        help="Open a kline stream (e.g. btcusdt:1m)"
    )
    parser.add_argument("--trades", action="append", default=[], metavar="SYMBOL", help="Open an aggregate trade stream")
    parser.add_argument("--user-data", action="store_true", help="Open the user data stream")
    args = parser.parse_args()

    monitor = StreamMonitor(args.config)

    # Setup signal handlers for graceful shutdown
    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGINT, monitor.request_shutdown)
    loop.add_signal_handler(signal.SIGTERM, monitor.request_shutdown)

    await monitor.start(args.depth, args.klines, args.trades, args.user_data)


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
