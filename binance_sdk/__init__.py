"""
Binance SDK - asyncio client for the Binance spot REST API and WebSocket streams.
"""

from .exchange import BinanceGateway, ClientConfig, WebSocketManager

__version__ = "0.1.0"
__author__ = "Binance SDK Team"

__all__ = ["BinanceGateway", "ClientConfig", "WebSocketManager"]
