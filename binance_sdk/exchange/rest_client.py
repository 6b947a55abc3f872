"""
Request executor for the Binance REST API, built on python-binance.

The AsyncClient signs requests and keeps the server time offset. This layer
adds the three security levels, the receive window and the mapping of
library exceptions to ours:
- public: no credentials
- API key: X-MBX-APIKEY header only (user data stream endpoints)
- signed: API key header plus HMAC signature (orders, account)
"""

import asyncio
from enum import Enum
from typing import Any, Dict, Optional

import aiohttp
from binance import AsyncClient
from binance.exceptions import BinanceAPIException, BinanceRequestException

from .exceptions import (
    ConnectionError as ExchangeConnectionError,
    ExchangeAPIError,
    MissingCredentialsError
)
from .exchange_config import ClientConfig, map_api_error
from ..utils.logger import get_logger

logger = get_logger(__name__)


def _clean_params(params: Dict[str, Any]) -> Dict[str, Any]:
    """Drop unset parameters and unwrap enums to their wire values."""
    return {
        key: value.value if isinstance(value, Enum) else value
        for key, value in params.items()
        if value is not None
    }


class SignedRequestExecutor:
    """
    Runs python-binance AsyncClient calls at a given security level.

    Calls are named by AsyncClient method ("get_order_book", "create_order",
    "stream_get_listen_key", ...) and return the parsed JSON payload.
    Exchange-reported errors raise the mapped ExchangeAPIError subclass,
    transport failures raise ConnectionError.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        config: Optional[ClientConfig] = None
    ):
        """
        Initialize executor.

        Args:
            api_key: Binance API key
            api_secret: Binance API secret
            config: Client configuration
        """
        self.api_key = api_key
        self.api_secret = api_secret
        self.config = config or ClientConfig()

        self.client: Optional[AsyncClient] = None
        self._start_lock = asyncio.Lock()

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self) -> None:
        """Create the AsyncClient (pings the API and computes the time offset)."""
        async with self._start_lock:
            if self.client is not None:
                return

            try:
                self.client = await AsyncClient.create(
                    api_key=self.api_key,
                    api_secret=self.api_secret,
                    requests_params={"timeout": self.config.request_timeout},
                    tld=self.config.tld,
                    testnet=self.config.testnet
                )
            except BinanceAPIException as e:
                logger.error("Binance API error while creating client", error=e.message, code=e.code)
                raise map_api_error(e.code, e.message, e.status_code) from e
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.error("Failed to reach Binance", error=str(e))
                raise ExchangeConnectionError(f"Connection failed: {e}") from e

        logger.info("Binance client created", testnet=self.config.testnet, tld=self.config.tld)

    async def close(self) -> None:
        """Close the client's HTTP session."""
        if self.client is not None:
            await self.client.close_connection()
            self.client = None

    # ========================================================================
    # Public interface
    # ========================================================================

    async def public_call(self, method: str, **params) -> Any:
        return await self._execute(method, params)

    async def key_authenticated_call(self, method: str, **params) -> Any:
        if not self.api_key:
            raise MissingCredentialsError("API key is not set; cannot execute API-key requests")
        return await self._execute(method, params)

    async def signed_call(self, method: str, recv_window: Optional[int] = None, **params) -> Any:
        if not self.api_key or not self.api_secret:
            raise MissingCredentialsError("API key and/or secret is not set; cannot execute signed requests")

        if self.config.use_recv_window:
            params["recvWindow"] = recv_window if recv_window is not None else self.config.recv_window
        return await self._execute(method, params)

    # ========================================================================
    # Transport
    # ========================================================================

    async def _execute(self, method: str, params: Dict[str, Any]) -> Any:
        await self.start()
        call = getattr(self.client, method)

        try:
            result = await call(**_clean_params(params))
        except BinanceAPIException as e:
            logger.warning(
                "Binance API returned error",
                method=method,
                status=e.status_code,
                code=e.code,
                error=e.message
            )
            raise map_api_error(e.code, e.message, e.status_code) from e
        except BinanceRequestException as e:
            logger.error("Invalid response from Binance", method=method, error=e.message)
            raise ExchangeAPIError(f"Invalid response: {e.message}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("HTTP request failed", method=method, error=str(e))
            raise ExchangeConnectionError(f"Request {method} failed: {e}") from e

        logger.debug("Request completed", method=method)
        return result
