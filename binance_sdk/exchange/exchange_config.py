"""
Client configuration for the Binance REST and WebSocket APIs.

This module contains:
- Network selection (live or testnet) and stream endpoints
- Signed request settings
- User data stream timer intervals
- Error code mappings
- Symbol formatting and API key file loading
"""

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Tuple

from .exceptions import (
    ExchangeAPIError,
    TransientError,
    PermanentError,
    RateLimitError,
    InvalidOrderError,
    InsufficientBalanceError,
    InvalidStreamError
)


@dataclass
class ClientConfig:
    """
    Configuration for a Binance client instance.

    REST endpoints come from python-binance (``testnet`` and ``tld``); the
    stream endpoints are ours. Intervals are in seconds, the receive window
    in milliseconds.
    """
    # Network
    testnet: bool = False
    tld: str = "com"
    websocket_base_url: str = "wss://stream.binance.com:9443/ws/"
    websocket_testnet_url: str = "wss://testnet.binance.vision/ws/"

    # Signed requests
    recv_window: int = 60000
    use_recv_window: bool = True
    request_timeout: float = 10.0

    # User data stream
    keep_alive_interval: float = 30.0
    reset_interval: float = 3000.0      # 50 minutes (Binance expires keys after 60)

    def __post_init__(self):
        if self.keep_alive_interval <= 0:
            raise ValueError(f"keep_alive_interval must be positive, got {self.keep_alive_interval}")
        if self.reset_interval <= 0:
            raise ValueError(f"reset_interval must be positive, got {self.reset_interval}")
        if self.request_timeout <= 0:
            raise ValueError(f"request_timeout must be positive, got {self.request_timeout}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClientConfig":
        """
        Build a config from a dict, ignoring unknown keys.

        Args:
            data: Mapping such as the "client" section of a JSON config file

        Returns:
            ClientConfig instance
        """
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def stream_url(self, path: str) -> str:
        """Full WebSocket URL for a stream path."""
        base = self.websocket_testnet_url if self.testnet else self.websocket_base_url
        return f"{base}{path}"


# ============================================================================
# SYMBOLS AND CREDENTIALS
# ============================================================================

def format_symbol(symbol: str, for_websockets: bool = False) -> str:
    """
    Format a symbol for the REST API (upper case) or stream names (lower case).

    Raises:
        InvalidStreamError: If the symbol is empty
    """
    if not symbol:
        raise InvalidStreamError("Empty symbol encountered")
    return symbol.lower() if for_websockets else symbol.upper()


def load_key_file(filename: str) -> Tuple[str, str]:
    """
    Load an API key and secret from a JSON file.

    The file must look like: {"key": "...", "secret": "..."}

    Args:
        filename: Path to the key file

    Returns:
        (api_key, api_secret) tuple

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If a field is missing
    """
    key_file = Path(filename)
    if not key_file.exists():
        raise FileNotFoundError(f"Key file could not be found: {filename}")

    with open(key_file, 'r') as f:
        keys = json.load(f)

    if not keys.get("key") or not keys.get("secret"):
        raise ValueError(f"Key file must contain 'key' and 'secret': {filename}")

    return keys["key"], keys["secret"]


# ============================================================================
# ERROR CODE MAPPINGS
# ============================================================================

# Binance error codes that should trigger retry (transient)
BINANCE_TRANSIENT_ERRORS = {
    -1000,  # Unknown error
    -1001,  # Internal error; unable to process request
    -1003,  # Too many requests
    -1006,  # Unexpected response
    -1007,  # Timeout waiting for backend
    -1021,  # Timestamp out of recv window
}

# Binance error codes that are permanent (no retry)
BINANCE_PERMANENT_ERRORS = {
    -1022,  # Invalid signature
    -1100,  # Illegal characters in parameter
    -1102,  # Mandatory parameter missing
    -1121,  # Invalid symbol
    -1125,  # Invalid listen key
    -2013,  # Order does not exist
    -2014,  # API key format invalid
    -2015,  # Invalid API key, IP, or permissions
}

BINANCE_RATE_LIMIT_ERRORS = {-1003, -1015}

BINANCE_INVALID_ORDER_ERRORS = {
    -1013,  # Filter failure
    -1111,  # Precision over maximum
    -1116,  # Invalid order type
    -1117,  # Invalid side
    -2010,  # NEW_ORDER_REJECTED
    -2011,  # CANCEL_REJECTED
}


def is_transient_error(error_code: int) -> bool:
    """Check if error code represents a transient (retryable) error."""
    return error_code in BINANCE_TRANSIENT_ERRORS


def is_permanent_error(error_code: int) -> bool:
    """Check if error code represents a permanent (non-retryable) error."""
    return error_code in BINANCE_PERMANENT_ERRORS


def map_api_error(error_code: int, message: str, status_code: int = None) -> ExchangeAPIError:
    """
    Map a Binance error payload to an internal exception type.

    Args:
        error_code: Binance error code (e.g. -2010)
        message: Binance error message
        status_code: HTTP status, when known

    Returns:
        Mapped exception
    """
    # Specific error types first (before general transient/permanent)
    if error_code in BINANCE_RATE_LIMIT_ERRORS or status_code in (418, 429):
        return RateLimitError(f"Rate limit exceeded: {message}", status_code, error_code, message)

    if 'insufficient balance' in (message or '').lower():
        return InsufficientBalanceError(f"Insufficient balance: {message}", status_code, error_code, message)

    if error_code in BINANCE_INVALID_ORDER_ERRORS:
        return InvalidOrderError(f"Invalid order: {message} (code: {error_code})", status_code, error_code, message)

    if is_transient_error(error_code):
        return TransientError(f"Binance transient error: {message} (code: {error_code})", status_code, error_code, message)

    if is_permanent_error(error_code):
        return PermanentError(f"Binance permanent error: {message} (code: {error_code})", status_code, error_code, message)

    return ExchangeAPIError(f"Binance API error: {message} (code: {error_code})", status_code, error_code, message)
