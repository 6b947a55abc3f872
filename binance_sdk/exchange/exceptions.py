"""
Exchange-related exception classes.
"""


class ExchangeError(Exception):
    """Base exception for all exchange-related errors."""
    pass


class ExchangeAPIError(ExchangeError):
    """Exception raised when the exchange reports an error for an API call."""

    def __init__(self, message: str, status_code: int = None, error_code: int = None, reason: str = None):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        # Exchange "msg" field without our prefix
        self.reason = reason or message
        super().__init__(self.message)


class TransientError(ExchangeAPIError):
    """Exception for temporary errors that can be retried (5xx, timeouts)."""
    pass


class PermanentError(ExchangeAPIError):
    """Exception for permanent errors that should not be retried (4xx)."""
    pass


class RateLimitError(ExchangeAPIError):
    """Exception raised when API rate limit is exceeded."""
    pass


class InvalidOrderError(PermanentError):
    """Exception raised for invalid order parameters."""
    pass


class InsufficientBalanceError(PermanentError):
    """Exception raised when account has insufficient balance."""
    pass


class ConnectionError(ExchangeError):
    """Exception raised when the HTTP transport to the exchange fails."""
    pass


class MissingCredentialsError(ExchangeError):
    """Raised before any request is sent when a call needs an API key or secret that is not set."""
    pass


class InvalidStreamError(ExchangeError):
    """Raised for a stream identity that cannot be resolved to a URL."""
    pass
