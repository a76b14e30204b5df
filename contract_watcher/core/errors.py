"""
Contract Watcher - Error Classes

Error taxonomy shared by RPC clients, watchers, the checkpoint store and
the processor, plus classification of third-party library exceptions.
"""

import asyncio
from typing import Optional, Dict, Any
from enum import Enum

import aiohttp
import httpx
from solana.exceptions import SolanaRpcException
from solana.rpc.core import RPCException
from web3.exceptions import BlockNotFound, TransactionNotFound, TimeExhausted


class ErrorCategory(str, Enum):
    """Categories of errors that can occur"""
    NETWORK = "network"
    RATE_LIMIT = "rate_limit"
    API_ERROR = "api_error"
    NOT_FOUND = "not_found"
    INVALID_REQUEST = "invalid_request"
    CONFIGURATION = "configuration"
    STORE = "store"
    UNKNOWN = "unknown"


RETRYABLE_CATEGORIES = (
    ErrorCategory.NETWORK,
    ErrorCategory.RATE_LIMIT,
    ErrorCategory.API_ERROR,
)


class WatcherError(Exception):
    """Base exception for all contract watcher errors"""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        chain: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.chain = chain
        self.details = details or {}
        self.cause = cause

    def __str__(self):
        prefix = f"[{self.category.value}]"
        if self.chain:
            prefix = f"{prefix}[{self.chain}]"
        return f"{prefix} {self.message}"

    def is_retryable(self) -> bool:
        """Check if this error should trigger a retry"""
        return self.category in RETRYABLE_CATEGORIES


class TransientFailure(WatcherError):
    """RPC failure that may succeed later (timeout, 5xx, remote rate limit)"""

    def __init__(self, message: str = "Transient RPC failure", **kwargs):
        kwargs.setdefault("category", ErrorCategory.NETWORK)
        super().__init__(message=message, **kwargs)


class PermanentFailure(WatcherError):
    """RPC failure that will not succeed on retry (malformed request, not found)"""

    def __init__(self, message: str = "Permanent RPC failure", **kwargs):
        kwargs.setdefault("category", ErrorCategory.INVALID_REQUEST)
        super().__init__(message=message, **kwargs)


class ConstructionError(WatcherError):
    """Raised when a watcher cannot be built from its configuration"""

    def __init__(self, message: str = "Invalid watcher configuration", **kwargs):
        super().__init__(
            message=message,
            category=ErrorCategory.CONFIGURATION,
            **kwargs
        )


class StoreInconsistency(WatcherError):
    """Raised on cursor regression or a key violation beyond idempotent insert"""

    def __init__(self, message: str = "Checkpoint store inconsistency", **kwargs):
        super().__init__(
            message=message,
            category=ErrorCategory.STORE,
            **kwargs
        )


class StoreUnavailable(WatcherError):
    """Checkpoint store unreachable (dropped connection, pool timeout); the cycle is retried"""

    def __init__(self, message: str = "Checkpoint store unavailable", **kwargs):
        super().__init__(
            message=message,
            category=ErrorCategory.STORE,
            **kwargs
        )


class ShutdownRequested(Exception):
    """Raised at a suspension point once the process cancellation token fires"""
    pass


def categorize_status(status_code: Optional[int]) -> ErrorCategory:
    """
    Categorize error based on HTTP status code.

    Args:
        status_code: HTTP status code

    Returns:
        ErrorCategory enum value
    """
    if status_code is None:
        return ErrorCategory.UNKNOWN

    if status_code == 429:
        return ErrorCategory.RATE_LIMIT

    if status_code in (408, 425):
        return ErrorCategory.NETWORK

    if status_code == 404:
        return ErrorCategory.NOT_FOUND

    if status_code >= 500:
        return ErrorCategory.API_ERROR

    if status_code >= 400:
        return ErrorCategory.INVALID_REQUEST

    return ErrorCategory.UNKNOWN


def categorize_rpc_code(code: Optional[int]) -> ErrorCategory:
    """Categorize a JSON-RPC error code"""
    if code is None:
        return ErrorCategory.UNKNOWN

    if code in (-32005, 429):
        return ErrorCategory.RATE_LIMIT

    if code in (-32600, -32601, -32602, -32700):
        return ErrorCategory.INVALID_REQUEST

    if -32099 <= code <= -32000 or code == -32603:
        return ErrorCategory.API_ERROR

    return ErrorCategory.UNKNOWN


def _rpc_error_payload(exc: BaseException) -> Optional[Dict[str, Any]]:
    """Extract the JSON-RPC error object carried by a web3 exception"""
    response = getattr(exc, "rpc_response", None)
    if isinstance(response, dict) and isinstance(response.get("error"), dict):
        return response["error"]

    if exc.args and isinstance(exc.args[0], dict):
        return exc.args[0]

    return None


def _categorize_message(message: str) -> ErrorCategory:
    text = message.lower()

    if "429" in text or "too many requests" in text or "rate limit" in text:
        return ErrorCategory.RATE_LIMIT

    if "timeout" in text or "timed out" in text:
        return ErrorCategory.NETWORK

    if "invalid param" in text or "method not found" in text:
        return ErrorCategory.INVALID_REQUEST

    return ErrorCategory.UNKNOWN


def classify_error(exc: BaseException) -> ErrorCategory:
    """
    Map an exception raised by a chain client to an ErrorCategory.

    Args:
        exc: Exception raised by web3, solana-py, httpx or aiohttp

    Returns:
        ErrorCategory enum value
    """
    if isinstance(exc, WatcherError):
        return exc.category

    if isinstance(exc, (BlockNotFound, TransactionNotFound)):
        return ErrorCategory.NOT_FOUND

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, TimeExhausted)):
        return ErrorCategory.NETWORK

    if isinstance(exc, httpx.HTTPStatusError):
        return categorize_status(exc.response.status_code)

    if isinstance(exc, httpx.TransportError):
        return ErrorCategory.NETWORK

    if isinstance(exc, aiohttp.ClientResponseError):
        return categorize_status(exc.status)

    if isinstance(exc, aiohttp.ClientError):
        return ErrorCategory.NETWORK

    if isinstance(exc, SolanaRpcException):
        category = _categorize_message(str(exc))
        return ErrorCategory.NETWORK if category == ErrorCategory.UNKNOWN else category

    if isinstance(exc, RPCException):
        category = _categorize_message(str(exc))
        return ErrorCategory.API_ERROR if category == ErrorCategory.UNKNOWN else category

    payload = _rpc_error_payload(exc)
    if payload is not None:
        category = categorize_rpc_code(payload.get("code"))
        if category != ErrorCategory.UNKNOWN:
            return category
        return _categorize_message(str(payload.get("message", "")))

    if isinstance(exc, (ConnectionError, OSError)):
        return ErrorCategory.NETWORK

    if isinstance(exc, (ValueError, TypeError, KeyError)):
        return ErrorCategory.INVALID_REQUEST

    return _categorize_message(str(exc))
