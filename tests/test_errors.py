"""
Unit Tests for Error Classification

Tests the mapping of library exceptions onto retryable and permanent
categories.
"""

import asyncio

import httpx
import pytest
from web3.exceptions import BlockNotFound, TransactionNotFound

from contract_watcher.core.errors import (
    ConstructionError, ErrorCategory, PermanentFailure, StoreInconsistency,
    TransientFailure, WatcherError, categorize_rpc_code, categorize_status,
    classify_error
)


def http_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://rpc.example.org")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


class TestWatcherError:
    """Test error classes"""

    def test_str_includes_category_and_chain(self):
        error = TransientFailure("get_logs timed out", chain="ethereum")

        assert str(error) == "[network][ethereum] get_logs timed out"
        assert error.is_retryable() is True

    def test_default_categories(self):
        assert PermanentFailure().category == ErrorCategory.INVALID_REQUEST
        assert ConstructionError().category == ErrorCategory.CONFIGURATION
        assert StoreInconsistency().category == ErrorCategory.STORE

    def test_transient_category_override(self):
        error = TransientFailure("slow down", category=ErrorCategory.RATE_LIMIT)

        assert error.category == ErrorCategory.RATE_LIMIT
        assert error.is_retryable() is True

    def test_not_retryable(self):
        assert PermanentFailure("bad params").is_retryable() is False
        assert StoreInconsistency("regression").is_retryable() is False


class TestCategorize:
    """Test status and JSON-RPC code mapping"""

    @pytest.mark.parametrize("status,category", [
        (429, ErrorCategory.RATE_LIMIT),
        (408, ErrorCategory.NETWORK),
        (404, ErrorCategory.NOT_FOUND),
        (400, ErrorCategory.INVALID_REQUEST),
        (500, ErrorCategory.API_ERROR),
        (503, ErrorCategory.API_ERROR),
        (None, ErrorCategory.UNKNOWN),
    ])
    def test_categorize_status(self, status, category):
        assert categorize_status(status) == category

    @pytest.mark.parametrize("code,category", [
        (-32005, ErrorCategory.RATE_LIMIT),
        (-32602, ErrorCategory.INVALID_REQUEST),
        (-32601, ErrorCategory.INVALID_REQUEST),
        (-32000, ErrorCategory.API_ERROR),
        (-32603, ErrorCategory.API_ERROR),
        (3, ErrorCategory.UNKNOWN),
    ])
    def test_categorize_rpc_code(self, code, category):
        assert categorize_rpc_code(code) == category


class TestClassifyError:
    """Test classify_error on third-party exceptions"""

    def test_http_status_errors(self):
        assert classify_error(http_error(429)) == ErrorCategory.RATE_LIMIT
        assert classify_error(http_error(502)) == ErrorCategory.API_ERROR
        assert classify_error(http_error(400)) == ErrorCategory.INVALID_REQUEST

    def test_transport_errors_are_network(self):
        assert classify_error(httpx.ConnectError("refused")) == ErrorCategory.NETWORK
        assert classify_error(httpx.ReadTimeout("slow")) == ErrorCategory.NETWORK
        assert classify_error(asyncio.TimeoutError()) == ErrorCategory.NETWORK
        assert classify_error(ConnectionResetError()) == ErrorCategory.NETWORK

    def test_web3_not_found(self):
        assert classify_error(BlockNotFound("no block")) == ErrorCategory.NOT_FOUND
        assert classify_error(TransactionNotFound("no tx")) == ErrorCategory.NOT_FOUND

    def test_json_rpc_error_payload(self):
        limited = ValueError({'code': -32005, 'message': 'limit exceeded'})
        invalid = ValueError({'code': -32602, 'message': 'invalid params'})
        server = ValueError({'code': -32000, 'message': 'header not found'})

        assert classify_error(limited) == ErrorCategory.RATE_LIMIT
        assert classify_error(invalid) == ErrorCategory.INVALID_REQUEST
        assert classify_error(server) == ErrorCategory.API_ERROR

    def test_json_rpc_message_fallback(self):
        error = ValueError({'code': 1, 'message': 'Too Many Requests'})

        assert classify_error(error) == ErrorCategory.RATE_LIMIT

    def test_watcher_error_keeps_category(self):
        assert classify_error(PermanentFailure("x")) == ErrorCategory.INVALID_REQUEST

    def test_malformed_input_is_permanent(self):
        assert classify_error(KeyError("result")) == ErrorCategory.INVALID_REQUEST

    def test_unknown(self):
        assert classify_error(RuntimeError("something odd")) == ErrorCategory.UNKNOWN
        assert classify_error(RuntimeError("request timed out")) == ErrorCategory.NETWORK

    def test_base_class(self):
        assert issubclass(TransientFailure, WatcherError)
        assert issubclass(StoreInconsistency, WatcherError)
