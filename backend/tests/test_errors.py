"""Tests for the error taxonomy."""

import asyncio

import pytest

from pageclip.errors import (
    AuthenticationError,
    CancelledError,
    ErrorCode,
    NetworkError,
    ProviderError,
    RateLimitError,
    TransientProviderError,
    classify_exception,
    is_auth_error,
)


class TestErrorTaxonomy:
    """Test error classification."""

    def test_hierarchy(self):
        """Test transient errors share a base class."""
        assert issubclass(RateLimitError, TransientProviderError)
        assert issubclass(NetworkError, TransientProviderError)
        assert not issubclass(ProviderError, TransientProviderError)

    def test_is_auth_error(self):
        """Test auth detection by type and status."""
        assert is_auth_error(AuthenticationError("no"))
        assert is_auth_error(ProviderError("forbidden", status_code=403))
        assert not is_auth_error(TransientProviderError("down", status_code=503))
        assert not is_auth_error(ValueError("x"))

    @pytest.mark.parametrize(
        "error,code",
        [
            (AuthenticationError("no"), ErrorCode.AUTH_ERROR),
            (RateLimitError("slow"), ErrorCode.RATE_LIMIT),
            (CancelledError(), ErrorCode.CANCELLED),
            (asyncio.TimeoutError(), ErrorCode.TIMEOUT),
            (ConnectionResetError(), ErrorCode.NETWORK_ERROR),
            (ValueError("bad json"), ErrorCode.PARSE_ERROR),
            (RuntimeError("boom"), ErrorCode.UNKNOWN_ERROR),
        ],
    )
    def test_classify_exception(self, error, code):
        """Test every exception maps to a code."""
        assert classify_exception(error) == code

    def test_cancelled_default_message(self):
        """Test cancellation carries a default message."""
        assert str(CancelledError()) == "Processing cancelled"
