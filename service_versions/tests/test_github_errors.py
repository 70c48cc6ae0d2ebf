"""
Unit tests for upstream error classification.
"""

import json

import httpx
import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_versions.app.adapters.github_errors import (
    AuthError,
    ErrorPriority,
    NetworkError,
    NotFoundError,
    RateLimitError,
    UpstreamError,
    ValidationError,
    classify_upstream_error,
    most_critical_error,
)

RELEASES_URL = "https://api.github.com/repos/FOSSBilling/FOSSBilling/releases"


def _status_error(status: int, message: str = "Something went wrong") -> httpx.HTTPStatusError:
    request = httpx.Request("GET", RELEASES_URL)
    response = httpx.Response(status, json={"message": message}, request=request)
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


class TestClassifyUpstreamError:
    """Test cases for classify_upstream_error."""

    def test_401_is_auth_error(self):
        """Test that 401 responses are critical auth errors."""
        error = classify_upstream_error(_status_error(401, "Bad credentials"), RELEASES_URL)

        assert isinstance(error, AuthError)
        assert error.error_code == "auth_error"
        assert error.http_status == 401
        assert error.priority == ErrorPriority.CRITICAL
        assert error.message == "Bad credentials"
        assert error.url == RELEASES_URL

    def test_403_rate_limit_message_is_normalized(self):
        """Test that rate limit messages are replaced with a stable text."""
        error = classify_upstream_error(
            _status_error(403, "API rate limit exceeded for 203.0.113.7."),
            RELEASES_URL,
        )

        assert isinstance(error, RateLimitError)
        assert error.error_code == "rate_limit_error"
        assert error.message == "GitHub API rate limit exceeded"
        assert error.is_critical

    def test_403_other_message_is_still_rate_limit(self):
        """Test that other 403 responses keep their message."""
        error = classify_upstream_error(_status_error(403, "Resource not accessible"), RELEASES_URL)

        assert isinstance(error, RateLimitError)
        assert error.message == "Resource not accessible"
        assert error.http_status == 403

    def test_404_is_not_found(self):
        """Test that 404 responses are medium priority."""
        error = classify_upstream_error(_status_error(404, "Not Found"), RELEASES_URL)

        assert isinstance(error, NotFoundError)
        assert error.priority == ErrorPriority.MEDIUM

    def test_server_error_is_unknown(self):
        """Test that unexpected statuses become high priority unknown errors."""
        error = classify_upstream_error(_status_error(502, "Bad Gateway"), RELEASES_URL)

        assert type(error) is UpstreamError
        assert error.error_code == "unknown_error"
        assert error.http_status == 502
        assert error.priority == ErrorPriority.HIGH

    def test_gateway_timeout_status_is_network_error(self):
        """Test that other statuses still go through the message heuristics."""
        error = classify_upstream_error(_status_error(504, "Gateway Timeout"), RELEASES_URL)

        assert isinstance(error, NetworkError)
        assert error.message == "GitHub API request timed out"
        assert error.to_details() == {"http_status": None, "error_code": "network_error"}

    def test_gateway_timeout_reason_phrase_without_body(self):
        """Test that the reason phrase is classified when the body has no message."""
        request = httpx.Request("GET", RELEASES_URL)
        response = httpx.Response(504, content=b"<html>upstream</html>", request=request)
        error = classify_upstream_error(
            httpx.HTTPStatusError("HTTP 504", request=request, response=response),
            RELEASES_URL,
        )

        assert error.error_code == "network_error"

    def test_timeout_is_network_error(self):
        """Test that transport timeouts are network errors."""
        error = classify_upstream_error(httpx.ReadTimeout("read timed out"), RELEASES_URL)

        assert isinstance(error, NetworkError)
        assert error.message == "GitHub API request timed out"
        assert error.http_status is None

    def test_connect_error_is_network_error(self):
        """Test that connection failures are network errors."""
        error = classify_upstream_error(httpx.ConnectError("connection refused"), RELEASES_URL)

        assert isinstance(error, NetworkError)
        assert error.error_code == "network_error"

    def test_json_decode_error_is_validation_error(self):
        """Test that undecodable bodies are low priority validation errors."""
        error = classify_upstream_error(json.JSONDecodeError("Expecting value", "<html>", 0), RELEASES_URL)

        assert isinstance(error, ValidationError)
        assert error.priority == ErrorPriority.LOW
        assert "original_message" in error.details

    @pytest.mark.parametrize(
        "message, expected",
        [
            ("socket timeout while reading", NetworkError),
            ("Network unreachable", NetworkError),
            ("Unexpected token < in JSON at position 0", ValidationError),
        ],
    )
    def test_message_heuristics(self, message, expected):
        """Test classification of plain exceptions by message content."""
        error = classify_upstream_error(RuntimeError(message), RELEASES_URL)

        assert isinstance(error, expected)

    def test_unrecognized_exception_is_unknown(self):
        """Test the catch-all classification."""
        error = classify_upstream_error(RuntimeError("boom"), RELEASES_URL)

        assert error.error_code == "unknown_error"
        assert error.message == "boom"
        assert error.priority == ErrorPriority.HIGH

    def test_classified_errors_pass_through(self):
        """Test that already classified errors are returned unchanged."""
        original = NotFoundError("missing", url=RELEASES_URL)

        assert classify_upstream_error(original) is original

    def test_to_details(self):
        """Test the detail block surfaced in envelopes."""
        error = AuthError("Bad credentials", 401, RELEASES_URL)

        assert error.to_details() == {"http_status": 401, "error_code": "auth_error"}


class TestMostCriticalError:
    """Test cases for most_critical_error."""

    def test_empty(self):
        """Test that no errors yields None."""
        assert most_critical_error([]) is None

    def test_picks_lowest_priority_value(self):
        """Test that the most severe error wins."""
        not_found = NotFoundError("missing")
        network = NetworkError("down")
        rate_limit = RateLimitError("slow down")
        validation = ValidationError("bad shape")

        assert most_critical_error([validation, not_found, network, rate_limit]) is rate_limit
        assert most_critical_error([validation, not_found]) is not_found

    def test_ties_keep_first(self):
        """Test that equal priorities keep the first error seen."""
        first = AuthError("first")
        second = RateLimitError("second")

        assert most_critical_error([first, second]) is first
