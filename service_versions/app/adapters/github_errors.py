"""
Classified errors for the upstream GitHub release feed.

Every failure talking to GitHub is turned into an ``UpstreamError`` carrying
a machine-readable code and a priority. Lower priority values are more
severe, so the most critical error of a batch is the one with the minimum
priority.
"""

from __future__ import annotations

import json
from enum import IntEnum
from typing import Any, Dict, Iterable, Optional

import httpx
import pydantic


class ErrorPriority(IntEnum):
    """Severity ordering for upstream failures."""
    CRITICAL = 0
    HIGH = 1
    MEDIUM = 2
    LOW = 3


class UpstreamError(Exception):
    """Base classified upstream failure."""

    def __init__(
        self,
        message: str,
        http_status: Optional[int] = None,
        error_code: str = "unknown_error",
        priority: ErrorPriority = ErrorPriority.HIGH,
        url: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.http_status = http_status
        self.error_code = error_code
        self.priority = priority
        self.url = url
        self.details = details or {}
        super().__init__(message)

    @property
    def is_critical(self) -> bool:
        return self.priority == ErrorPriority.CRITICAL

    def to_details(self) -> Dict[str, Any]:
        """Detail block surfaced in response envelopes."""
        return {"http_status": self.http_status, "error_code": self.error_code}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, http_status={self.http_status}, url={self.url!r})"


class AuthError(UpstreamError):
    def __init__(self, message: str, http_status: int = 401, url: Optional[str] = None):
        super().__init__(message, http_status, "auth_error", ErrorPriority.CRITICAL, url)


class RateLimitError(UpstreamError):
    def __init__(self, message: str, http_status: int = 403, url: Optional[str] = None):
        super().__init__(message, http_status, "rate_limit_error", ErrorPriority.CRITICAL, url)


class NetworkError(UpstreamError):
    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message, None, "network_error", ErrorPriority.HIGH, url)


class NotFoundError(UpstreamError):
    def __init__(self, message: str, http_status: int = 404, url: Optional[str] = None):
        super().__init__(message, http_status, "not_found_error", ErrorPriority.MEDIUM, url)


class ValidationError(UpstreamError):
    def __init__(self, message: str, url: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, None, "validation_error", ErrorPriority.LOW, url, details)


def _response_message(response: httpx.Response) -> str:
    """Extract GitHub's ``message`` field, falling back to the reason phrase."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return response.reason_phrase or f"HTTP {response.status_code}"


def classify_upstream_error(error: BaseException, url: Optional[str] = None) -> UpstreamError:
    """Map any exception raised while talking to GitHub onto the taxonomy."""
    if isinstance(error, UpstreamError):
        return error

    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        message = _response_message(error.response)
        url = url or str(error.request.url)

        if status == 401:
            return AuthError(message, status, url)
        if status in (403, 429):
            if "rate limit" in message.lower():
                message = "GitHub API rate limit exceeded"
            return RateLimitError(message, status, url)
        if status == 404:
            return NotFoundError(message, status, url)

        return _classify_message(message, url) or UpstreamError(
            message, status, "unknown_error", ErrorPriority.HIGH, url
        )

    if isinstance(error, httpx.TimeoutException):
        return NetworkError("GitHub API request timed out", url)

    if isinstance(error, httpx.TransportError):
        return NetworkError("GitHub API network error", url)

    if isinstance(error, (json.JSONDecodeError, pydantic.ValidationError)):
        return ValidationError(
            "Invalid JSON response from GitHub API",
            url,
            details={"original_message": str(error)},
        )

    message = str(error) or type(error).__name__
    return _classify_message(message, url) or UpstreamError(
        message, None, "unknown_error", ErrorPriority.HIGH, url
    )


def _classify_message(message: str, url: Optional[str]) -> Optional[UpstreamError]:
    """Classify by message content; None when nothing matches."""
    lowered = message.lower()

    if "timeout" in lowered or "timed out" in lowered:
        return NetworkError("GitHub API request timed out", url)

    if "network" in lowered:
        return NetworkError("GitHub API network error", url)

    if "json" in lowered:
        return ValidationError(
            "Invalid JSON response from GitHub API",
            url,
            details={"original_message": message},
        )

    return None


def most_critical_error(errors: Iterable[UpstreamError]) -> Optional[UpstreamError]:
    """Return the most severe error, keeping the first one on ties."""
    worst: Optional[UpstreamError] = None
    for error in errors:
        if worst is None or error.priority < worst.priority:
            worst = error
    return worst
