"""
Adapters package for the Versions service.

Wraps the upstream GitHub API. Adapters own request shapes and map every
failure onto the classified error taxonomy; they never leak raw transport
exceptions.
"""

from .github_client import GitHubReleaseClient
from .github_errors import (
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

__all__ = [
    "GitHubReleaseClient",
    "AuthError",
    "ErrorPriority",
    "NetworkError",
    "NotFoundError",
    "RateLimitError",
    "UpstreamError",
    "ValidationError",
    "classify_upstream_error",
    "most_critical_error",
]
