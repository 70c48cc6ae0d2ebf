"""
Authentication helpers for the Versions service.
"""

from .update_token import UpdateTokenProvider

__all__ = ["UpdateTokenProvider"]
