"""
Bearer credential guarding the forced-refresh endpoint.
"""

from __future__ import annotations

import hmac
from typing import Optional

from shared.errors import AuthenticationError
from shared.logging import get_logger
from ..caching.kv_store import KeyValueStore


class UpdateTokenProvider:
    """Reads the refresh secret once and memoizes it for the process lifetime.

    The secret is rotated by redeploying the store entry; ``reset`` drops
    the memoized value so the next request reads it again.
    """

    def __init__(self, store: KeyValueStore, token_key: str = "UPDATE_TOKEN") -> None:
        self.store = store
        self.token_key = token_key
        self.logger = get_logger("versions.auth.update_token")
        self._token: Optional[str] = None

    async def get_token(self) -> str:
        if self._token:
            return self._token

        token = await self.store.get(self.token_key)
        if not token:
            self.logger.error("Refresh credential missing from auth store", entry=self.token_key)
            raise AuthenticationError("Refresh credential is not configured")

        self._token = token
        return token

    def reset(self) -> None:
        self._token = None

    async def verify(self, authorization: Optional[str]) -> None:
        """Validate an ``Authorization`` header against the stored secret."""
        if not authorization or not authorization.startswith("Bearer "):
            raise AuthenticationError("Missing or invalid Authorization header")

        presented = authorization[7:].strip()
        if not presented:
            raise AuthenticationError("Authorization header contained empty bearer token")

        expected = await self.get_token()
        if not hmac.compare_digest(presented.encode(), expected.encode()):
            self.logger.warning("Rejected refresh request with invalid credential")
            raise AuthenticationError("Invalid refresh credential")
