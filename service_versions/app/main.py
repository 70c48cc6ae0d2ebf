"""
Versions service: release metadata for auto-update clients.
"""

from typing import Any, Dict, Optional

import httpx
from fastapi import Header, Response

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.errors import NotFoundError, ServiceUnavailableError
from .adapters.github_client import GitHubReleaseClient
from .adapters.github_errors import UpstreamError
from .auth.update_token import UpdateTokenProvider
from .caching.kv_store import KeyValueStore, create_store
from .caching.release_cache import ReleaseCache
from .domain.freshness import ReleaseService
from .domain.models import ReleasesResult
from .domain.normalizer import ReleaseNormalizer
from .domain.queries import (
    InvalidVersionError,
    build_changelog,
    find_release,
    release_count,
    release_stats,
    support_matrix,
)
from .domain.versioning import is_valid_version

UNAVAILABLE_MESSAGE = "Unable to fetch releases and no cached data available"


class VersionsService(BaseService):
    """Versions API service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        store: Optional[KeyValueStore] = None,
        auth_store: Optional[KeyValueStore] = None,
        upstream_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__("versions", 8000, config or get_config("versions", 8000))

        self.store = store or create_store(self.config.cache_backend, self.config.redis_url)
        self.auth_store = auth_store or create_store(
            self.config.cache_backend, self.config.auth_redis_url, namespace="auth"
        )

        self.github_client = GitHubReleaseClient(
            self.config.github_api_url,
            self.config.github_owner,
            self.config.github_repo,
            per_page=self.config.releases_per_page,
            timeout=self.config.upstream_timeout,
            manifest_threshold_version=self.config.manifest_threshold_version,
            manifest_path=self.config.manifest_path,
            legacy_manifest_path=self.config.legacy_manifest_path,
            runtime_dependency=self.config.runtime_dependency,
            transport=upstream_transport,
        )
        self.normalizer = ReleaseNormalizer(
            self.github_client,
            self.config.release_asset_name,
            concurrency=self.config.metadata_concurrency,
        )
        self.release_cache = ReleaseCache(
            self.store,
            self.config.release_cache_key,
            self.config.release_cache_ttl,
        )
        self.release_service = ReleaseService(
            self.release_cache,
            self.github_client,
            self.normalizer,
            self.config.github_token,
            metrics=self.metrics,
        )
        self.update_tokens = UpdateTokenProvider(self.auth_store, self.config.update_token_key)

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.store.close()
            await self.auth_store.close()

        self._setup_versions_routes()
        self._setup_releases_routes()
        self._setup_stats_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.versions_service = self

    @staticmethod
    def _success(result: Any, releases: ReleasesResult) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "result": result,
            "error_code": 0,
            "message": None,
            "stale": releases.is_stale,
            "source": releases.source,
        }
        if releases.error is not None:
            body["warning"] = releases.error.message
            body["details"] = releases.error.to_details()
        return body

    @staticmethod
    def _ensure_servable(releases: ReleasesResult) -> None:
        if releases.snapshot.is_empty() and releases.error is not None:
            raise ServiceUnavailableError(UNAVAILABLE_MESSAGE, details=releases.error.to_details())

    async def _check_dependencies(self) -> Dict[str, str]:
        return {"cache": "ok" if await self.store.ping() else "unavailable"}

    def _setup_versions_routes(self):
        """Set up version lookup routes."""

        @self.app.get("/versions/v1")
        async def list_versions(response: Response):
            releases = await self.release_service.get_releases()
            self._ensure_servable(releases)

            if releases.snapshot.is_empty():
                response.headers["Vary"] = "*"

            return self._success(releases.snapshot.to_dict(), releases)

        @self.app.get("/versions/v1/update")
        async def update_versions(authorization: Optional[str] = Header(default=None)):
            await self.update_tokens.verify(authorization)

            releases = await self.release_service.get_releases(force_refresh=True)
            count = release_count(releases.snapshot)
            error: Optional[UpstreamError] = releases.error

            if error is not None and count == 0:
                raise ServiceUnavailableError(
                    f"Failed to fetch releases: {error.message}",
                    details=error.to_details(),
                )

            if error is not None:
                return self._success(
                    f"Releases cache updated with {count} releases (some errors occurred).",
                    releases,
                )

            return self._success(
                f"Releases cache updated successfully with {count} releases.",
                releases,
            )

        @self.app.get("/versions/v1/build_changelog/{current}")
        async def changelog_since(current: str):
            if not is_valid_version(current):
                raise InvalidVersionError(current)

            releases = await self.release_service.get_releases()
            self._ensure_servable(releases)

            return self._success(build_changelog(releases.snapshot, current), releases)

        @self.app.get("/versions/v1/count")
        async def count_versions():
            releases = await self.release_service.get_releases()
            self._ensure_servable(releases)
            return self._success(release_count(releases.snapshot), releases)

        @self.app.get("/versions/v1/{version}")
        async def get_version(version: str):
            releases = await self.release_service.get_releases_with_retry()
            self._ensure_servable(releases)

            if releases.snapshot.is_empty():
                raise NotFoundError(
                    "No releases are currently available. Please try again later "
                    "or check the GitHub releases page."
                )

            record = find_release(releases.snapshot, version)
            if record is None:
                raise NotFoundError(
                    f"FOSSBilling version {version} does not appear to exist.",
                    details={"version": version},
                )

            return self._success(record.model_dump(), releases)

    def _setup_releases_routes(self):
        """Set up the deprecated support classification route."""

        @self.app.get("/releases/v1")
        async def list_release_support(response: Response):
            releases = await self.release_service.get_releases()
            self._ensure_servable(releases)

            response.headers["Deprecation"] = "true"
            response.headers["Sunset"] = "Wed, 31 Dec 2025 23:59:59 UTC"
            response.headers["Link"] = '</versions/v1>; rel="successor-version"'

            return self._success({"versions": support_matrix(releases.snapshot)}, releases)

    def _setup_stats_routes(self):
        """Set up release statistics routes."""

        @self.app.get("/stats/v1/data")
        async def stats_data():
            releases = await self.release_service.get_releases()
            self._ensure_servable(releases)
            return self._success(release_stats(releases.snapshot), releases)


def create_app():
    """Create FastAPI application."""
    service = VersionsService()
    return service.app


if __name__ == "__main__":
    service = VersionsService()
    service.run()
