"""
Freshness orchestration for the release snapshot.

Each read resolves to one of these paths:

- cache hit: the cached snapshot deserializes and no refresh was forced
- miss or forced refresh: fetch upstream, normalize, write back when non-empty
- fetch failed with a cached entry: serve the cached snapshot as ``stale``
- fetch failed without usable cache: serve an empty ``fresh`` snapshot with
  the error attached

A read never raises because of upstream trouble; callers decide how to
render an empty snapshot that carries an error.
"""

from typing import Optional, TYPE_CHECKING

from shared.logging import get_logger
from ..adapters.github_client import GitHubReleaseClient
from ..adapters.github_errors import UpstreamError, ValidationError
from ..caching.release_cache import ReleaseCache
from .models import ReleaseSnapshot, ReleasesResult
from .normalizer import ReleaseNormalizer

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class ReleaseService:
    """Serves release snapshots with stale-on-failure semantics."""

    def __init__(
        self,
        cache: ReleaseCache,
        client: GitHubReleaseClient,
        normalizer: ReleaseNormalizer,
        github_token: str = "",
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.cache = cache
        self.client = client
        self.normalizer = normalizer
        self.github_token = github_token
        self.metrics = metrics
        self.logger = get_logger("versions.release_service")

    async def get_releases(self, force_refresh: bool = False) -> ReleasesResult:
        """Return the current snapshot tagged with its provenance."""
        cached_raw = await self.cache.read_raw()

        if cached_raw is not None and not force_refresh:
            snapshot = self.cache.decode(cached_raw, "Cache corruption detected, attempting fresh fetch")
            if snapshot is not None:
                self._count("release_cache_reads_total", result="hit")
                self.logger.info("Serving releases from cache", release_count=len(snapshot))
                return self._served(ReleasesResult(snapshot, "cache"))
            self._count("release_cache_reads_total", result="corrupt")
        elif cached_raw is None:
            self._count("release_cache_reads_total", result="miss")

        return self._served(await self._refresh(cached_raw))

    async def get_releases_with_retry(self) -> ReleasesResult:
        """Read, then force exactly one refresh if nothing was served."""
        result = await self.get_releases()
        if result.snapshot.is_empty():
            self.logger.info("No releases available, forcing one refresh")
            result = await self.get_releases(force_refresh=True)
        return result

    async def _refresh(self, cached_raw: Optional[str]) -> ReleasesResult:
        try:
            if self.metrics:
                with self.metrics.time_operation("release_fetch_duration_seconds"):
                    return await self._fetch_fresh()
            return await self._fetch_fresh()
        except ValidationError as error:
            # Schema drift and "nothing published" look the same to callers.
            self.logger.warning(
                "Invalid response received from GitHub API",
                error=error.message,
                url=error.url,
            )
            self._count("release_fetch_total", outcome="malformed")
            return ReleasesResult(ReleaseSnapshot(), "fresh", upstream_malformed=True)
        except UpstreamError as error:
            self._count("release_fetch_total", outcome="error")
            return self._fallback(cached_raw, error)

    async def _fetch_fresh(self) -> ReleasesResult:
        raw_releases = await self.client.fetch_releases(self.github_token)
        snapshot, error = await self.normalizer.normalize(raw_releases, self.github_token)

        if snapshot.is_empty():
            self._count("release_fetch_total", outcome="empty")
            self.logger.warning("Upstream returned no usable releases", raw_count=len(raw_releases))
            return ReleasesResult(snapshot, "fresh")

        await self.cache.write(snapshot)
        self._count("release_fetch_total", outcome="partial" if error else "success")
        return ReleasesResult(snapshot, "fresh", error)

    def _fallback(self, cached_raw: Optional[str], error: UpstreamError) -> ReleasesResult:
        if cached_raw is not None:
            snapshot = self.cache.decode(cached_raw, "Cache corruption detected")
            if snapshot is not None:
                self.logger.info(
                    "Serving stale releases from cache",
                    reason=error.message,
                    error_code=error.error_code,
                )
                return ReleasesResult(snapshot, "stale", error)

        self.logger.warning(
            "No cached releases to fall back on",
            error_code=error.error_code,
            http_status=error.http_status,
        )
        return ReleasesResult(ReleaseSnapshot(), "fresh", error)

    def _served(self, result: ReleasesResult) -> ReleasesResult:
        self._count("release_source_total", source=result.source)
        return result

    def _count(self, metric_name: str, **labels) -> None:
        if self.metrics:
            self.metrics.increment_counter(metric_name, **labels)
