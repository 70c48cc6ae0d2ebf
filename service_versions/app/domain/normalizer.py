"""
Maps raw upstream releases onto the canonical snapshot.
"""

import asyncio
from typing import List, Optional, Tuple

from shared.logging import get_logger
from ..adapters.github_client import GitHubReleaseClient
from ..adapters.github_errors import UpstreamError, ValidationError, most_critical_error
from .models import RawAsset, RawRelease, ReleaseRecord, ReleaseSnapshot
from .versioning import is_valid_version


class ReleaseNormalizer:
    """Filters raw releases and resolves their minimum runtime versions."""

    def __init__(
        self,
        client: GitHubReleaseClient,
        asset_name: str = "FOSSBilling.zip",
        *,
        concurrency: int = 10,
    ):
        self.client = client
        self.asset_name = asset_name
        self.concurrency = max(1, concurrency)
        self.logger = get_logger("versions.normalizer")

    def _find_asset(self, release: RawRelease) -> Optional[RawAsset]:
        for asset in release.assets:
            if asset.name == self.asset_name:
                return asset
        return None

    def select(self, raw_releases: List[RawRelease]) -> List[Tuple[RawRelease, RawAsset]]:
        """Keep releases with a semver tag and the distributable artifact."""
        selected = []
        for release in raw_releases:
            if not is_valid_version(release.tag_name):
                self.logger.warning(
                    "Skipping release with invalid semver tag",
                    tag=release.tag_name,
                    release_id=release.id,
                )
                continue

            asset = self._find_asset(release)
            if asset is None:
                self.logger.debug(
                    "Skipping release without distributable artifact",
                    tag=release.tag_name,
                    asset_name=self.asset_name,
                )
                continue

            selected.append((release, asset))
        return selected

    async def normalize(
        self,
        raw_releases: List[RawRelease],
        token: str,
    ) -> Tuple[ReleaseSnapshot, Optional[UpstreamError]]:
        """Build a snapshot and report the most severe secondary lookup error.

        One failing manifest lookup never removes its release or cancels the
        others; the release keeps an empty minimum runtime version.
        """
        selected = self.select(raw_releases)
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _resolve(release: RawRelease) -> str:
            async with semaphore:
                return await self.client.fetch_minimum_runtime_version(token, release.tag_name)

        outcomes = await asyncio.gather(
            *(_resolve(release) for release, _ in selected),
            return_exceptions=True,
        )

        records: List[ReleaseRecord] = []
        errors: List[UpstreamError] = []
        for (release, asset), outcome in zip(selected, outcomes):
            runtime_version = ""
            if isinstance(outcome, UpstreamError):
                errors.append(outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                runtime_version = outcome

            records.append(
                ReleaseRecord(
                    version=release.tag_name,
                    released_at=release.published_at or "",
                    minimum_runtime_version=runtime_version,
                    download_url=asset.browser_download_url,
                    size_bytes=asset.size,
                    is_prerelease=release.prerelease,
                    upstream_id=release.id,
                    changelog=release.body or "",
                )
            )

        worst = most_critical_error(errors)
        if isinstance(worst, ValidationError):
            worst = None

        if errors:
            self.logger.warning(
                "Some release manifests could not be resolved",
                failed=len(errors),
                resolved=len(records) - len(errors),
            )

        return ReleaseSnapshot.from_records(records), worst
