"""
GitHub release feed client for the Versions service.
"""

import base64
import binascii
import json
from typing import Any, Dict, List, Optional

import httpx

from shared.logging import get_logger
from ..domain.models import RAW_RELEASES_ADAPTER, RawRelease
from ..domain.versioning import version_gte
from .github_errors import (
    AuthError,
    NetworkError,
    RateLimitError,
    UpstreamError,
    classify_upstream_error,
)


class GitHubReleaseClient:
    """Client for the upstream release listing and per-release manifests."""

    def __init__(
        self,
        api_url: str = "https://api.github.com",
        owner: str = "FOSSBilling",
        repo: str = "FOSSBilling",
        *,
        per_page: int = 100,
        timeout: float = 10.0,
        manifest_threshold_version: str = "0.5.0",
        manifest_path: str = "composer.json",
        legacy_manifest_path: str = "src/composer.json",
        runtime_dependency: str = "php",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = api_url.rstrip('/')
        self.owner = owner
        self.repo = repo
        self.per_page = per_page
        self.timeout = timeout
        self.manifest_threshold_version = manifest_threshold_version
        self.manifest_path = manifest_path
        self.legacy_manifest_path = legacy_manifest_path
        self.runtime_dependency = runtime_dependency
        self.logger = get_logger("versions.github_client")
        self._transport = transport

    @property
    def releases_url(self) -> str:
        return f"{self.base_url}/repos/{self.owner}/{self.repo}/releases"

    def manifest_path_for(self, version: str) -> str:
        """Releases from the threshold on ship the manifest at the repository root."""
        if version_gte(version, self.manifest_threshold_version):
            return self.manifest_path
        return self.legacy_manifest_path

    def contents_url(self, path: str) -> str:
        return f"{self.base_url}/repos/{self.owner}/{self.repo}/contents/{path}"

    def _headers(self, token: str) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _get_json(self, url: str, token: str, params: Dict[str, Any]) -> Any:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.get(url, params=params, headers=self._headers(token))
            response.raise_for_status()
            return response.json()

    async def fetch_releases(self, token: str) -> List[RawRelease]:
        """Fetch the newest releases (a single page; older entries are not listed)."""
        url = self.releases_url

        try:
            payload = await self._get_json(url, token, {"per_page": self.per_page})
            releases = RAW_RELEASES_ADAPTER.validate_python(payload)
        except Exception as exc:
            error = classify_upstream_error(exc, url)
            self._log_failure("Failed to fetch releases", error)
            raise error from exc

        self.logger.info(
            "Fetched releases from GitHub API",
            url=url,
            release_count=len(releases),
        )
        return releases

    async def fetch_minimum_runtime_version(self, token: str, version: str) -> str:
        """Resolve the minimum runtime version a release declares in its manifest.

        Request failures raise ``UpstreamError``. A manifest that cannot be
        decoded or does not declare the dependency yields an empty string.
        """
        path = self.manifest_path_for(version)
        url = self.contents_url(path)

        try:
            payload = await self._get_json(url, token, {"ref": version})
        except Exception as exc:
            error = classify_upstream_error(exc, f"{url}?ref={version}")
            self._log_failure("Failed to fetch release manifest", error, version=version)
            raise error from exc

        return self._extract_runtime_version(payload, version)

    def _extract_runtime_version(self, payload: Any, version: str) -> str:
        content = payload.get("content") if isinstance(payload, dict) else None
        if not isinstance(content, str) or not content:
            return ""

        try:
            manifest = json.loads(base64.b64decode(content).decode("utf-8"))
        except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
            self.logger.info("Unreadable release manifest", version=version, error=str(exc))
            return ""

        require = manifest.get("require") if isinstance(manifest, dict) else None
        constraint = require.get(self.runtime_dependency) if isinstance(require, dict) else None
        if not isinstance(constraint, str):
            return ""

        return constraint.replace("^", "", 1).replace(">=", "", 1).strip()

    def _log_failure(self, message: str, error: UpstreamError, **context):
        if isinstance(error, (AuthError, RateLimitError)):
            log = self.logger.error
        elif isinstance(error, NetworkError):
            log = self.logger.warning
        else:
            log = self.logger.info
        log(
            message,
            url=error.url,
            error_code=error.error_code,
            http_status=error.http_status,
            error=error.message,
            **context,
        )

