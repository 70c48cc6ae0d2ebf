#!/usr/bin/env python3
"""
Prime the release snapshot cache.

Runs the same forced refresh as ``GET /versions/v1/update`` without going
through the HTTP surface, so the cache can be populated before a deploy or
from a CI job.
"""

import argparse
import asyncio
import json
from pathlib import Path
from typing import Any, Dict, Optional
import sys
import os

import httpx

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from service_versions.app.adapters.github_client import GitHubReleaseClient  # noqa: E402
from service_versions.app.adapters.github_errors import UpstreamError  # noqa: E402
from service_versions.app.caching.kv_store import KeyValueStore, create_store  # noqa: E402
from service_versions.app.caching.release_cache import ReleaseCache  # noqa: E402
from service_versions.app.domain.freshness import ReleaseService  # noqa: E402
from service_versions.app.domain.normalizer import ReleaseNormalizer  # noqa: E402
from shared.config import ServiceConfig, get_config  # noqa: E402


def _summary(releases: int, source: str, error: Optional[UpstreamError]) -> Dict[str, Any]:
    return {
        "releases": releases,
        "source": source,
        "stale": source == "stale",
        "error": error.to_details() if error else None,
    }


async def warm(
    config: ServiceConfig,
    *,
    dry_run: bool = False,
    store: Optional[KeyValueStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    """Force one refresh and return the summary."""
    client = GitHubReleaseClient(
        config.github_api_url,
        config.github_owner,
        config.github_repo,
        per_page=config.releases_per_page,
        timeout=config.upstream_timeout,
        manifest_threshold_version=config.manifest_threshold_version,
        manifest_path=config.manifest_path,
        legacy_manifest_path=config.legacy_manifest_path,
        runtime_dependency=config.runtime_dependency,
        transport=transport,
    )
    normalizer = ReleaseNormalizer(client, config.release_asset_name, concurrency=config.metadata_concurrency)

    if dry_run:
        raw_releases = await client.fetch_releases(config.github_token)
        snapshot, error = await normalizer.normalize(raw_releases, config.github_token)
        return _summary(len(snapshot), "fresh", error)

    store = store or create_store(config.cache_backend, config.redis_url)
    try:
        service = ReleaseService(
            ReleaseCache(store, config.release_cache_key, config.release_cache_ttl),
            client,
            normalizer,
            config.github_token,
        )
        result = await service.get_releases(force_refresh=True)
    finally:
        await store.close()

    return _summary(len(result.snapshot), result.source, result.error)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Prime the release snapshot cache.")
    parser.add_argument("--redis-url", default=None, help="Redis connection URL (defaults to VERSIONS_REDIS_URL)")
    parser.add_argument("--concurrency", type=int, default=None, help="Concurrent manifest lookups")
    parser.add_argument("--dry-run", action="store_true", help="Fetch and normalize without writing the cache")
    parser.add_argument("--output", type=Path, default=None, help="Optional path to write JSON summary")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()

    overrides: Dict[str, Any] = {}
    if args.redis_url:
        overrides["redis_url"] = args.redis_url
    if args.concurrency:
        overrides["metadata_concurrency"] = args.concurrency
    config = get_config("versions", 8000, **overrides)

    try:
        summary = asyncio.run(warm(config, dry_run=args.dry_run))
    except KeyboardInterrupt:
        return 130
    except Exception as exc:  # pragma: no cover - CLI surface
        print(f"[release-warm] failed: {exc}", file=sys.stderr)
        return 1

    if args.dry_run:
        print("[release-warm] DRY RUN - no cache writes executed")

    print(json.dumps(summary, indent=2))

    if args.output:
        args.output.write_text(json.dumps(summary, indent=2))

    return 0 if summary["releases"] and summary["source"] == "fresh" else 1


if __name__ == "__main__":
    raise SystemExit(main())
