"""
Read-only views derived from a release snapshot.
"""

from collections import Counter
from typing import Any, Dict, List, Optional

from shared.errors import ValidationError
from .models import ReleaseRecord, ReleaseSnapshot
from .versioning import is_valid_version, sort_versions, version_diff, version_gt, version_line

LATEST_ALIAS = "latest"
MISSING_CHANGELOG_NOTICE = "The changelogs for this release appear to be missing."


class InvalidVersionError(ValidationError):
    """A caller-supplied version is not a semantic version."""

    def __init__(self, version: str):
        super().__init__(f"'{version}' is not a valid semantic version.", details={"version": version})


def latest_release(snapshot: ReleaseSnapshot) -> Optional[ReleaseRecord]:
    """Highest version by semver ordering, not the most recently added."""
    versions = sort_versions(snapshot.versions())
    if not versions:
        return None
    return snapshot.get(versions[-1])


def find_release(snapshot: ReleaseSnapshot, version: str) -> Optional[ReleaseRecord]:
    if version == LATEST_ALIAS:
        return latest_release(snapshot)
    return snapshot.get(version)


def build_changelog(snapshot: ReleaseSnapshot, current: str) -> str:
    """Concatenate changelogs of every version newer than ``current``, newest first."""
    if not current or not is_valid_version(current):
        raise InvalidVersionError(current)

    entries: List[str] = []
    # Sorted descending, so the first version <= current ends the run.
    for version in sort_versions(snapshot.versions(), descending=True):
        if not version_gt(version, current):
            break

        changelog = snapshot.get(version).changelog
        if not changelog:
            changelog = f"## {version}\n{MISSING_CHANGELOG_NOTICE}"
        entries.append(changelog)

    return "\n".join(entries)


def release_count(snapshot: ReleaseSnapshot) -> int:
    return len(snapshot)


def support_matrix(snapshot: ReleaseSnapshot) -> List[Dict[str, str]]:
    """Classify every version against the latest one.

    ``latest`` for the newest release, ``outdated`` when only the patch level
    lags behind, ``insecure`` otherwise.
    """
    versions = sort_versions(snapshot.versions())
    if not versions:
        return []

    latest = versions[-1]
    matrix = []
    for version in versions:
        if version == latest:
            support = "latest"
        elif version_diff(version, latest) == "patch":
            support = "outdated"
        else:
            support = "insecure"
        matrix.append({"version": version, "support": support})
    return matrix


def release_stats(snapshot: ReleaseSnapshot) -> Dict[str, List[Dict[str, Any]]]:
    """Aggregate figures for the release statistics dashboard."""
    versions = sort_versions(snapshot.versions())
    records = [snapshot.get(version) for version in versions]

    release_sizes = [
        {
            "version": record.version,
            "size_mb": round(record.size_bytes / 1024 / 1024, 2),
            "released_at": record.released_at,
        }
        for record in records
    ]

    runtime_versions = [
        {
            "version": record.version,
            "runtime_version": record.minimum_runtime_version or "unknown",
            "released_at": record.released_at,
        }
        for record in records
    ]

    patches = Counter(version_line(version) for version in versions)
    patches_per_release = [
        {"version_line": line, "patch_count": patches[line]}
        for line in sorted(patches, key=lambda line: tuple(int(part) for part in line.split(".")[:2]))
    ]

    years = Counter(record.released_at[:4] for record in records if record.released_at)
    releases_per_year = [
        {"year": year, "release_count": years[year]}
        for year in sorted(years)
    ]

    return {
        "release_sizes": release_sizes,
        "runtime_versions": runtime_versions,
        "patches_per_release": patches_per_release,
        "releases_per_year": releases_per_year,
    }
