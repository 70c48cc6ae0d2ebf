"""
Release data models.

``RawRelease`` and ``RawAsset`` describe the subset of the GitHub releases
payload the pipeline relies on; anything that does not fit them is rejected
at ingestion. ``ReleaseRecord`` is the canonical, served shape and
``ReleaseSnapshot`` the whole set of records produced by one fetch.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Dict, Iterator, List, Literal, Optional, TYPE_CHECKING

from pydantic import BaseModel, Field, TypeAdapter

from .versioning import is_valid_version, sort_versions

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..adapters.github_errors import UpstreamError


class RawAsset(BaseModel):
    """A downloadable file attached to an upstream release."""

    name: str
    browser_download_url: str
    size: int


class RawRelease(BaseModel):
    """One entry of the upstream releases listing."""

    id: int = 0
    tag_name: str
    name: Optional[str] = None
    published_at: Optional[str] = None
    prerelease: bool = False
    body: Optional[str] = None
    assets: List[RawAsset] = Field(default_factory=list)


RAW_RELEASES_ADAPTER = TypeAdapter(List[RawRelease])


class ReleaseRecord(BaseModel):
    """Canonical release entry."""

    version: str
    released_at: str = ""
    minimum_runtime_version: str = ""
    download_url: str
    size_bytes: int
    is_prerelease: bool = False
    upstream_id: int = 0
    changelog: str = ""


SNAPSHOT_ADAPTER = TypeAdapter(Dict[str, ReleaseRecord])


class SnapshotCorruptError(ValueError):
    """Serialized snapshot could not be restored."""


class ReleaseSnapshot:
    """All releases known as of one fetch or cache read, keyed by version."""

    def __init__(self, records: Optional[Dict[str, ReleaseRecord]] = None):
        self._records: Dict[str, ReleaseRecord] = dict(records or {})

    @classmethod
    def from_records(cls, records: List[ReleaseRecord]) -> "ReleaseSnapshot":
        by_version = {record.version: record for record in records}
        ordered = sort_versions(by_version, descending=True)
        return cls({version: by_version[version] for version in ordered})

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, version: object) -> bool:
        return version in self._records

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ReleaseSnapshot):
            return NotImplemented
        return self._records == other._records

    def get(self, version: str) -> Optional[ReleaseRecord]:
        return self._records.get(version)

    def versions(self) -> List[str]:
        return list(self._records)

    def records(self) -> List[ReleaseRecord]:
        return list(self._records.values())

    def is_empty(self) -> bool:
        return not self._records

    def to_dict(self) -> Dict[str, dict]:
        return {version: record.model_dump() for version, record in self._records.items()}

    def serialize(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def deserialize(cls, payload: str) -> "ReleaseSnapshot":
        """Restore a snapshot, raising ``SnapshotCorruptError`` on any defect."""
        try:
            records = SNAPSHOT_ADAPTER.validate_json(payload)
        except ValueError as exc:
            raise SnapshotCorruptError(str(exc)) from exc

        invalid = [version for version in records if not is_valid_version(version)]
        if invalid:
            raise SnapshotCorruptError(f"Snapshot contains invalid versions: {invalid}")

        return cls(records)


Source = Literal["cache", "fresh", "stale"]


@dataclass
class ReleasesResult:
    """Snapshot served for one request, with provenance."""

    snapshot: ReleaseSnapshot
    source: Source
    error: Optional[UpstreamError] = None
    upstream_malformed: bool = False

    @property
    def is_stale(self) -> bool:
        return self.source == "stale"
