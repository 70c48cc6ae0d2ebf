"""
Semantic version helpers.

Tags must be ``MAJOR.MINOR.PATCH`` semantic versions, optionally prefixed
with ``v`` and followed by a pre-release or build suffix. Parsing and
precedence are delegated to ``semver``; build metadata never affects
ordering.
"""

from functools import cmp_to_key
from typing import Iterable, List, Optional

from semver import Version


def parse_version(value: Optional[str]) -> Optional[Version]:
    """Parse a semantic version, returning None when it is not one."""
    if not isinstance(value, str):
        return None

    text = value.strip()
    if text[:1] in ("v", "V"):
        text = text[1:]

    try:
        return Version.parse(text)
    except ValueError:
        return None


def _require(value: str) -> Version:
    parsed = parse_version(value)
    if parsed is None:
        raise ValueError(f"{value!r} is not a valid semantic version")
    return parsed


def is_valid_version(value: Optional[str]) -> bool:
    return parse_version(value) is not None


def compare_versions(left: str, right: str) -> int:
    """Three-way comparison; both arguments must be valid versions."""
    return _require(left).compare(_require(right))


def version_gt(left: str, right: str) -> bool:
    return compare_versions(left, right) > 0


def version_gte(left: str, right: str) -> bool:
    return compare_versions(left, right) >= 0


def sort_versions(versions: Iterable[str], descending: bool = False) -> List[str]:
    return sorted(versions, key=cmp_to_key(compare_versions), reverse=descending)


def version_diff(left: str, right: str) -> Optional[str]:
    """Name the most significant component that differs, or None if equal."""
    a, b = _require(left), _require(right)
    if a.compare(b) == 0:
        return None
    if a.major != b.major:
        return "major"
    if a.minor != b.minor:
        return "minor"
    if a.patch != b.patch:
        return "patch"
    return "prerelease"


def version_line(version: str) -> str:
    """``0.6.3`` -> ``0.6.x``."""
    parsed = _require(version)
    return f"{parsed.major}.{parsed.minor}.x"
