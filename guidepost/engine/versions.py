"""Guidepost - Version Paths & Timestamps.

Pure helpers: where a version artifact lives, and how new version
identifiers are minted.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

VERSION_PREFIX = "venues"
PUBLIC_PREFIX = "public/guides"
UPLOAD_PREFIX = "uploads"

_TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%f"


def check_segment(field: str, value: str) -> str:
    """Require ``value`` to be one non-empty path segment (no separators, no '..')."""
    if not value:
        raise ValueError(f"{field} is required")
    if "/" in value or "\\" in value or ".." in value:
        raise ValueError(f"{field} must be a single path segment: {value!r}")
    return value


def version_path(venue_id: str, version: str) -> str:
    """Private storage path for one guide version."""
    check_segment("venue_id", venue_id)
    check_segment("version", version)
    return f"{VERSION_PREFIX}/{venue_id}/versions/{version}.json"


def versions_prefix(venue_id: str) -> str:
    check_segment("venue_id", venue_id)
    return f"{VERSION_PREFIX}/{venue_id}/versions/"


def public_guide_path(slug: str) -> str:
    """Public, slug-addressed copy written only by publish."""
    check_segment("slug", slug)
    return f"{PUBLIC_PREFIX}/{slug}.json"


def upload_path(venue_id: str, upload_id: str) -> str:
    check_segment("venue_id", venue_id)
    check_segment("upload_id", upload_id)
    return f"{UPLOAD_PREFIX}/{venue_id}/{upload_id}.pdf"


def uploads_prefix(venue_id: str) -> str:
    check_segment("venue_id", venue_id)
    return f"{UPLOAD_PREFIX}/{venue_id}/"


def _split(path: str, prefix: str, middle: Optional[str], suffix: str) -> Tuple[str, str]:
    parts = (path or "").split("/")
    expected = 4 if middle else 3
    if len(parts) != expected or parts[0] != prefix or (middle and parts[2] != middle):
        raise ValueError(f"Not a {prefix} path: {path!r}")
    name = parts[-1]
    if not name.endswith(suffix) or name == suffix:
        raise ValueError(f"Not a {prefix} path: {path!r}")
    venue_id, item = parts[1], name[: -len(suffix)]
    try:
        check_segment("venue_id", venue_id)
        check_segment("id", item)
    except ValueError as e:
        raise ValueError(f"Not a {prefix} path: {path!r}") from e
    return venue_id, item


def parse_version_path(path: str) -> Tuple[str, str]:
    """Inverse of ``version_path``: ``(venue_id, version)``.

    Raises ValueError for anything not shaped like a version path.
    """
    return _split(path, VERSION_PREFIX, "versions", ".json")


def parse_upload_path(path: str) -> Tuple[str, str]:
    """Inverse of ``upload_path``: ``(venue_id, upload_id)``."""
    return _split(path, UPLOAD_PREFIX, None, ".pdf")


def format_version(moment: datetime) -> str:
    """ISO-8601 UTC with millisecond precision, e.g. 2026-01-28T10:30:00.000Z."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime(_TS_FORMAT)[:-3] + "Z"


def _parse_version(version: str) -> Optional[datetime]:
    for fmt in (_TS_FORMAT, "%Y-%m-%dT%H:%M:%S"):
        try:
            return datetime.strptime(version.rstrip("Z"), fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def new_version_timestamp(
    previous: Optional[str] = None, now: Optional[datetime] = None
) -> str:
    """Mint a version id strictly later than ``previous``.

    Fetch-time based; when the clock has not advanced past ``previous``
    (same millisecond, clock skew) the id is bumped one millisecond past it.
    """
    moment = now or datetime.now(timezone.utc)
    if previous:
        last = _parse_version(previous)
        if last is not None and moment <= last:
            moment = last + timedelta(milliseconds=1)
    return format_version(moment)
