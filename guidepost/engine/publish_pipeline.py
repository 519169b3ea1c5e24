"""Guidepost - Publish Orchestrator.

Publishing copies one immutable version artifact to the public,
slug-addressed path and then moves ``live_version`` + ``status`` in a
single UPDATE. Re-running a publish with the same inputs reproduces the
same end state, so a caller that saw a failure simply retries.

Every artifact read here is re-validated before it is trusted.
"""

from contextlib import contextmanager
from typing import Iterator, List, Optional

from guidepost.connectors.storage.base import BlobNotFound, BlobStore, BlobStoreError
from guidepost.connectors.venue_store import VenueStore
from guidepost.core.errors import (
    Conflict,
    InternalError,
    NotFound,
    ValidationFailed,
)
from guidepost.core.logging import get_logger
from guidepost.engine.editors import Actor, require_editor
from guidepost.engine.versions import (
    check_segment,
    parse_version_path,
    public_guide_path,
    version_path,
    versions_prefix,
)
from guidepost.models.guide_models import Guide, GuideValid, parse_guide_bytes
from guidepost.models.venue_models import VenueSnapshot
from guidepost.models.version_models import DeletedVersion, PublishOutcome, VersionInfo

logger = get_logger("engine.publish")

# The public copy is overwritten in place on every publish
PUBLIC_CACHE_CONTROL = "public, max-age=300"


def _checked_version(version: str) -> str:
    try:
        return check_segment("version", version)
    except ValueError as e:
        raise ValidationFailed("Invalid version", [f"version: {e}"]) from e


@contextmanager
def _blob_errors(action: str, venue_id: Optional[str] = None) -> Iterator[None]:
    try:
        yield
    except BlobStoreError as e:
        logger.error(f"Blob store failure during {action}: {e}", extra={"venue_id": venue_id})
        raise InternalError() from e


class PublishOrchestrator:
    """Publish, roll back, list and delete guide versions."""

    def __init__(self, venues: VenueStore, blobs: BlobStore):
        self.venues = venues
        self.blobs = blobs

    def _load_version(self, venue: VenueSnapshot, version: str) -> Guide:
        path = version_path(venue.id, version)
        with _blob_errors("version read", venue.id):
            try:
                raw = self.blobs.get(path)
            except BlobNotFound as e:
                raise Conflict(
                    "That version no longer exists. Refresh and try again."
                ) from e

        validation = parse_guide_bytes(raw)
        if not isinstance(validation, GuideValid):
            logger.warning(
                f"Stored version failed validation: {validation.errors[:5]}",
                extra={"venue_id": venue.id, "version": version},
            )
            raise ValidationFailed("This version is not a valid guide", validation.errors)
        return validation.guide

    def _promote(self, venue: VenueSnapshot, version: str, actor: Actor) -> PublishOutcome:
        if not venue.slug:
            logger.error("Venue has no slug; cannot publish", extra={"venue_id": venue.id})
            raise InternalError()

        self._load_version(venue, version)

        source = version_path(venue.id, version)
        target = public_guide_path(venue.slug)
        with _blob_errors("publish copy", venue.id):
            try:
                self.blobs.copy(source, target, cache_control=PUBLIC_CACHE_CONTROL)
            except BlobNotFound as e:
                raise Conflict(
                    "That version no longer exists. Refresh and try again."
                ) from e
            public_url = self.blobs.make_public(target)

        # Pointer moves only after the public copy is in place
        self.venues.mark_published(venue.id, version)

        logger.info(
            f"Published {venue.slug} at {version} by {actor.normalized_email}",
            extra={"venue_id": venue.id, "user": actor.normalized_email, "version": version},
        )
        return PublishOutcome(public_url=public_url, live_version=version, slug=venue.slug)

    # ── Publish ──

    def publish(self, venue_id: str, source_path: str, actor: Actor) -> PublishOutcome:
        """Make the version at ``source_path`` the live guide."""
        venue = self.venues.get(venue_id)
        require_editor(venue, actor)

        try:
            path_venue_id, version = parse_version_path(source_path)
        except ValueError as e:
            raise ValidationFailed("Invalid version path", [f"version_path: {e}"]) from e
        if path_venue_id != venue_id:
            raise ValidationFailed(
                "Version does not belong to this venue",
                [f"version_path: {source_path!r} is not under venue {venue_id}"],
            )
        return self._promote(venue, version, actor)

    def set_live_version(self, venue_id: str, version: str, actor: Actor) -> PublishOutcome:
        """Roll the live guide to any stored version (older or newer)."""
        venue = self.venues.get(venue_id)
        require_editor(venue, actor)
        _checked_version(version)
        return self._promote(venue, version, actor)

    # ── History ──

    def list_versions(self, venue_id: str, actor: Actor) -> List[VersionInfo]:
        venue = self.venues.get(venue_id)
        require_editor(venue, actor)

        with _blob_errors("version listing", venue_id):
            blobs = self.blobs.list(versions_prefix(venue_id))

        versions: List[VersionInfo] = []
        for blob in blobs:
            try:
                _, timestamp = parse_version_path(blob.path)
            except ValueError:
                continue
            versions.append(
                VersionInfo(
                    timestamp=timestamp,
                    path=blob.path,
                    size=blob.size,
                    created=blob.created,
                    is_live=timestamp == venue.live_version,
                    is_draft=timestamp == venue.draft_version,
                )
            )
        versions.sort(key=lambda v: v.timestamp, reverse=True)
        return versions

    def read_version(self, venue_id: str, version: str, actor: Actor) -> Guide:
        """Load one version for preview."""
        venue = self.venues.get(venue_id)
        require_editor(venue, actor)
        _checked_version(version)
        with _blob_errors("version read", venue_id):
            if not self.blobs.exists(version_path(venue_id, version)):
                raise NotFound(f"Version not found: {version}")
        return self._load_version(venue, version)

    def delete_version(self, venue_id: str, version: str, actor: Actor) -> DeletedVersion:
        """Delete a stored version. The live version cannot be deleted."""
        venue = self.venues.get(venue_id)
        require_editor(venue, actor)
        _checked_version(version)

        if version == venue.live_version:
            raise Conflict("Cannot delete the live version. Publish another version first.")

        path = version_path(venue_id, version)
        with _blob_errors("version delete", venue_id):
            if not self.blobs.exists(path):
                raise NotFound(f"Version not found: {version}")

            # Drop the pointer before the artifact so nothing references a missing file
            draft_cleared = False
            if venue.draft_version == version:
                draft_cleared = self.venues.clear_draft_version(venue_id, version)

            try:
                self.blobs.delete(path)
            except BlobNotFound:
                logger.info("Version already deleted", extra={"venue_id": venue_id, "version": version})

        logger.info(
            f"Deleted version {version} by {actor.normalized_email}",
            extra={"venue_id": venue_id, "user": actor.normalized_email, "version": version},
        )
        return DeletedVersion(deleted_version=version, draft_cleared=draft_cleared)

    # ── Public read ──

    def public_guide(self, slug: str) -> Guide:
        """Fetch and re-validate the published guide for ``slug``."""
        venue = self.venues.find_by_slug(slug)
        if venue is None or not venue.live_version:
            raise NotFound("Guide not found")

        with _blob_errors("public read", venue.id):
            try:
                raw = self.blobs.get(public_guide_path(slug))
            except BlobNotFound as e:
                raise NotFound("Guide not found") from e

        validation = parse_guide_bytes(raw)
        if not isinstance(validation, GuideValid):
            logger.error(
                f"Public guide failed validation: {validation.errors[:5]}",
                extra={"venue_id": venue.id},
            )
            raise ValidationFailed("This guide could not be loaded", validation.errors)
        return validation.guide
