"""Guidepost - Venue Registry."""

import re
from typing import List, Optional

from guidepost.connectors.storage.base import BlobNotFound, BlobStore, BlobStoreError
from guidepost.connectors.venue_store import VenueStore
from guidepost.core.errors import PermissionDenied, Unauthenticated, ValidationFailed
from guidepost.core.logging import get_logger
from guidepost.engine.editors import Actor, require_editor
from guidepost.engine.venue_state import describe_venue
from guidepost.engine.versions import public_guide_path, uploads_prefix, versions_prefix
from guidepost.models.venue_models import VenueSnapshot, VenueView

logger = get_logger("venues")

MAX_NAME_LENGTH = 100
MAX_SLUG_LENGTH = 100

_NON_WORD = re.compile(r"[^\w\s-]")
_SEPARATORS = re.compile(r"[\s_-]+")


def slugify(text: str) -> str:
    """Lower-case, drop punctuation, collapse separators to single hyphens."""
    slug = _NON_WORD.sub("", (text or "").lower().strip())
    slug = _SEPARATORS.sub("-", slug)
    return slug.strip("-")


def _checked_name(name: str) -> str:
    trimmed = (name or "").strip()
    if not trimmed:
        raise ValidationFailed("Venue name is required", ["name: required"])
    if len(trimmed) > MAX_NAME_LENGTH:
        raise ValidationFailed(
            f"Venue name is too long (max {MAX_NAME_LENGTH} characters)",
            [f"name: {len(trimmed)} characters"],
        )
    return trimmed


class VenueRegistry:
    """Create, rename, delete and look up venues."""

    def __init__(self, store: VenueStore, blobs: Optional[BlobStore] = None):
        self.store = store
        self.blobs = blobs

    def create_venue(self, name: str, actor: Actor, slug: Optional[str] = None) -> VenueSnapshot:
        """Create a venue; the creator becomes owner and sole editor."""
        if not actor.email:
            raise Unauthenticated()

        trimmed = _checked_name(name)
        final_slug = slugify(slug or trimmed)
        if not final_slug:
            raise ValidationFailed("Could not generate a valid URL slug", ["slug: empty"])
        if len(final_slug) > MAX_SLUG_LENGTH:
            raise ValidationFailed("URL slug is too long", [f"slug: {len(final_slug)} characters"])

        venue = self.store.create(trimmed, final_slug, actor.normalized_email)
        logger.info(
            f"Venue created: slug={final_slug}",
            extra={"venue_id": venue.id, "user": actor.normalized_email},
        )
        return venue

    def rename_venue(self, venue_id: str, name: str, actor: Actor) -> VenueSnapshot:
        """Change the display name. The slug, and so the public URL, stays put."""
        require_editor(self.store.get(venue_id), actor)
        trimmed = _checked_name(name)
        venue = self.store.rename(venue_id, trimmed)
        logger.info(
            f"Venue renamed by {actor.normalized_email}",
            extra={"venue_id": venue_id, "user": actor.normalized_email},
        )
        return venue

    def delete_venue(self, venue_id: str, actor: Actor) -> VenueSnapshot:
        """Delete a venue and every stored artifact it owns.

        Only the owner (or a super admin) may delete. The database rows go
        first; blob cleanup afterwards is best effort and only logged.
        """

        def guard(venue: VenueSnapshot) -> None:
            require_editor(venue, actor)
            if not actor.privileged and actor.normalized_email != venue.created_by:
                raise PermissionDenied("Only the owner can delete a venue")

        removed = self.store.delete(venue_id, guard)
        if self.blobs is not None:
            self._remove_artifacts(removed)
        logger.info(
            f"Venue deleted: slug={removed.slug} by {actor.normalized_email}",
            extra={"venue_id": venue_id, "user": actor.normalized_email},
        )
        return removed

    def _remove_artifacts(self, venue: VenueSnapshot) -> None:
        try:
            paths = [public_guide_path(venue.slug)]
            paths += [b.path for b in self.blobs.list(versions_prefix(venue.id))]
            paths += [b.path for b in self.blobs.list(uploads_prefix(venue.id))]
        except BlobStoreError as e:
            logger.error(f"Could not list artifacts of deleted venue: {e}", extra={"venue_id": venue.id})
            return

        for path in paths:
            try:
                self.blobs.delete(path)
            except BlobNotFound:
                continue
            except BlobStoreError as e:
                logger.error(f"Orphaned blob {path}: {e}", extra={"venue_id": venue.id})

    def get_venue(self, venue_id: str, actor: Actor) -> VenueSnapshot:
        venue = self.store.get(venue_id)
        require_editor(venue, actor)
        return venue

    def get_venue_state(self, venue_id: str, actor: Actor) -> VenueView:
        return describe_venue(self.get_venue(venue_id, actor))

    def list_venues_for(self, actor: Actor) -> List[VenueSnapshot]:
        if not actor.email:
            raise Unauthenticated()
        return self.store.list_for_member(actor.normalized_email)

    def list_all_venues(self, actor: Actor) -> List[VenueSnapshot]:
        """Every venue, for super-admin support access."""
        if not actor.email:
            raise Unauthenticated()
        if not actor.privileged:
            raise PermissionDenied("Super admin access required")
        return self.store.list_all()
