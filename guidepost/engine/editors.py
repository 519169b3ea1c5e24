"""Guidepost - Editor Set & Authorization.

Who may mutate a venue, and the invariants on that set:
- between 1 and ``max_editors`` members, unique case-insensitively
- the last editor can never be removed
- only the owner (``created_by``) may remove the owner

The guards run inside the store transaction against the locked venue, so
two concurrent changes cannot both pass a check that only one may.
"""

import re
from dataclasses import dataclass

from guidepost.connectors.venue_store import VenueStore
from guidepost.core.errors import (
    Conflict,
    PermissionDenied,
    Unauthenticated,
    ValidationFailed,
)
from guidepost.core.logging import get_logger
from guidepost.models.venue_models import VenueSnapshot

logger = get_logger("editors")

EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, as supplied by the identity provider."""

    email: str
    privileged: bool = False

    @property
    def normalized_email(self) -> str:
        return self.email.strip().lower()


def require_editor(venue: VenueSnapshot, actor: Actor) -> None:
    """Raise unless ``actor`` may mutate ``venue``.

    Privileged (super-admin) users have support access to every venue.
    """
    if not actor.email:
        raise Unauthenticated("No email associated with account")
    if actor.privileged:
        return
    if not venue.has_editor(actor.email):
        raise PermissionDenied("Not an editor of this venue")


class EditorSet:
    """Add/remove operations on a venue's editor set."""

    def __init__(self, store: VenueStore, max_editors: int = 5):
        self.store = store
        self.max_editors = max_editors

    def add_editor(self, venue_id: str, email: str, actor: Actor) -> VenueSnapshot:
        normalized = (email or "").strip().lower()
        if not EMAIL_REGEX.match(normalized):
            raise ValidationFailed("Invalid email format", [f"email: {email!r} is not an email"])

        def guard(venue: VenueSnapshot) -> None:
            require_editor(venue, actor)
            if normalized in venue.editors:
                raise Conflict("This person is already an editor")
            if len(venue.editors) >= self.max_editors:
                raise ValidationFailed(
                    f"Maximum {self.max_editors} editors per venue",
                    [f"editors: already has {len(venue.editors)} members"],
                )

        snapshot = self.store.add_editor(venue_id, normalized, guard)
        logger.info(
            f"Editor added: {normalized} by {actor.normalized_email}",
            extra={"venue_id": venue_id, "user": actor.normalized_email},
        )
        return snapshot

    def remove_editor(self, venue_id: str, email: str, actor: Actor) -> VenueSnapshot:
        normalized = (email or "").strip().lower()

        def guard(venue: VenueSnapshot) -> None:
            require_editor(venue, actor)
            if normalized in venue.editors and len(venue.editors) <= 1:
                raise ValidationFailed(
                    "Cannot remove the last editor",
                    ["editors: a venue must always have at least one editor"],
                )
            if normalized == venue.created_by and actor.normalized_email != venue.created_by:
                raise PermissionDenied("Only the owner can remove the owner")

        snapshot = self.store.remove_editor(venue_id, normalized, guard)
        logger.info(
            f"Editor removed: {normalized} by {actor.normalized_email}",
            extra={"venue_id": venue_id, "user": actor.normalized_email},
        )
        return snapshot
