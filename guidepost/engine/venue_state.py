"""Guidepost - Venue Lifecycle State Machine.

State is never stored. It is recomputed from the two version pointers on
every snapshot; pointer equality is the only signal that a draft has
already been promoted.
"""

from typing import Optional

from guidepost.engine.versions import version_path
from guidepost.models.venue_models import VenueSnapshot, VenueState, VenueView


def derive_state(live_version: Optional[str], draft_version: Optional[str]) -> VenueState:
    """Map (live, draft) pointers to a lifecycle state. Pure and total.

    - empty: neither pointer set
    - draft: a draft exists that differs from the live version
    - published: a live version exists and no newer draft
    """
    if not live_version and not draft_version:
        return VenueState.EMPTY

    if draft_version and (not live_version or draft_version != live_version):
        return VenueState.DRAFT

    if live_version:
        return VenueState.PUBLISHED

    return VenueState.EMPTY


def describe_venue(venue: VenueSnapshot) -> VenueView:
    """Snapshot plus derived state and the artifact paths a preview needs."""
    return VenueView(
        venue=venue,
        state=derive_state(venue.live_version, venue.draft_version),
        draft_path=version_path(venue.id, venue.draft_version) if venue.draft_version else None,
        live_path=version_path(venue.id, venue.live_version) if venue.live_version else None,
    )
