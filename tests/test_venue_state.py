from datetime import datetime, timezone

import pytest

from guidepost.engine.venue_state import derive_state, describe_venue
from guidepost.models.venue_models import VenueSnapshot, VenueState, VenueStatus


@pytest.mark.parametrize(
    "live, draft, expected",
    [
        (None, None, VenueState.EMPTY),
        (None, "A", VenueState.DRAFT),
        (None, "B", VenueState.DRAFT),
        ("A", None, VenueState.PUBLISHED),
        ("A", "A", VenueState.PUBLISHED),
        ("A", "B", VenueState.DRAFT),
    ],
)
def test_state_table(live, draft, expected):
    assert derive_state(live, draft) is expected


def test_empty_strings_count_as_absent():
    assert derive_state("", "") is VenueState.EMPTY
    assert derive_state("A", "") is VenueState.PUBLISHED


def _snapshot(live=None, draft=None) -> VenueSnapshot:
    now = datetime(2026, 1, 28, tzinfo=timezone.utc)
    return VenueSnapshot(
        id="v1",
        name="City Museum",
        slug="city-museum",
        status=VenueStatus.PUBLISHED if live else VenueStatus.DRAFT,
        live_version=live,
        draft_version=draft,
        editors=["owner@example.com"],
        created_by="owner@example.com",
        created_at=now,
        updated_at=now,
    )


def test_new_venue_is_empty():
    view = describe_venue(_snapshot())
    assert view.state is VenueState.EMPTY
    assert view.draft_path is None and view.live_path is None


def test_describe_venue_resolves_paths():
    view = describe_venue(_snapshot(live="T1", draft="T2"))
    assert view.state is VenueState.DRAFT
    assert view.draft_path == "venues/v1/versions/T2.json"
    assert view.live_path == "venues/v1/versions/T1.json"
