import pytest

from guidepost.core.errors import ValidationFailed
from guidepost.core.feed import VenueFeed
from guidepost.engine.venue_state import derive_state
from guidepost.models.venue_models import VenueState


def test_subscriber_sees_committed_changes(ctx, venue, owner):
    states = []
    unsubscribe = ctx.feed.subscribe(
        venue.id, lambda s: states.append(derive_state(s.live_version, s.draft_version))
    )

    ctx.store.set_draft_version(venue.id, "T1")
    ctx.store.mark_published(venue.id, "T1")
    ctx.store.set_draft_version(venue.id, "T2")

    assert states == [VenueState.DRAFT, VenueState.PUBLISHED, VenueState.DRAFT]
    unsubscribe()
    ctx.store.set_draft_version(venue.id, "T3")
    assert len(states) == 3
    assert ctx.feed.subscriber_count(venue.id) == 0


def test_editor_changes_are_published(ctx, venue, owner):
    seen = []
    ctx.feed.subscribe(venue.id, lambda s: seen.append(list(s.editors)))
    ctx.editors.add_editor(venue.id, "editor@example.com", owner)
    assert seen == [["owner@example.com", "editor@example.com"]]


def test_rejected_change_publishes_nothing(ctx, venue, owner):
    seen = []
    ctx.feed.subscribe(venue.id, seen.append)
    with pytest.raises(ValidationFailed):
        ctx.editors.remove_editor(venue.id, "owner@example.com", owner)
    assert seen == []


def test_only_matching_venue_is_notified(ctx, venue, owner):
    other = ctx.venues.create_venue("Other Hall", owner)
    seen = []
    ctx.feed.subscribe(other.id, seen.append)
    ctx.store.set_draft_version(venue.id, "T1")
    assert seen == []


def test_broken_subscriber_does_not_fail_the_write(ctx, venue):
    def explode(snapshot):
        raise RuntimeError("listener bug")

    seen = []
    ctx.feed.subscribe(venue.id, explode)
    ctx.feed.subscribe(venue.id, seen.append)

    snapshot = ctx.store.set_draft_version(venue.id, "T1")

    assert snapshot.draft_version == "T1"
    assert [s.draft_version for s in seen] == ["T1"]


def test_clear_drops_all_subscribers():
    feed = VenueFeed()
    feed.subscribe("a", lambda s: None)
    feed.subscribe("b", lambda s: None)
    feed.clear()
    assert feed.subscriber_count("a") == feed.subscriber_count("b") == 0
