import pytest

from conftest import EDITOR, OWNER, STRANGER
from guidepost.core.errors import (
    Conflict,
    NotFound,
    PermissionDenied,
    Unauthenticated,
    ValidationFailed,
)
from guidepost.engine.editors import Actor, require_editor


def test_owner_is_sole_initial_editor(venue):
    assert venue.editors == [OWNER]
    assert venue.created_by == OWNER


def test_add_editor_appends_in_order(ctx, venue, owner):
    ctx.editors.add_editor(venue.id, "b@example.com", owner)
    snapshot = ctx.editors.add_editor(venue.id, "a@example.com", owner)
    assert snapshot.editors == [OWNER, "b@example.com", "a@example.com"]


def test_add_editor_normalizes_email(ctx, venue, owner):
    snapshot = ctx.editors.add_editor(venue.id, "  Editor@Example.COM ", owner)
    assert snapshot.editors == [OWNER, EDITOR]


def test_duplicate_email_rejected_case_insensitively(ctx, venue, owner):
    ctx.editors.add_editor(venue.id, EDITOR, owner)
    with pytest.raises(Conflict):
        ctx.editors.add_editor(venue.id, EDITOR.upper(), owner)
    assert ctx.store.get(venue.id).editors == [OWNER, EDITOR]


def test_sixth_editor_rejected(ctx, venue, owner):
    for i in range(4):
        ctx.editors.add_editor(venue.id, f"e{i}@example.com", owner)
    assert len(ctx.store.get(venue.id).editors) == 5
    with pytest.raises(ValidationFailed):
        ctx.editors.add_editor(venue.id, "sixth@example.com", owner)
    assert len(ctx.store.get(venue.id).editors) == 5


@pytest.mark.parametrize("email", ["", "not-an-email", "a@b", "two words@example.com"])
def test_invalid_email_rejected(ctx, venue, owner, email):
    with pytest.raises(ValidationFailed):
        ctx.editors.add_editor(venue.id, email, owner)


def test_non_editor_cannot_add(ctx, venue, stranger):
    with pytest.raises(PermissionDenied):
        ctx.editors.add_editor(venue.id, STRANGER, stranger)
    assert ctx.store.get(venue.id).editors == [OWNER]


def test_missing_identity_is_unauthenticated(ctx, venue):
    with pytest.raises(Unauthenticated):
        ctx.editors.add_editor(venue.id, EDITOR, Actor(""))


def test_unknown_venue_not_found(ctx, owner):
    with pytest.raises(NotFound):
        ctx.editors.add_editor("missing", EDITOR, owner)


def test_privileged_user_can_manage_any_venue(ctx, venue, admin):
    snapshot = ctx.editors.add_editor(venue.id, EDITOR, admin)
    assert EDITOR in snapshot.editors


def test_last_editor_cannot_remove_themselves(ctx, venue, owner):
    with pytest.raises(ValidationFailed):
        ctx.editors.remove_editor(venue.id, OWNER, owner)
    assert ctx.store.get(venue.id).editors == [OWNER]


def test_non_owner_cannot_remove_owner(ctx, venue, owner):
    ctx.editors.add_editor(venue.id, EDITOR, owner)
    with pytest.raises(PermissionDenied):
        ctx.editors.remove_editor(venue.id, OWNER, Actor(EDITOR))
    assert ctx.store.get(venue.id).editors == [OWNER, EDITOR]


def test_owner_can_remove_other_editor(ctx, venue, owner):
    ctx.editors.add_editor(venue.id, EDITOR, owner)
    snapshot = ctx.editors.remove_editor(venue.id, EDITOR, owner)
    assert snapshot.editors == [OWNER]


def test_editor_can_remove_themselves(ctx, venue, owner):
    ctx.editors.add_editor(venue.id, EDITOR, owner)
    snapshot = ctx.editors.remove_editor(venue.id, EDITOR, Actor(EDITOR))
    assert snapshot.editors == [OWNER]


def test_owner_can_leave_when_others_remain(ctx, venue, owner):
    ctx.editors.add_editor(venue.id, EDITOR, owner)
    snapshot = ctx.editors.remove_editor(venue.id, OWNER, owner)
    assert snapshot.editors == [EDITOR]
    assert snapshot.created_by == OWNER


def test_removed_editor_loses_access(ctx, venue, owner):
    ctx.editors.add_editor(venue.id, EDITOR, owner)
    ctx.editors.remove_editor(venue.id, EDITOR, owner)
    with pytest.raises(PermissionDenied):
        require_editor(ctx.store.get(venue.id), Actor(EDITOR))


def test_removing_non_member_not_found(ctx, venue, owner):
    ctx.editors.add_editor(venue.id, EDITOR, owner)
    with pytest.raises(NotFound):
        ctx.editors.remove_editor(venue.id, STRANGER, owner)


def test_require_editor_is_case_insensitive(venue):
    require_editor(venue, Actor("OWNER@example.com"))
