import asyncio
import json

import pytest
from sqlmodel import SQLModel

from conftest import OWNER, PDF_BYTES, STRANGER, ScriptedProvider, run, valid_guide
from guidepost.ai.base_provider import TransformProviderError
from guidepost.core.errors import (
    Conflict,
    DeadlineExceeded,
    InternalError,
    NotFound,
    PermissionDenied,
    RateLimitExceeded,
    ValidationFailed,
)
from guidepost.engine.editors import Actor
from guidepost.engine.venue_state import derive_state
from guidepost.engine.versions import version_path, versions_prefix
from guidepost.models.transform_models import TransformStatus
from guidepost.models.venue_models import VenueState, VenueStatus


def _transform(ctx, venue, upload, actor, **kwargs):
    return run(ctx.transforms.transform(venue.id, upload.upload_path, actor, **kwargs))


# ── Upload intake ──


def test_register_upload_stores_pdf_and_opens_run(ctx, venue, owner, blobs):
    receipt = ctx.transforms.register_upload(venue.id, PDF_BYTES, "application/pdf", owner)
    assert receipt.upload_path.startswith(f"uploads/{venue.id}/")
    assert receipt.upload_path.endswith(".pdf")
    assert blobs.get(receipt.upload_path) == PDF_BYTES
    assert receipt.usage_today == 0 and receipt.usage_limit == 20

    run_record = ctx.transforms.get_run(venue.id, receipt.run_id, owner)
    assert run_record.status == TransformStatus.UPLOADED.value
    assert run_record.progress == 0


@pytest.mark.parametrize("content_type", ["image/png", "", "application/json"])
def test_register_upload_rejects_non_pdf(ctx, venue, owner, content_type):
    with pytest.raises(ValidationFailed):
        ctx.transforms.register_upload(venue.id, PDF_BYTES, content_type, owner)


def test_register_upload_rejects_oversized_file(ctx, venue, owner):
    ctx.transforms.max_upload_bytes = 16
    with pytest.raises(ValidationFailed) as exc:
        ctx.transforms.register_upload(venue.id, PDF_BYTES, "application/pdf", owner)
    assert "too large" in exc.value.message


def test_register_upload_requires_editor(ctx, venue, stranger):
    with pytest.raises(PermissionDenied):
        ctx.transforms.register_upload(venue.id, PDF_BYTES, "application/pdf", stranger)


# ── Happy path ──


def test_transform_sets_draft_version(ctx, venue, upload, owner, blobs, provider):
    outcome = _transform(ctx, venue, upload, owner, run_id=upload.run_id)

    assert outcome.run_id == upload.run_id
    assert outcome.output_path == version_path(venue.id, outcome.version)
    assert outcome.usage_today == 1 and outcome.usage_limit == 20
    assert outcome.is_unlimited is False
    assert outcome.suggestions == valid_guide()["suggestions"]
    assert outcome.tokens_used == 1234 and outcome.provider == "scripted"
    assert provider.calls == 1

    stored = json.loads(blobs.get(outcome.output_path))
    assert stored["venue"]["name"] == "City Museum"
    assert stored["areas"][0]["details"][0]["level"] == "high"

    snapshot = ctx.store.get(venue.id)
    assert snapshot.draft_version == outcome.version
    assert snapshot.live_version is None
    assert derive_state(snapshot.live_version, snapshot.draft_version) is VenueState.DRAFT

    record = ctx.transforms.get_run(venue.id, upload.run_id, owner)
    assert record.status == TransformStatus.READY.value
    assert record.progress == 100
    assert record.version == outcome.version


def test_progress_is_reported_in_order(ctx, venue, upload, owner):
    seen = []
    _transform(ctx, venue, upload, owner, on_progress=lambda status, pct: seen.append((status, pct)))
    assert seen == [
        (TransformStatus.UPLOADED, 0),
        (TransformStatus.EXTRACTING, 20),
        (TransformStatus.ANALYSING, 40),
        (TransformStatus.GENERATING, 70),
        (TransformStatus.READY, 100),
    ]


def test_each_attempt_gets_a_new_later_version(ctx, venue, upload, owner):
    first = _transform(ctx, venue, upload, owner)
    second = _transform(ctx, venue, upload, owner)
    assert second.version > first.version
    assert second.run_id != first.run_id
    assert second.usage_today == 2
    assert ctx.store.get(venue.id).draft_version == second.version


def test_finished_run_is_not_reused(ctx, venue, upload, owner):
    first = _transform(ctx, venue, upload, owner, run_id=upload.run_id)
    second = _transform(ctx, venue, upload, owner, run_id=upload.run_id)
    assert first.run_id == upload.run_id
    assert second.run_id != upload.run_id


def test_transform_after_publish_keeps_published_status(ctx, venue, upload, owner):
    first = _transform(ctx, venue, upload, owner)
    ctx.publisher.publish(venue.id, first.output_path, owner)
    second = _transform(ctx, venue, upload, owner)

    snapshot = ctx.store.get(venue.id)
    assert snapshot.status is VenueStatus.PUBLISHED
    assert snapshot.live_version == first.version
    assert snapshot.draft_version == second.version
    assert derive_state(snapshot.live_version, snapshot.draft_version) is VenueState.DRAFT


def test_privileged_transform_is_unlimited(ctx, venue, upload, admin):
    outcome = _transform(ctx, venue, upload, admin)
    assert outcome.is_unlimited is True
    assert ctx.usage.current_usage(admin.email).usage_today == 0


# ── Failures ──


def test_non_editor_rejected_without_consuming_quota(ctx, venue, upload, stranger, provider):
    with pytest.raises(PermissionDenied):
        _transform(ctx, venue, upload, stranger)
    assert ctx.usage.current_usage(STRANGER).usage_today == 0
    assert provider.calls == 0


def test_rate_limited_user_sees_usage_and_count_is_unchanged(ctx, venue, upload, owner, provider):
    for _ in range(20):
        ctx.usage.check_and_increment(OWNER)

    with pytest.raises(RateLimitExceeded) as exc:
        _transform(ctx, venue, upload, owner, run_id=upload.run_id)

    assert exc.value.usage_today == 20
    assert exc.value.usage_limit == 20
    assert exc.value.to_dict()["usage_today"] == 20
    assert ctx.usage.current_usage(OWNER).usage_today == 20
    assert provider.calls == 0
    assert ctx.store.get(venue.id).draft_version is None

    record = ctx.transforms.get_run(venue.id, upload.run_id, owner)
    assert record.status == TransformStatus.FAILED.value
    assert record.error_kind == "rate_limit_exceeded"


def test_timeout_is_deadline_exceeded_and_consumes_quota(ctx, venue, upload, owner, blobs):
    ctx.transforms.provider = ScriptedProvider(delay=2.0)
    ctx.transforms.timeout_seconds = 0.05

    with pytest.raises(DeadlineExceeded):
        _transform(ctx, venue, upload, owner, run_id=upload.run_id)

    assert ctx.usage.current_usage(OWNER).usage_today == 1
    assert ctx.store.get(venue.id).draft_version is None
    assert blobs.list(versions_prefix(venue.id)) == []
    record = ctx.transforms.get_run(venue.id, upload.run_id, owner)
    assert record.status == TransformStatus.FAILED.value
    assert record.error_kind == "deadline_exceeded"


def test_invalid_provider_output_is_not_persisted(ctx, venue, upload, owner, blobs):
    bad = valid_guide()
    bad["areas"][0]["details"][0]["level"] = "extreme"
    ctx.transforms.provider = ScriptedProvider(data=bad)

    with pytest.raises(ValidationFailed) as exc:
        _transform(ctx, venue, upload, owner)

    assert any("level" in e for e in exc.value.errors)
    assert blobs.list(versions_prefix(venue.id)) == []
    assert ctx.store.get(venue.id).draft_version is None
    assert ctx.usage.current_usage(OWNER).usage_today == 1


def test_provider_error_is_internal_with_safe_message(ctx, venue, upload, owner):
    ctx.transforms.provider = ScriptedProvider(
        error=TransformProviderError("Gemini generation failed: 500 secret-key-abc")
    )
    with pytest.raises(InternalError) as exc:
        _transform(ctx, venue, upload, owner)
    assert "secret-key-abc" not in exc.value.message
    assert ctx.store.get(venue.id).draft_version is None


def test_unexpected_exception_is_internal(ctx, venue, upload, owner):
    ctx.transforms.provider = ScriptedProvider(error=RuntimeError("boom"))
    with pytest.raises(InternalError) as exc:
        _transform(ctx, venue, upload, owner)
    assert "boom" not in exc.value.message


def test_missing_upload_not_found_and_free(ctx, venue, owner, provider):
    with pytest.raises(NotFound):
        run(ctx.transforms.transform(venue.id, f"uploads/{venue.id}/gone.pdf", owner))
    assert ctx.usage.current_usage(OWNER).usage_today == 0
    assert provider.calls == 0


def test_upload_from_other_venue_rejected(ctx, venue, owner):
    other = ctx.venues.create_venue("Other Hall", owner)
    receipt = ctx.transforms.register_upload(other.id, PDF_BYTES, "application/pdf", owner)
    with pytest.raises(ValidationFailed):
        run(ctx.transforms.transform(venue.id, receipt.upload_path, owner))


def test_usage_store_failure_fails_closed(ctx, venue, upload, owner, engine, provider):
    SQLModel.metadata.tables["usage_records"].drop(engine)
    with pytest.raises(InternalError):
        _transform(ctx, venue, upload, owner)
    assert provider.calls == 0
    assert ctx.store.get(venue.id).draft_version is None


def test_no_provider_configured(ctx, venue, upload, owner):
    ctx.transforms.provider = None
    with pytest.raises(InternalError):
        _transform(ctx, venue, upload, Actor(OWNER))


def test_upload_path_cannot_climb_into_other_venue(ctx, venue, owner, provider):
    curator = Actor("curator@otherhall.org")
    other = ctx.venues.create_venue("Other Hall", curator)
    receipt = ctx.transforms.register_upload(other.id, PDF_BYTES, "application/pdf", curator)
    upload_id = receipt.upload_path.rsplit("/", 1)[-1]

    with pytest.raises(ValidationFailed):
        run(ctx.transforms.transform(venue.id, f"uploads/{venue.id}/../{other.id}/{upload_id}", owner))

    assert provider.calls == 0
    assert ctx.usage.current_usage(OWNER).usage_today == 0
    assert ctx.store.get(venue.id).draft_version is None


def test_double_submit_of_one_run_starts_one_attempt(ctx, venue, upload, owner, blobs):
    ctx.transforms.provider = ScriptedProvider(delay=0.05)

    async def both():
        return await asyncio.gather(
            ctx.transforms.transform(venue.id, upload.upload_path, owner, run_id=upload.run_id),
            ctx.transforms.transform(venue.id, upload.upload_path, owner, run_id=upload.run_id),
            return_exceptions=True,
        )

    results = run(both())

    outcomes = [r for r in results if not isinstance(r, Exception)]
    errors = [r for r in results if isinstance(r, Exception)]
    assert len(outcomes) == 1 and outcomes[0].run_id == upload.run_id
    assert len(errors) == 1 and isinstance(errors[0], Conflict)
    assert ctx.transforms.provider.calls == 1
    assert ctx.usage.current_usage(OWNER).usage_today == 1
    assert len(blobs.list(versions_prefix(venue.id))) == 1
    assert ctx.transforms.get_run(venue.id, upload.run_id, owner).status == TransformStatus.READY.value


def test_run_cannot_be_pointed_at_another_upload(ctx, venue, upload, owner, provider):
    second = ctx.transforms.register_upload(venue.id, PDF_BYTES, "application/pdf", owner)
    with pytest.raises(ValidationFailed):
        run(ctx.transforms.transform(venue.id, second.upload_path, owner, run_id=upload.run_id))
    assert provider.calls == 0


def test_taken_version_id_is_skipped_not_overwritten(ctx, venue, upload, owner, blobs):
    ctx.store.set_draft_version(venue.id, "2999-01-01T00:00:00.000Z")
    taken = version_path(venue.id, "2999-01-01T00:00:00.001Z")
    blobs.put(taken, b"written by another worker")

    outcome = _transform(ctx, venue, upload, owner)

    assert outcome.version == "2999-01-01T00:00:00.002Z"
    assert blobs.get(taken) == b"written by another worker"
    assert ctx.store.get(venue.id).draft_version == outcome.version
