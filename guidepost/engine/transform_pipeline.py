"""Guidepost - Transform Pipeline Orchestrator.

Runs one transform attempt:
  authorize → quota → fetch upload → provider (bounded) → validate → store version → point draft

Each attempt is independent: fresh quota check, fresh version id. Nothing
is retried here; the caller starts a new attempt. The quota unit taken in
the quota step is kept whatever happens afterwards, timeouts included.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple
from uuid import uuid4

from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from guidepost.ai.base_provider import TransformProvider, TransformProviderError
from guidepost.connectors.storage.base import BlobExists, BlobNotFound, BlobStore
from guidepost.connectors.venue_store import VenueStore
from guidepost.core.errors import (
    Conflict,
    DeadlineExceeded,
    GuideError,
    InternalError,
    NotFound,
    RateLimitExceeded,
    ValidationFailed,
)
from guidepost.core.logging import get_logger
from guidepost.engine.editors import Actor, require_editor
from guidepost.engine.rate_limiter import UsageTracker
from guidepost.engine.versions import (
    new_version_timestamp,
    parse_upload_path,
    upload_path as build_upload_path,
    version_path,
)
from guidepost.models.guide_models import GuideValid, guide_to_json, validate_guide
from guidepost.models.transform_models import (
    PROGRESS,
    TransformOutcome,
    TransformRun,
    TransformStatus,
    UploadReceipt,
)
from guidepost.models.venue_models import VenueSnapshot

logger = get_logger("engine.transform")

PDF_CONTENT_TYPES = {"application/pdf"}
VERSION_CACHE_CONTROL = "public, max-age=31536000"  # versions are immutable
MAX_VERSION_ATTEMPTS = 100

ProgressCallback = Callable[[TransformStatus, int], None]


class TransformOrchestrator:
    """Turns an uploaded PDF into a new draft guide version."""

    def __init__(
        self,
        engine: Engine,
        venues: VenueStore,
        blobs: BlobStore,
        usage: UsageTracker,
        provider: Optional[TransformProvider],
        timeout_seconds: float = 540.0,
        max_upload_bytes: int = 10 * 1024 * 1024,
    ):
        self.engine = engine
        self.venues = venues
        self.blobs = blobs
        self.usage = usage
        self.provider = provider
        self.timeout_seconds = timeout_seconds
        self.max_upload_bytes = max_upload_bytes

    @property
    def provider_name(self) -> Optional[str]:
        return self.provider.name if self.provider is not None else None

    # ── Run Records ──

    def _create_run(
        self, venue_id: str, actor: Actor, upload: str, claimed: bool = True
    ) -> TransformRun:
        try:
            with Session(self.engine) as session:
                run = TransformRun(
                    venue_id=venue_id,
                    user_email=actor.normalized_email,
                    upload_path=upload,
                    provider=self.provider_name,
                    claimed=claimed,
                )
                session.add(run)
                session.commit()
                session.refresh(run)
                return run
        except SQLAlchemyError as e:
            logger.error(f"Could not create transform run: {e}", extra={"venue_id": venue_id})
            raise InternalError() from e

    def _claim_run(self, run_id: str) -> bool:
        """Mark a registered run as taken. Only one attempt ever wins."""
        try:
            with Session(self.engine) as session:
                result = session.connection().execute(
                    update(TransformRun)
                    .where(TransformRun.id == run_id, TransformRun.claimed == False)  # noqa: E712
                    .values(claimed=True, updated_at=datetime.now(timezone.utc))
                )
                session.commit()
                return result.rowcount == 1
        except SQLAlchemyError as e:
            logger.error(f"Could not claim transform run: {e}", extra={"run_id": run_id})
            raise InternalError() from e

    def _update_run(self, run_id: str, status: TransformStatus, **fields) -> None:
        try:
            with Session(self.engine) as session:
                run = session.get(TransformRun, run_id)
                if run is None:
                    return
                run.status = status.value
                run.progress = PROGRESS[status]
                for key, value in fields.items():
                    setattr(run, key, value)
                run.updated_at = datetime.now(timezone.utc)
                session.add(run)
                session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Could not update transform run: {e}", extra={"run_id": run_id})
            raise InternalError() from e

    def _fail_run(self, run_id: str, error: GuideError) -> None:
        try:
            self._update_run(
                run_id, TransformStatus.FAILED, error=error.message, error_kind=error.kind.value
            )
        except InternalError:
            # The original failure is what the caller needs to see
            logger.exception("Could not record transform failure", extra={"run_id": run_id})

    def get_run(self, venue_id: str, run_id: str, actor: Actor) -> TransformRun:
        require_editor(self.venues.get(venue_id), actor)
        try:
            with Session(self.engine) as session:
                run = session.get(TransformRun, run_id)
        except SQLAlchemyError as e:
            logger.error(f"Could not read transform run: {e}", extra={"run_id": run_id})
            raise InternalError() from e
        if run is None or run.venue_id != venue_id:
            raise NotFound(f"Transform run not found: {run_id}")
        return run

    # ── Upload Intake ──

    def register_upload(
        self,
        venue_id: str,
        pdf_bytes: bytes,
        content_type: str,
        actor: Actor,
    ) -> UploadReceipt:
        """Store an uploaded PDF and open a run for it. Consumes no quota."""
        venue = self.venues.get(venue_id)
        require_editor(venue, actor)

        mime = (content_type or "").split(";")[0].strip().lower()
        if mime not in PDF_CONTENT_TYPES:
            raise ValidationFailed("Only PDF files are accepted", [f"content_type: {mime or 'missing'}"])
        if not pdf_bytes:
            raise ValidationFailed("The uploaded file is empty", ["file: empty"])
        if len(pdf_bytes) > self.max_upload_bytes:
            limit_mb = self.max_upload_bytes // (1024 * 1024)
            raise ValidationFailed(
                f"File too large. Maximum size is {limit_mb}MB",
                [f"file: {len(pdf_bytes)} bytes exceeds {self.max_upload_bytes}"],
            )

        path = build_upload_path(venue_id, uuid4().hex)
        try:
            self.blobs.put(path, pdf_bytes, content_type="application/pdf")
        except Exception as e:
            logger.error(f"Upload write failed: {e}", extra={"venue_id": venue_id})
            raise InternalError() from e

        run = self._create_run(venue_id, actor, path, claimed=False)
        usage = self.usage.current_usage(actor.email, actor.privileged)
        logger.info(
            f"Upload accepted: {path} ({len(pdf_bytes)} bytes)",
            extra={"venue_id": venue_id, "user": actor.normalized_email, "run_id": run.id},
        )
        return UploadReceipt(
            upload_path=path,
            run_id=run.id,
            usage_today=usage.usage_today,
            usage_limit=usage.usage_limit,
            is_unlimited=usage.is_unlimited,
        )

    # ── Transform ──

    def _store_new_version(self, venue: VenueSnapshot, payload: bytes) -> Tuple[str, str]:
        """Write ``payload`` under a fresh version id later than both pointers.

        The write is create-only, so a concurrent writer that minted the
        same id makes this one move on to the next millisecond.
        """
        pointers = [v for v in (venue.draft_version, venue.live_version) if v]
        version = new_version_timestamp(max(pointers) if pointers else None)
        for _ in range(MAX_VERSION_ATTEMPTS):
            path = version_path(venue.id, version)
            try:
                self.blobs.put(
                    path,
                    payload,
                    content_type="application/json",
                    cache_control=VERSION_CACHE_CONTROL,
                    overwrite=False,
                )
                return version, path
            except BlobExists:
                version = new_version_timestamp(version)
        raise InternalError()

    async def transform(
        self,
        venue_id: str,
        upload: str,
        actor: Actor,
        run_id: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> TransformOutcome:
        """Execute one transform attempt. Raises a ``GuideError`` on failure."""
        started = time.monotonic()

        # ── Step 1: Authorization (no quota consumed on failure) ──
        venue = self.venues.get(venue_id)
        require_editor(venue, actor)

        try:
            upload_venue_id, _ = parse_upload_path(upload)
        except ValueError as e:
            raise ValidationFailed("Invalid upload path", [f"upload_path: {e}"]) from e
        if upload_venue_id != venue_id:
            raise ValidationFailed(
                "Upload does not belong to this venue", [f"upload_path: {upload!r}"]
            )
        if self.provider is None:
            logger.error("No transform provider configured", extra={"venue_id": venue_id})
            raise InternalError("Guide generation is not available right now.")

        if run_id is not None:
            run = self.get_run(venue_id, run_id, actor)
            if TransformStatus(run.status).is_terminal:
                # Every retry is a fresh attempt with its own run record
                run = self._create_run(venue_id, actor, upload)
            elif run.upload_path != upload:
                raise ValidationFailed(
                    "Upload does not match this transform run", [f"upload_path: {upload!r}"]
                )
            elif not self._claim_run(run.id):
                raise Conflict("This transform is already running")
        else:
            run = self._create_run(venue_id, actor, upload)
        run_id = run.id
        log_extra = {"venue_id": venue_id, "user": actor.normalized_email, "run_id": run_id}

        def report(status: TransformStatus, **fields) -> None:
            self._update_run(run_id, status, **fields)
            if on_progress is not None:
                on_progress(status, PROGRESS[status])

        try:
            report(TransformStatus.UPLOADED, upload_path=upload)
            if not self.blobs.exists(upload):
                raise NotFound("PDF file not found. Please upload it again.")

            # ── Step 2: Quota ──
            quota = self.usage.check_and_increment(actor.email, actor.privileged)
            if not quota.allowed:
                raise RateLimitExceeded(quota.usage_today, quota.usage_limit)

            # ── Step 3: Provider call, bounded ──
            report(TransformStatus.EXTRACTING)
            pdf_bytes = self.blobs.get(upload)

            report(TransformStatus.ANALYSING)
            try:
                result = await asyncio.wait_for(
                    self.provider.transform(pdf_bytes, venue.name),
                    timeout=self.timeout_seconds,
                )
            except asyncio.TimeoutError as e:
                raise DeadlineExceeded(timeout_seconds=self.timeout_seconds) from e
            except TransformProviderError as e:
                logger.error(f"Provider failed: {e}", extra=log_extra)
                raise InternalError(
                    "We couldn't turn that document into a guide. Please try again."
                ) from e

            # ── Step 4: Validate before anything is persisted ──
            report(TransformStatus.GENERATING, tokens_used=result.tokens_used)
            validation = validate_guide(result.data)
            if not isinstance(validation, GuideValid):
                logger.warning(
                    f"Provider output failed validation: {validation.errors[:5]}",
                    extra=log_extra,
                )
                raise ValidationFailed(
                    "The generated guide did not pass validation", validation.errors
                )
            guide = validation.guide

            # ── Step 5: Store the artifact, then move the draft pointer ──
            version, output_path = self._store_new_version(
                venue, guide_to_json(guide).encode("utf-8")
            )
            self.venues.set_draft_version(venue_id, version)

            report(TransformStatus.READY, output_path=output_path, version=version)
        except GuideError as e:
            self._fail_run(run_id, e)
            logger.warning(f"Transform failed ({e.kind.value}): {e.message}", extra=log_extra)
            raise
        except BlobNotFound as e:
            error = NotFound("PDF file not found. Please upload it again.")
            self._fail_run(run_id, error)
            raise error from e
        except Exception as e:
            logger.exception(f"Transform failed unexpectedly: {e}", extra=log_extra)
            error = InternalError()
            self._fail_run(run_id, error)
            raise error from e

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f"Transform complete: version={version}, tokens={result.tokens_used}, "
            f"provider={self.provider.name}",
            extra={**log_extra, "version": version, "duration_ms": duration_ms},
        )
        return TransformOutcome(
            run_id=run_id,
            output_path=output_path,
            version=version,
            usage_today=quota.usage_today,
            usage_limit=quota.usage_limit,
            is_unlimited=quota.is_unlimited,
            suggestions=list(guide.suggestions),
            tokens_used=result.tokens_used,
            provider=self.provider.name,
        )
