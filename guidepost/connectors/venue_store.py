"""Guidepost - Venue Document Store.

Every mutation here is one database transaction: pointer updates are a
single UPDATE statement, editor-set changes lock the venue row, re-check
their invariants against the locked state, then write. Committed
snapshots are pushed to the ``VenueFeed``.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator, List, Optional

from sqlalchemy import delete, func, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from guidepost.core.errors import Conflict, GuideError, InternalError, NotFound
from guidepost.core.feed import VenueFeed
from guidepost.core.logging import get_logger
from guidepost.models.transform_models import TransformRun
from guidepost.models.venue_models import (
    Venue,
    VenueEditor,
    VenueSnapshot,
    VenueStatus,
)

logger = get_logger("venue_store")

# Runs inside the transaction against the locked venue; raises to abort
EditorGuard = Callable[[VenueSnapshot], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VenueStore:
    """Transactional access to venue records and their editor sets."""

    def __init__(self, engine: Engine, feed: Optional[VenueFeed] = None):
        self.engine = engine
        self.feed = feed or VenueFeed()

    @contextmanager
    def _session(self, venue_id: Optional[str] = None) -> Iterator[Session]:
        try:
            with Session(self.engine) as session:
                yield session
        except GuideError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Venue store failure: {e}", extra={"venue_id": venue_id})
            raise InternalError() from e

    def _snapshot(self, session: Session, venue_id: str) -> VenueSnapshot:
        venue = session.exec(
            select(Venue).where(Venue.id == venue_id).execution_options(populate_existing=True)
        ).first()
        if venue is None:
            raise NotFound(f"Venue not found: {venue_id}")
        editors = session.exec(
            select(VenueEditor).where(VenueEditor.venue_id == venue_id)
        ).all()
        return VenueSnapshot.from_rows(venue, list(editors))

    def _locked_snapshot(self, session: Session, venue_id: str) -> VenueSnapshot:
        """Row-lock the venue (PostgreSQL) before reading the editor set."""
        venue = session.exec(
            select(Venue).where(Venue.id == venue_id).with_for_update()
        ).first()
        if venue is None:
            raise NotFound(f"Venue not found: {venue_id}")
        return self._snapshot(session, venue_id)

    def _touch(self, session: Session, venue_id: str) -> None:
        session.connection().execute(
            update(Venue).where(Venue.id == venue_id).values(updated_at=_utcnow())
        )

    def _commit_and_publish(self, session: Session, venue_id: str) -> VenueSnapshot:
        snapshot = self._snapshot(session, venue_id)
        session.commit()
        self.feed.publish(snapshot)
        return snapshot

    # ── Reads ──

    def get(self, venue_id: str) -> VenueSnapshot:
        with self._session(venue_id) as session:
            return self._snapshot(session, venue_id)

    def find_by_slug(self, slug: str) -> Optional[VenueSnapshot]:
        with self._session() as session:
            venue = session.exec(select(Venue).where(Venue.slug == slug)).first()
            if venue is None:
                return None
            return self._snapshot(session, venue.id)

    def list_for_member(self, email: str) -> List[VenueSnapshot]:
        """All venues where ``email`` is in the editor set."""
        with self._session() as session:
            venue_ids = session.exec(
                select(VenueEditor.venue_id).where(VenueEditor.email == email.strip().lower())
            ).all()
            snapshots = [self._snapshot(session, vid) for vid in venue_ids]
        return sorted(snapshots, key=lambda s: s.updated_at, reverse=True)

    def list_all(self) -> List[VenueSnapshot]:
        with self._session() as session:
            venue_ids = session.exec(
                select(Venue.id).order_by(Venue.updated_at.desc())  # type: ignore
            ).all()
            return [self._snapshot(session, vid) for vid in venue_ids]

    # ── Writes ──

    def create(self, name: str, slug: str, owner_email: str) -> VenueSnapshot:
        owner = owner_email.strip().lower()
        with self._session() as session:
            venue = Venue(name=name, slug=slug, created_by=owner)
            session.add(venue)
            try:
                session.flush()
            except IntegrityError as e:
                session.rollback()
                raise Conflict("This URL slug is already taken") from e
            session.add(VenueEditor(venue_id=venue.id, email=owner, position=0))
            session.flush()
            return self._commit_and_publish(session, venue.id)

    def rename(self, venue_id: str, name: str) -> VenueSnapshot:
        with self._session(venue_id) as session:
            result = session.connection().execute(
                update(Venue).where(Venue.id == venue_id).values(name=name, updated_at=_utcnow())
            )
            if result.rowcount == 0:
                raise NotFound(f"Venue not found: {venue_id}")
            return self._commit_and_publish(session, venue_id)

    def delete(self, venue_id: str, guard: EditorGuard) -> VenueSnapshot:
        """Remove the venue with its editor set and run history.

        Returns the last committed snapshot; subscribers are told the
        venue is gone.
        """
        with self._session(venue_id) as session:
            current = self._locked_snapshot(session, venue_id)
            guard(current)
            connection = session.connection()
            connection.execute(delete(VenueEditor).where(VenueEditor.venue_id == venue_id))
            connection.execute(delete(TransformRun).where(TransformRun.venue_id == venue_id))
            connection.execute(delete(Venue).where(Venue.id == venue_id))
            session.commit()
        self.feed.publish_removed(venue_id)
        return current

    def set_draft_version(self, venue_id: str, version: str) -> VenueSnapshot:
        with self._session(venue_id) as session:
            result = session.connection().execute(
                update(Venue)
                .where(Venue.id == venue_id)
                .values(draft_version=version, updated_at=_utcnow())
            )
            if result.rowcount == 0:
                raise NotFound(f"Venue not found: {venue_id}")
            return self._commit_and_publish(session, venue_id)

    def mark_published(self, venue_id: str, live_version: str) -> VenueSnapshot:
        """Point ``live_version`` at a version and flip status in one UPDATE."""
        with self._session(venue_id) as session:
            result = session.connection().execute(
                update(Venue)
                .where(Venue.id == venue_id)
                .values(
                    live_version=live_version,
                    status=VenueStatus.PUBLISHED.value,
                    updated_at=_utcnow(),
                )
            )
            if result.rowcount == 0:
                raise NotFound(f"Venue not found: {venue_id}")
            return self._commit_and_publish(session, venue_id)

    def clear_draft_version(self, venue_id: str, version: str) -> bool:
        """Drop the draft pointer only if it still names ``version``."""
        with self._session(venue_id) as session:
            result = session.connection().execute(
                update(Venue)
                .where(Venue.id == venue_id, Venue.draft_version == version)
                .values(draft_version=None, updated_at=_utcnow())
            )
            if result.rowcount == 0:
                session.rollback()
                return False
            self._commit_and_publish(session, venue_id)
            return True

    def add_editor(self, venue_id: str, email: str, guard: EditorGuard) -> VenueSnapshot:
        normalized = email.strip().lower()
        with self._session(venue_id) as session:
            current = self._locked_snapshot(session, venue_id)
            guard(current)
            next_position = session.exec(
                select(func.coalesce(func.max(VenueEditor.position), -1)).where(
                    VenueEditor.venue_id == venue_id
                )
            ).one()
            session.add(
                VenueEditor(venue_id=venue_id, email=normalized, position=next_position + 1)
            )
            try:
                session.flush()
            except IntegrityError as e:
                session.rollback()
                raise Conflict("This person is already an editor") from e
            self._touch(session, venue_id)
            return self._commit_and_publish(session, venue_id)

    def remove_editor(self, venue_id: str, email: str, guard: EditorGuard) -> VenueSnapshot:
        normalized = email.strip().lower()
        with self._session(venue_id) as session:
            current = self._locked_snapshot(session, venue_id)
            guard(current)
            row = session.get(VenueEditor, (venue_id, normalized))
            if row is None:
                raise NotFound(f"{normalized} is not an editor of this venue")
            session.delete(row)
            session.flush()
            self._touch(session, venue_id)
            return self._commit_and_publish(session, venue_id)
