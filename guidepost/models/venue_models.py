"""Guidepost - Venue Models."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel
from sqlmodel import SQLModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VenueStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class VenueState(str, Enum):
    """Lifecycle state derived from the two version pointers."""

    EMPTY = "empty"  # nothing uploaded yet
    DRAFT = "draft"  # unpublished draft waiting for review
    PUBLISHED = "published"  # live guide, no newer draft


# ─────────────────────────────────────────────
# DATABASE MODELS
# ─────────────────────────────────────────────


class Venue(SQLModel, table=True):
    """One physical location's guide record.

    ``live_version`` only ever changes through publish; ``draft_version``
    only through a successful transform (or deleting the draft artifact).
    """

    __tablename__ = "venues"

    id: str = Field(default_factory=lambda: uuid4().hex, primary_key=True)
    name: str = Field(description="Display name chosen by the owner")
    slug: str = Field(index=True, unique=True, description="Public URL segment")
    status: str = Field(default=VenueStatus.DRAFT.value, description="draft | published")
    live_version: Optional[str] = Field(default=None, description="Publicly served version")
    draft_version: Optional[str] = Field(default=None, description="Latest transform output")
    created_by: str = Field(index=True, description="Owner email, immutable")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class VenueEditor(SQLModel, table=True):
    """Membership of one user in one venue's editor set.

    Emails are stored lower-cased so the primary key enforces
    case-insensitive uniqueness.
    """

    __tablename__ = "venue_editors"

    venue_id: str = Field(foreign_key="venues.id", primary_key=True)
    email: str = Field(primary_key=True, index=True)
    position: int = Field(default=0, description="Insertion order within the set")
    added_at: datetime = Field(default_factory=_utcnow)


# ─────────────────────────────────────────────
# PYDANTIC SCHEMAS - what callers see
# ─────────────────────────────────────────────


class VenueSnapshot(BaseModel):
    """Immutable view of a venue and its editors at one commit."""

    id: str
    name: str
    slug: str
    status: VenueStatus
    live_version: Optional[str] = None
    draft_version: Optional[str] = None
    editors: List[str]
    created_by: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_rows(cls, venue: Venue, editors: List[VenueEditor]) -> "VenueSnapshot":
        ordered = sorted(editors, key=lambda e: e.position)
        return cls(
            id=venue.id,
            name=venue.name,
            slug=venue.slug,
            status=VenueStatus(venue.status),
            live_version=venue.live_version,
            draft_version=venue.draft_version,
            editors=[e.email for e in ordered],
            created_by=venue.created_by,
            created_at=venue.created_at,
            updated_at=venue.updated_at,
        )

    def has_editor(self, email: str) -> bool:
        return email.strip().lower() in self.editors


class VenueView(BaseModel):
    """Snapshot plus derived lifecycle state, as returned by the API."""

    venue: VenueSnapshot
    state: VenueState
    draft_path: Optional[str] = None
    live_path: Optional[str] = None
