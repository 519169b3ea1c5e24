"""Guidepost - Version & Publish Models."""

from typing import Optional

from pydantic import BaseModel


class PublishOutcome(BaseModel):
    """Result of making a version live."""

    public_url: str
    live_version: str
    slug: str


class VersionInfo(BaseModel):
    """One stored guide version, as listed in version history."""

    timestamp: str
    path: str
    size: int = 0
    created: Optional[str] = None
    is_live: bool = False
    is_draft: bool = False


class DeletedVersion(BaseModel):
    deleted_version: str
    draft_cleared: bool = False
