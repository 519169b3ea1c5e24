"""Guidepost - Venue API Routes."""

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from guidepost.api.deps import get_actor, get_context
from guidepost.context import AppContext
from guidepost.engine.editors import Actor
from guidepost.models.venue_models import VenueSnapshot, VenueView

router = APIRouter(prefix="/venues", tags=["Venues"])


# ── Request Models ──


class CreateVenueRequest(BaseModel):
    """Request body for POST /venues."""

    name: str
    slug: Optional[str] = None
    """Optional custom URL segment; derived from the name when omitted."""

    model_config = {
        "json_schema_extra": {"examples": [{"name": "City Museum", "slug": "city-museum"}]}
    }


class RenameVenueRequest(BaseModel):
    """Request body for PATCH /venues/{venue_id}."""

    name: str

    model_config = {"json_schema_extra": {"examples": [{"name": "City Museum of Art"}]}}


# ── Endpoints ──


@router.post("", response_model=VenueSnapshot, status_code=201)
def create_venue(
    body: CreateVenueRequest,
    actor: Actor = Depends(get_actor),
    ctx: AppContext = Depends(get_context),
):
    """Create a venue. The caller becomes its owner and first editor."""
    return ctx.venues.create_venue(body.name, actor, slug=body.slug)


@router.get("", response_model=List[VenueSnapshot])
def list_my_venues(
    actor: Actor = Depends(get_actor),
    ctx: AppContext = Depends(get_context),
):
    """Venues where the caller is an editor, most recently updated first."""
    return ctx.venues.list_venues_for(actor)


@router.get("/all", response_model=List[VenueSnapshot])
def list_all_venues(
    actor: Actor = Depends(get_actor),
    ctx: AppContext = Depends(get_context),
):
    """Every venue. Super admins only."""
    return ctx.venues.list_all_venues(actor)


@router.get("/{venue_id}", response_model=VenueSnapshot)
def get_venue(
    venue_id: str,
    actor: Actor = Depends(get_actor),
    ctx: AppContext = Depends(get_context),
):
    return ctx.venues.get_venue(venue_id, actor)


@router.get("/{venue_id}/state", response_model=VenueView)
def get_venue_state(
    venue_id: str,
    actor: Actor = Depends(get_actor),
    ctx: AppContext = Depends(get_context),
):
    """Venue plus its derived lifecycle state (empty, draft or published)."""
    return ctx.venues.get_venue_state(venue_id, actor)


@router.patch("/{venue_id}", response_model=VenueSnapshot)
def rename_venue(
    venue_id: str,
    body: RenameVenueRequest,
    actor: Actor = Depends(get_actor),
    ctx: AppContext = Depends(get_context),
):
    """Rename a venue. Its slug and public URL do not change."""
    return ctx.venues.rename_venue(venue_id, body.name, actor)


@router.delete("/{venue_id}", response_model=VenueSnapshot)
def delete_venue(
    venue_id: str,
    actor: Actor = Depends(get_actor),
    ctx: AppContext = Depends(get_context),
):
    """Delete a venue with its versions, uploads and public guide. Owner only."""
    return ctx.venues.delete_venue(venue_id, actor)
