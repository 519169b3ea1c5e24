"""Guidepost - Editor Management & Usage Routes."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from guidepost.api.deps import get_actor, get_context
from guidepost.context import AppContext
from guidepost.engine.editors import Actor
from guidepost.models.usage_models import UsageCheck
from guidepost.models.venue_models import VenueSnapshot

router = APIRouter(tags=["Editors"])


class EditorRequest(BaseModel):
    email: str


@router.post("/venues/{venue_id}/editors", response_model=VenueSnapshot)
def add_editor(
    venue_id: str,
    body: EditorRequest,
    actor: Actor = Depends(get_actor),
    ctx: AppContext = Depends(get_context),
):
    return ctx.editors.add_editor(venue_id, body.email, actor)


@router.delete("/venues/{venue_id}/editors/{email}", response_model=VenueSnapshot)
def remove_editor(
    venue_id: str,
    email: str,
    actor: Actor = Depends(get_actor),
    ctx: AppContext = Depends(get_context),
):
    return ctx.editors.remove_editor(venue_id, email, actor)


@router.get("/usage", response_model=UsageCheck, tags=["Usage"])
def check_usage(
    actor: Actor = Depends(get_actor),
    ctx: AppContext = Depends(get_context),
):
    """Today's transform count and limit for the caller. Consumes nothing."""
    return ctx.usage.current_usage(actor.email, actor.privileged)
