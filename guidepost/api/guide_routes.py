"""Guidepost - Guide Transform & Publish Routes."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from guidepost.api.deps import get_actor, get_context
from guidepost.context import AppContext
from guidepost.engine.editors import Actor
from guidepost.models.guide_models import guide_to_dict
from guidepost.models.transform_models import TransformOutcome, TransformRun, UploadReceipt
from guidepost.models.version_models import DeletedVersion, PublishOutcome, VersionInfo

router = APIRouter(prefix="/venues/{venue_id}", tags=["Guides"])


# ── Request Models ──


class TransformRequest(BaseModel):
    """Request body for POST /venues/{venue_id}/transform."""

    upload_path: str
    run_id: Optional[str] = None
    """Run opened by the upload; a finished run starts a fresh attempt."""


class PublishRequest(BaseModel):
    """Request body for POST /venues/{venue_id}/publish."""

    version_path: str

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"version_path": "venues/abc123/versions/2026-01-28T10:30:00.000Z.json"}
            ]
        }
    }


# ── Transform ──


@router.post("/uploads", response_model=UploadReceipt, status_code=201)
async def upload_pdf(
    venue_id: str,
    request: Request,
    actor: Actor = Depends(get_actor),
    ctx: AppContext = Depends(get_context),
):
    """Accept a raw PDF body (Content-Type: application/pdf)."""
    pdf_bytes = await request.body()
    return ctx.transforms.register_upload(
        venue_id, pdf_bytes, request.headers.get("content-type", ""), actor
    )


@router.post("/transform", response_model=TransformOutcome)
async def transform_pdf(
    venue_id: str,
    body: TransformRequest,
    actor: Actor = Depends(get_actor),
    ctx: AppContext = Depends(get_context),
):
    """Turn an uploaded PDF into a new draft version. Consumes one daily quota unit."""
    return await ctx.transforms.transform(
        venue_id, body.upload_path, actor, run_id=body.run_id
    )


@router.get("/runs/{run_id}", response_model=TransformRun)
def get_run(
    venue_id: str,
    run_id: str,
    actor: Actor = Depends(get_actor),
    ctx: AppContext = Depends(get_context),
):
    """Progress of one transform attempt."""
    return ctx.transforms.get_run(venue_id, run_id, actor)


# ── Publish & Versions ──


@router.post("/publish", response_model=PublishOutcome)
def publish_guide(
    venue_id: str,
    body: PublishRequest,
    actor: Actor = Depends(get_actor),
    ctx: AppContext = Depends(get_context),
):
    return ctx.publisher.publish(venue_id, body.version_path, actor)


@router.get("/versions", response_model=List[VersionInfo])
def list_versions(
    venue_id: str,
    actor: Actor = Depends(get_actor),
    ctx: AppContext = Depends(get_context),
):
    return ctx.publisher.list_versions(venue_id, actor)


@router.get("/versions/{version}")
def read_version(
    venue_id: str,
    version: str,
    actor: Actor = Depends(get_actor),
    ctx: AppContext = Depends(get_context),
):
    """Guide JSON for one version, for preview."""
    return guide_to_dict(ctx.publisher.read_version(venue_id, version, actor))


@router.post("/versions/{version}/live", response_model=PublishOutcome)
def set_live_version(
    venue_id: str,
    version: str,
    actor: Actor = Depends(get_actor),
    ctx: AppContext = Depends(get_context),
):
    """Make any stored version live (rollback)."""
    return ctx.publisher.set_live_version(venue_id, version, actor)


@router.delete("/versions/{version}", response_model=DeletedVersion)
def delete_version(
    venue_id: str,
    version: str,
    actor: Actor = Depends(get_actor),
    ctx: AppContext = Depends(get_context),
):
    return ctx.publisher.delete_version(venue_id, version, actor)
