"""Guidepost - Public Guide & Live Venue Feed Routes."""

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from fastapi.responses import Response

from guidepost.api.deps import IDENTITY_HEADER, get_context
from guidepost.connectors.storage.base import BlobNotFound
from guidepost.connectors.storage.local_store import LocalBlobStore
from guidepost.context import AppContext
from guidepost.core.errors import GuideError, NotFound
from guidepost.core.logging import get_logger
from guidepost.engine.editors import require_editor
from guidepost.engine.venue_state import describe_venue
from guidepost.models.guide_models import guide_to_dict
from guidepost.models.venue_models import VenueSnapshot

logger = get_logger("api.public")

router = APIRouter(tags=["Public"])


@router.get("/guides/{slug}")
def get_public_guide(slug: str, ctx: AppContext = Depends(get_context)):
    """Published guide for a slug, re-validated before it is served."""
    return guide_to_dict(ctx.publisher.public_guide(slug))


@router.get("/files/{path:path}", include_in_schema=False)
def serve_public_file(path: str, ctx: AppContext = Depends(get_context)):
    """Serve objects made public by the local blob backend."""
    blobs = ctx.blobs
    if not isinstance(blobs, LocalBlobStore) or not blobs.is_public(path):
        raise NotFound("File not found")
    try:
        data = blobs.get(path)
    except BlobNotFound as e:
        raise NotFound("File not found") from e
    return Response(content=data, media_type="application/json")


@router.websocket("/ws/venues/{venue_id}")
async def venue_feed(
    websocket: WebSocket,
    venue_id: str,
    email: Optional[str] = None,
):
    """Stream ``{venue, state}`` for every committed change to a venue.

    Browsers cannot set headers on a websocket, so identity may also come
    from the ``email`` query parameter set by the auth proxy.
    """
    ctx: AppContext = websocket.app.state.context
    actor = ctx.actor(websocket.headers.get(IDENTITY_HEADER) or email)

    await websocket.accept()
    try:
        venue = ctx.store.get(venue_id)
        require_editor(venue, actor)
    except GuideError as e:
        await websocket.send_json({"error": e.to_dict()})
        await websocket.close(code=1008)
        return

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def on_change(snapshot: Optional[VenueSnapshot]) -> None:
        # Store commits happen on worker threads
        loop.call_soon_threadsafe(queue.put_nowait, snapshot)

    async def pump() -> None:
        while True:
            snapshot = await queue.get()
            if snapshot is None:
                await websocket.send_json(
                    {"error": NotFound(f"Venue deleted: {venue_id}").to_dict()}
                )
                await websocket.close(code=1000)
                return
            await websocket.send_json(describe_venue(snapshot).model_dump(mode="json"))

    async def watch() -> None:
        # Clients send nothing; this only notices the disconnect
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                return

    unsubscribe = ctx.feed.subscribe(venue_id, on_change)
    tasks = set()
    try:
        await websocket.send_json(describe_venue(venue).model_dump(mode="json"))
        tasks = {asyncio.create_task(pump()), asyncio.create_task(watch())}
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            task.result()
    except WebSocketDisconnect:
        pass
    finally:
        for task in tasks:
            task.cancel()
        unsubscribe()
        logger.info("Venue feed closed", extra={"venue_id": venue_id})
