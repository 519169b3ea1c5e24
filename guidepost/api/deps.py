"""Guidepost - Shared Route Dependencies & Error Mapping."""

from typing import Optional

from fastapi import Header, Request
from fastapi.responses import JSONResponse

from guidepost.context import AppContext
from guidepost.core.errors import GuideError, Unauthenticated
from guidepost.core.logging import get_logger
from guidepost.engine.editors import Actor

logger = get_logger("api")

IDENTITY_HEADER = "X-User-Email"


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_actor(
    request: Request,
    x_user_email: Optional[str] = Header(default=None, alias=IDENTITY_HEADER),
) -> Actor:
    """Identity set upstream by the auth proxy; missing means not logged in."""
    if not x_user_email or not x_user_email.strip():
        raise Unauthenticated()
    return get_context(request).actor(x_user_email)


async def guide_error_handler(request: Request, exc: GuideError) -> JSONResponse:
    """Map the error taxonomy onto HTTP statuses with a caller-safe body."""
    extra = {"status_code": exc.status_code}
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} -> {exc.kind.value}", extra=extra)
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.kind.value}", extra=extra)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})
