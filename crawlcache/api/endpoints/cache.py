"""
Fetch and purge endpoints.

Bodies are read raw and handed to the orchestrator, which owns validation, so
a malformed body is reported the same way however it is malformed. Errors are
turned into responses by the handlers registered in ``crawlcache.main``.
"""

from fastapi import APIRouter, Depends, Request, Response

from ...services.fetch import FetchOrchestrator

router = APIRouter(tags=["cache"])


def get_orchestrator(request: Request) -> FetchOrchestrator:
    return request.app.state.orchestrator


@router.post("/fetch", response_class=Response)
async def fetch(
    request: Request, orchestrator: FetchOrchestrator = Depends(get_orchestrator)
) -> Response:
    """Return the resource at ``url``, from cache when present."""
    body = await request.body()
    payload = await orchestrator.fetch(body)
    return Response(content=payload, media_type="application/octet-stream")


@router.post("/purge", response_class=Response)
async def purge(
    request: Request, orchestrator: FetchOrchestrator = Depends(get_orchestrator)
) -> Response:
    """Drop the cached body for ``url``. Succeeds when nothing was cached."""
    body = await request.body()
    await orchestrator.purge(body)
    return Response(status_code=200)
