from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from fastapi.responses import JSONResponse

from webmirror.core.config import settings
from webmirror.core.errors import FetchError, InvalidURLError
from webmirror.models.common import AcceptedResponse, ErrorResponse
from webmirror.models.mirror.document import Metadata
from webmirror.models.mirror.schemas import MetadataResponse, MirrorRequest
from webmirror.services.mirror.service import MirrorService
from webmirror.services.mirror.urls import normalize_url
from webmirror.workers.transport import get_transport

logger = logging.getLogger(__name__)

router = APIRouter(tags=["mirror"])


# ---------------------------------------------------------------------------
# Dependency
# ---------------------------------------------------------------------------


def _get_service() -> MirrorService:
    """FastAPI dependency that builds a ``MirrorService`` for each request."""
    root_dir = settings.root_store_dir or Path.cwd()
    return MirrorService(get_transport(), root_dir, settings.mirror_mode)


def _to_response(url: str, metadata: Metadata) -> MetadataResponse:
    return MetadataResponse(url=url, **metadata.model_dump())


# ---------------------------------------------------------------------------
# POST /mirror
# ---------------------------------------------------------------------------


@router.post(
    "/mirror",
    response_model=MetadataResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Fetch a page and store it on disk",
)
async def post_mirror(
    request: MirrorRequest,
    service: MirrorService = Depends(_get_service),
) -> MetadataResponse:
    """Fetch the given URL, store its HTML and metadata, and optionally
    download its same-origin assets.

    Blocks until the page is stored.

    - **200** - page stored; the stored metadata is returned
    - **400** - page could not be fetched (network error, bad status,
      non-HTML content, unparseable markup)
    - **422** - invalid URL format
    - **500** - storage failure
    """
    url = str(request.url)
    try:
        metadata = await service.store_metadata(url, mirror=request.mirror)
    except InvalidURLError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except FetchError as exc:
        logger.warning("POST /mirror fetch error for %s: %s", url, exc)
        raise HTTPException(status_code=400, detail=str(exc))
    except Exception as exc:
        logger.error("POST /mirror storage error for %s: %s", url, exc)
        raise HTTPException(status_code=500, detail=str(exc))
    return _to_response(url, metadata)


# ---------------------------------------------------------------------------
# GET /metadata
# ---------------------------------------------------------------------------


@router.get(
    "/metadata",
    response_model=MetadataResponse,
    responses={202: {"model": AcceptedResponse}, 500: {"model": ErrorResponse}},
    summary="Retrieve stored metadata for a URL",
)
async def get_metadata(
    url: str,
    background_tasks: BackgroundTasks,
    service: MirrorService = Depends(_get_service),
) -> MetadataResponse | JSONResponse:
    """Return the stored metadata for *url*.

    When nothing is stored yet, returns **202 Accepted** immediately and
    schedules a background fetch of the page.

    - **200** - metadata found and returned
    - **202** - not stored yet; background fetch has been triggered
    - **422** - ``url`` query parameter missing or not a valid HTTP URL
    - **500** - stored metadata could not be read
    """
    try:
        normalised_url = normalize_url(url)
    except InvalidURLError:
        raise HTTPException(status_code=422, detail=f"Invalid URL: {url}")

    try:
        metadata = await service.get_metadata(normalised_url)
    except Exception as exc:
        logger.error("GET /metadata read error for %s: %s", normalised_url, exc)
        raise HTTPException(status_code=500, detail=str(exc))

    if metadata is None:
        background_tasks.add_task(service.background_collect, normalised_url)
        return JSONResponse(
            status_code=202,
            content=AcceptedResponse(
                url=normalised_url,
                message=f"No metadata yet for {normalised_url}. Fetch triggered.",
            ).model_dump(),
        )
    return _to_response(normalised_url, metadata)
