"""API routes for podcast episodes: listing, syncing and deletion.

Provides endpoints for:
- Listing a podcast's episodes newest first, with cursor pagination
- Syncing a podcast's episodes from its feed
- Fetching a single episode
- Deleting all episodes of a podcast
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from podcatalog.errors import CatalogError, InvalidInputError, to_error_payload
from podcatalog.podcast.episode_sync import EpisodeSyncService
from podcatalog.web.auth import get_current_user
from podcatalog.web.models import (
    DeleteEpisodesResponse,
    EpisodeListResponse,
    EpisodeResponse,
    Pagination,
    SyncResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/podcasts", tags=["episodes"])


def _get_service(request: Request) -> EpisodeSyncService:
    return request.app.state.episode_service


def _parse_limit(raw: Optional[str], default: int, maximum: int) -> int:
    """Parse the ``limit`` query parameter, raising a validation error when malformed."""
    if raw is None or raw == "":
        return default
    try:
        limit = int(raw)
    except ValueError:
        raise InvalidInputError("Limit must be an integer") from None
    if limit < 1:
        raise InvalidInputError("Limit must be a positive integer")
    if limit > maximum:
        raise InvalidInputError(f"Limit cannot exceed {maximum}")
    return limit


async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
    """Render catalog errors into the API error envelope with their HTTP status."""
    if exc.http_status >= 500:
        logger.error(f"Request to {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=exc.http_status,
        content=to_error_payload(exc, request.url.path),
    )


@router.get("/{podcast_id}/episodes", response_model=EpisodeListResponse)
async def list_episodes(
    request: Request,
    podcast_id: str,
    limit: Optional[str] = None,
    cursor: Optional[str] = None,
    current_user: dict = Depends(get_current_user),
):
    """
    List a podcast's episodes, newest first.

    Only the podcast's owner may list it; other users get 404.

    Args:
        podcast_id: Podcast to list
        limit: Page size, 1 to the configured maximum (default 20)
        cursor: `nextCursor` from the previous page, unchanged

    Returns:
        EpisodeListResponse with the episodes and pagination state
    """
    config = request.app.state.config
    page_limit = _parse_limit(limit, config.EPISODE_PAGE_SIZE, config.EPISODE_PAGE_MAX)

    service = _get_service(request)
    page = await asyncio.to_thread(
        service.list_episodes, podcast_id, current_user["sub"], page_limit, cursor
    )

    return EpisodeListResponse(
        episodes=[EpisodeResponse.from_episode(ep) for ep in page.episodes],
        pagination=Pagination(
            has_more=page.has_more,
            next_cursor=page.next_cursor,
            limit=page_limit,
        ),
    )


@router.post("/{podcast_id}/sync", response_model=SyncResponse, status_code=201)
async def sync_episodes(
    request: Request,
    podcast_id: str,
    current_user: dict = Depends(get_current_user),
):
    """
    Sync a podcast's episodes from its feed.

    Only the podcast's owner may sync it. Returns 404 for podcasts the user
    does not own and 400 with RSS_PARSE_ERROR when the feed is unreadable.

    Returns:
        SyncResponse with the episode total, a preview and sync statistics
    """
    service = _get_service(request)
    user_id = current_user["sub"]

    # Feed fetch and store writes block; keep them off the event loop
    report = await asyncio.to_thread(service.sync, podcast_id, user_id)

    logger.info(f"User {user_id} synced podcast {podcast_id}: {report.stats.to_dict()}")
    return SyncResponse.from_report(report)


@router.get("/{podcast_id}/episodes/{episode_id}", response_model=EpisodeResponse)
async def get_episode(
    request: Request,
    podcast_id: str,
    episode_id: str,
    current_user: dict = Depends(get_current_user),
):
    """
    Get a single episode of a podcast owned by the user.

    Returns:
        EpisodeResponse for the episode
    """
    service = _get_service(request)
    episode = await asyncio.to_thread(
        service.get_episode, podcast_id, episode_id, current_user["sub"]
    )
    return EpisodeResponse.from_episode(episode)


@router.delete("/{podcast_id}/episodes", response_model=DeleteEpisodesResponse)
async def delete_episodes(
    request: Request,
    podcast_id: str,
    current_user: dict = Depends(get_current_user),
):
    """
    Delete all episodes of a podcast owned by the user.

    Returns:
        DeleteEpisodesResponse with the number of episodes removed
    """
    service = _get_service(request)
    deleted = await asyncio.to_thread(
        service.delete_episodes, podcast_id, current_user["sub"]
    )
    return DeleteEpisodesResponse(
        message="Episodes deleted successfully",
        deleted_count=deleted,
    )
