"""API route definitions."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import List
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Path, Request, status
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from viewcounter import schemas
from viewcounter.models import VIDEO_ID_LENGTH
from viewcounter.core.cache import CacheManager
from viewcounter.database import get_session
from viewcounter.exceptions import (
    DurableWriteError,
    ItemAlreadyExistsError,
    ItemNotFoundError,
)
from viewcounter.observability.logging import get_logger
from viewcounter.security.admin import require_admin
from viewcounter.security.audit import record_audit_event
from viewcounter.security.middleware import client_identifier

logger = get_logger("api.routes")

router = APIRouter()

_CLEARABLE_FIELDS = frozenset({"description", "channel_name"})


def get_cache_manager(request: Request) -> CacheManager:
    """Return the cache manager built for this application instance."""

    manager: CacheManager | None = getattr(request.app.state, "cache_manager", None)
    if manager is None or not manager.ready:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="View cache is not ready",
        )
    return manager


def _write_failed(exc: DurableWriteError, detail: str) -> HTTPException:
    logger.error(
        detail,
        extra={"item_id": exc.item_id, "operation": exc.operation, "attempts": exc.attempts},
    )
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)


@router.get("/health", response_model=schemas.HealthStatus, tags=["health"])
def health(request: Request, session: Session = Depends(get_session)) -> schemas.HealthStatus:
    """Report cache readiness and database connectivity."""

    try:
        session.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError:
        database = "disconnected"

    manager = getattr(request.app.state, "cache_manager", None)
    ready = bool(manager is not None and manager.ready)
    return schemas.HealthStatus(
        status="ok" if ready else "loading",
        cache_ready=ready,
        database=database,
        timestamp=datetime.now(timezone.utc),
    )


@router.get("/metrics", tags=["observability"])
def metrics() -> Response:
    """Expose Prometheus metrics for scraping."""

    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


@router.post(
    "/videos/{video_id}/view", response_model=schemas.ViewRecorded, tags=["views"]
)
def record_view(
    request: Request,
    video_id: str = Path(..., min_length=1, max_length=VIDEO_ID_LENGTH),
    manager: CacheManager = Depends(get_cache_manager),
) -> schemas.ViewRecorded:
    """Count a view from the calling client, at most once per video."""

    try:
        result = manager.record_view(video_id, client_identifier(request))
    except DurableWriteError as exc:
        raise _write_failed(exc, "Failed to track view") from exc

    return schemas.ViewRecorded(
        video_id=video_id,
        views=result.view_count,
        counted=result.counted,
        already_viewed=not result.counted,
    )


@router.get("/videos/{video_id}", response_model=schemas.VideoRead, tags=["views"])
def read_video(
    video_id: str = Path(..., min_length=1, max_length=VIDEO_ID_LENGTH),
    manager: CacheManager = Depends(get_cache_manager),
) -> schemas.VideoRead:
    record = manager.get_state(video_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Video not found")
    return schemas.VideoRead.from_record(record)


@router.get(
    "/videos",
    response_model=List[schemas.VideoRead],
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)
def list_videos(
    manager: CacheManager = Depends(get_cache_manager),
) -> List[schemas.VideoRead]:
    """Return every tracked video, oldest first."""

    return [schemas.VideoRead.from_record(record) for record in manager.list_states()]


@router.post(
    "/admin/videos",
    response_model=schemas.VideoRead,
    status_code=status.HTTP_201_CREATED,
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)
def create_video(
    payload: schemas.VideoCreate, manager: CacheManager = Depends(get_cache_manager)
) -> schemas.VideoRead:
    """Register a video ahead of its first view."""

    fields = payload.model_dump(exclude={"video_id"}, exclude_none=True)
    video_id = payload.video_id or uuid4().hex
    try:
        record = manager.create_item(video_id, **fields)
    except ItemAlreadyExistsError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="Video already exists"
        ) from exc
    except DurableWriteError as exc:
        raise _write_failed(exc, "Failed to create video") from exc

    record_audit_event("videos.create", video_id=video_id, title=record.title)
    return schemas.VideoRead.from_record(record)


@router.put(
    "/admin/videos/{video_id}",
    response_model=schemas.VideoRead,
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)
def update_video(
    payload: schemas.VideoUpdate,
    video_id: str = Path(..., min_length=1, max_length=VIDEO_ID_LENGTH),
    manager: CacheManager = Depends(get_cache_manager),
) -> schemas.VideoRead:
    changes = {
        name: value
        for name, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or name in _CLEARABLE_FIELDS
    }
    try:
        record = manager.update_item(video_id, **changes)
    except ItemNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Video not found") from exc
    except DurableWriteError as exc:
        raise _write_failed(exc, "Failed to update video") from exc

    record_audit_event("videos.update", video_id=video_id, fields=sorted(changes))
    return schemas.VideoRead.from_record(record)


@router.delete(
    "/admin/videos/{video_id}",
    response_model=schemas.VideoDeleted,
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)
def delete_video(
    video_id: str = Path(..., min_length=1, max_length=VIDEO_ID_LENGTH),
    manager: CacheManager = Depends(get_cache_manager),
) -> schemas.VideoDeleted:
    """Delete a video together with every recorded view receipt."""

    try:
        known = manager.delete_item(video_id)
    except DurableWriteError as exc:
        raise _write_failed(exc, "Failed to delete video") from exc
    if not known:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Video not found")

    record_audit_event("videos.delete", video_id=video_id)
    return schemas.VideoDeleted(message=f"Video {video_id} deleted")


__all__ = ["get_cache_manager", "router"]
