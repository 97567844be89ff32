"""Pydantic schemas for API responses and requests."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from viewcounter.core.records import ItemRecord
from viewcounter.security.sanitization import sanitize_text

_VIDEO_ID_PATTERN = r"^[A-Za-z0-9_\-]{1,64}$"


class VideoUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    channel_name: Optional[str] = Field(None, max_length=255)
    loading: Optional[bool] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("title", "description", "channel_name", mode="before")
    @classmethod
    def _sanitize(cls, value: Optional[str]) -> Optional[str]:
        return sanitize_text(value)


class VideoCreate(VideoUpdate):
    video_id: Optional[str] = Field(None, pattern=_VIDEO_ID_PATTERN)
    title: str = Field(..., min_length=1, max_length=255)
    loading: bool = False


class VideoRead(BaseModel):
    video_id: str
    title: str
    description: Optional[str] = None
    channel_name: Optional[str] = None
    views: int
    upload_time: datetime
    loading: bool

    @classmethod
    def from_record(cls, record: ItemRecord) -> "VideoRead":
        return cls(
            video_id=record.item_id,
            title=record.title,
            description=record.description,
            channel_name=record.channel_name,
            views=record.view_count,
            upload_time=record.created_at,
            loading=record.loading,
        )


class ViewRecorded(BaseModel):
    video_id: str
    views: int
    counted: bool
    already_viewed: bool


class VideoDeleted(BaseModel):
    success: bool = True
    message: str


class HealthStatus(BaseModel):
    status: str
    cache_ready: bool
    database: str
    timestamp: datetime
