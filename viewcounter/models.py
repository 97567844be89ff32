"""Database models."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import expression, func

from viewcounter.database import Base

VIDEO_ID_LENGTH = 64
CLIENT_ID_LENGTH = 255


class Video(Base):
    """Durable record of a tracked video and its counted views."""

    __tablename__ = "videos"

    video_id: Mapped[str] = mapped_column(String(VIDEO_ID_LENGTH), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    channel_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    views: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    upload_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    loading: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=expression.false(),
    )


class ViewReceipt(Base):
    """Marks a client as already counted for a video."""

    __tablename__ = "view_receipts"
    __table_args__ = (
        UniqueConstraint("video_id", "client_id", name="uq_view_receipt_client"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    video_id: Mapped[str] = mapped_column(
        String(VIDEO_ID_LENGTH), nullable=False, index=True
    )
    client_id: Mapped[str] = mapped_column(String(CLIENT_ID_LENGTH), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
