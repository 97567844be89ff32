"""Create videos and view_receipts tables

Revision ID: 202610180001
Revises:
Create Date: 2026-10-18 00:01:00.000000
"""
from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "202610180001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "videos",
        sa.Column("video_id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("channel_name", sa.String(length=255), nullable=True),
        sa.Column("views", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "upload_time",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "loading", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
    )
    op.create_table(
        "view_receipts",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("video_id", sa.String(length=64), nullable=False),
        sa.Column("client_id", sa.String(length=255), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("video_id", "client_id", name="uq_view_receipt_client"),
    )
    op.create_index(
        "ix_view_receipts_video_id", "view_receipts", ["video_id"], unique=False
    )


def downgrade() -> None:
    op.drop_index("ix_view_receipts_video_id", table_name="view_receipts")
    op.drop_table("view_receipts")
    op.drop_table("videos")
