"""SQLAlchemy-backed durable store."""
from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from viewcounter import models
from viewcounter.core.records import ItemRecord
from viewcounter.exceptions import DurableStoreError
from viewcounter.observability.logging import get_logger
from viewcounter.store.base import Receipt

logger = get_logger("store.sql")


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_record(video: models.Video) -> ItemRecord:
    return ItemRecord(
        item_id=video.video_id,
        view_count=video.views,
        created_at=_as_utc(video.upload_time),
        title=video.title,
        description=video.description,
        channel_name=video.channel_name,
        loading=video.loading,
    )


class SqlAlchemyViewStore:
    """Persist videos and view receipts through a SQLAlchemy session factory.

    Every public method runs in its own short transaction. The unique
    constraint on ``view_receipts(video_id, client_id)`` is the final arbiter
    of whether a client was counted, even across processes.
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        session: Session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as exc:
            session.rollback()
            logger.warning(
                "store operation failed",
                extra={"operation": operation, "error": repr(exc)},
            )
            raise DurableStoreError(f"{operation} failed: {exc}") from exc
        finally:
            session.close()

    def upsert_item(self, record: ItemRecord) -> None:
        with self._session("upsert_item") as session:
            video = session.get(models.Video, record.item_id)
            if video is None:
                video = models.Video(
                    video_id=record.item_id, upload_time=record.created_at
                )
                session.add(video)
            video.title = record.title
            video.description = record.description
            video.channel_name = record.channel_name
            video.views = record.view_count
            video.loading = record.loading
            session.commit()

    def insert_receipt_if_absent(self, item_id: str, client_id: str) -> bool:
        with self._session("insert_receipt") as session:
            session.add(models.ViewReceipt(video_id=item_id, client_id=client_id))
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                return False
        return True

    def list_items(self) -> List[ItemRecord]:
        with self._session("list_items") as session:
            result = session.execute(select(models.Video).order_by(models.Video.video_id))
            return [_to_record(video) for video in result.scalars().all()]

    def list_receipts(self) -> List[Receipt]:
        with self._session("list_receipts") as session:
            result = session.execute(
                select(models.ViewReceipt.video_id, models.ViewReceipt.client_id).order_by(
                    models.ViewReceipt.id
                )
            )
            return [(row.video_id, row.client_id) for row in result]

    def get_item(self, item_id: str) -> Optional[ItemRecord]:
        with self._session("get_item") as session:
            video = session.get(models.Video, item_id)
            return _to_record(video) if video is not None else None

    def delete_item(self, item_id: str) -> None:
        with self._session("delete_item") as session:
            session.execute(delete(models.Video).where(models.Video.video_id == item_id))
            session.commit()

    def delete_receipts_for(self, item_id: str) -> int:
        with self._session("delete_receipts_for") as session:
            result = session.execute(
                delete(models.ViewReceipt).where(models.ViewReceipt.video_id == item_id)
            )
            session.commit()
            return result.rowcount or 0

    def delete_receipt(self, item_id: str, client_id: str) -> None:
        with self._session("delete_receipt") as session:
            session.execute(
                delete(models.ViewReceipt).where(
                    models.ViewReceipt.video_id == item_id,
                    models.ViewReceipt.client_id == client_id,
                )
            )
            session.commit()


__all__ = ["SqlAlchemyViewStore"]
