"""Engine and session factory for the durable view store."""
from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from viewcounter.config import get_settings

settings = get_settings()


class Base(DeclarativeBase):
    """Declarative base for the video and view receipt tables."""


engine = create_engine(settings.database_url, future=True)
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    future=True,
)


def get_session():
    """Yield a session for request handlers such as the health check."""

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
