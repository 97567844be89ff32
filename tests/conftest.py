from __future__ import annotations

import os
import tempfile
from collections.abc import AsyncIterator, Generator
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("ADMIN_TOKEN", "test-admin-token")
os.environ.setdefault("RATE_LIMIT_MAX_REQUESTS", "100")
os.environ.setdefault("RATE_LIMIT_WINDOW_SECONDS", "60")
os.environ.setdefault("DURABLE_WRITE_BACKOFF_SECONDS", "0")
os.environ.setdefault(
    "AUDIT_LOG_PATH", str(Path(tempfile.gettempdir()) / "viewcounter-tests" / "audit.log")
)

from viewcounter.config import get_settings  # noqa: E402
from viewcounter.core.cache import CacheManager  # noqa: E402
from viewcounter.database import Base, get_session  # noqa: E402
from viewcounter.main import app  # noqa: E402
from viewcounter.store.memory import InMemoryViewStore  # noqa: E402
from viewcounter.store.sql import SqlAlchemyViewStore  # noqa: E402

from tests.fakes import FlakyViewStore  # noqa: E402

get_settings.cache_clear()

TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"


def _no_sleep(_: float) -> None:
    return None


@pytest.fixture()
def engine() -> Generator:
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


@pytest.fixture()
def db_session(session_factory) -> Generator[Session, None, None]:
    session: Session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def sql_store(session_factory) -> SqlAlchemyViewStore:
    return SqlAlchemyViewStore(session_factory)


@pytest.fixture()
def memory_store() -> InMemoryViewStore:
    return InMemoryViewStore()


@pytest.fixture()
def flaky_store() -> FlakyViewStore:
    return FlakyViewStore()


@pytest.fixture()
def make_manager():
    managers: list[CacheManager] = []

    def _make(store, *, load: bool = True, **kwargs) -> CacheManager:
        kwargs.setdefault("sleep", _no_sleep)
        manager = CacheManager(store, **kwargs)
        if load:
            manager.load()
        managers.append(manager)
        return manager

    yield _make
    for manager in managers:
        manager.close()


@pytest.fixture()
def cache_manager(make_manager, memory_store) -> CacheManager:
    return make_manager(memory_store)


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {get_settings().admin_token}"}


@pytest.fixture()
def api_manager(make_manager, memory_store) -> Generator[CacheManager, None, None]:
    manager = make_manager(memory_store)
    app.state.cache_manager = manager
    try:
        yield manager
    finally:
        app.state.cache_manager = None


@pytest.fixture(autouse=True)
def override_db_dependency(db_session: Session) -> Generator[None, None, None]:
    def _get_test_session() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_session] = _get_test_session
    try:
        yield
    finally:
        app.dependency_overrides.pop(get_session, None)
        limiter = getattr(app.state, "rate_limiter", None)
        if limiter is not None:
            limiter.reset()


@pytest.fixture()
def client(api_manager) -> TestClient:
    return TestClient(app, base_url="http://testserver")


@pytest_asyncio.fixture()
async def async_client(api_manager) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app, client=("203.0.113.7", 4321))
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture()
def factory_session(db_session: Session) -> Session:
    from tests import factories

    factories.bind_session(db_session)
    return db_session
