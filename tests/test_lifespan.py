"""Application startup and shutdown wiring."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from viewcounter.core.records import ItemRecord
from viewcounter.exceptions import CacheLoadError
from viewcounter.main import app
from tests.fakes import FlakyViewStore

EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture()
def preset_store():
    store = FlakyViewStore()
    app.state.view_store = store
    try:
        yield store
    finally:
        app.state.view_store = None
        app.state.cache_manager = None


def test_startup_loads_store_before_serving(preset_store) -> None:
    preset_store.upsert_item(
        ItemRecord(item_id="42", view_count=1, created_at=EPOCH, title="Answer")
    )
    preset_store.insert_receipt_if_absent("42", "ip1")

    with TestClient(app) as client:
        state = client.get("/api/videos/42")
        assert state.status_code == 200
        assert state.json()["views"] == 1

        repeat = client.post("/api/videos/42/view", headers={"X-Forwarded-For": "ip1"})
        assert repeat.json()["counted"] is False

        manager = app.state.cache_manager
        assert manager.ready is True

    assert app.state.cache_manager is None
    assert manager.ready is False


def test_startup_fails_when_store_is_unreadable(preset_store) -> None:
    preset_store.fail("list_items")

    with pytest.raises(CacheLoadError):
        with TestClient(app):
            pass
