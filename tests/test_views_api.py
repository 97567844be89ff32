"""Public view tracking endpoints."""
from __future__ import annotations

from fastapi.testclient import TestClient

from viewcounter.main import app


def _view(client, video_id: str, ip: str):
    return client.post(f"/api/videos/{video_id}/view", headers={"X-Forwarded-For": ip})


def test_view_scenario_over_http(client) -> None:
    first = _view(client, "42", "ip1")
    assert first.status_code == 200
    assert first.json() == {
        "video_id": "42",
        "views": 1,
        "counted": True,
        "already_viewed": False,
    }

    repeat = _view(client, "42", "ip1")
    assert repeat.json()["views"] == 1
    assert repeat.json()["already_viewed"] is True

    other = _view(client, "42", "ip2")
    assert other.json()["views"] == 2
    assert other.json()["counted"] is True

    state = client.get("/api/videos/42")
    assert state.status_code == 200
    assert state.json()["views"] == 2
    assert state.json()["title"] == "Video 42"


def test_forwarded_for_uses_first_hop(client, api_manager) -> None:
    response = client.post(
        "/api/videos/clip/view",
        headers={"X-Forwarded-For": "198.51.100.4, 10.0.0.1"},
    )
    assert response.json()["counted"] is True

    again = _view(client, "clip", "198.51.100.4")
    assert again.json()["counted"] is False


def test_peer_address_used_without_forwarding_header(client) -> None:
    assert client.post("/api/videos/peer/view").json()["counted"] is True
    assert client.post("/api/videos/peer/view").json()["counted"] is False


def test_overlong_video_id_is_rejected(client, memory_store) -> None:
    video_id = "v" * 65

    assert _view(client, video_id, "ip1").status_code == 422
    assert client.get(f"/api/videos/{video_id}").status_code == 422
    assert memory_store.list_receipts() == []

    longest = "v" * 64
    assert _view(client, longest, "ip1").json()["counted"] is True


def test_overlong_forwarded_client_is_truncated(client, memory_store) -> None:
    ip = "x" * 300

    assert _view(client, "42", ip).json()["counted"] is True
    assert _view(client, "42", ip[:255] + "y").json()["counted"] is False
    assert memory_store.list_receipts() == [("42", "x" * 255)]


def test_unknown_video_is_not_found(client) -> None:
    response = client.get("/api/videos/never-seen")

    assert response.status_code == 404
    assert response.json()["detail"] == "Video not found"


def test_write_failure_returns_service_unavailable(make_manager, flaky_store) -> None:
    manager = make_manager(flaky_store)
    manager.create_item("7", title="Seven")
    app.state.cache_manager = manager
    client = TestClient(app)
    try:
        flaky_store.fail("insert_receipt_if_absent")
        failed = _view(client, "7", "ipX")
        assert failed.status_code == 503
        assert failed.json()["detail"] == "Failed to track view"
        assert client.get("/api/videos/7").json()["views"] == 0

        flaky_store.heal()
        retried = _view(client, "7", "ipX")
        assert retried.status_code == 200
        assert retried.json()["views"] == 1
        assert retried.json()["counted"] is True
    finally:
        app.state.cache_manager = None


def test_requests_before_load_are_rejected() -> None:
    app.state.cache_manager = None
    client = TestClient(app)

    response = client.post("/api/videos/42/view")

    assert response.status_code == 503
    assert response.json()["detail"] == "View cache is not ready"
