"""Tests for the HTTP introspection API."""
from __future__ import annotations

import pytest
from conftest import PNG_DATA_URI
from fastapi.testclient import TestClient

from feedback_buffer.main import create_app
from feedback_buffer.services.connectivity import StaticConnectivityProbe
from feedback_buffer.services.queue_store import QueueStoreError
from feedback_buffer.services.submitter import Delivered, TerminalFailure

REPORT_BODY = {
    "report": {
        "title": "Search results flicker",
        "priority": "high",
        "metadata": {"url": "https://shop.example.test/search?q=lamp"},
    },
    "media": [{"content": PNG_DATA_URI, "mime_type": "image/png"}],
    "destination": {"credential": "key-123", "endpoint_base": "https://bugs.example.test/api/widget"},
}


class QuietProbe(StaticConnectivityProbe):
    def flip_silently(self, online: bool) -> None:
        """Change status without notifying listeners."""
        self._online = online


@pytest.fixture
def probe() -> QuietProbe:
    return QuietProbe(online=False)


@pytest.fixture
def client(coordinator):
    with TestClient(create_app(coordinator)) as test_client:
        yield test_client


class TestSystemRoutes:
    def test_health(self, client: TestClient):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_metrics(self, client: TestClient):
        response = client.get("/api/metrics")
        assert response.status_code == 200
        assert "feedback_buffer_delivered_total" in response.text

    def test_logs(self, client: TestClient):
        response = client.get("/api/logs", params={"limit": 5, "level": "warning"})
        assert response.status_code == 200
        assert isinstance(response.json()["logs"], list)

    def test_logs_for_one_report(self, client: TestClient):
        pending_id = client.post("/api/reports", json=REPORT_BODY).json()["pending_id"]

        logs = client.get("/api/logs", params={"record_id": pending_id}).json()["logs"]

        assert logs
        assert {entry["record_id"] for entry in logs} == {pending_id}


class TestPendingRoutes:
    def test_offline_report_is_queued_then_synced(self, client: TestClient, probe, submitter):
        response = client.post("/api/reports", json=REPORT_BODY)
        assert response.status_code == 200
        body = response.json()
        assert body["queued"] is True
        assert body["success"] is True
        pending_id = body["pending_id"]

        assert client.get("/api/pending/count").json() == {"count": 1}

        listing = client.get("/api/pending").json()
        assert listing["count"] == 1
        entry = listing["pending"][0]
        assert entry["id"] == pending_id
        assert entry["title"] == "Search results flicker"
        assert entry["priority"] == "high"
        assert entry["media_count"] == 1
        assert "media" not in entry

        detail = client.get(f"/api/pending/{pending_id}")
        assert detail.status_code == 200
        assert detail.json()["retry_count"] == 0

        offline_sync = client.post("/api/pending/sync").json()
        assert offline_sync == {"delivered": 0, "dropped": 0, "skipped": False, "online": False}

        probe.flip_silently(True)
        synced = client.post("/api/pending/sync").json()
        assert synced["delivered"] == 1
        assert synced["online"] is True
        assert submitter.calls == [pending_id]
        assert client.get("/api/pending/count").json() == {"count": 0}

    def test_missing_record_is_404(self, client: TestClient):
        response = client.get("/api/pending/does-not-exist")
        assert response.status_code == 404

    def test_clear(self, client: TestClient):
        client.post("/api/reports", json=REPORT_BODY)
        client.post("/api/reports", json=REPORT_BODY)
        assert client.delete("/api/pending").json() == {"cleared": 2}
        assert client.get("/api/pending/count").json() == {"count": 0}

    def test_storage_failure_is_503(self, client: TestClient, store, monkeypatch):
        async def failing(*args):
            raise QueueStoreError("database is locked")

        monkeypatch.setattr(store, "get", failing)
        monkeypatch.setattr(store, "clear", failing)

        assert client.get("/api/pending/some-id").status_code == 503
        response = client.delete("/api/pending")
        assert response.status_code == 503
        assert response.json()["detail"] == "database is locked"


class TestReportRoutes:
    def test_delivered_immediately(self, client: TestClient, probe, submitter):
        probe.flip_silently(True)
        submitter.set_outcomes(Delivered(remote_id="rep_77"))

        body = client.post("/api/reports", json=REPORT_BODY).json()

        assert body["report_id"] == "rep_77"
        assert body["queued"] is False
        assert client.get("/api/pending/count").json() == {"count": 0}

    def test_rejected_report_is_422(self, client: TestClient, probe, submitter):
        probe.flip_silently(True)
        submitter.set_outcomes(TerminalFailure(reason="Title must be at least 4 characters"))

        response = client.post("/api/reports", json=REPORT_BODY)

        assert response.status_code == 422
        assert response.json()["detail"] == "Title must be at least 4 characters"

    def test_missing_destination_without_api_key(self, client: TestClient, monkeypatch):
        from feedback_buffer.core.config import settings

        monkeypatch.setattr(settings, "api_key", "")
        body = {key: value for key, value in REPORT_BODY.items() if key != "destination"}
        response = client.post("/api/reports", json=body)
        assert response.status_code == 400

    def test_invalid_priority_is_rejected_by_validation(self, client: TestClient):
        body = {**REPORT_BODY, "report": {**REPORT_BODY["report"], "priority": "urgent"}}
        response = client.post("/api/reports", json=body)
        assert response.status_code == 422


class TestNotificationRoutes:
    def test_dropped_reports_are_listed(self, client: TestClient, probe, submitter):
        client.post("/api/reports", json=REPORT_BODY)
        probe.flip_silently(True)
        submitter.set_outcomes(TerminalFailure(reason="Invalid API key"))
        assert client.post("/api/pending/sync").json()["dropped"] == 1

        notes = client.get("/api/notifications").json()["notifications"]
        assert len(notes) == 1
        assert notes[0]["level"] == "error"
        assert notes[0]["context"]["reason"] == "Invalid API key"

        errors_only = client.get("/api/notifications", params={"level": "warn"}).json()
        assert errors_only["notifications"] == []
