"""
Component Tests for the Timeline HTTP API

FastAPI TestClient against the service wired to in-memory mocks.
"""

import pytest
from fastapi.testclient import TestClient

from microservices.timeline_service import main
from microservices.timeline_service.main import app, get_service
from tests.contracts.timeline.data_contract import TimelineTestDataFactory, utc


HEADERS = {"X-User-ID": "usr_test", "X-Organization-ID": "org_test"}


@pytest.fixture
def client(timeline_service, seeded):
    """TestClient with the timeline service injected; lifespan is not started"""
    app.dependency_overrides[get_service] = lambda: timeline_service
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealthEndpoints:
    """GET /health, /health/ready, /health/live"""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_ready_without_factory(self, client):
        response = client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["ready"] is False

    def test_live(self, client):
        response = client.get("/health/live")
        assert response.status_code == 200
        assert response.json()["alive"] is True


class TestCampaignEndpoints:
    """/api/v1/timeline/campaigns/{campaign_id}/..."""

    def test_preview(self, client):
        response = client.post(
            "/api/v1/timeline/campaigns/cmp_email/preview",
            json={"new_start_date": "2024-01-13T00:00:00Z"},
            headers=HEADERS,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["statistics"]["affected_count"] == 2
        assert body["statistics"]["direction"] == "forward"
        assert body["validation"]["valid"] is False

    def test_reschedule(self, client, seeded):
        response = client.post(
            "/api/v1/timeline/campaigns/cmp_email/reschedule",
            json=TimelineTestDataFactory.make_reschedule_request(utc(2024, 1, 13)),
            headers=HEADERS,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["days_difference"] == 10
        assert body["partial"] is False
        assert [t["task_id"] for t in body["updated_tasks"]] == ["tsk_brief", "tsk_send"]
        assert seeded.tasks["tsk_brief"].due_date == utc(2024, 1, 15)

    def test_reschedule_partial(self, client, seeded):
        seeded.failing_ids.add("tsk_brief")
        response = client.post(
            "/api/v1/timeline/campaigns/cmp_email/reschedule",
            json=TimelineTestDataFactory.make_reschedule_request(utc(2024, 1, 13)),
            headers=HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["failed_ids"] == ["tsk_brief"]
        assert response.json()["partial"] is True

    def test_missing_organization_header(self, client):
        response = client.post(
            "/api/v1/timeline/campaigns/cmp_email/preview",
            json={"new_start_date": "2024-01-13T00:00:00Z"},
            headers={"X-User-ID": "usr_test"},
        )
        assert response.status_code == 400

    def test_not_found(self, client):
        response = client.post(
            "/api/v1/timeline/campaigns/cmp_missing/reschedule",
            json={"new_start_date": "2024-01-13T00:00:00Z"},
            headers=HEADERS,
        )
        assert response.status_code == 404

    def test_other_organization(self, client):
        response = client.post(
            "/api/v1/timeline/campaigns/cmp_email/reschedule",
            json={"new_start_date": "2024-01-13T00:00:00Z"},
            headers={"X-User-ID": "usr_test", "X-Organization-ID": "org_other"},
        )
        assert response.status_code == 403

    def test_end_before_start_in_body(self, client):
        response = client.post(
            "/api/v1/timeline/campaigns/cmp_email/reschedule",
            json={"new_start_date": "2024-01-13T00:00:00Z", "new_end_date": "2024-01-01T00:00:00Z"},
            headers=HEADERS,
        )
        assert response.status_code == 422

    def test_clamp_without_end(self, client):
        response = client.post(
            "/api/v1/timeline/campaigns/cmp_draft/reschedule",
            json={"new_start_date": "2024-01-13T00:00:00Z", "clamp": True},
            headers=HEADERS,
        )
        assert response.status_code == 422
        assert response.json()["field"] == "new_end_date"

    def test_store_failure_on_parent(self, client, seeded):
        seeded.failing_ids.add("cmp_email")
        response = client.post(
            "/api/v1/timeline/campaigns/cmp_email/reschedule",
            json={"new_start_date": "2024-01-13T00:00:00Z"},
            headers=HEADERS,
        )
        assert response.status_code == 502


class TestProjectEndpoints:
    """/api/v1/timeline/projects/{project_id}/..."""

    def test_preview(self, client):
        response = client.post(
            "/api/v1/timeline/projects/prj_launch/preview",
            json={"new_start_date": "2024-01-11T00:00:00Z"},
            headers=HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["statistics"]["affected_ids"] == ["cmp_email", "cmp_social"]

    def test_reschedule_with_clamp(self, client, seeded):
        response = client.post(
            "/api/v1/timeline/projects/prj_launch/reschedule",
            json=TimelineTestDataFactory.make_reschedule_request(
                utc(2024, 1, 11), new_end_date=utc(2024, 1, 25), clamp=True
            ),
            headers=HEADERS,
        )
        assert response.status_code == 200
        body = response.json()
        assert [c["campaign_id"] for c in body["updated_campaigns"]] == ["cmp_email", "cmp_social"]
        assert seeded.tasks["tsk_post"].due_date == utc(2024, 1, 25)

    def test_unknown_project(self, client):
        response = client.post(
            "/api/v1/timeline/projects/prj_missing/preview",
            json={"new_start_date": "2024-01-11T00:00:00Z"},
            headers=HEADERS,
        )
        assert response.status_code == 404


class TestSyncEndpoints:
    """/api/v1/timeline/sync"""

    def test_start_sync_for_caller_organization(self, client, timeline_service):
        response = client.post("/api/v1/timeline/sync", headers=HEADERS)
        assert response.status_code == 200
        body = response.json()
        assert body["organization_id"] == "org_test"
        assert body["syncing"] is True
        assert body["campaign_count"] == 3
        assert body["task_count"] == 5
        assert timeline_service.is_syncing is True

    def test_status_before_sync(self, client):
        response = client.get("/api/v1/timeline/sync", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["syncing"] is False

    def test_stop_sync(self, client, seeded):
        client.post("/api/v1/timeline/sync", headers=HEADERS)
        response = client.delete("/api/v1/timeline/sync", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["syncing"] is False
        assert seeded.unsubscribed == 3

    def test_other_organization_cannot_take_over_sync(self, client):
        client.post("/api/v1/timeline/sync", headers=HEADERS)
        other = {"X-User-ID": "usr_other", "X-Organization-ID": "org_other"}

        assert client.post("/api/v1/timeline/sync", headers=other).status_code == 403
        assert client.delete("/api/v1/timeline/sync", headers=other).status_code == 403

        status = client.get("/api/v1/timeline/sync", headers=other).json()
        assert status["organization_id"] is None
        assert status["task_count"] == 0


class TestServiceUnavailable:
    """Endpoints before the factory is initialized"""

    def test_returns_503_without_factory(self):
        app.dependency_overrides.clear()
        assert main.factory is None
        response = TestClient(app).post(
            "/api/v1/timeline/projects/prj_launch/preview",
            json={"new_start_date": "2024-01-11T00:00:00Z"},
            headers=HEADERS,
        )
        assert response.status_code == 503
