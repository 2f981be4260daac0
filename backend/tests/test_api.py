"""Tests for the HTTP layer with the service and database overridden."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from solardesk.database import get_db
from solardesk.exceptions import (
    ConflictError,
    NotFoundError,
    TransitionError,
    UpstreamUnavailable,
    ValidationError,
)
from solardesk.main import app
from solardesk.models import SubmissionStatus
from solardesk.routers.submissions import get_submission_service
from solardesk.services.metrics import DailyMetrics
from solardesk.services.workflow import Action, Role

JUNE_1 = datetime(2025, 6, 1, tzinfo=UTC)

USER = {"X-User-Id": "user-1", "X-User-Role": "user"}
ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}
SUPERADMIN = {"X-User-Id": "super-1", "X-User-Role": "superadmin"}


@pytest.fixture
def stored(make_submission):
    return make_submission(created_at=JUNE_1, updated_at=JUNE_1)


@pytest.fixture
def service():
    return MagicMock()


@pytest.fixture
def db():
    session = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
async def client(service, db):
    async def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_submission_service] = lambda: service
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


class TestIdentity:
    """Role gating at the routes."""

    async def test_missing_headers_is_401(self, client):
        response = await client.get("/api/submissions")
        assert response.status_code == 401

    async def test_unknown_role_is_401(self, client):
        response = await client.get("/api/sites", headers={"X-User-Id": "x", "X-User-Role": "root"})
        assert response.status_code == 401

    async def test_user_cannot_create(self, client, service):
        response = await client.post(
            "/api/submissions", json={"site": "Alpha", "date": "2025-06-01"}, headers=USER
        )
        assert response.status_code == 403
        service.create_submission.assert_not_called()

    async def test_admin_cannot_cleanup(self, client, service):
        response = await client.delete("/api/submissions/cleanup", headers=ADMIN)
        assert response.status_code == 403


class TestSubmissionRoutes:
    """Tests for /api/submissions."""

    async def test_create(self, client, service, stored):
        service.create_submission = AsyncMock(return_value=stored)

        response = await client.post(
            "/api/submissions",
            json={"site": "Alpha", "date": "01-06-2025", "inv_gen": 5, "auto_calculate": False},
            headers=ADMIN,
        )

        assert response.status_code == 201
        assert response.json()["status"] == "Draft"
        args, kwargs = service.create_submission.call_args
        assert args[1:] == ("Alpha", JUNE_1)
        assert kwargs["inv_gen"] == 5
        assert kwargs["abt_export"] is None

    async def test_create_invalid_date_is_422(self, client, service):
        response = await client.post(
            "/api/submissions", json={"site": "Alpha", "date": "31-02-2025"}, headers=ADMIN
        )
        assert response.status_code == 422

    async def test_bulk(self, client, service):
        service.create_many = AsyncMock(return_value=2)

        response = await client.post(
            "/api/submissions/bulk",
            json={"submissions": [
                {"site": "Alpha", "date": "2025-06-01"},
                {"site": "Beta", "date": "2025-06-01", "poa": 4.1},
            ]},
            headers=ADMIN,
        )

        assert response.status_code == 201
        assert response.json() == {"count": 2}

    async def test_list(self, client, service, stored):
        service.list_submissions = AsyncMock(
            return_value={"submissions": [stored], "total": 1, "page": 1, "limit": 100, "total_pages": 1}
        )

        response = await client.get(
            "/api/submissions",
            params={"site": "Alpha", "status": "Draft", "year": 2025, "month": 6},
            headers=USER,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["submissions"][0]["site"] == "Alpha"
        _, role, filters, page, limit = service.list_submissions.call_args[0]
        assert role == Role.USER
        assert (filters.site, filters.status, filters.year, filters.month) == ("Alpha", "Draft", 2025, 6)
        assert (page, limit) == (1, 100)

    async def test_list_bad_date_filter(self, client, service):
        response = await client.get(
            "/api/submissions",
            params={"start_date": "31-02-2025", "end_date": "01-03-2025"},
            headers=ADMIN,
        )
        assert response.status_code == 400

    async def test_list_limit_bounds(self, client):
        response = await client.get("/api/submissions", params={"limit": 5000}, headers=ADMIN)
        assert response.status_code == 422

    async def test_transition(self, client, service, stored):
        stored.status = SubmissionStatus.SITE_PUBLISH
        service.apply_transition = AsyncMock(return_value=stored)

        response = await client.put(
            "/api/submissions/sub-1",
            json={"action": "submit", "expected_revision": 1},
            headers=USER,
        )

        assert response.status_code == 200
        assert response.json()["status"] == "Site Publish"
        kwargs = service.apply_transition.call_args.kwargs
        assert kwargs["action"] == Action.SUBMIT
        assert kwargs["field_edits"] == {}
        assert kwargs["expected_revision"] == 1

    async def test_unknown_action_is_422(self, client, service):
        response = await client.put(
            "/api/submissions/sub-1", json={"action": "publish"}, headers=ADMIN
        )
        assert response.status_code == 422

    async def test_user_cannot_edit_without_action(self, client, service):
        response = await client.put(
            "/api/submissions/sub-1", json={"inv_gen": 4}, headers=USER
        )
        assert response.status_code == 403
        service.apply_transition.assert_not_called()

    @pytest.mark.parametrize(
        "error,status_code",
        [
            (TransitionError("HQ Approved records cannot be modified"), 403),
            (NotFoundError("Submission not found"), 404),
            (ConflictError("Submission was modified by another request"), 409),
            (ValidationError("Nothing to update"), 400),
        ],
    )
    async def test_domain_errors(self, client, service, error, status_code):
        service.apply_transition = AsyncMock(side_effect=error)

        response = await client.put(
            "/api/submissions/sub-1", json={"action": "approve"}, headers=SUPERADMIN
        )

        assert response.status_code == status_code
        assert response.json()["detail"] == error.message

    async def test_delete(self, client, service):
        service.delete = AsyncMock()
        response = await client.delete("/api/submissions/sub-1", headers=SUPERADMIN)
        assert response.status_code == 204

    async def test_delete_missing(self, client, service):
        service.delete = AsyncMock(side_effect=NotFoundError("Submission not found"))
        response = await client.delete("/api/submissions/sub-1", headers=SUPERADMIN)
        assert response.status_code == 404

    async def test_cleanup(self, client, service):
        service.delete_all = AsyncMock(return_value=5)
        response = await client.delete("/api/submissions/cleanup", headers=SUPERADMIN)
        assert response.status_code == 200
        assert response.json() == {"deleted_count": 5}
        service.delete.assert_not_called()


class TestWorkflowRoutes:
    """Tests for calculation, sync and lookup endpoints."""

    async def test_calculate(self, client, service):
        service.calculate = AsyncMock(
            return_value=DailyMetrics("Alpha", JUNE_1, inv_gen=2.5, abt_export=300.25, poa=6.23)
        )

        response = await client.get(
            "/api/calculate", params={"site": "Alpha", "date": "01-06-2025"}, headers=USER
        )

        assert response.status_code == 200
        assert response.json() == {
            "site": "Alpha",
            "date": "2025-06-01",
            "inv_gen": 2.5,
            "abt_export": 300.25,
            "poa": 6.23,
        }

    async def test_calculate_missing_params(self, client, service):
        service.calculate = AsyncMock(
            side_effect=ValidationError("Both site and date parameters are required")
        )
        response = await client.get("/api/calculate", headers=USER)
        assert response.status_code == 400

    async def test_sync_without_body(self, client, service):
        service.sync_from_source = AsyncMock(return_value={"created": 2, "total": 3})

        response = await client.post("/api/sync-inverter", headers=ADMIN)

        assert response.status_code == 200
        assert response.json() == {"created": 2, "total": 3}
        assert service.sync_from_source.call_args.kwargs["site"] is None

    async def test_sync_for_site(self, client, service):
        service.sync_from_source = AsyncMock(return_value={"created": 0, "total": 1})

        await client.post("/api/sync-inverter", json={"site": "Beta"}, headers=ADMIN)

        assert service.sync_from_source.call_args.kwargs["site"] == "Beta"

    async def test_sync_upstream_down_is_502(self, client, service):
        service.sync_from_source = AsyncMock(
            side_effect=UpstreamUnavailable("inverter API returned HTTP 500")
        )
        response = await client.post("/api/sync-inverter", headers=ADMIN)
        assert response.status_code == 502

    async def test_recalculate(self, client, service):
        service.recalculate = AsyncMock(
            return_value=[{"id": "a", "inv_gen": 1.5, "abt_export": 2.25}]
        )

        response = await client.post(
            "/api/recalculate-all", json={"submission_ids": ["a"]}, headers=ADMIN
        )

        assert response.status_code == 200
        assert response.json() == {
            "count": 1,
            "results": [{"id": "a", "inv_gen": 1.5, "abt_export": 2.25}],
        }

    async def test_recalculate_requires_ids(self, client):
        response = await client.post(
            "/api/recalculate-all", json={"submission_ids": []}, headers=ADMIN
        )
        assert response.status_code == 422

    async def test_sites_and_years(self, client, service):
        service.list_sites = AsyncMock(return_value=["Alpha", "Beta"])
        service.list_years = AsyncMock(return_value=[2025, 2024])

        assert (await client.get("/api/sites", headers=USER)).json() == ["Alpha", "Beta"]
        assert (await client.get("/api/years", headers=USER)).json() == [2025, 2024]

    async def test_stats(self, client, service):
        service.stats = AsyncMock(
            return_value={"total": 3, "by_status": {"Send to HQ Approval": 2, "Site Hold": 1}}
        )

        response = await client.get(
            "/api/stats", params={"status": "HQ Approved"}, headers=SUPERADMIN
        )

        assert response.json()["total"] == 3
        _, role, filters = service.stats.call_args[0]
        assert role == Role.SUPERADMIN
        assert filters.status == "HQ Approved"


class TestOperationalRoutes:
    """Tests for /health and /metrics."""

    async def test_health(self, client, db):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["database"] == "connected"

    async def test_health_database_down(self, client, db):
        db.execute.side_effect = OSError("connection refused")
        response = await client.get("/health")
        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"

    async def test_metrics(self, client, db):
        result = MagicMock()
        result.all.return_value = [(SubmissionStatus.DRAFT, 3), (SubmissionStatus.HQ_APPROVED, 7)]
        db.execute.return_value = result

        response = await client.get("/metrics")

        assert response.status_code == 200
        assert 'solardesk_submissions{status="Draft"} 3.0' in response.text
        assert 'solardesk_submissions{status="Site Hold"} 0.0' in response.text
        assert "solardesk_transitions_total" in response.text


class TestRunServer:
    """Tests for the console entry point."""

    def test_run_serves_app_with_settings(self):
        from solardesk import main

        with patch("uvicorn.run") as mock_run:
            main.run()

        mock_run.assert_called_once_with(
            "solardesk.main:app",
            host=main.settings.host,
            port=main.settings.port,
            log_level=main.settings.log_level.lower(),
            reload=main.settings.debug,
        )
