# backend/tests/test_main.py
import pytest
from fastapi.testclient import TestClient
from unittest.mock import patch, MagicMock, AsyncMock
from app.main import app
from app.shared.core.config import settings
from app.shared.db.session import get_db
from app.shared.utils.exceptions import EntityNotFoundError, ScheduleConflictError

ENDPOINTS = "app.modules.content_automation.api.automation_endpoints"
SECRET = "test-cron-secret"


def _override_db():
    db = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    yield db


@pytest.fixture
def client():
    app.dependency_overrides[get_db] = _override_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _run_summary(run_type="hourly"):
    return {
        "success": True,
        "run_type": run_type,
        "status": "completed",
        "correlation_id": "run-1a2b3c4d",
        "started_at": "2026-10-21T09:00:00+00:00",
        "finished_at": "2026-10-21T09:00:05+00:00",
        "summary": {"rules_evaluated": 3, "messages_sent": 2},
        "error": None,
    }


# --- HEALTH ---
def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_response_carries_request_id(client):
    response = client.get("/health", headers={"X-Request-ID": "req-cafebabe"})
    assert response.headers["X-Request-ID"] == "req-cafebabe"


# --- TRIGGER AUTHORIZATION ---
def test_trigger_without_secret_is_rejected(client):
    with patch.object(settings, "CRON_SECRET", SECRET):
        response = client.post("/api/v1/automation/trigger/hourly")

    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Missing cron secret"}


def test_trigger_with_wrong_secret_is_rejected(client):
    with patch.object(settings, "CRON_SECRET", SECRET):
        response = client.post(
            "/api/v1/automation/trigger/hourly",
            headers={"Authorization": "Bearer not-the-secret"}
        )

    assert response.status_code == 401
    assert response.json()["error"] == "Invalid cron secret"


@pytest.mark.parametrize("headers", [
    {"Authorization": f"Bearer {SECRET}"},
    {"X-Cron-Secret": SECRET},
])
def test_trigger_with_secret_runs_orchestrator(client, headers):
    with patch.object(settings, "CRON_SECRET", SECRET), \
         patch(f"{ENDPOINTS}.AutomationOrchestrator") as orchestrator_cls:
        orchestrator_cls.return_value.run_hourly = AsyncMock(return_value=_run_summary())
        response = client.post("/api/v1/automation/trigger/hourly", headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "completed"
    assert body["summary"]["messages_sent"] == 2
    orchestrator_cls.return_value.run_hourly.assert_awaited_once()


def test_failed_run_still_answers_200(client):
    failed = {**_run_summary("urgent"), "success": False, "status": "failed", "error": "boom"}
    with patch.object(settings, "CRON_SECRET", SECRET), \
         patch(f"{ENDPOINTS}.AutomationOrchestrator") as orchestrator_cls:
        orchestrator_cls.return_value.run_urgent = AsyncMock(return_value=failed)
        response = client.post("/api/v1/automation/trigger/urgent", headers={"X-Cron-Secret": SECRET})

    assert response.status_code == 200
    assert response.json()["success"] is False


def test_production_without_configured_secret_rejects(client):
    with patch.object(settings, "CRON_SECRET", ""), \
         patch.object(settings, "ENVIRONMENT", "production"):
        response = client.post("/api/v1/automation/trigger/maintenance")

    assert response.status_code == 401


def test_development_without_configured_secret_allows(client):
    with patch.object(settings, "CRON_SECRET", ""), \
         patch.object(settings, "ENVIRONMENT", "development"), \
         patch(f"{ENDPOINTS}.AutomationOrchestrator") as orchestrator_cls:
        orchestrator_cls.return_value.run_maintenance = AsyncMock(return_value=_run_summary("maintenance"))
        response = client.post("/api/v1/automation/trigger/maintenance")

    assert response.status_code == 200


# --- MATCH SCHEDULES ---
def test_schedule_unknown_match_returns_404(client):
    with patch.object(settings, "CRON_SECRET", SECRET), \
         patch(f"{ENDPOINTS}.SmartContentScheduler") as scheduler_cls:
        scheduler_cls.return_value.schedule_content_for_match = AsyncMock(
            side_effect=EntityNotFoundError("Match", 99)
        )
        response = client.post("/api/v1/automation/matches/99/schedule", headers={"X-Cron-Secret": SECRET})

    assert response.status_code == 404
    assert response.json()["detail"] == "Match with ID 99 not found."


def test_schedule_conflict_returns_409(client):
    with patch.object(settings, "CRON_SECRET", SECRET), \
         patch(f"{ENDPOINTS}.SmartContentScheduler") as scheduler_cls:
        scheduler_cls.return_value.schedule_content_for_match = AsyncMock(
            side_effect=ScheduleConflictError("5", 6)
        )
        response = client.post(
            "/api/v1/automation/matches/5/schedule",
            headers={"X-Cron-Secret": SECRET},
            json={"force_reschedule": False}
        )

    assert response.status_code == 409


def test_forced_schedule_passes_flag(client):
    with patch.object(settings, "CRON_SECRET", SECRET), \
         patch(f"{ENDPOINTS}.SmartContentScheduler") as scheduler_cls:
        scheduler_cls.return_value.schedule_content_for_match = AsyncMock(return_value={
            "success": True, "match_id": 5, "template": "High Importance Match",
            "scheduled_count": 0, "cancelled_count": 6, "languages": [], "items": []
        })
        response = client.post(
            "/api/v1/automation/matches/5/schedule",
            headers={"X-Cron-Secret": SECRET},
            json={"force_reschedule": True}
        )

    assert response.status_code == 200
    assert response.json()["cancelled_count"] == 6
    assert scheduler_cls.return_value.schedule_content_for_match.call_args[1]["force_reschedule"] is True


def test_update_schedule_requires_timezone(client):
    with patch.object(settings, "CRON_SECRET", SECRET):
        response = client.put(
            "/api/v1/automation/matches/5/schedule",
            headers={"X-Cron-Secret": SECRET},
            json={"new_kickoff": "2026-10-21T19:00:00"}
        )

    assert response.status_code == 422
