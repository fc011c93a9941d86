from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from caseflow import main as app_main
from caseflow.api.routers import tasks as tasks_router
from caseflow.infra.activity import SqlActivityLog
from caseflow.infra.auth import create_access_token
from caseflow.infra.events import EventBus
from caseflow.infra.notifications import SqlNotificationSink
from caseflow.services.transition_service import TransitionService


@pytest.fixture()
def client(sqlite_engine: Engine) -> Generator[TestClient, None, None]:
    def _service() -> TransitionService:
        return TransitionService(
            activity=SqlActivityLog(),
            notifier=SqlNotificationSink(),
            bus=EventBus(),
        )

    app_main.app.dependency_overrides[tasks_router.get_transition_service] = _service
    test_client = TestClient(app_main.app)
    yield test_client
    test_client.close()
    app_main.app.dependency_overrides.clear()


def _auth_header(user_id: str, permissions: list[str] | None = None) -> dict[str, str]:
    token = create_access_token(user_id=user_id, permissions=permissions)
    return {"Authorization": f"Bearer {token}"}


ADMIN = _auth_header("admin-1", ["*"])


def _create_case(client: TestClient) -> str:
    response = client.post(
        "/api/cases",
        json={
            "title": "Villa interiors",
            "client_name": "Mehta",
            "role_assignments": {
                "SITE_ENGINEER": "engineer-1",
                "DRAWING_TEAM": "drafter-1",
                "ADMIN": "admin-1",
            },
        },
        headers=ADMIN,
    )
    assert response.status_code == 201
    return response.json()["id"]


def _create_task(client: TestClient, case_id: str, task_type: str, assignee: str) -> str:
    response = client.post(
        "/api/tasks",
        json={"case_id": case_id, "type": task_type, "assigned_to": assignee},
        headers=ADMIN,
    )
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "PENDING"
    assert body["assigned_by"] == "admin-1"
    return body["id"]


def test_requires_token(client: TestClient) -> None:
    assert client.get("/api/tasks/assigned").status_code == 401
    bad = client.get("/api/tasks/assigned", headers={"Authorization": "Bearer not-a-token"})
    assert bad.status_code == 401


def test_create_requires_permission(client: TestClient) -> None:
    case_id = _create_case(client)
    response = client.post(
        "/api/tasks",
        json={"case_id": case_id, "type": "SALES_CONTACT", "assigned_to": "sales-1"},
        headers=_auth_header("sales-1"),
    )
    assert response.status_code == 403


def test_full_flow_over_http(client: TestClient) -> None:
    case_id = _create_case(client)
    sales_id = _create_task(client, case_id, "SALES_CONTACT", "sales-1")
    sales = _auth_header("sales-1")
    engineer = _auth_header("engineer-1")

    started = client.post(f"/api/tasks/{sales_id}/start", headers=sales)
    assert started.status_code == 200
    assert started.json()["status"] == "STARTED"

    completed = client.post(f"/api/tasks/{sales_id}/complete", headers=sales)
    assert completed.status_code == 200
    inspection_id = completed.json()["next_task_id"]
    assert completed.json()["task"]["status"] == "COMPLETED"
    assert inspection_id

    queue = client.get("/api/tasks/assigned", headers=engineer)
    assert queue.status_code == 200
    assert [item["id"] for item in queue.json()] == [inspection_id]
    assert queue.json()[0]["type"] == "SITE_INSPECTION"

    assert client.post(f"/api/tasks/{inspection_id}/start", headers=engineer).status_code == 200
    invalid = client.post(f"/api/tasks/{inspection_id}/complete", json={}, headers=engineer)
    assert invalid.status_code == 422
    assert invalid.json()["detail"]["field"] == "km_travelled"

    done = client.post(
        f"/api/tasks/{inspection_id}/complete",
        json={"km_travelled": 8},
        headers=engineer,
    )
    assert done.status_code == 200
    drawing_id = done.json()["next_task_id"]

    drawing = client.get(f"/api/tasks/{drawing_id}", headers=engineer)
    assert drawing.status_code == 200
    assert drawing.json()["assigned_to"] == "drafter-1"
    assert drawing.json()["deadline"] is not None

    notes = client.get("/api/notifications", headers=_auth_header("drafter-1"))
    assert notes.status_code == 200
    assert [item["title"] for item in notes.json()] == ["New Drawing Task"]

    tasks = client.get(f"/api/cases/{case_id}/tasks", headers=ADMIN)
    assert [item["type"] for item in tasks.json()] == ["SALES_CONTACT", "SITE_INSPECTION", "DRAWING_TASK"]

    trail = client.get(f"/api/cases/{case_id}/activities", headers=ADMIN)
    assert trail.status_code == 200
    actions = [item["action"] for item in trail.json()]
    assert actions[0] == "Task created: SALES_CONTACT"
    assert "SITE_INSPECTION completed (8 km travelled)" in actions


def test_error_mapping(client: TestClient) -> None:
    case_id = _create_case(client)
    sales_id = _create_task(client, case_id, "SALES_CONTACT", "sales-1")
    sales = _auth_header("sales-1")

    assert client.post(f"/api/tasks/{sales_id}/start", headers=_auth_header("intruder")).status_code == 403
    assert client.post(f"/api/tasks/{sales_id}/complete", headers=sales).status_code == 409
    assert client.post("/api/tasks/missing/start", headers=sales).status_code == 404

    duplicate = client.post(
        "/api/tasks",
        json={"case_id": case_id, "type": "SALES_CONTACT", "assigned_to": "sales-1"},
        headers=ADMIN,
    )
    assert duplicate.status_code == 409

    unknown_case = client.post(
        "/api/tasks",
        json={"case_id": "missing", "type": "SALES_CONTACT", "assigned_to": "sales-1"},
        headers=ADMIN,
    )
    assert unknown_case.status_code == 404


def test_acknowledge_over_http(client: TestClient) -> None:
    case_id = _create_case(client)
    task_id = _create_task(client, case_id, "EXECUTION_TASK", "crew-1")
    crew = _auth_header("crew-1")
    client.post(f"/api/tasks/{task_id}/start", headers=crew)
    completed = client.post(f"/api/tasks/{task_id}/complete", headers=crew)
    assert completed.json()["next_task_id"] is None

    assert client.post(f"/api/tasks/{task_id}/acknowledge", headers=crew).status_code == 403
    acknowledged = client.post(f"/api/tasks/{task_id}/acknowledge", headers=ADMIN)
    assert acknowledged.status_code == 200
    assert acknowledged.json()["status"] == "ACKNOWLEDGED"


def test_assign_role_after_creation(client: TestClient) -> None:
    case_id = _create_case(client)

    response = client.put(
        f"/api/cases/{case_id}/roles/QUOTATION_TEAM",
        json={"user_id": "quoter-9"},
        headers=ADMIN,
    )
    assert response.status_code == 200
    assert response.json()["role_assignments"]["QUOTATION_TEAM"] == "quoter-9"
    assert response.json()["role_assignments"]["SITE_ENGINEER"] == "engineer-1"

    missing = client.put("/api/cases/missing/roles/ADMIN", json={"user_id": "x"}, headers=ADMIN)
    assert missing.status_code == 404
    assert client.get("/api/cases/missing", headers=ADMIN).status_code == 404


def test_resume_over_http(client: TestClient) -> None:
    case_id = _create_case(client)
    sales_id = _create_task(client, case_id, "SALES_CONTACT", "sales-1")
    sales = _auth_header("sales-1")
    client.post(f"/api/tasks/{sales_id}/start", headers=sales)

    assert client.post(f"/api/tasks/{sales_id}/resume", headers=sales).status_code == 409
    completed = client.post(f"/api/tasks/{sales_id}/complete", headers=sales)
    assert completed.status_code == 200

    assert client.post(f"/api/tasks/{sales_id}/complete", headers=sales).status_code == 409
    assert client.post(f"/api/tasks/{sales_id}/resume", headers=sales).status_code == 409
    assert client.post(f"/api/tasks/{sales_id}/resume", headers=_auth_header("engineer-1")).status_code == 403
    assert client.post("/api/tasks/missing/resume", headers=sales).status_code == 404


def test_non_finite_distance_is_unprocessable(client: TestClient) -> None:
    case_id = _create_case(client)
    inspection_id = _create_task(client, case_id, "SITE_INSPECTION", "engineer-1")
    engineer = _auth_header("engineer-1")
    client.post(f"/api/tasks/{inspection_id}/start", headers=engineer)

    for raw in ("NaN", "Infinity", "-Infinity"):
        response = client.post(
            f"/api/tasks/{inspection_id}/complete",
            content=f'{{"km_travelled": {raw}}}',
            headers={**engineer, "Content-Type": "application/json"},
        )
        assert response.status_code == 422

    task = client.get(f"/api/tasks/{inspection_id}", headers=engineer)
    assert task.json()["status"] == "STARTED"
