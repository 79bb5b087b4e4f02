"""
HTTP API tests

Runs the FastAPI app in-process with the engine and workflow service
swapped for the in-memory fixtures.
"""
import pytest
from fastapi.testclient import TestClient

from procflow.main import app
from procflow.api.deps import get_engine_dep, get_workflow_service_dep

from tests.support import purchase_states


ADMIN = {"X-Actor-Id": "root", "X-Actor-Roles": "Admin"}
CLERK = {"X-Actor-Id": "alice", "X-Actor-Roles": "Clerk", "X-Actor-Name": "Alice"}
MANAGER = {"X-Actor-Id": "bob", "X-Actor-Roles": "Manager"}
VISITOR = {"X-Actor-Id": "eve", "X-Actor-Roles": "Visitor"}


@pytest.fixture
def client(engine, workflow_service):
    app.dependency_overrides[get_engine_dep] = lambda: engine
    app.dependency_overrides[get_workflow_service_dep] = lambda: workflow_service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def published(client):
    resp = client.post(
        "/api/v1/workflows",
        json={"name": "Purchase", "states": purchase_states(), "sla_minutes": 60},
        headers=ADMIN
    )
    assert resp.status_code == 201
    return resp.json()


@pytest.fixture
def process_id(client, published):
    resp = client.post(
        "/api/v1/processes",
        json={"workflow_name": "Purchase", "title": "Laptop", "data": {"item": "Laptop"}},
        headers=CLERK
    )
    assert resp.status_code == 201
    return resp.json()["process_id"]


def error_code(resp):
    return resp.json()["error"]["code"]


class TestWorkflowEndpoints:

    def test_publish_and_fetch(self, client, published):
        assert published["version"] == 1
        assert published["active"] is True

        resp = client.get("/api/v1/workflows/Purchase/active", headers=CLERK)

        assert resp.status_code == 200
        assert resp.json()["definition_id"] == published["definition_id"]

    def test_publish_requires_admin(self, client):
        resp = client.post(
            "/api/v1/workflows",
            json={"name": "Purchase", "states": purchase_states()},
            headers=CLERK
        )

        assert resp.status_code == 403
        assert error_code(resp) == "FORBIDDEN"

    def test_structural_error(self, client):
        states = purchase_states()
        states[1]["actions"][0]["target_state"] = "Archived"

        resp = client.post("/api/v1/workflows", json={"name": "Broken", "states": states}, headers=ADMIN)

        assert resp.status_code == 400
        body = resp.json()["error"]
        assert body["code"] == "STRUCTURAL_ERROR"
        assert body["details"]["errors"][0]["kind"] == "DANGLING_TRANSITION"

    def test_validate_only(self, client):
        states = purchase_states()
        states.append({"name": "Orphan", "is_final": True})

        resp = client.post("/api/v1/workflows/validate", json={"name": "Draft", "states": states}, headers=ADMIN)

        assert resp.status_code == 200
        assert resp.json()["is_valid"] is True
        assert resp.json()["warnings"][0]["kind"] == "UNREACHABLE_STATE"

    def test_new_version_and_listing(self, client, published):
        resp = client.put(
            "/api/v1/workflows/Purchase",
            json={"name": "Purchase", "states": purchase_states(), "sla_minutes": 30},
            headers=ADMIN
        )
        assert resp.status_code == 200
        assert resp.json()["version"] == 2

        versions = client.get("/api/v1/workflows/Purchase/versions", headers=CLERK).json()
        assert [(v["version"], v["active"]) for v in versions] == [(1, False), (2, True)]

    def test_clone_and_toggle(self, client, published):
        resp = client.post("/api/v1/workflows/Purchase/clone", json={"new_name": "Purchase EU"}, headers=ADMIN)
        assert resp.status_code == 201

        resp = client.patch(
            "/api/v1/workflows/Purchase EU/versions/1/active", json={"active": False}, headers=ADMIN
        )
        assert resp.json()["active"] is False

        names = [w["name"] for w in client.get("/api/v1/workflows", headers=CLERK).json()]
        assert names == ["Purchase"]

    def test_unknown_workflow(self, client):
        resp = client.get("/api/v1/workflows/Nope/versions/1", headers=CLERK)

        assert resp.status_code == 404
        assert error_code(resp) == "WORKFLOW_NOT_FOUND"

    def test_workflow_stats(self, client, process_id):
        resp = client.get("/api/v1/workflows/Purchase/stats", headers=ADMIN)

        assert resp.status_code == 200
        body = resp.json()
        assert (body["total_versions"], body["active_version"], body["latest_version"]) == (1, 1, 1)
        assert body["processes"]["total"] == 1
        assert body["processes"]["by_state"] == {"Draft": 1}

    def test_stats_of_unknown_workflow(self, client):
        resp = client.get("/api/v1/workflows/Nope/stats", headers=ADMIN)

        assert resp.status_code == 404
        assert error_code(resp) == "WORKFLOW_NOT_FOUND"


class TestProcessEndpoints:

    def test_full_lifecycle(self, client, process_id):
        resp = client.post(
            f"/api/v1/processes/{process_id}/actions/submit",
            json={"payload": {"amount": 900}, "comments": "please"},
            headers=CLERK
        )
        assert resp.status_code == 200
        assert resp.json()["current_state"] == "Review"

        actions = client.get(f"/api/v1/processes/{process_id}/available-actions", headers=MANAGER).json()
        assert [a["name"] for a in actions["actions"]] == ["approve", "reject"]

        resp = client.post(f"/api/v1/processes/{process_id}/actions/approve", json={}, headers=MANAGER)
        assert resp.json()["status"] == "completed"

        history = client.get(f"/api/v1/processes/{process_id}/history", headers=CLERK).json()
        assert [h["action"] for h in history] == ["start", "submit", "approve"]

    def test_missing_actor(self, client, process_id):
        resp = client.get(f"/api/v1/processes/{process_id}")

        assert resp.status_code == 401
        assert error_code(resp) == "AUTHENTICATION_ERROR"

    def test_forbidden_action(self, client, process_id):
        resp = client.post(
            f"/api/v1/processes/{process_id}/actions/submit",
            json={"payload": {"amount": 1}},
            headers=VISITOR
        )

        assert resp.status_code == 403
        assert error_code(resp) == "FORBIDDEN"

    def test_missing_required_fields(self, client, process_id):
        resp = client.post(f"/api/v1/processes/{process_id}/actions/submit", json={}, headers=CLERK)

        assert resp.status_code == 400
        body = resp.json()["error"]
        assert body["code"] == "MISSING_REQUIRED_FIELDS"
        assert body["details"]["fields"] == ["amount"]

    def test_unknown_process(self, client, published):
        resp = client.get("/api/v1/processes/PRC-missing", headers=CLERK)

        assert resp.status_code == 404
        assert error_code(resp) == "PROCESS_NOT_FOUND"

    def test_action_on_canceled_process(self, client, process_id):
        resp = client.post(f"/api/v1/processes/{process_id}/cancel", json={"comments": "dup"}, headers=ADMIN)
        assert resp.json()["status"] == "canceled"

        resp = client.post(
            f"/api/v1/processes/{process_id}/actions/submit",
            json={"payload": {"amount": 1}},
            headers=CLERK
        )

        assert resp.status_code == 409
        assert error_code(resp) == "INVALID_STATE"
        assert resp.json()["error"]["details"]["kind"] == "ProcessNotActive"

    def test_suspend_resume_without_body(self, client, process_id):
        assert client.post(f"/api/v1/processes/{process_id}/suspend", headers=ADMIN).json()["status"] == "suspended"
        assert client.post(f"/api/v1/processes/{process_id}/resume", headers=ADMIN).json()["status"] == "active"

    def test_reassign_and_deadline(self, client, process_id):
        resp = client.put(
            f"/api/v1/processes/{process_id}/assignees", json={"assignees": ["bob"]}, headers=CLERK
        )
        assert resp.json()["assigned_to"] == ["bob"]

        resp = client.put(
            f"/api/v1/processes/{process_id}/deadline",
            json={"deadline": "2024-01-01T10:00:00Z"},
            headers=CLERK
        )
        assert resp.status_code == 200

        sla = client.get(f"/api/v1/processes/{process_id}/sla", headers=CLERK).json()
        assert sla["status"] == "atrisk"
        assert sla["dwell"]["Draft"]["visits"] == 1

    def test_list_mine(self, client, process_id):
        mine = client.get("/api/v1/processes", params={"mine": True}, headers=CLERK).json()
        theirs = client.get("/api/v1/processes", params={"mine": True}, headers=MANAGER).json()

        assert [p["process_id"] for p in mine["items"]] == [process_id]
        assert theirs["items"] == []

    def test_unknown_request_field_rejected(self, client, published):
        resp = client.post(
            "/api/v1/processes",
            json={"workflow_name": "Purchase", "bogus": 1},
            headers=CLERK
        )

        assert resp.status_code == 400
        assert error_code(resp) == "VALIDATION_ERROR"


class TestCollaborationEndpoints:

    def test_comment_thread(self, client, process_id):
        resp = client.post(
            f"/api/v1/processes/{process_id}/comments", json={"text": "Needed by Friday"}, headers=CLERK
        )
        assert resp.status_code == 201
        assert resp.json()["created_by"] == "alice"

        thread = client.get(f"/api/v1/processes/{process_id}/comments", headers=MANAGER).json()
        assert [c["text"] for c in thread] == ["Needed by Friday"]

    def test_comment_rules(self, client, process_id):
        outsider = client.post(
            f"/api/v1/processes/{process_id}/comments", json={"text": "hi"}, headers=VISITOR
        )
        blank = client.post(f"/api/v1/processes/{process_id}/comments", json={"text": ""}, headers=CLERK)

        assert outsider.status_code == 403
        assert blank.status_code == 400
        assert error_code(blank) == "VALIDATION_ERROR"

    def test_priority(self, client, process_id):
        resp = client.put(f"/api/v1/processes/{process_id}/priority", json={"priority": "high"}, headers=CLERK)
        assert resp.status_code == 200
        assert resp.json()["priority"] == "high"
        assert resp.json()["history"][-1]["action"] == "set_priority"

        other = client.put(f"/api/v1/processes/{process_id}/priority", json={"priority": "low"}, headers=MANAGER)
        bogus = client.put(f"/api/v1/processes/{process_id}/priority", json={"priority": "someday"}, headers=CLERK)
        assert other.status_code == 403
        assert bogus.status_code == 400

    def test_start_with_priority_tags_and_watchers(self, client, published):
        resp = client.post(
            "/api/v1/processes",
            json={"workflow_name": "Purchase", "priority": "urgent", "tags": ["it"], "watchers": ["carol"]},
            headers=CLERK
        )

        assert resp.status_code == 201
        body = resp.json()
        assert (body["priority"], body["tags"], body["watchers"]) == ("urgent", ["it"], ["carol"])

    def test_process_stats(self, client, process_id):
        everything = client.get("/api/v1/processes/stats", headers=ADMIN)
        nothing = client.get("/api/v1/processes/stats", headers=MANAGER).json()

        assert everything.status_code == 200
        assert everything.json()["by_status"] == {"active": 1}
        assert everything.json()["by_workflow"] == {"Purchase": 1}
        assert nothing["total"] == 0

    def test_bulk_cancel(self, client, process_id):
        second = client.post("/api/v1/processes", json={"workflow_name": "Purchase"}, headers=CLERK).json()

        resp = client.post(
            "/api/v1/processes/bulk-actions/cancel",
            json={"process_ids": [process_id, second["process_id"], "PRC-missing"], "comments": "cleanup"},
            headers=ADMIN
        )

        assert resp.status_code == 200
        body = resp.json()
        assert (body["succeeded"], body["failed"]) == (2, 1)
        assert body["results"][0]["status"] == "canceled"
        assert body["results"][2]["error"]["code"] == "PROCESS_NOT_FOUND"

    def test_bulk_needs_a_selection(self, client, published):
        resp = client.post("/api/v1/processes/bulk-actions/cancel", json={"process_ids": []}, headers=ADMIN)

        assert resp.status_code == 400
        assert error_code(resp) == "VALIDATION_ERROR"


class TestPlumbing:

    def test_health(self, client):
        resp = client.get("/health")

        assert resp.status_code == 200
        assert resp.json()["storage"]["backend"] == "memory"

    def test_correlation_id_echoed(self, client, process_id):
        resp = client.get(f"/api/v1/processes/{process_id}", headers={**CLERK, "X-Correlation-Id": "COR-abc"})

        assert resp.headers["X-Correlation-Id"] == "COR-abc"

    def test_correlation_id_generated(self, client):
        assert client.get("/health").headers["X-Correlation-Id"].startswith("COR-")
