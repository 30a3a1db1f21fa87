import pytest
from fastapi.testclient import TestClient

from caseledger.services.db_service import DatabaseService
from caseledger.webserver.config import ServerConfig
from caseledger.webserver.server import create_app

pytestmark = pytest.mark.integration


@pytest.fixture
def client(db_path):
    config = ServerConfig(db_path=db_path)
    app = create_app(config)
    return TestClient(app)


def submit(client, action_type, params, actor="alice"):
    return client.post(
        "/api/scopes/acme/commands",
        json={"action_type": action_type, "params": params},
        headers={"X-Actor-Id": actor},
    )


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_submit_undo_redo(client):
    response = submit(client, "DeleteEntities", {"ids": [10, 11, 12]})
    assert response.status_code == 201
    command_id = response.json()["command_id"]
    assert response.json()["description"] == "Deleted 3 test cases"

    last = client.get("/api/scopes/acme/undo/last").json()
    assert last == {"command": {"id": command_id, "description": "Deleted 3 test cases"}}

    undo = client.post("/api/scopes/acme/undo", headers={"X-Actor-Id": "alice"})
    assert undo.status_code == 200
    assert undo.json()["success"] is True
    assert undo.json()["message"] == "Deleted 3 test cases"

    redo_stack = client.get("/api/scopes/acme/redo/stack").json()
    assert [item["id"] for item in redo_stack] == [command_id]

    redo = client.post("/api/scopes/acme/redo")
    assert redo.status_code == 200
    assert client.get("/api/scopes/acme/redo/last").json() == {"command": None}

    record = client.get(f"/api/scopes/acme/commands/{command_id}").json()
    assert record["status"] == "committed"
    assert record["actor_id"] == "alice"
    assert record["stamps"]["after"]["test_case:10"] is None


def test_nothing_to_undo_is_not_an_error(client):
    response = client.post("/api/scopes/acme/undo")
    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["message"] == "Nothing to undo"


def test_validation_error_is_422(client):
    response = submit(client, "DeleteEntities", {"ids": []})
    assert response.status_code == 422
    assert response.json()["kind"] == "validation"
    assert "ids" in response.json()["errors"]


def test_unknown_action_type_is_422(client):
    assert submit(client, "Explode", {}).status_code == 422


def test_missing_entity_is_404(client):
    response = submit(client, "DeleteEntities", {"ids": [999]})
    assert response.status_code == 404
    assert response.json()["kind"] == "not_found"


def test_missing_command_is_404(client):
    assert client.get("/api/scopes/acme/commands/42").status_code == 404


def test_conflict_is_409(client, db_path):
    command_id = submit(
        client, "ChangeField", {"ids": [13], "changes": {"state": "retired"}}
    ).json()["command_id"]
    with DatabaseService(db_path) as db:
        db.update_test_case(13, {"priority": "high"})

    response = client.post("/api/scopes/acme/undo")

    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["data"] == {
        "command_id": command_id,
        "conflicts": [{"entity": "test_case:13", "expected": 2, "actual": 3}],
    }
    assert body["error"]["kind"] == "conflict"


def test_audit_and_changelog(client):
    submit(client, "ChangeField", {"ids": [10], "changes": {"state": "retired"}})
    client.post("/api/scopes/acme/undo", headers={"X-Actor-Id": "bob"})

    entries = client.get("/api/scopes/acme/audit/test_case/10").json()

    assert [entry["action"] for entry in entries] == ["updated", "updated"]
    assert [entry["actor_id"] for entry in entries] == ["alice", "bob"]
    assert entries[0]["diffs"] == [
        {"field": "state", "old_value": "active", "new_value": "retired"}
    ]

    changelog = client.get("/api/scopes/acme/changelog", params={"limit": 1}).json()
    assert len(changelog) == 1
    assert changelog[0]["actor_id"] == "bob"


def test_audit_rejects_unknown_entity_type(client):
    assert client.get("/api/scopes/acme/audit/folder/1").status_code == 422


def test_clear_history(client):
    submit(client, "ChangeField", {"ids": [10], "changes": {"priority": "high"}})

    response = client.delete("/api/scopes/acme/history")

    assert response.json() == {"expired": 1}
    assert client.get("/api/scopes/acme/undo/stack").json() == []
