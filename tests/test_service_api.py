import uuid

import pytest
from fastapi.testclient import TestClient

from moby_kanban.app.main import create_app
from moby_kanban.config import Settings


@pytest.fixture
def client(tmp_path):
    settings = Settings(db_path=str(tmp_path / "board.db"), log_dir=str(tmp_path / "logs"))
    with TestClient(create_app(settings)) as c:
        yield c


def create_task(client, title, **fields):
    r = client.post("/api/tasks", json={"title": title, **fields})
    assert r.status_code == 201, r.text
    return r.json()


def column(client, status="BACKLOG"):
    return [(t["title"], t["position"]) for t in client.get("/api/tasks").json() if t["status"] == status]


def test_create_appends_to_backlog(client):
    for title in ("a", "b", "c"):
        create_task(client, title)
    assert column(client) == [("a", 0), ("b", 1), ("c", 2)]


def test_create_rejects_blank_title(client):
    assert client.post("/api/tasks", json={"title": "  "}).status_code == 422


def test_move_keeps_both_columns_dense(client):
    a, b, c = (create_task(client, t) for t in "abc")
    done = create_task(client, "d")
    client.patch(f"/api/tasks/{done['id']}", json={"status": "DONE"})

    r = client.patch(f"/api/tasks/{b['id']}", json={"status": "DONE", "position": 0})
    assert r.status_code == 200
    assert r.json()["position"] == 0
    assert column(client) == [("a", 0), ("c", 1)]
    assert column(client, "DONE") == [("b", 0), ("d", 1)]


def test_partial_update_leaves_other_fields(client):
    task = create_task(client, "a", description="keep me", priority="HIGH")
    r = client.patch(f"/api/tasks/{task['id']}", json={"title": "renamed"})
    body = r.json()
    assert (body["title"], body["description"], body["priority"]) == ("renamed", "keep me", "HIGH")


def test_null_title_is_rejected(client):
    task = create_task(client, "a")
    assert client.patch(f"/api/tasks/{task['id']}", json={"title": None}).status_code == 422


def test_delete_compacts_column(client):
    a, b, c = (create_task(client, t) for t in "abc")
    assert client.delete(f"/api/tasks/{a['id']}").json() == {"success": True}
    assert column(client) == [("b", 0), ("c", 1)]


def test_unknown_task_is_404(client):
    missing = str(uuid.uuid4())
    r = client.patch(f"/api/tasks/{missing}", json={"title": "x"})
    assert r.status_code == 404
    assert r.json()["code"] == "NOT_FOUND"
    assert client.delete(f"/api/tasks/{missing}").status_code == 404
    assert client.post(f"/api/tasks/{missing}/flag").status_code == 404


def test_flag_toggles(client):
    task = create_task(client, "a")
    assert client.post(f"/api/tasks/{task['id']}/flag").json()["needsReview"] is True
    assert client.post(f"/api/tasks/{task['id']}/flag").json()["needsReview"] is False


def test_reorder_batch(client):
    a, b, c = (create_task(client, t) for t in "abc")
    r = client.post("/api/tasks/reorder", json={"taskIds": [c["id"], a["id"], b["id"]], "status": "BACKLOG"})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert [t["title"] for t in body["tasks"]] == ["c", "a", "b"]
    assert column(client) == [("c", 0), ("a", 1), ("b", 2)]


def test_reorder_with_unknown_id_changes_nothing(client):
    a, b = create_task(client, "a"), create_task(client, "b")
    r = client.post("/api/tasks/reorder", json={"taskIds": [b["id"], str(uuid.uuid4())], "status": "BACKLOG"})
    assert r.status_code == 404
    assert column(client) == [("a", 0), ("b", 1)]


def test_task_with_unknown_project_is_rejected(client):
    r = client.post("/api/tasks", json={"title": "a", "projectId": str(uuid.uuid4())})
    assert r.status_code == 400
    assert r.json()["code"] == "CONSTRAINT"


def test_projects_ordering_and_delete_unassigns(client):
    ids = [client.post("/api/projects", json={"name": n}).json()["id"] for n in ("web", "api", "ops")]
    task = create_task(client, "a", projectId=ids[0])

    r = client.post("/api/projects/reorder", json={"projectIds": [ids[2], ids[0], ids[1]]})
    assert [p["name"] for p in r.json()["projects"]] == ["ops", "web", "api"]

    assert client.delete(f"/api/projects/{ids[0]}").status_code == 200
    projects = client.get("/api/projects").json()
    assert [(p["name"], p["position"]) for p in projects] == [("ops", 0), ("api", 1)]
    assert client.get(f"/api/tasks/{task['id']}").json()["projectId"] is None


def test_project_defaults_and_validation(client):
    body = client.post("/api/projects", json={"name": "web"}).json()
    assert body["color"] == "#3b82f6"
    assert client.post("/api/projects", json={"name": "x", "color": "blue"}).status_code == 422


def test_logs_record_requests(client):
    create_task(client, "a")
    client.get(f"/api/tasks/{uuid.uuid4()}")

    stats = client.get("/api/logs", params={"stats": "true"}).json()
    assert stats["total"] > 0
    assert stats["byLevel"]["WARNING"] >= 1

    items = client.get("/api/logs", params={"category": "tasks"}).json()["items"]
    assert any(item["event"] == "task.create" for item in items)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
