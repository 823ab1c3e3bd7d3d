from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlmodel import SQLModel

from .helpers import auth_headers, register


def _create(client, headers, **fields):
    payload = {"title": "Task"}
    payload.update(fields)
    response = client.post("/api/tasks", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["task"]


def _future(days=2):
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


@pytest.fixture()
def bob_headers(client):
    return auth_headers(register(client, username="bob", email="bob@x.com")["token"])


def test_alice_scenario(client):
    register(client)
    login = client.post("/api/auth/login", json={"username": "alice", "password": "secret1"})
    assert login.status_code == 200
    headers = auth_headers(login.json()["token"])

    created = client.post("/api/tasks", json={"title": "Buy milk"}, headers=headers)
    assert created.status_code == 201
    assert created.json()["message"] == "Task created successfully"
    task = created.json()["task"]
    assert task["status"] == "Pending"
    assert task["priority"] == "medium"
    assert task["completed"] is False

    updated = client.put(f"/api/tasks/{task['id']}", json={"status": "Completed"}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["message"] == "Task updated successfully"
    assert updated.json()["task"]["completed"] is True


def test_tasks_require_authorization(client, alice_headers):
    task = _create(client, alice_headers)
    requests = [
        ("get", "/api/tasks"),
        ("get", "/api/tasks/stats"),
        ("get", f"/api/tasks/{task['id']}"),
        ("post", "/api/tasks"),
        ("put", f"/api/tasks/{task['id']}"),
        ("delete", f"/api/tasks/{task['id']}"),
    ]
    for method, url in requests:
        kwargs = {"json": {"title": "Hijacked"}} if method in ("post", "put") else {}
        response = getattr(client, method)(url, **kwargs)
        assert response.status_code == 401, (method, url)

    fetched = client.get(f"/api/tasks/{task['id']}", headers=alice_headers).json()["task"]
    assert fetched["title"] == "Task"
    assert client.get("/api/tasks", headers=alice_headers).json()["pagination"]["total"] == 1


def test_create_task_ignores_client_user_id(client, alice, alice_headers):
    task = _create(client, alice_headers, userId="someone-else", completed=True)
    assert task["userId"] == alice["user"]["id"]
    assert task["completed"] is False


def test_create_task_with_all_fields(client, alice_headers):
    due = _future()
    task = _create(
        client, alice_headers,
        title="  Write report  ", description="Quarterly", priority="high", status="In Progress", dueDate=due,
    )
    assert task["title"] == "Write report"
    assert task["priority"] == "high"
    assert task["status"] == "In Progress"
    assert task["dueDate"] is not None
    assert task["completedAt"] is None


def test_create_completed_task_sets_completion(client, alice_headers):
    task = _create(client, alice_headers, status="Completed")
    assert task["completed"] is True
    assert task["completedAt"] is not None


@pytest.mark.parametrize("payload, field", [
    ({}, "title"),
    ({"title": ""}, "title"),
    ({"title": "x" * 101}, "title"),
    ({"title": "ok", "description": "x" * 201}, "description"),
    ({"title": "ok", "priority": "urgent"}, "priority"),
    ({"title": "ok", "status": "Done"}, "status"),
    ({"title": "ok", "dueDate": "2000-01-01T00:00:00Z"}, "dueDate"),
    ({"title": "ok", "dueDate": "tomorrow"}, "dueDate"),
])
def test_create_task_validation(client, alice_headers, payload, field):
    response = client.post("/api/tasks", json=payload, headers=alice_headers)
    assert response.status_code == 400
    fields = {error["loc"][-1] for error in response.json()["errors"]}
    assert field in fields


def test_get_task_is_scoped_to_owner(client, alice_headers, bob_headers):
    task = _create(client, alice_headers, title="Private")

    response = client.get(f"/api/tasks/{task['id']}", headers=alice_headers)
    assert response.status_code == 200
    assert response.json()["task"]["title"] == "Private"

    response = client.get(f"/api/tasks/{task['id']}", headers=bob_headers)
    assert response.status_code == 404
    assert response.json() == {"error": "Task not found"}


def test_unknown_and_invalid_ids(client, alice_headers):
    assert client.get(f"/api/tasks/{uuid4()}", headers=alice_headers).status_code == 404
    response = client.get("/api/tasks/not-a-valid-id", headers=alice_headers)
    assert response.status_code == 400
    assert response.json()["errors"][0]["loc"] == ["path", "task_id"]


def test_list_filters_and_counts_all_matches(client, alice_headers, bob_headers):
    _create(client, alice_headers, title="a", status="Completed")
    _create(client, alice_headers, title="b", status="Completed", priority="high")
    _create(client, alice_headers, title="c")
    _create(client, bob_headers, title="d", status="Completed")

    response = client.get("/api/tasks", params={"status": "Completed", "limit": 1}, headers=alice_headers)
    assert response.status_code == 200
    data = response.json()
    assert len(data["tasks"]) == 1
    assert data["tasks"][0]["status"] == "Completed"
    assert data["pagination"] == {"current": 1, "pages": 2, "total": 2}

    data = client.get(
        "/api/tasks", params={"status": "Completed", "priority": "high"}, headers=alice_headers
    ).json()
    assert [task["title"] for task in data["tasks"]] == ["b"]
    assert data["pagination"]["total"] == 1


def test_list_sorting_and_pages(client, alice_headers):
    for title in ("b", "a", "c"):
        _create(client, alice_headers, title=title)

    params = {"sortBy": "title", "sortOrder": "asc"}
    data = client.get("/api/tasks", params=params, headers=alice_headers).json()
    assert [task["title"] for task in data["tasks"]] == ["a", "b", "c"]

    params = {"sortBy": "title", "sortOrder": "desc", "page": 2, "limit": 2}
    data = client.get("/api/tasks", params=params, headers=alice_headers).json()
    assert [task["title"] for task in data["tasks"]] == ["a"]
    assert data["pagination"] == {"current": 2, "pages": 2, "total": 3}


def test_list_empty(client, alice_headers):
    data = client.get("/api/tasks", headers=alice_headers).json()
    assert data == {"tasks": [], "pagination": {"current": 1, "pages": 0, "total": 0}}


@pytest.mark.parametrize("params", [
    {"sortBy": "password"},
    {"sortOrder": "sideways"},
    {"status": "Done"},
    {"page": 0},
    {"limit": 0},
    {"limit": "many"},
])
def test_list_rejects_bad_query(client, alice_headers, params):
    response = client.get("/api/tasks", params=params, headers=alice_headers)
    assert response.status_code == 400
    assert "errors" in response.json()


def test_list_accepts_large_limit(client, alice_headers):
    for title in ("a", "b", "c"):
        _create(client, alice_headers, title=title)

    response = client.get("/api/tasks", params={"limit": 200}, headers=alice_headers)
    assert response.status_code == 200
    data = response.json()
    assert len(data["tasks"]) == 3
    assert data["pagination"] == {"current": 1, "pages": 1, "total": 3}


def test_create_task_accepts_naive_due_date(client, alice_headers):
    due = (datetime.now(timezone.utc) + timedelta(days=2)).replace(tzinfo=None).isoformat()
    task = _create(client, alice_headers, dueDate=due)
    assert task["dueDate"].startswith(due[:19])
    assert task["dueDate"].endswith("+00:00")
    assert task["createdAt"].endswith("+00:00")


def test_completion_follows_status(client, alice_headers):
    task = _create(client, alice_headers)
    url = f"/api/tasks/{task['id']}"

    done = client.put(url, json={"status": "Completed"}, headers=alice_headers).json()["task"]
    assert done["completed"] is True
    assert done["completedAt"] is not None

    # touching another field keeps the completion state
    renamed = client.put(url, json={"title": "Renamed"}, headers=alice_headers).json()["task"]
    assert renamed["completed"] is True
    assert renamed["completedAt"] == done["completedAt"]

    reopened = client.put(url, json={"status": "In Progress"}, headers=alice_headers).json()["task"]
    assert reopened["completed"] is False
    assert reopened["completedAt"] is None


def test_update_only_writes_allowed_fields(client, alice, alice_headers):
    task = _create(client, alice_headers, description="old")
    response = client.put(
        f"/api/tasks/{task['id']}",
        json={
            "description": "new",
            "priority": "low",
            "dueDate": _future(),
            "userId": "someone-else",
            "completed": True,
            "id": "other-id",
        },
        headers=alice_headers,
    )
    assert response.status_code == 200
    updated = response.json()["task"]
    assert updated["id"] == task["id"]
    assert updated["userId"] == alice["user"]["id"]
    assert updated["description"] == "new"
    assert updated["priority"] == "low"
    assert updated["title"] == "Task"
    assert updated["completed"] is False
    assert updated["dueDate"] is not None


def test_update_rejects_operator_keys(client, alice_headers):
    task = _create(client, alice_headers, title="Original")
    url = f"/api/tasks/{task['id']}"

    response = client.put(url, json={"$set": {"title": "Pwned"}, "title": "Pwned"}, headers=alice_headers)
    assert response.status_code == 400
    assert response.json() == {"error": "Update operators are not allowed in the request body."}

    assert client.get(url, headers=alice_headers).json()["task"]["title"] == "Original"


@pytest.mark.parametrize("payload", [
    {"title": ""},
    {"title": None},
    {"status": None},
    {"status": "Done"},
    {"dueDate": "2000-01-01T00:00:00"},
])
def test_update_validation(client, alice_headers, payload):
    task = _create(client, alice_headers, title="Original")
    url = f"/api/tasks/{task['id']}"
    response = client.put(url, json=payload, headers=alice_headers)
    assert response.status_code == 400
    assert client.get(url, headers=alice_headers).json()["task"]["title"] == "Original"


def test_update_other_users_task_is_not_found(client, alice_headers, bob_headers):
    task = _create(client, alice_headers, title="Original")
    response = client.put(f"/api/tasks/{task['id']}", json={"title": "Mine"}, headers=bob_headers)
    assert response.status_code == 404
    fetched = client.get(f"/api/tasks/{task['id']}", headers=alice_headers).json()["task"]
    assert fetched["title"] == "Original"


def test_delete_task(client, alice_headers, bob_headers):
    task = _create(client, alice_headers)
    url = f"/api/tasks/{task['id']}"

    assert client.delete(url, headers=bob_headers).status_code == 404

    response = client.delete(url, headers=alice_headers)
    assert response.status_code == 200
    assert response.json() == {"message": "Task deleted successfully"}

    assert client.get(url, headers=alice_headers).status_code == 404
    assert client.delete(url, headers=alice_headers).status_code == 404


def test_stats(client, alice_headers, bob_headers):
    _create(client, alice_headers, status="Pending", priority="high")
    _create(client, alice_headers, status="Pending")
    _create(client, alice_headers, status="Completed")
    _create(client, bob_headers, status="In Progress")

    response = client.get("/api/tasks/stats", headers=alice_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert sorted(data["statusStats"], key=lambda s: s["_id"]) == [
        {"_id": "Completed", "count": 1},
        {"_id": "Pending", "count": 2},
    ]
    assert sorted(data["priorityStats"], key=lambda s: s["_id"]) == [
        {"_id": "high", "count": 1},
        {"_id": "medium", "count": 2},
    ]


def test_stats_for_user_without_tasks(client, alice_headers):
    data = client.get("/api/tasks/stats", headers=alice_headers).json()
    assert data == {"statusStats": [], "priorityStats": [], "total": 0}


def test_store_failure_returns_generic_error(client, alice_headers, engine):
    SQLModel.metadata.tables["tasks"].drop(engine)

    response = client.get("/api/tasks", headers=alice_headers)
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to fetch tasks"}

    response = client.post("/api/tasks", json={"title": "Lost"}, headers=alice_headers)
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to create task"}
