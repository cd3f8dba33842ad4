"""
API tests for /todos: CRUD scoped to the authenticated user.
"""

import pytest

from conftest import auth_header


@pytest.fixture
def owner(register_user):
    body = register_user(email="owner@example.com")
    return auth_header(body["token"])


@pytest.fixture
def stranger(register_user):
    body = register_user(email="stranger@example.com")
    return auth_header(body["token"])


def _create(client, headers, **payload):
    response = client.post("/todos", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["todo"]


def test_create_todo(client, owner):
    response = client.post("/todos", json={"title": "  Buy milk  ", "description": "2 litres"}, headers=owner)

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Todo created successfully"
    todo = body["todo"]
    assert todo["title"] == "Buy milk"
    assert todo["description"] == "2 litres"
    assert todo["completed"] is False
    assert set(todo) == {"id", "title", "description", "completed", "userId", "createdAt", "updatedAt"}


def test_create_todo_requires_title(client, owner):
    response = client.post("/todos", json={"title": "   "}, headers=owner)

    assert response.status_code == 400
    assert "title" in response.json()["error"]


def test_create_todo_blank_description_is_null(client, owner):
    todo = _create(client, owner, title="Task", description="  ")

    assert todo["description"] is None


def test_list_todos_newest_first(client, owner):
    first = _create(client, owner, title="first")
    second = _create(client, owner, title="second")

    response = client.get("/todos", headers=owner)

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Todos retrieved successfully"
    assert [t["id"] for t in body["todos"]] == [second["id"], first["id"]]


def test_list_only_shows_own_todos(client, owner, stranger):
    _create(client, owner, title="mine")

    response = client.get("/todos", headers=stranger)

    assert response.json()["todos"] == []


def test_get_todo(client, owner):
    todo = _create(client, owner, title="Task")

    response = client.get(f"/todos/{todo['id']}", headers=owner)

    assert response.status_code == 200
    assert response.json() == {"message": "Todo retrieved successfully", "todo": todo}


def test_other_users_todo_is_not_found(client, owner, stranger):
    todo = _create(client, owner, title="private")

    for method in ("get", "put", "delete"):
        kwargs = {"json": {"title": "hijack"}} if method == "put" else {}
        response = getattr(client, method)(f"/todos/{todo['id']}", headers=stranger, **kwargs)
        assert response.status_code == 404
        assert response.json() == {"error": "Todo not found"}


def test_unknown_todo_is_not_found(client, owner):
    response = client.get("/todos/does-not-exist", headers=owner)

    assert response.status_code == 404
    assert response.json() == {"error": "Todo not found"}


def test_update_todo_partial(client, owner):
    todo = _create(client, owner, title="Task", description="details")

    response = client.put(f"/todos/{todo['id']}", json={"completed": True}, headers=owner)

    assert response.status_code == 200
    updated = response.json()["todo"]
    assert response.json()["message"] == "Todo updated successfully"
    assert updated["completed"] is True
    assert updated["title"] == "Task"
    assert updated["description"] == "details"


def test_update_todo_clears_description(client, owner):
    todo = _create(client, owner, title="Task", description="details")

    response = client.put(f"/todos/{todo['id']}", json={"title": "Renamed", "description": ""}, headers=owner)

    updated = response.json()["todo"]
    assert updated["title"] == "Renamed"
    assert updated["description"] is None


def test_update_todo_rejects_empty_title(client, owner):
    todo = _create(client, owner, title="Task")

    response = client.put(f"/todos/{todo['id']}", json={"title": ""}, headers=owner)

    assert response.status_code == 400
    assert "title" in response.json()["error"]


def test_delete_todo(client, owner):
    todo = _create(client, owner, title="Task")

    response = client.delete(f"/todos/{todo['id']}", headers=owner)

    assert response.status_code == 200
    assert response.json() == {"message": "Todo deleted successfully"}
    assert client.get(f"/todos/{todo['id']}", headers=owner).status_code == 404


def test_todos_require_authentication(client):
    assert client.get("/todos").status_code == 401
    assert client.post("/todos", json={"title": "x"}).status_code == 401


def test_create_todo_strips_markup(client, owner):
    todo = _create(
        client,
        owner,
        title="<script>alert(1)</script>Buy milk",
        description='<img src="x" onerror="alert(1)">details\u0000',
    )

    assert todo["title"] == "Buy milk"
    assert "onerror" not in todo["description"]
    assert "\u0000" not in todo["description"]
    assert todo["description"].endswith("details")


def test_create_todo_rejects_title_that_is_only_markup(client, owner):
    response = client.post("/todos", json={"title": "<script>alert(1)</script>"}, headers=owner)

    assert response.status_code == 400
    assert response.json() == {"error": "title: must not be empty"}


def test_update_todo_strips_markup(client, owner):
    todo = _create(client, owner, title="Task")

    response = client.put(
        f"/todos/{todo['id']}",
        json={"title": "Renamed<script>x</script>", "description": "<script>x</script>"},
        headers=owner,
    )

    updated = response.json()["todo"]
    assert updated["title"] == "Renamed"
    assert updated["description"] is None
