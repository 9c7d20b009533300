"""End-to-end tests: compile DSL, load the module, drive it with TestClient."""

import pytest
from fastapi.testclient import TestClient

from codeless.codegen import emit
from codeless.lang import parse
from codeless.runtime import SqliteAdapter

TASKS = '''
data Task {
  title: String(min: 3)
  done: Boolean?
}

do createTask(data) {
    return await db.Task.save(data)
}

do listTasks(done) {
    where = {} if done is None else {"done": done == "true"}
    return await db.Task.find_all(where, order_by="id")
}

do getTask(id) {
    return await db.Task.get(id)
}

do completeTask(id) {
    return await db.Task.update(id, {"done": True})
}

do deleteTask(id) {
    await db.Task.remove(id)
}

do stats() {
    rows = await db.query('SELECT COUNT(*) AS total FROM "Task"')
    return rows[0]
}

do purge() {
    return await db.query('DELETE FROM "Task"')
}

do echo(data) {
    return {"received": data}
}

do whoami(user) {
    return {"sub": user["sub"]}
}

do stamp(data) {
    data["stamped"] = True
    return data
}

do noop(data) {
    pass
}

do showParam(value) {
    return {"value": value}
}

route {
  POST "/tasks" => auth, validate(Task), createTask
  GET "/tasks" => listTasks
  GET "/tasks/:id" => getTask
  PUT "/tasks/:id/done" => completeTask
  DELETE "/tasks/:id" => deleteTask
  GET "/stats" => stats
  POST "/purge" => purge
  POST "/echo" => echo
  GET "/me" => auth, whoami
  POST "/chain" => stamp, noop, echo
  POST "/items/:code" => echo
  GET "/params/:value" => showParam
}
'''


@pytest.fixture
def server(load_source):
    return load_source(emit(parse(TASKS)).server_source, name="tasks")


@pytest.fixture
def client(server, tmp_path, auth_gate):
    adapter = SqliteAdapter(str(tmp_path / "tasks.db"))
    app = server.create_app(adapter, auth=auth_gate, create_tables=True)
    with TestClient(app) as test_client:
        yield test_client


def create(client, bearer, title="write tests"):
    response = client.post("/tasks", json={"title": title}, headers=bearer())
    assert response.status_code == 200, response.text
    return response.json()


def test_health(client):
    response = client.get("/__health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "engine": "codeless"}


class TestAuthAndValidation:
    def test_auth_runs_before_validation(self, client):
        response = client.post("/tasks", json={"title": "x"})
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized", "message": "Missing or invalid Authorization header"}

    def test_bad_token(self, client, bearer):
        response = client.post("/tasks", json={"title": "valid"}, headers=bearer(secret="other"))
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid token"

    def test_validation_error(self, client, bearer):
        response = client.post("/tasks", json={"title": "x"}, headers=bearer())
        assert response.status_code == 400
        assert response.json() == {
            "error": "Validation Error",
            "message": 'Task: "title" too short',
            "field": "title",
        }

    def test_invalid_json(self, client, bearer):
        headers = {**bearer(), "Content-Type": "application/json"}
        response = client.post("/tasks", content=b"{not json", headers=headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid JSON body"

    def test_claims_reach_actions(self, client, bearer):
        response = client.get("/me", headers=bearer({"sub": "alice"}))
        assert response.json() == {"sub": "alice"}


class TestCrud:
    def test_create_and_fetch(self, client, bearer):
        created = create(client, bearer)
        assert created == {"id": 1, "title": "write tests", "done": None}
        assert client.get("/tasks/1").json() == created

    def test_unknown_keys_are_not_stored(self, client, bearer):
        response = client.post("/tasks", json={"title": "abc", "owner": "x"}, headers=bearer())
        assert "owner" not in response.json()

    def test_update_and_filter(self, client, bearer):
        create(client, bearer, "first")
        create(client, bearer, "second")
        updated = client.put("/tasks/2/done")
        assert updated.status_code == 200
        assert updated.json()["done"] == 1
        assert [task["title"] for task in client.get("/tasks").json()] == ["first", "second"]
        assert [task["title"] for task in client.get("/tasks", params={"done": "true"}).json()] == ["second"]

    def test_missing_record(self, client):
        response = client.get("/tasks/99")
        assert response.status_code == 404
        assert response.json() == {"error": "Not Found", "message": "Task 99 not found"}
        assert client.put("/tasks/99/done").status_code == 404

    def test_delete_returns_success(self, client, bearer):
        create(client, bearer)
        response = client.delete("/tasks/1")
        assert response.json() == {"success": True}
        assert client.get("/tasks/1").status_code == 404

    def test_read_only_queries(self, client, bearer):
        create(client, bearer)
        assert client.get("/stats").json() == {"total": 1}
        response = client.post("/purge")
        assert response.status_code == 403
        assert response.json()["error"] == "Forbidden"
        assert client.get("/stats").json() == {"total": 1}


class TestInputThreading:
    def test_array_body_passes_through(self, client):
        assert client.post("/echo", json=[1, 2]).json() == {"received": [1, 2]}

    def test_query_and_body_are_merged(self, client):
        response = client.post("/echo", params={"a": "1", "b": "query"}, json={"b": "body"})
        assert response.json() == {"received": {"a": "1", "b": "body"}}

    def test_empty_body(self, client):
        assert client.post("/echo").json() == {"received": {}}

    def test_none_result_keeps_previous_value(self, client):
        response = client.post("/chain", json={"x": 1})
        assert response.json() == {"received": {"x": 1, "stamped": True}}

    def test_path_params_keep_their_text(self, client):
        response = client.post("/items/007", json={"qty": 2})
        assert response.json() == {"received": {"code": "007", "qty": 2}}
        assert client.get("/params/42").json() == {"value": "42"}

    def test_non_ascii_digits_are_plain_text(self, client):
        response = client.get("/params/%C2%B2")
        assert response.status_code == 200
        assert response.json() == {"value": "\u00b2"}


def test_each_call_builds_a_new_app(server, tmp_path, auth_gate):
    adapter = SqliteAdapter(str(tmp_path / "fresh.db"))
    first = server.create_app(adapter, auth=auth_gate)
    second = server.create_app(adapter, auth=auth_gate)
    assert first is not second
    assert [route.path for route in first.routes] == [route.path for route in second.routes]
