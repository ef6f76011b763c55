from __future__ import annotations

from datetime import datetime, timezone


def _problem(r):
    assert r.headers.get("content-type", "").startswith("application/problem+json")
    return r.json()


def test_create_then_fetch_module(client):
    r = client.post("/api/modules", json={"title": "Intro"})
    assert r.status_code == 201
    created = r.json()["data"]
    assert created["title"] == "Intro"
    assert created["_id"]

    r = client.get(f"/api/modules/{created['_id']}")
    assert r.status_code == 200
    assert r.json()["data"] == created


def test_module_validation_error_is_problem_json(client, table):
    r = client.post("/api/modules", json={"title": ""}, headers={"X-Request-Id": "rid-v"})

    assert r.status_code == 400
    body = _problem(r)
    assert body["title"] == "Validation Failed"
    assert body["errors"][0]["path"] == "title"
    assert body["requestId"] == "rid-v"
    assert table.records("Module") == []


def test_module_duplicate_title_is_conflict(client):
    client.post("/api/modules", json={"title": "Intro"})
    r = client.post("/api/modules", json={"title": "Intro"})
    assert r.status_code == 409
    assert _problem(r)["status"] == 409


def test_module_list_update_delete(client):
    a = client.post("/api/modules", json={"title": "Intro"}).json()["data"]
    b = client.post("/api/modules", json={"title": "Outro"}).json()["data"]

    listed = client.get("/api/modules").json()["data"]
    assert [m["_id"] for m in listed] == [b["_id"], a["_id"]]
    assert [m["title"] for m in client.get("/api/modules", params={"title": "intr"}).json()["data"]] == ["Intro"]

    r = client.put(f"/api/modules/{a['_id']}", json={"title": "Basics"})
    assert r.status_code == 200
    assert r.json()["data"]["title"] == "Basics"

    assert client.delete(f"/api/modules/{a['_id']}").status_code == 200
    assert client.get(f"/api/modules/{a['_id']}").status_code == 404
    assert client.delete(f"/api/modules/{a['_id']}").status_code == 404
    assert client.put(f"/api/modules/{a['_id']}", json={"title": "x"}).status_code == 404


def test_follow_toggle_and_listings(client):
    r = client.post("/api/connections/follow", json={"owner": "u1", "followingTo": "u2"})
    assert r.status_code == 200
    body = r.json()
    assert body["following"] is True
    edge = body["data"]
    assert (edge["owner"], edge["followingTo"]) == ("u1", "u2")
    assert edge["createdAt"] and edge["updatedAt"]

    assert [c["owner"] for c in client.get("/api/users/u2/followers").json()["data"]] == ["u1"]
    assert [c["followingTo"] for c in client.get("/api/users/u1/following").json()["data"]] == ["u2"]

    r = client.post("/api/connections/follow", json={"owner": "u1", "followingTo": "u2"})
    assert r.json()["following"] is False
    assert client.get("/api/users/u2/followers").json()["data"] == []


def test_self_follow_is_bad_request(client):
    r = client.post("/api/connections/follow", json={"owner": "u1", "followingTo": "u1"})
    assert r.status_code == 400
    assert _problem(r)["errors"][0]["path"] == "followingTo"


def test_follow_body_shape_is_checked(client):
    r = client.post("/api/connections/follow", json={"owner": "u1"})
    assert r.status_code == 422
    assert _problem(r)["title"] == "Validation Failed"


def test_create_notification_keeps_recipient_order(client):
    r = client.post(
        "/api/notifications",
        json={"title": "Hi", "body": "Hello", "sentTo": ["u1", "u2"]},
    )
    assert r.status_code == 201
    n = r.json()["data"]
    assert n["sentTo"] == ["u1", "u2"]
    created_at = datetime.fromisoformat(n["createdAt"].replace("Z", "+00:00"))
    assert created_at <= datetime.now(timezone.utc)

    fetched = client.get(f"/api/notifications/{n['_id']}").json()["data"]
    assert fetched["sentTo"] == ["u1", "u2"]


def test_notification_without_recipients_is_rejected(client, table):
    r = client.post("/api/notifications", json={"title": "Hi", "body": "Hello", "sentTo": []})
    assert r.status_code == 400
    assert _problem(r)["errors"][0]["path"] == "sentTo"
    assert table.records("Notification") == []


def test_notification_listing_resolution_and_delete(client, registry):
    alice = registry.get("User").insert({"userName": "alice"})
    first = client.post(
        "/api/notifications",
        json={"title": "1", "body": "b", "sentTo": [alice.id, "ghost"], "type": "comment"},
    ).json()["data"]
    second = client.post(
        "/api/notifications",
        json={"title": "2", "body": "b", "sentTo": [alice.id]},
    ).json()["data"]

    listed = client.get("/api/notifications", params={"sentTo": alice.id}).json()["data"]
    assert [n["_id"] for n in listed] == [second["_id"], first["_id"]]

    resolved = client.get(f"/api/notifications/{first['_id']}", params={"resolve": "true"}).json()["data"]
    assert resolved["sentToUsers"][0]["userName"] == "alice"
    assert resolved["sentToUsers"][1] is None

    assert client.delete(f"/api/notifications/{first['_id']}").status_code == 200
    assert client.get(f"/api/notifications/{first['_id']}").status_code == 404


def test_unknown_route_is_problem_json(client):
    r = client.get("/this-route-does-not-exist")
    assert r.status_code == 404
    body = _problem(r)
    assert body["status"] == 404
    assert body.get("requestId")
