import io
import uuid


def _create_post(client, headers, name="President"):
    resp = client.post("/api/admin/posts", json={"name": name}, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["post"]["id"]


def _create_contestant(client, headers, post_id, name):
    resp = client.post("/api/admin/contestants", json={"name": name, "post_id": post_id}, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["contestant"]["id"]


def test_health(client):
    assert client.get("/health").get_json() == {"status": "ok"}


def test_requires_token(client):
    assert client.get("/api/posts").status_code == 401
    assert client.post("/api/votes", json={}).status_code == 401


def test_voter_cannot_use_admin_endpoints(client, voter_headers):
    resp = client.post("/api/admin/reset", headers=voter_headers)
    body = resp.get_json()
    assert resp.status_code == 403
    assert body["success"] is False
    assert body["error"]["code"] == "FORBIDDEN"


def test_role_claims_are_normalized(client, auth_headers):
    legacy_admin = auth_headers("admin-2", role="admin", claim="user_role")
    assert client.get("/api/admin/stats", headers=legacy_admin).status_code == 200

    unknown = auth_headers("someone", role="superuser")
    assert client.get("/api/posts", headers=unknown).status_code == 403


def test_voting_flow(client, admin_headers, voter_headers):
    post_id = _create_post(client, admin_headers)
    a = _create_contestant(client, admin_headers, post_id, "A")
    b = _create_contestant(client, admin_headers, post_id, "B")

    ballot = client.get("/api/posts", headers=voter_headers).get_json()["posts"]
    assert [c["name"] for c in ballot[0]["contestants"]] == ["A", "B"]
    assert "votes" not in ballot[0]["contestants"][0]

    resp = client.post("/api/votes", json={"contestant_id": a}, headers=voter_headers)
    assert resp.status_code == 201
    assert resp.get_json()["vote"]["post_id"] == post_id

    mine = client.get("/api/votes/mine", headers=voter_headers).get_json()
    assert mine == {"voted_post_ids": [post_id], "count": 1}

    resp = client.post("/api/votes", json={"contestant_id": b}, headers=voter_headers)
    assert resp.status_code == 409
    assert resp.get_json()["error"]["code"] == "DUPLICATE_VOTE"

    preview = client.get("/api/admin/winners", headers=admin_headers).get_json()
    assert preview["results_announced"] is False
    assert preview["posts"][0]["winner"]["id"] == a
    assert preview["posts"][0]["winner"]["votes"] == 1


def test_vote_validation_and_unknown_contestant(client, voter_headers):
    resp = client.post("/api/votes", json={"contestant_id": "nope"}, headers=voter_headers)
    assert resp.status_code == 400
    assert resp.get_json()["error"]["code"] == "VALIDATION_ERROR"
    assert "contestant_id" in resp.get_json()["error"]["details"]

    resp = client.post("/api/votes", json={"contestant_id": str(uuid.uuid4())}, headers=voter_headers)
    assert resp.status_code == 404
    assert resp.get_json()["error"]["code"] == "CONTESTANT_NOT_FOUND"


def test_announcement_gates_voting_and_results(client, admin_headers, voter_headers, auth_headers):
    post_id = _create_post(client, admin_headers)
    a = _create_contestant(client, admin_headers, post_id, "A")

    resp = client.get("/api/results", headers=voter_headers)
    assert resp.status_code == 403
    assert resp.get_json()["error"]["code"] == "RESULTS_NOT_ANNOUNCED"

    client.post("/api/votes", json={"contestant_id": a}, headers=voter_headers)
    resp = client.post("/api/admin/announce", headers=admin_headers)
    assert resp.get_json() == {"state": "ANNOUNCED", "results_announced": True, "changed": True}

    late = auth_headers("late-voter")
    resp = client.post("/api/votes", json={"contestant_id": a}, headers=late)
    assert resp.status_code == 403
    assert resp.get_json()["error"]["code"] == "ELECTION_CLOSED"

    for body in ({"contestant_id": "nope"}, {}, {"contestant_id": str(uuid.uuid4())}):
        resp = client.post("/api/votes", json=body, headers=late)
        assert resp.status_code == 403, body
        assert resp.get_json()["error"]["code"] == "ELECTION_CLOSED"

    public = client.get("/api/results", headers=voter_headers).get_json()
    assert public["results_announced"] is True
    assert public["posts"][0]["winner"]["name"] == "A"

    status = client.get("/api/election/status", headers=voter_headers).get_json()
    assert status["state"] == "ANNOUNCED"

    assert client.post("/api/admin/withdraw", headers=admin_headers).get_json()["state"] == "LIVE"
    assert client.post("/api/admin/toggle", headers=admin_headers).get_json()["state"] == "ANNOUNCED"


def test_tally_overrides(client, admin_headers, voter_headers):
    post_id = _create_post(client, admin_headers)
    a = _create_contestant(client, admin_headers, post_id, "A")
    client.post("/api/votes", json={"contestant_id": a}, headers=voter_headers)

    resp = client.post(f"/api/admin/contestants/{a}/adjust", json={"delta": 1}, headers=admin_headers)
    assert resp.get_json()["contestant"]["votes"] == 2

    resp = client.post(f"/api/admin/contestants/{a}/adjust", json={"delta": -5}, headers=admin_headers)
    assert resp.get_json()["contestant"]["votes"] == 0

    resp = client.put(f"/api/admin/contestants/{a}/votes", json={"votes": 4, "reason": "recount"}, headers=admin_headers)
    assert resp.get_json()["contestant"]["votes"] == 4

    drift = client.get("/api/admin/discrepancies", headers=admin_headers).get_json()
    assert drift["count"] == 1 and drift["discrepancies"][0]["drift"] == 3

    for body in ({}, {"delta": 0}, {"delta": "3"}, {"delta": 1.5}):
        resp = client.post(f"/api/admin/contestants/{a}/adjust", json=body, headers=admin_headers)
        assert resp.status_code == 400, body

    resp = client.post(f"/api/admin/contestants/{uuid.uuid4()}/adjust", json={"delta": 1}, headers=admin_headers)
    assert resp.status_code == 404

    resp = client.post("/api/admin/reset", headers=admin_headers)
    assert resp.get_json()["votes_deleted"] == 1
    stats = client.get("/api/admin/stats", headers=admin_headers).get_json()
    assert stats["total_votes"] == 0 and stats["ledger_votes"] == 0


def test_catalog_endpoints(client, admin_headers):
    resp = client.post("/api/admin/posts", json={"name": ""}, headers=admin_headers)
    assert resp.status_code == 400

    post_id = _create_post(client, admin_headers)
    resp = client.post("/api/admin/posts", json={"name": "President"}, headers=admin_headers)
    assert resp.status_code == 400

    resp = client.post("/api/admin/contestants", json={"name": "A"}, headers=admin_headers)
    assert resp.status_code == 400
    assert "post_id" in resp.get_json()["error"]["details"]

    resp = client.post(
        "/api/admin/contestants",
        json={"name": "A", "post_id": str(uuid.uuid4())},
        headers=admin_headers,
    )
    assert resp.status_code == 404
    assert resp.get_json()["error"]["code"] == "POST_NOT_FOUND"

    a = _create_contestant(client, admin_headers, post_id, "A")
    listing = client.get("/api/admin/contestants", headers=admin_headers).get_json()["contestants"]
    assert [c["id"] for c in listing] == [a]

    assert client.delete(f"/api/admin/contestants/{a}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/admin/contestants/{a}", headers=admin_headers).status_code == 404
    assert client.delete(f"/api/admin/posts/{post_id}", headers=admin_headers).status_code == 200
    assert client.get("/api/admin/posts", headers=admin_headers).get_json() == {"posts": []}


def test_multipart_contestant_without_image_store(client, admin_headers):
    post_id = _create_post(client, admin_headers)
    resp = client.post(
        "/api/admin/contestants",
        data={"name": "A", "post_id": post_id, "bio": "hi", "image_file": (io.BytesIO(b"png"), "a.png")},
        headers=admin_headers,
        content_type="multipart/form-data",
    )
    body = resp.get_json()
    assert resp.status_code == 201
    assert body["contestant"]["image"] == ""
    assert body["warnings"] == ["Image upload failed, contestant added without image"]


def test_vote_history_and_changes(client, admin_headers, auth_headers):
    post_id = _create_post(client, admin_headers)
    a = _create_contestant(client, admin_headers, post_id, "A")
    seq = client.get("/api/admin/changes", headers=admin_headers).get_json()["last_seq"]

    for voter in ("v1", "v2"):
        client.post("/api/votes", json={"contestant_id": a}, headers=auth_headers(voter))

    history = client.get(f"/api/admin/votes?post_id={post_id}", headers=admin_headers).get_json()
    assert history["total"] == 2
    assert {v["voter_id"] for v in history["votes"]} == {"v1", "v2"}
    assert history["votes"][0]["contestant_name"] == "A"
    assert history["votes"][0]["post_name"] == "President"

    resp = client.get("/api/admin/votes?post_id=bad", headers={**admin_headers, "X-Request-Id": "req-votes"})
    assert resp.status_code == 400
    assert resp.get_json()["error"]["code"] == "VALIDATION_ERROR"
    assert resp.get_json()["request_id"] == "req-votes"
    assert client.get("/api/admin/votes?limit=0", headers=admin_headers).status_code == 400

    changes = client.get(f"/api/admin/changes?since={seq}&tables=votes", headers=admin_headers).get_json()
    assert [e["kind"] for e in changes["events"]] == ["INSERT", "INSERT"]
    resp = client.get("/api/admin/changes?tables=users", headers=admin_headers)
    assert resp.status_code == 400
    assert resp.get_json()["error"]["code"] == "VALIDATION_ERROR"


def test_audit_logs_record_actor(client, admin_headers):
    post_id = _create_post(client, admin_headers)
    a = _create_contestant(client, admin_headers, post_id, "A")
    client.put(f"/api/admin/contestants/{a}/votes", json={"votes": 2, "reason": "paper"}, headers=admin_headers)

    logs = client.get("/api/admin/audit-logs?action=TALLY_SET", headers=admin_headers).get_json()
    assert logs["total"] == 1
    entry = logs["logs"][0]
    assert entry["actor_id"] == "admin-1" and entry["actor_role"] == "ADMIN"
    assert entry["details"]["reason"] == "paper"

    resp = client.get("/api/admin/audit-logs?from=yesterday", headers=admin_headers)
    assert resp.status_code == 400
    assert resp.get_json()["success"] is False
    assert resp.get_json()["error"]["code"] == "VALIDATION_ERROR"


def test_error_envelope_carries_request_id(client, voter_headers):
    resp = client.post(
        "/api/votes",
        json={"contestant_id": str(uuid.uuid4())},
        headers={**voter_headers, "X-Request-Id": "req-123"},
    )
    assert resp.headers["X-Request-Id"] == "req-123"
    assert resp.get_json()["request_id"] == "req-123"


def test_malformed_request_id_is_replaced(client):
    resp = client.get("/health", headers={"X-Request-Id": "bad id with spaces"})
    assert resp.headers["X-Request-Id"] != "bad id with spaces"
    assert len(resp.headers["X-Request-Id"]) == 36
