"""REST surface: accounts, durable writes, fetch and mark-as-read."""


def _auth(token):
    return {"Authorization": f"Bearer {token}"}


def test_register_login_and_me(client):
    resp = client.post(
        "/api/auth/register",
        json={
            "username": "priya_login",
            "email": "Priya.Login@campus.edu",
            "password": "secret123",
            "name": "Priya",
        },
    )
    assert resp.status_code == 201
    body = resp.json()
    assert "passwordHash" not in body["user"]
    assert body["user"]["username"] == "priya_login"

    dup = client.post(
        "/api/auth/register",
        json={"username": "priya_login", "email": "other@campus.edu", "password": "secret123", "name": "P"},
    )
    assert dup.status_code == 409

    bad = client.post("/api/auth/login", json={"email": "priya.login@campus.edu", "password": "wrongpass"})
    assert bad.status_code == 401

    ok = client.post("/api/auth/login", json={"email": "priya.login@campus.edu", "password": "secret123"})
    assert ok.status_code == 200
    token = ok.json()["token"]

    me = client.get("/api/auth/me", headers=_auth(token))
    assert me.status_code == 200
    assert me.json()["user"]["id"] == body["user"]["id"]


def test_short_password_is_rejected(client):
    resp = client.post(
        "/api/auth/register",
        json={"username": "shorty", "email": "shorty@campus.edu", "password": "123", "name": "S"},
    )
    assert resp.status_code == 422


def test_requests_without_valid_token_are_401(client):
    assert client.get("/api/messages").status_code == 401
    assert client.get("/api/messages", headers=_auth("nope")).status_code == 401
    assert client.post("/api/messages", json={"receiverId": "x", "content": "hi"}).status_code == 401


def test_durable_write_forces_sender_and_is_not_deduplicated(client, make_user):
    alice, alice_token = make_user("alice")
    bob, _ = make_user("bob")
    carol, _ = make_user("carol")

    payload = {"senderId": carol["id"], "receiverId": bob["id"], "content": "  is the book still available?  ", "itemId": "item-42"}
    first = client.post("/api/messages", json=payload, headers=_auth(alice_token))
    second = client.post("/api/messages", json=payload, headers=_auth(alice_token))
    assert first.status_code == 201
    assert second.status_code == 201

    m1, m2 = first.json(), second.json()
    assert m1["senderId"] == alice["id"]
    assert m1["content"] == "is the book still available?"
    assert m1["itemId"] == "item-42"
    assert m1["noteId"] is None
    assert m1["read"] is False
    assert m1["id"] != m2["id"]

    listed = client.get("/api/messages", params={"otherUserId": bob["id"]}, headers=_auth(alice_token)).json()
    assert [m["id"] for m in listed] == [m1["id"], m2["id"]]


def test_durable_write_validation(client, make_user):
    _, alice_token = make_user("alice")
    bob, _ = make_user("bob")
    assert client.post("/api/messages", json={"receiverId": bob["id"], "content": "   "}, headers=_auth(alice_token)).status_code == 422
    assert client.post("/api/messages", json={"content": "hi"}, headers=_auth(alice_token)).status_code == 422
    assert client.post("/api/messages", json={"receiverId": "missing", "content": "hi"}, headers=_auth(alice_token)).status_code == 404


def test_fetch_filters_by_pair_and_orders_ascending(client, make_user):
    alice, alice_token = make_user("alice")
    bob, bob_token = make_user("bob")
    carol, carol_token = make_user("carol")

    client.post("/api/messages", json={"receiverId": bob["id"], "content": "one"}, headers=_auth(alice_token))
    client.post("/api/messages", json={"receiverId": alice["id"], "content": "two"}, headers=_auth(bob_token))
    client.post("/api/messages", json={"receiverId": alice["id"], "content": "from carol"}, headers=_auth(carol_token))
    client.post("/api/messages", json={"receiverId": bob["id"], "content": "three"}, headers=_auth(alice_token))

    pair = client.get("/api/messages", params={"otherUserId": bob["id"]}, headers=_auth(alice_token)).json()
    assert [m["content"] for m in pair] == ["one", "two", "three"]
    assert pair[1]["sender"]["id"] == bob["id"]
    assert pair[1]["receiver"]["id"] == alice["id"]
    assert "passwordHash" not in pair[0]["sender"]

    inbox = client.get("/api/messages", headers=_auth(alice_token)).json()
    assert [m["content"] for m in inbox] == ["one", "two", "from carol", "three"]

    # carol is not part of the alice/bob conversation
    assert client.get("/api/messages", params={"otherUserId": bob["id"]}, headers=_auth(carol_token)).json() == []


def test_mark_read_only_by_receiver(client, make_user):
    alice, alice_token = make_user("alice")
    bob, bob_token = make_user("bob")
    msg = client.post("/api/messages", json={"receiverId": bob["id"], "content": "ping"}, headers=_auth(alice_token)).json()

    assert client.patch(f"/api/messages/{msg['id']}/read", headers=_auth(alice_token)).status_code == 403
    assert client.patch("/api/messages/does-not-exist/read", headers=_auth(bob_token)).status_code == 404
    resp = client.patch(f"/api/messages/{msg['id']}/read", headers=_auth(bob_token))
    assert resp.status_code == 200

    listed = client.get("/api/messages", params={"otherUserId": alice["id"]}, headers=_auth(bob_token)).json()
    assert listed[0]["read"] is True


def test_public_user_profile(client, make_user):
    alice, _ = make_user("alice")
    resp = client.get(f"/api/users/{alice['id']}")
    assert resp.status_code == 200
    assert resp.json()["username"] == alice["username"]
    assert "passwordHash" not in resp.json()
    assert client.get("/api/users/unknown").status_code == 404
