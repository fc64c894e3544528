"""
Tests for GET /users/{userID}.
"""


def test_own_subject_resolves_through_identity(client, directory, auth_headers):
    r = client.get("/users/alice", headers=auth_headers("alice"))
    assert r.status_code == 200
    assert r.json() == {"email": "alice@example.com", "key": "u1", "id": "u1", "name": "Alice"}
    assert directory.calls == [("user_from_identity", "alice")]


def test_other_user_looked_up_directly(client, directory, auth_headers):
    r = client.get("/users/u2", headers=auth_headers("alice"))
    assert r.status_code == 200
    assert r.json()["name"] == "Bob"
    assert directory.calls == [("get_user", "u2")]


def test_unknown_user_returns_404(client, auth_headers):
    r = client.get("/users/nobody", headers=auth_headers("alice"))
    assert r.status_code == 404
    assert r.json()["detail"]["error"] == "not_found"


def test_unresolvable_own_identity_returns_404(client, auth_headers):
    r = client.get("/users/mallory", headers=auth_headers("mallory"))
    assert r.status_code == 404


def test_user_route_requires_auth(client, directory):
    r = client.get("/users/u1")
    assert r.status_code == 401
    assert directory.calls == []


def test_user_route_policy_path(client, authorizer, auth_headers):
    client.get("/users/u2", headers=auth_headers("alice"))
    assert authorizer.calls == [("alice", "todoApp.GET.users.__userID", {"object_id": "u2"})]


def test_user_route_denied(client, directory, authorizer, auth_headers):
    authorizer.deny.add("todoApp.GET.users.__userID")
    r = client.get("/users/u2", headers=auth_headers("alice"))
    assert r.status_code == 403
    assert directory.calls == []
