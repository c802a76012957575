import inspect

from storefront import main

API = "/api/v1"


def register(client, **overrides):
    payload = {
        "name": "Jane Doe",
        "email": "jane@example.com",
        "password": "secret1",
        "phone": "555-0100",
        "address": "1 Main St",
        "answer": "blue",
    }
    payload.update(overrides)
    return client.post(f"{API}/auth/register", json=payload)


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_register_and_login(client):
    r = register(client)
    assert r.status_code == 201
    body = r.json()
    assert body["success"] is True
    assert body["data"]["email"] == "jane@example.com"
    assert body["data"]["role"] == "user"
    assert "password" not in body["data"] and "password_hash" not in body["data"]

    r = client.post(f"{API}/auth/login", json={"email": "jane@example.com", "password": "secret1"})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["token"]
    assert data["user"]["name"] == "Jane Doe"


def test_duplicate_email_conflicts(client):
    assert register(client).status_code == 201
    r = register(client, name="Someone Else")
    assert r.status_code == 409
    assert r.json()["success"] is False


def test_register_reports_first_missing_field(client):
    r = register(client, phone=None, address=None)
    assert r.status_code == 400
    body = r.json()
    assert body["error"] == {"field": "phone"}
    assert "phone" in body["message"]


def test_register_rejects_malformed_email(client):
    r = register(client, email="not-an-email")
    assert r.status_code == 400
    assert r.json()["error"] == {"field": "email"}


def test_login_failures(client):
    register(client)
    r = client.post(f"{API}/auth/login", json={"email": "jane@example.com", "password": "wrong"})
    assert r.status_code == 401

    r = client.post(f"{API}/auth/login", json={"email": "nobody@example.com", "password": "secret1"})
    assert r.status_code == 404

    r = client.post(f"{API}/auth/login", json={"email": "jane@example.com"})
    assert r.status_code == 400
    assert r.json()["error"] == {"field": "password"}


def test_update_profile(client, user_headers):
    r = client.put(
        f"{API}/auth/profile",
        json={"name": "Updated", "phone": "555-0199"},
        headers=user_headers,
    )
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["name"] == "Updated"
    assert data["phone"] == "555-0199"
    assert data["address"] == "1 Main St"


def test_update_profile_short_password_rejected(client, user_headers):
    r = client.put(f"{API}/auth/profile", json={"password": "abc"}, headers=user_headers)
    assert r.status_code == 400
    assert r.json()["error"] == {"field": "password"}


def test_update_profile_changes_password(client, user_headers):
    r = client.put(f"{API}/auth/profile", json={"password": "newsecret"}, headers=user_headers)
    assert r.status_code == 200
    login = {"email": "shopper@example.com", "password": "newsecret"}
    assert client.post(f"{API}/auth/login", json=login).status_code == 200


def test_update_profile_requires_sign_in(client):
    r = client.put(f"{API}/auth/profile", json={"name": "x"})
    assert r.status_code == 401


def test_forgot_password(client):
    register(client)
    r = client.post(
        f"{API}/auth/forgot-password",
        json={"email": "jane@example.com", "answer": "red", "new_password": "another1"},
    )
    assert r.status_code == 404

    r = client.post(
        f"{API}/auth/forgot-password",
        json={"email": "jane@example.com", "answer": "blue", "new_password": "another1"},
    )
    assert r.status_code == 200
    login = {"email": "jane@example.com", "password": "another1"}
    assert client.post(f"{API}/auth/login", json=login).status_code == 200


def test_email_is_case_insensitive(client):
    r = register(client, email="Jane@Example.COM")
    assert r.status_code == 201
    assert r.json()["data"]["email"] == "jane@example.com"
    assert register(client, email="JANE@example.com").status_code == 409

    for email in ("Jane@Example.COM", "jane@example.com"):
        r = client.post(f"{API}/auth/login", json={"email": email, "password": "secret1"})
        assert r.status_code == 200

    r = client.post(
        f"{API}/auth/forgot-password",
        json={"email": "Jane@Example.COM", "answer": "blue", "new_password": "another1"},
    )
    assert r.status_code == 200


def test_password_hashing_handlers_run_off_the_event_loop():
    for handler in (main.register, main.login, main.forgot_password, main.update_profile):
        assert not inspect.iscoroutinefunction(handler), handler.__name__
