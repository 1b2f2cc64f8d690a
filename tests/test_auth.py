from datetime import datetime, timedelta, timezone

import jwt

from document_service.app import config


def register(client, email="carol@example.com", password="secret123", **extra):
    payload = {"name": "Carol", "email": email, "password": password, **extra}
    return client.post("/api/auth/register", json=payload)


def test_register_returns_token_and_user(client):
    response = register(client, department="Legal")

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["token"]
    assert body["user"]["email"] == "carol@example.com"
    assert body["user"]["role"] == "user"
    assert body["user"]["department"] == "Legal"
    assert "passwordHash" not in body["user"]


def test_register_normalizes_email_and_rejects_duplicates(client):
    assert register(client, email="Carol@Example.com").status_code == 201

    response = register(client, email="carol@example.com")
    assert response.status_code == 400
    assert response.json()["details"] == [{"field": "email", "message": "User already exists"}]


def test_register_validates_input(client):
    response = client.post("/api/auth/register", json={"name": "", "email": "nope", "password": "123"})

    assert response.status_code == 400
    fields = {err["field"] for err in response.json()["details"]}
    assert {"name", "email", "password"} <= fields


def test_register_grants_admin_to_configured_emails(client, monkeypatch):
    monkeypatch.setattr(config, "ADMIN_EMAILS", {"boss@example.com"})
    response = register(client, email="boss@example.com")
    assert response.json()["user"]["role"] == "admin"


def test_login_and_me(client):
    register(client)
    login = client.post("/api/auth/login", json={"email": "carol@example.com", "password": "secret123"})

    assert login.status_code == 200
    token = login.json()["token"]
    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["user"]["name"] == "Carol"


def test_login_with_wrong_password(client):
    register(client)
    response = client.post("/api/auth/login", json={"email": "carol@example.com", "password": "wrong-pass"})

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid credentials"
    assert response.headers["www-authenticate"] == "Bearer"


def test_missing_token(client):
    response = client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json()["error_code"] == "AUTH_ERROR"


def test_garbage_token(client):
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_expired_token(client, alice):
    past = datetime.now(timezone.utc) - timedelta(hours=1)
    token = jwt.encode({"sub": alice.id, "exp": past}, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["message"] == "Not authorized, token expired"


def test_token_for_deleted_user(client):
    token = jwt.encode({"sub": "ghost"}, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_user_listing_is_admin_only(client, alice, admin, headers_for):
    denied = client.get("/api/auth/users", headers=headers_for(alice))
    assert denied.status_code == 403

    allowed = client.get("/api/auth/users", headers=headers_for(admin))
    assert allowed.status_code == 200
    assert allowed.json()["count"] == 2
    assert {u["email"] for u in allowed.json()["users"]} == {"alice@example.com", "admin@example.com"}
