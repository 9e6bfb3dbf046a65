from fastapi.testclient import TestClient

from ebandeja.config import settings

from conftest import PASSWORD


def test_status_without_cookie(client):
    response = client.get("/api/auth/status")
    assert response.status_code == 200
    assert response.json() == {"authenticated": False}
    assert response.headers["cache-control"] == "no-store"


def test_status_with_garbled_cookie(client):
    client.cookies.set(settings.SESSION_COOKIE_NAME, "%%%no-es-un-token")
    response = client.get("/api/auth/status")
    assert response.json() == {"authenticated": False}


def test_login_sets_session_cookie(client):
    response = client.post("/api/auth/login", json={"password": PASSWORD})

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    cookie = response.headers["set-cookie"]
    assert cookie.startswith(f"{settings.SESSION_COOKIE_NAME}=")
    assert "HttpOnly" in cookie
    assert "Max-Age=28800" in cookie
    assert "Path=/" in cookie
    assert "samesite=lax" in cookie.lower()

    assert client.get("/api/auth/status").json() == {"authenticated": True}


def test_login_wrong_password(client):
    response = client.post("/api/auth/login", json={"password": "incorrecta"})
    assert response.status_code == 401
    assert response.json() == {"error": "Contrasena incorrecta"}
    assert response.headers["cache-control"] == "no-store"
    assert client.get("/api/auth/status").json() == {"authenticated": False}


def test_login_without_password_field(client):
    response = client.post("/api/auth/login", json={})
    assert response.status_code == 401
    assert response.headers["cache-control"] == "no-store"


def test_non_string_password_counts_as_failed_attempt(client, auth_store):
    for password in (None, 12345, ["clave"]):
        response = client.post("/api/auth/login", json={"password": password})
        assert response.status_code == 401
        assert response.headers["cache-control"] == "no-store"

    assert auth_store.failed_logins["testclient"].count == 3


def test_login_without_body(client):
    response = client.post("/api/auth/login")
    assert response.status_code == 401
    assert response.json() == {"error": "Contrasena incorrecta"}


def test_rate_limit_after_five_failures(client):
    for _ in range(5):
        assert client.post("/api/auth/login", json={"password": "incorrecta"}).status_code == 401

    response = client.post("/api/auth/login", json={"password": PASSWORD})
    assert response.status_code == 429
    assert response.headers["retry-after"] == "900"
    assert response.headers["cache-control"] == "no-store"
    assert "error" in response.json()
    assert client.get("/api/auth/status").json() == {"authenticated": False}


def test_rate_limit_lifts_after_window(client, clock):
    for _ in range(5):
        client.post("/api/auth/login", json={"password": "incorrecta"})

    clock.advance(15 * 60)
    assert client.post("/api/auth/login", json={"password": PASSWORD}).status_code == 200


def test_session_expires_without_activity(logged_in_client, clock):
    clock.advance(8 * 60 * 60 + 1)
    assert logged_in_client.get("/api/auth/status").json() == {"authenticated": False}


def test_logout_clears_session(logged_in_client):
    response = logged_in_client.post("/api/auth/logout")
    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert logged_in_client.get("/api/auth/status").json() == {"authenticated": False}


def test_logout_is_idempotent(app):
    client = TestClient(app)
    assert client.post("/api/auth/logout").status_code == 200
    assert client.post("/api/auth/logout").status_code == 200


def test_unknown_api_route(client):
    response = client.get("/api/no-existe")
    assert response.status_code == 404
    assert response.json() == {"error": "Not found"}


def test_health_check(client):
    assert client.get("/api/health").json() == {"status": "ok"}
