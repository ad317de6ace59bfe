"""
HTTP API: local auth, subscription info, plan gating and the admin tier update
"""
import pytest
from conftest import ADMIN_KEY, bearer, signup

from reiseveteran.db import connect


def _stored_status(cfg, email):
    with connect(cfg.DB_PATH) as conn:
        row = conn.execute("SELECT subscription_status FROM users WHERE email=?", (email,)).fetchone()
    return row["subscription_status"] if row else None


def _admin_update(client, body, key=ADMIN_KEY, path="/update-subscription"):
    headers = {"X-Admin-Key": key} if key else {}
    return client.post(path, json=body, headers=headers)


# -----------------------------
# Auth
# -----------------------------


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_signup_then_signin_and_whoami(client):
    created = signup(client, email="Alice@Example.com")
    assert created["success"] is True
    assert created["user"]["email"] == "alice@example.com"
    assert created["user"]["subscriptionStatus"] == "free"
    assert created["user"]["id"].startswith("user_")

    r = client.post("/api/auth/local/signin", json={"email": "alice@example.com", "password": "geheim123"})
    assert r.status_code == 200
    token = r.json()["access_token"]

    me = client.get("/api/auth/user", headers=bearer(token))
    assert me.status_code == 200
    assert me.json() == created["user"]


def test_signin_requires_both_fields(client):
    r = client.post("/api/auth/local/signin", json={"email": "alice@example.com"})
    assert r.status_code == 400
    assert r.json()["message"] == "Email und Passwort sind erforderlich"

    assert client.post("/api/auth/local/signin").status_code == 400


def test_signin_wrong_password(client):
    signup(client)
    r = client.post("/api/auth/local/signin", json={"email": "alice@example.com", "password": "falsch123"})
    assert r.status_code == 401
    assert r.json()["message"] == "Ungültige Anmeldedaten"


def test_signup_short_password_and_duplicate(client):
    r = client.post("/api/auth/local/signup", json={"email": "bob@example.com", "password": "12345"})
    assert r.status_code == 400
    assert "mindestens 6 Zeichen" in r.json()["message"]

    signup(client, email="bob@example.com")
    r = client.post("/api/auth/local/signup", json={"email": "bob@example.com", "password": "geheim123"})
    assert r.status_code == 409
    assert r.json()["message"] == "Benutzer existiert bereits"


def test_demo_login_gives_pro_user(client):
    r = client.post("/api/auth/local/demo")
    assert r.status_code == 200
    body = r.json()
    assert body["user"]["email"] == "demo@reiseveteran.com"
    assert body["user"]["subscriptionStatus"] == "pro"

    # Same account every time.
    again = client.post("/api/auth/local/demo").json()
    assert again["user"]["id"] == body["user"]["id"] == "demo-user-1"


def test_demo_account_cannot_sign_in_with_a_password(client):
    r = client.post(
        "/api/auth/local/signin", json={"email": "demo@reiseveteran.com", "password": "demo"}
    )
    assert r.status_code == 401


def test_whoami_rejects_missing_and_bad_tokens(client):
    assert client.get("/api/auth/user").status_code == 401
    r = client.get("/api/auth/user", headers=bearer("not-a-jwt"))
    assert r.status_code == 401
    assert r.json()["message"] == "token_invalid"


# -----------------------------
# Subscription + trips
# -----------------------------


def test_plans_table(client):
    body = client.get("/api/subscription/plans").json()
    plans = body["plans"]
    assert set(plans) == {"free", "pro", "veteran"}
    assert plans["free"]["tripsLimit"] == 1 and plans["free"]["canExport"] is False
    assert plans["pro"]["tripsLimit"] == 10 and plans["pro"]["price"] == 4.99
    assert plans["veteran"]["tripsLimit"] is None
    assert body["priceIds"]["pro"]


def test_free_user_hits_trip_limit_and_cannot_export(client):
    token = signup(client)["access_token"]

    first = client.post("/api/trips", json={"name": "Lissabon"}, headers=bearer(token))
    assert first.status_code == 201
    trip_id = first.json()["id"]

    second = client.post("/api/trips", json={"name": "Porto"}, headers=bearer(token))
    assert second.status_code == 403
    assert second.json()["limitReached"] is True
    assert second.json()["currentPlan"] == "free"

    export = client.get(f"/api/trips/{trip_id}/export", headers=bearer(token))
    assert export.status_code == 403
    assert export.json()["upgradeRequired"] is True

    info = client.get("/api/user/subscription", headers=bearer(token)).json()
    assert info == {
        "status": "free",
        "billingInterval": "monthly",
        "expiresAt": None,
        "tripsUsed": 1,
        "tripsLimit": 1,
        "canExport": False,
    }


def test_upgrade_unlocks_trips_and_export(client, cfg):
    token = signup(client)["access_token"]
    client.post("/api/trips", json={"name": "Lissabon"}, headers=bearer(token))

    assert _admin_update(client, {"email": "alice@example.com", "subscriptionStatus": "veteran"}).status_code == 200

    r = client.post("/api/trips", json={"name": "Porto"}, headers=bearer(token))
    assert r.status_code == 201
    export = client.get(f"/api/trips/{r.json()['id']}/export", headers=bearer(token))
    assert export.status_code == 200
    assert export.json()["trip"]["name"] == "Porto"

    trips = client.get("/api/trips", headers=bearer(token)).json()
    assert [t["name"] for t in trips] == ["Porto", "Lissabon"]
    assert client.get("/api/user/subscription", headers=bearer(token)).json()["tripsLimit"] is None


def test_export_of_someone_elses_trip_is_not_found(client):
    owner = signup(client, email="owner@example.com")["access_token"]
    trip_id = client.post("/api/trips", json={"name": "Rom"}, headers=bearer(owner)).json()["id"]

    other = client.post("/api/auth/local/demo").json()["access_token"]
    assert client.get(f"/api/trips/{trip_id}/export", headers=bearer(other)).status_code == 404


# -----------------------------
# Admin
# -----------------------------


def test_update_subscription_known_user(client, cfg):
    signup(client)
    r = _admin_update(client, {"email": "alice@example.com", "subscriptionStatus": "pro"})

    assert r.status_code == 200
    assert r.json() == {
        "success": True,
        "message": "Successfully updated alice@example.com to pro plan",
        "user": {"email": "alice@example.com", "subscriptionStatus": "pro"},
    }
    assert _stored_status(cfg, "alice@example.com") == "pro"


def test_update_subscription_unknown_user(client):
    r = _admin_update(client, {"email": "nobody@example.com", "subscriptionStatus": "pro"})
    assert r.status_code == 404
    assert r.json() == {"error": "User not found"}


def test_update_subscription_missing_fields(client):
    for body in ({"email": "alice@example.com"}, {"subscriptionStatus": "pro"}, {}):
        r = _admin_update(client, body)
        assert r.status_code == 400
        assert r.json() == {"error": "Email and subscriptionStatus are required"}


def test_update_subscription_invalid_status(client, cfg):
    signup(client)
    r = _admin_update(client, {"email": "alice@example.com", "subscriptionStatus": "platinum"})
    assert r.status_code == 400
    assert _stored_status(cfg, "alice@example.com") == "free"


def test_update_subscription_requires_admin_key(client, cfg):
    signup(client)
    body = {"email": "alice@example.com", "subscriptionStatus": "pro"}

    assert _admin_update(client, body, key=None).status_code == 403
    assert _admin_update(client, body, key="wrong").status_code == 403
    assert _stored_status(cfg, "alice@example.com") == "free"


def test_update_subscription_api_prefix(client, cfg):
    signup(client)
    r = _admin_update(
        client,
        {"email": "alice@example.com", "subscriptionStatus": "veteran"},
        path="/api/admin/update-subscription",
    )
    assert r.status_code == 200
    assert _stored_status(cfg, "alice@example.com") == "veteran"


def test_admin_disabled_without_configured_key(tmp_path):
    from dataclasses import replace

    from fastapi.testclient import TestClient

    from reiseveteran.api.server import create_app
    from reiseveteran.config import Config

    cfg = Config(DB_PATH=str(tmp_path / "noadmin.sqlite"), ADMIN_API_KEY=None, CORS_ALLOW_ORIGINS="")
    with TestClient(create_app(replace(cfg, AUTH_JWT_SECRET="x"))) as c:
        r = c.post(
            "/update-subscription",
            json={"email": "a@example.com", "subscriptionStatus": "pro"},
            headers={"X-Admin-Key": "anything"},
        )
    assert r.status_code == 503


def test_update_subscription_unexpected_failure_is_500(client, monkeypatch):
    import reiseveteran.api.server as server

    signup(client)

    def explode(*args, **kwargs):
        raise RuntimeError("db gone")

    monkeypatch.setattr(server, "update_user_subscription", explode)
    r = _admin_update(client, {"email": "alice@example.com", "subscriptionStatus": "pro"})
    assert r.status_code == 500
    assert r.json() == {"error": "Internal server error"}


def test_whoami_for_deleted_account_is_not_found(client, cfg):
    token = signup(client)["access_token"]
    with connect(cfg.DB_PATH) as conn:
        conn.execute("DELETE FROM users WHERE email=?", ("alice@example.com",))

    r = client.get("/api/auth/user", headers=bearer(token))
    assert r.status_code == 404
    assert r.json()["message"] == "Benutzer nicht gefunden"


def test_create_user_raises_when_row_cannot_be_read_back(client, cfg, monkeypatch):
    import reiseveteran.auth.crud as crud

    monkeypatch.setattr(crud, "get_user_by_id", lambda conn, user_id: None)
    with pytest.raises(ValueError, match="user_create_failed"):
        with connect(cfg.DB_PATH) as conn:
            crud.create_user(conn, email="ghost@example.com", password="geheim123")


# -----------------------------
# Username
# -----------------------------


def test_set_username_and_availability(client):
    token = signup(client)["access_token"]
    assert client.get("/api/auth/username/alice_1/available").json() == {"available": True}

    r = client.post("/api/auth/username", json={"username": "alice_1"}, headers=bearer(token))
    assert r.status_code == 200
    assert r.json()["message"] == "Username erfolgreich gesetzt"
    assert r.json()["user"]["username"] == "alice_1"

    assert client.get("/api/auth/username/alice_1/available").json() == {"available": False}
    assert client.get("/api/auth/username/ALICE_1/available").json() == {"available": False}
    assert client.get("/api/auth/user", headers=bearer(token)).json()["username"] == "alice_1"


def test_username_taken_by_someone_else(client):
    first = signup(client, email="first@example.com")["access_token"]
    second = signup(client, email="second@example.com")["access_token"]
    client.post("/api/auth/username", json={"username": "reisende"}, headers=bearer(first))

    r = client.post("/api/auth/username", json={"username": "Reisende"}, headers=bearer(second))
    assert r.status_code == 400
    assert r.json()["message"] == "Username ist bereits vergeben"

    # Re-submitting your own name is fine.
    r = client.post("/api/auth/username", json={"username": "reisende"}, headers=bearer(first))
    assert r.status_code == 200


def test_username_validation(client):
    token = signup(client)["access_token"]

    short = client.get("/api/auth/username/ab/available")
    assert short.status_code == 400
    assert short.json() == {"available": False, "message": "Username muss mindestens 3 Zeichen lang sein"}

    bad = client.get("/api/auth/username/h%C3%A4nsel/available")
    assert bad.status_code == 400
    assert bad.json()["available"] is False
    assert "Buchstaben, Zahlen" in bad.json()["message"]

    for name in ("ab", "mit leerzeichen", "a.b.c", ""):
        r = client.post("/api/auth/username", json={"username": name}, headers=bearer(token))
        assert r.status_code == 400


def test_set_username_requires_auth(client):
    assert client.post("/api/auth/username", json={"username": "alice_1"}).status_code == 401
