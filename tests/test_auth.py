from datetime import timedelta

import emails
from conftest import auth_header, make_user
from database import utcnow
from security import hash_url_token


def register(client, email="new@example.com", password="secret123"):
    return client.post("/api/auth/register", json={
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email": email,
        "password": password,
    })


def test_register_returns_token_and_hides_private_fields(client, db):
    res = register(client, email="Ada@Example.com")
    assert res.status_code == 201
    body = res.json()
    assert body["success"] is True
    assert body["data"]["token"]
    user = body["data"]["user"]
    assert user["email"] == "ada@example.com"
    assert user["role"] == "customer"
    assert "password_hash" not in user
    assert "email_verification_token" not in user

    stored = db["user"].find_one({"email": "ada@example.com"})
    assert stored["password_hash"] != "secret123"
    assert stored["is_email_verified"] is False


def test_register_duplicate_email(client):
    assert register(client).status_code == 201
    res = register(client)
    assert res.status_code == 400
    assert res.json() == {"success": False, "error": "User already exists"}


def test_register_validation_error_uses_envelope(client):
    res = client.post("/api/auth/register", json={"first_name": "A", "last_name": "B",
                                                  "email": "not-an-email", "password": "123"})
    assert res.status_code == 400
    body = res.json()
    assert body["success"] is False
    assert body["error"].startswith("email")


def test_login_and_me(client, db):
    make_user(db, email="login@example.com", password="hunter22")
    res = client.post("/api/auth/login", json={"email": "login@example.com", "password": "hunter22"})
    assert res.status_code == 200
    token = res.json()["data"]["token"]
    assert db["user"].find_one({"email": "login@example.com"})["last_login"] is not None

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["data"]["email"] == "login@example.com"


def test_login_wrong_password(client, db):
    make_user(db, email="login@example.com", password="hunter22")
    res = client.post("/api/auth/login", json={"email": "login@example.com", "password": "nope"})
    assert res.status_code == 401
    assert res.json()["error"] == "Invalid credentials"


def test_me_without_token(client):
    res = client.get("/api/auth/me")
    assert res.status_code == 401
    assert res.json()["error"] == "Not authorized, no token"


def test_me_with_garbage_token(client):
    res = client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
    assert res.status_code == 401
    assert res.json()["error"] == "Not authorized, token failed"


def test_me_for_deleted_user(client, db, customer, customer_headers):
    db["user"].delete_one({"_id": customer})
    res = client.get("/api/auth/me", headers=customer_headers)
    assert res.status_code == 401
    assert res.json()["error"] == "User not found"


def test_update_profile(client, customer_headers):
    res = client.put("/api/auth/profile", json={"first_name": "Grace", "phone": "+15550001111"},
                     headers=customer_headers)
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["first_name"] == "Grace"
    assert data["phone"] == "+15550001111"
    assert data["last_name"] == "Customer"


def test_logout(client):
    res = client.post("/api/auth/logout")
    assert res.json() == {"success": True, "message": "Logged out successfully"}


def test_forgot_password_unknown_email(client):
    res = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})
    assert res.status_code == 404


def test_forgot_password_email_failure_clears_token(client, db, customer):
    res = client.post("/api/auth/forgot-password", json={"email": "customer@example.com"})
    assert res.status_code == 500
    assert res.json()["error"] == "Email could not be sent"
    assert "password_reset_token" not in db["user"].find_one({"_id": customer})


def test_password_reset_flow(client, db, customer, monkeypatch):
    sent = {}

    def fake_send(recipient, token):
        sent["token"] = token
        return True, None

    monkeypatch.setattr(emails, "send_password_reset_email", fake_send)
    res = client.post("/api/auth/forgot-password", json={"email": "customer@example.com"})
    assert res.status_code == 200
    assert db["user"].find_one({"_id": customer})["password_reset_token"] == hash_url_token(sent["token"])

    res = client.post("/api/auth/reset-password", json={"token": sent["token"], "password": "brandnew1"})
    assert res.status_code == 200

    login = client.post("/api/auth/login", json={"email": "customer@example.com", "password": "brandnew1"})
    assert login.status_code == 200
    assert "password_reset_token" not in db["user"].find_one({"_id": customer})


def test_reset_password_expired_token(client, db, customer):
    db["user"].update_one({"_id": customer}, {"$set": {
        "password_reset_token": hash_url_token("abc"),
        "password_reset_expires": utcnow() - timedelta(minutes=1),
    }})
    res = client.post("/api/auth/reset-password", json={"token": "abc", "password": "brandnew1"})
    assert res.status_code == 400
    assert res.json()["error"] == "Invalid or expired reset token"


def test_verify_email(client, db, monkeypatch):
    captured = {}

    def fake_send(recipient, token):
        captured["token"] = token
        return True, None

    monkeypatch.setattr(emails, "send_verification_email", fake_send)
    assert register(client).status_code == 201
    stored = db["user"].find_one({"email": "new@example.com"})
    assert stored["email_verification_token"] == hash_url_token(captured["token"])

    res = client.get(f"/api/auth/verify-email/{captured['token']}")
    assert res.status_code == 200
    assert db["user"].find_one({"email": "new@example.com"})["is_email_verified"] is True

    again = client.get(f"/api/auth/verify-email/{captured['token']}")
    assert again.status_code == 400


def test_resend_verification_for_verified_user(client, db):
    user_id = make_user(db, email="done@example.com", is_email_verified=True)
    res = client.post("/api/auth/resend-verification", headers=auth_header(user_id))
    assert res.status_code == 400
    assert res.json()["error"] == "Email is already verified"
