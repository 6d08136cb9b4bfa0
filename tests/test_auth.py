from vconn import models
from vconn.core import security


def _register(client, **overrides):
    payload = {
        "name": "Asha Traders",
        "email": "Asha@Example.com",
        "password": "s3cret-pass",
        "confirm_password": "s3cret-pass",
        "phone": "555-0101",
        "role": "vendor",
        "business_name": "Asha Traders",
        "address": "Pune",
    }
    payload.update(overrides)
    return client.post("/api/auth/register", json=payload)


def _token(client, email, password):
    return client.post("/api/auth/token", data={"username": email, "password": password})


def test_register_login_and_me(client, db_session):
    r = _register(client)
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["email"] == "asha@example.com"
    assert body["role"] == "vendor"
    assert "hashed_password" not in body

    r = _token(client, "ASHA@example.com", "s3cret-pass")
    assert r.status_code == 200, r.text
    token = r.json()["access_token"]
    assert r.json()["token_type"] == "bearer"

    r = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json()["email"] == "asha@example.com"

    user = db_session.query(models.User).filter(models.User.email == "asha@example.com").one()
    assert (user.free_attempts_used, user.cancellations_used) == (0, 0)
    actions = {a.action for a in db_session.query(models.AuditLog).all()}
    assert "auth.register" in actions


def test_register_rejects_duplicate_email(client):
    assert _register(client).status_code == 201
    r = _register(client, email="asha@example.com")
    assert r.status_code == 400
    assert r.json()["detail"] == "Email already registered"


def test_register_rejects_password_mismatch_and_unknown_role(client):
    assert _register(client, confirm_password="different").status_code == 422
    assert _register(client, role="admin").status_code == 422


def test_login_with_wrong_password_is_401(client):
    _register(client)
    r = _token(client, "asha@example.com", "wrong-pass")
    assert r.status_code == 401


def test_protected_route_requires_token(client):
    assert client.get("/api/auth/me").status_code == 401
    r = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


def test_token_role_gates_vendor_routes(client):
    _register(client, email="ws@example.com", role="wholesaler")
    token = _token(client, "ws@example.com", "s3cret-pass").json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}

    assert client.get("/api/vendor/dashboard", headers=headers).status_code == 403
    assert client.get("/api/wholesaler/dashboard", headers=headers).status_code == 200


def test_token_claims_and_expiry():
    token = security.issue_token("asha@example.com", role="vendor")
    claims = security.read_token(token)
    assert claims["sub"] == "asha@example.com"
    assert claims["role"] == "vendor"

    expired = security.issue_token("asha@example.com", ttl_minutes=-1)
    assert security.read_token(expired) is None
    assert security.token_subject("garbage") is None


def test_placeholder_hash_never_verifies():
    assert security.verify_password("anything", "not-a-real-hash") is False
    assert security.verify_password("pw123456", security.hash_password("pw123456"))
