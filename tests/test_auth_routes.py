from models import db
from models.audit_log import AuditLog
from models.login_attempt import LoginAttempt
from security.login_guard import MAX_LOGIN_ATTEMPTS
from security.rbac import Role

from conftest import PASSWORD


def _login(client, username, password=PASSWORD, ip="203.0.113.7"):
    return client.post(
        "/auth/login",
        json={"username": username, "password": password},
        headers={"X-Forwarded-For": ip},
    )


def test_login_success_sets_cookies(client, make_user):
    user = make_user(name="Ann Lee")
    resp = _login(client, user.username)

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["user"]["username"] == user.username
    assert body["user"]["avatar"] == "AL"
    assert body["expires_at"]
    assert client.get_cookie("staffdesk_session") is not None
    assert client.get_cookie("csrf_token") is not None
    assert resp.headers["X-Frame-Options"] == "DENY"

    assert AuditLog.query.filter_by(action="LOGIN_SUCCESS", user_id=user.id).count() == 1


def test_login_validation(client):
    resp = client.post("/auth/login", json={"username": "a", "password": "short"})
    assert resp.status_code == 400
    assert set(resp.get_json()["details"]) == {"username", "password"}


def test_wrong_password_records_both_identifiers(client, make_user):
    user = make_user()
    resp = _login(client, user.username, password="WrongPass1")

    assert resp.status_code == 401
    identifiers = {a.identifier for a in LoginAttempt.query.filter_by(success=False)}
    assert identifiers == {"ip:203.0.113.7", f"user:{user.username}"}


def test_unknown_user_is_generic_401(client):
    resp = _login(client, "ghost_user")
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "Invalid username or password"


def test_inactive_account_is_403(client, make_user):
    user = make_user(is_active=False)
    assert _login(client, user.username).status_code == 403


def test_account_lockout_across_addresses(client, make_user):
    user = make_user()
    for i in range(MAX_LOGIN_ATTEMPTS):
        assert _login(client, user.username, "WrongPass1", ip=f"198.51.100.{i}").status_code == 401

    # right password, fresh address: the account itself is blocked
    resp = _login(client, user.username, ip="192.0.2.1")
    assert resp.status_code == 429


def test_address_lockout(client, make_user):
    user = make_user()
    for i in range(MAX_LOGIN_ATTEMPTS):
        _login(client, f"nobody_{i}", "WrongPass1")

    resp = _login(client, user.username)
    assert resp.status_code == 429
    assert AuditLog.query.filter_by(action="LOGIN_BLOCKED").count() == 1


def test_success_clears_failures(client, make_user):
    user = make_user()
    for _ in range(MAX_LOGIN_ATTEMPTS - 1):
        _login(client, user.username, "WrongPass1")
    assert _login(client, user.username).status_code == 200

    assert LoginAttempt.query.filter_by(success=False).count() == 0
    assert LoginAttempt.query.filter_by(success=True).count() == 1


def test_session_and_logout(client, make_user, login):
    user = make_user()
    headers = login(user)

    resp = client.get("/auth/session")
    assert resp.status_code == 200
    assert resp.get_json()["user"]["id"] == user.id

    assert client.post("/auth/logout").status_code == 403  # missing CSRF header
    assert client.post("/auth/logout", headers=headers).status_code == 200
    assert client.get("/auth/session").status_code == 401


def test_deactivated_user_loses_access(client, make_user, login):
    user = make_user()
    login(user)
    user.is_active = False
    db.session.commit()

    assert client.get("/auth/session").status_code == 401


def test_attempts_requires_manager(client_for):
    employee, _, _ = client_for(Role.EMPLOYEE)
    assert employee.get("/auth/attempts?identifier=ip:1.2.3.4").status_code == 403

    manager, _, _ = client_for(Role.MANAGER)
    resp = manager.get("/auth/attempts?identifier=ip:1.2.3.4")
    assert resp.status_code == 200
    assert resp.get_json()["remaining_attempts"] == MAX_LOGIN_ATTEMPTS


def test_health(client):
    resp = client.get("/health")
    assert resp.get_json() == {"status": "ok", "database": "ok"}


def test_unknown_route_is_json(client):
    resp = client.get("/nope")
    assert resp.status_code == 404
    assert "error" in resp.get_json()


def test_login_rejects_non_object_body(client):
    resp = client.post("/auth/login", json=[1, 2])
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Expected a JSON object"
