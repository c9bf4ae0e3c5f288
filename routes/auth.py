from flask import Blueprint, current_app, g, jsonify, request

from models.user import User
from security.csrf import clear_csrf_token, issue_csrf_token
from security.login_guard import attempt_summary, clear_attempts, is_blocked, record_attempt
from security.password import verify_password
from security.rbac import Role, require_role
from security.session import create_session, revoke_session
from utils.audit import log_event
from utils.auth_context import login_required
from utils.payloads import LoginInput, PayloadError
from utils.request_info import client_ip

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

BLOCKED_MESSAGE = "Too many failed login attempts. Try again later."


def ip_identifier(ip: str) -> str:
    return f"ip:{ip}"


def user_identifier(username: str) -> str:
    return f"user:{username.strip().lower()}"


@auth_bp.post("/login")
def login():
    ip_key = ip_identifier(client_ip())

    if is_blocked(ip_key):
        record_attempt(ip_key, success=False, reason="blocked")
        log_event("LOGIN_BLOCKED", metadata={"identifier": ip_key})
        return jsonify(error=BLOCKED_MESSAGE), 429

    try:
        payload = LoginInput.from_json(request.get_json(silent=True))
    except PayloadError as e:
        return jsonify(error=e.message, details=e.details), 400

    user_key = user_identifier(payload.username)
    if is_blocked(user_key):
        record_attempt(ip_key, success=False, reason="account blocked")
        log_event("LOGIN_BLOCKED", metadata={"identifier": user_key})
        return jsonify(error=BLOCKED_MESSAGE), 429

    user = User.query.filter(User.username == payload.username).first()
    if not user or not verify_password(payload.password, user.password_hash):
        reason = "unknown user" if not user else "wrong password"
        user_id = user.id if user else None
        record_attempt(ip_key, success=False, reason=reason, user_id=user_id)
        record_attempt(user_key, success=False, reason=reason, user_id=user_id)
        log_event("LOGIN_FAIL", user_id=user_id, metadata={"username": payload.username, "reason": reason})
        return jsonify(error="Invalid username or password"), 401

    if not user.is_active:
        record_attempt(ip_key, success=False, reason="inactive", user_id=user.id)
        record_attempt(user_key, success=False, reason="inactive", user_id=user.id)
        log_event("LOGIN_FAIL", user_id=user.id, metadata={"reason": "inactive"})
        return jsonify(error="Account is disabled"), 403

    clear_attempts(ip_key)
    clear_attempts(user_key)
    record_attempt(user_key, success=True, user_id=user.id)

    raw_token, expires_at = create_session(user.id)

    resp = jsonify(user=user.to_dict(), expires_at=expires_at.isoformat())
    resp.set_cookie(
        current_app.config.get("AUTH_COOKIE_NAME", "staffdesk_session"),
        raw_token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Strict"),
        max_age=current_app.config.get("SESSION_LIFETIME_SECONDS", 86400),
        path="/",
    )
    resp = issue_csrf_token(resp)

    log_event("LOGIN_SUCCESS", user_id=user.id)
    return resp, 200


@auth_bp.post("/logout")
@login_required
def logout():
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "staffdesk_session")
    revoke_session(request.cookies.get(cookie_name))
    log_event("LOGOUT", user_id=g.user.id)

    resp = jsonify(message="Logged out")
    resp.delete_cookie(cookie_name, path="/")
    clear_csrf_token(resp)
    return resp, 200


@auth_bp.get("/session")
@login_required
def current_session():
    return jsonify(
        user=g.user.to_dict(),
        expires_at=g.session.expires_at.isoformat(),
    ), 200


@auth_bp.get("/attempts")
@require_role(Role.MANAGER)
def attempts():
    identifier = (request.args.get("identifier") or "").strip()
    if not identifier:
        return jsonify(error="identifier is required"), 400

    summary = attempt_summary(identifier)
    return jsonify(
        identifier=identifier,
        count=summary.count,
        remaining_attempts=summary.remaining_attempts,
        is_locked=summary.is_locked,
        last_attempt=summary.last_attempt.isoformat() if summary.last_attempt else None,
    ), 200
