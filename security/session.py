import hashlib
import secrets
from datetime import timedelta

from flask import current_app, request

from models import db
from models.session import Session
from utils.clock import utcnow
from utils.request_info import client_ip


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_session(user_id: int) -> tuple:
    """
    Creates a server-side session.
    Returns (raw token for the cookie, expiry). Only the hash is stored.
    """
    raw_token = secrets.token_urlsafe(32)

    lifetime = current_app.config.get("SESSION_LIFETIME_SECONDS", 86400)
    expires_at = utcnow() + timedelta(seconds=lifetime)

    row = Session(
        user_id=user_id,
        token_hash=_hash_token(raw_token),
        expires_at=expires_at,
        ip=client_ip(),
        user_agent=(request.headers.get("User-Agent") or "")[:255],
    )
    db.session.add(row)
    db.session.commit()
    return raw_token, expires_at


def get_session_from_request():
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "staffdesk_session")
    raw_token = request.cookies.get(cookie_name)
    if not raw_token:
        return None

    now = utcnow()
    sess = Session.query.filter_by(token_hash=_hash_token(raw_token), revoked=False).first()
    if not sess:
        return None

    if sess.expires_at <= now:
        return None

    idle_seconds = current_app.config.get("IDLE_TIMEOUT_SECONDS", 7200)
    last_seen = sess.last_seen_at or sess.created_at
    if last_seen + timedelta(seconds=idle_seconds) <= now:
        return None

    sess.last_seen_at = now
    db.session.commit()
    return sess


def revoke_session(raw_token: str) -> bool:
    if not raw_token:
        return False
    sess = Session.query.filter_by(token_hash=_hash_token(raw_token)).first()
    if not sess:
        return False
    sess.revoked = True
    db.session.commit()
    return True


def revoke_all_sessions(user_id: int, keep_session_id=None) -> int:
    """Revokes every live session of the user except ``keep_session_id``."""
    q = Session.query.filter_by(user_id=user_id, revoked=False)
    if keep_session_id is not None:
        q = q.filter(Session.id != keep_session_id)
    sessions = q.all()
    for s in sessions:
        s.revoked = True
    db.session.commit()
    return len(sessions)
