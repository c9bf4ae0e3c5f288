"""Brute-force protection for the login endpoint.

Every authentication attempt is appended to ``login_attempts``; whether an
identifier is blocked is recomputed from those rows on each check, so the
guard keeps no state of its own and behaves the same across restarts and
across several app instances sharing one database.

An identifier is blocked while it has ``MAX_LOGIN_ATTEMPTS`` or more failed
attempts inside the trailing ``LOCKOUT_WINDOW``.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.login_attempt import LoginAttempt
from utils.clock import utcnow

logger = logging.getLogger(__name__)

MAX_LOGIN_ATTEMPTS = 5
LOCKOUT_WINDOW = timedelta(minutes=30)


@dataclass(frozen=True)
class AttemptSummary:
    count: int
    remaining_attempts: int
    is_locked: bool
    last_attempt: Optional[datetime]


def _window_start(now: Optional[datetime]) -> datetime:
    return (now or utcnow()) - LOCKOUT_WINDOW


def _recent_failures(identifier: str, since: datetime):
    return LoginAttempt.query.filter(
        LoginAttempt.identifier == identifier,
        LoginAttempt.success.is_(False),
        LoginAttempt.created_at >= since,
    )


def is_blocked(identifier: str, now: Optional[datetime] = None) -> bool:
    """
    True when the identifier has too many recent failures.
    Fails open: a storage error never locks anyone out.
    """
    try:
        count = _recent_failures(identifier, _window_start(now)).count()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Login block check failed for %s; allowing attempt", identifier)
        return False
    return count >= MAX_LOGIN_ATTEMPTS


def record_attempt(identifier: str, success: bool, reason: Optional[str] = None,
                   user_id: Optional[int] = None, now: Optional[datetime] = None) -> None:
    row = LoginAttempt(
        identifier=identifier,
        success=bool(success),
        reason=reason[:255] if reason else None,
        user_id=user_id,
        created_at=now or utcnow(),
    )
    try:
        db.session.add(row)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Could not record login attempt for %s", identifier)


def clear_attempts(identifier: str, now: Optional[datetime] = None) -> None:
    """
    Removes the failures that currently count against the identifier.
    Older failures are kept; the window already ignores them.
    """
    try:
        deleted = _recent_failures(identifier, _window_start(now)).delete(synchronize_session=False)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Could not clear login attempts for %s", identifier)
        return
    if deleted:
        logger.info("Cleared %d failed login attempts for %s", deleted, identifier)


def attempt_summary(identifier: str, now: Optional[datetime] = None) -> AttemptSummary:
    try:
        q = _recent_failures(identifier, _window_start(now))
        count = q.count()
        last = q.order_by(LoginAttempt.created_at.desc()).first()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Could not load login attempts for %s", identifier)
        return AttemptSummary(0, MAX_LOGIN_ATTEMPTS, False, None)

    return AttemptSummary(
        count=count,
        remaining_attempts=max(0, MAX_LOGIN_ATTEMPTS - count),
        is_locked=count >= MAX_LOGIN_ATTEMPTS,
        last_attempt=last.created_at if last else None,
    )
