from models.db import db
from utils.clock import utcnow

class LoginAttempt(db.Model):
    """One authentication attempt. Rows are never updated."""

    __tablename__ = "login_attempts"

    id = db.Column(db.Integer, primary_key=True)

    # ip:<address> or user:<username>; see routes.auth
    identifier = db.Column(db.String(120), nullable=False)
    success = db.Column(db.Boolean, nullable=False)
    reason = db.Column(db.String(255), nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        db.Index("ix_login_attempts_identifier_created", "identifier", "success", "created_at"),
    )
