from enum import Enum

from models.db import db
from utils.clock import utcnow


class LeaveType(str, Enum):
    SICK = "SICK"
    PERSONAL = "PERSONAL"
    VACATION = "VACATION"
    MATERNITY = "MATERNITY"
    ORDINATION = "ORDINATION"
    OTHER = "OTHER"


class LeaveStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Leave(db.Model):
    __tablename__ = "leaves"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    leave_type = db.Column(db.String(20), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    is_half_day = db.Column(db.Boolean, default=False, nullable=False)
    hours = db.Column(db.Float, nullable=True)
    reason = db.Column(db.Text, nullable=False)

    status = db.Column(db.String(20), nullable=False, default=LeaveStatus.PENDING.value, index=True)
    # derived from the fields above, see utils.leave_accounting.chargeable_days
    total_days = db.Column(db.Float, nullable=False, default=0)

    approved_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = db.relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        db.Index("ix_leaves_start_end", "start_date", "end_date"),
        db.CheckConstraint("end_date >= start_date", name="ck_leave_date_order"),
    )

    def to_dict(self, include_user=True):
        out = {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.leave_type,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "is_half_day": self.is_half_day,
            "hours": self.hours,
            "reason": self.reason,
            "status": self.status,
            "total_days": self.total_days,
            "approved_by": self.approved_by,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_user and self.user is not None:
            out["user"] = {
                "id": self.user.id,
                "name": self.user.name,
                "avatar": self.user.to_dict()["avatar"],
                "department": self.user.department.name if self.user.department else None,
            }
        return out
