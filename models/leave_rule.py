from models.db import db
from utils.clock import utcnow


class LeaveRule(db.Model):
    """Working-day settings used when leave is taken by the hour."""

    __tablename__ = "leave_rules"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    # HH:MM, local office time
    start_time = db.Column(db.String(5), nullable=False, default="08:30")
    end_time = db.Column(db.String(5), nullable=False, default="16:30")
    full_day_hours = db.Column(db.Float, nullable=False, default=8)
    half_day_hours = db.Column(db.Float, nullable=False, default=4)
    max_consecutive_days = db.Column(db.Integer, nullable=False, default=30)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "full_day_hours": self.full_day_hours,
            "half_day_hours": self.half_day_hours,
            "max_consecutive_days": self.max_consecutive_days,
            "is_active": self.is_active,
        }
