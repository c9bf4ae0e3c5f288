from enum import Enum

from models.db import db
from models.user import avatar_initials
from utils.clock import utcnow


class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"

    @property
    def rank(self) -> int:
        return list(TaskPriority).index(self)


class KanbanColumn(db.Model):
    __tablename__ = "kanban_columns"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), nullable=False)
    color = db.Column(db.String(20), nullable=False, default="slate")
    # board position, left to right
    position = db.Column(db.Integer, nullable=False, default=0, index=True)
    is_default = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    tasks = db.relationship("Task", back_populates="column")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "order": self.position,
            "is_default": self.is_default,
        }


class Task(db.Model):
    __tablename__ = "tasks"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    priority = db.Column(db.String(10), nullable=False, default=TaskPriority.MEDIUM.value)
    # stored as an int rank next to the name so the board can sort by urgency
    priority_rank = db.Column(db.Integer, nullable=False, default=TaskPriority.MEDIUM.rank)

    column_id = db.Column(db.Integer, db.ForeignKey("kanban_columns.id"), nullable=False, index=True)
    assignee_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    column = db.relationship("KanbanColumn", back_populates="tasks")
    assignee = db.relationship("User", foreign_keys=[assignee_id])

    def set_priority(self, priority: TaskPriority):
        self.priority = priority.value
        self.priority_rank = priority.rank

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "column_id": self.column_id,
            "column": self.column.to_dict() if self.column else None,
            "assignee": {
                "id": self.assignee.id,
                "name": self.assignee.name,
                "avatar": self.assignee.avatar or avatar_initials(self.assignee.name),
            } if self.assignee else None,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
