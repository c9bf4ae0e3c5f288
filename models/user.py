from models.db import db
from security.rbac import Role
from utils.clock import utcnow

class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    username = db.Column(db.String(100), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(100), nullable=False)

    # one of security.rbac.Role
    role = db.Column(db.String(20), nullable=False, default=Role.EMPLOYEE.value)

    department_id = db.Column(db.Integer, db.ForeignKey("departments.id"), nullable=True, index=True)
    position = db.Column(db.String(100), nullable=True)
    avatar = db.Column(db.String(10), nullable=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    department = db.relationship("Department", back_populates="users")

    @property
    def role_enum(self) -> Role:
        return Role.parse(self.role) or Role.EMPLOYEE

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "username": self.username,
            "name": self.name,
            "role": self.role,
            "department_id": self.department_id,
            "department": self.department.name if self.department else None,
            "position": self.position,
            "avatar": self.avatar or avatar_initials(self.name),
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


def avatar_initials(name: str) -> str:
    parts = [p for p in (name or "").split() if p]
    if not parts:
        return "?"
    if len(parts) == 1:
        return parts[0][:2].upper()
    return (parts[0][0] + parts[-1][0]).upper()
