from enum import Enum
from functools import wraps
from typing import Optional

from flask import g, jsonify


class Role(str, Enum):
    """User roles, ordered from least to most privileged."""

    EMPLOYEE = "EMPLOYEE"
    HR = "HR"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def meets_or_exceeds(self, threshold: "Role") -> bool:
        return self.rank >= Role(threshold).rank

    @classmethod
    def parse(cls, value) -> Optional["Role"]:
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


_RANKS = {role: idx for idx, role in enumerate(Role)}


def current_role() -> Optional[Role]:
    user = getattr(g, "user", None)
    if not user:
        return None
    return Role.parse(user.role)


def has_role(minimum: Role) -> bool:
    role = current_role()
    return role is not None and role.meets_or_exceeds(minimum)


def require_role(minimum: Role):
    """
    Usage: @require_role(Role.MANAGER)
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return jsonify(error="Authentication required"), 401

            if not has_role(minimum):
                return jsonify(error="Forbidden"), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator
