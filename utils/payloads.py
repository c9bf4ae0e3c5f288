"""
Typed request bodies.

Each payload is built from the decoded JSON with ``from_json``; invalid input
raises ``PayloadError`` carrying per-field messages. Update payloads leave a
field as ``UNSET`` when the client did not send it, so ``None`` can still mean
"clear this value".
"""
from __future__ import annotations

import re
from dataclasses import dataclass, fields
from datetime import date
from typing import Dict, List, Optional

from models.kanban import TaskPriority
from models.leave import LeaveStatus, LeaveType
from security.rbac import Role

_USERNAME = re.compile(r"^[A-Za-z0-9_]+$")
_UPPER = re.compile(r"[A-Z]")
_LOWER = re.compile(r"[a-z]")
_DIGIT = re.compile(r"\d")
_CLOCK = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

MAX_LEAVE_HOURS = 8


class PayloadError(ValueError):
    def __init__(self, message: str, details: Optional[Dict[str, List[str]]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class _Unset:
    def __repr__(self):
        return "UNSET"

    def __bool__(self):
        return False


UNSET = _Unset()


class _Errors:
    def __init__(self):
        self.details: Dict[str, List[str]] = {}

    def add(self, name: str, message: str):
        self.details.setdefault(name, []).append(message)

    def raise_if_any(self, message="Invalid data"):
        if self.details:
            raise PayloadError(message, self.details)


def _object(data) -> dict:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise PayloadError("Expected a JSON object")
    return data


def _bool(data, name, errors, default=False):
    value = data.get(name, default)
    if not isinstance(value, bool):
        errors.add(name, "Must be true or false")
        return default
    return value


def parse_date(value) -> date:
    if not isinstance(value, str) or not re.match(r"^\d{4}-\d{2}-\d{2}$", value):
        raise ValueError("Use YYYY-MM-DD")
    return date.fromisoformat(value)


def _date_field(data, name, errors, required=True):
    if name not in data or data.get(name) in (None, ""):
        if required:
            errors.add(name, "Required")
        return None
    try:
        return parse_date(data[name])
    except ValueError:
        errors.add(name, "Invalid date, use YYYY-MM-DD")
        return None


def _text(data, name, errors, max_len, required=True, min_len=1):
    value = data.get(name)
    if value is None:
        if required:
            errors.add(name, "Required")
        return None
    if not isinstance(value, str):
        errors.add(name, "Must be a string")
        return None
    value = value.strip()
    if len(value) < min_len:
        errors.add(name, "Required" if not value else f"Must be at least {min_len} characters")
        return None
    if len(value) > max_len:
        errors.add(name, f"Must be at most {max_len} characters")
        return None
    return value


def _optional_int(data, name, errors):
    value = data.get(name)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        errors.add(name, "Must be an integer")
        return None
    return value


def _hours(data, errors):
    value = data.get("hours")
    if value in (None, "", 0):
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        errors.add("hours", "Must be a number")
        return None
    if value <= 0 or value > MAX_LEAVE_HOURS:
        errors.add("hours", f"Must be above 0 and at most {MAX_LEAVE_HOURS}")
        return None
    return float(value)


def check_leave_shape(start: date, end: date, is_half_day: bool, hours: Optional[float], errors: _Errors):
    if start and end and end < start:
        errors.add("end_date", "End date must not be before start date")
    if is_half_day and hours:
        errors.add("hours", "Choose either a half day or an hour count")
    if start and end and start != end:
        if hours:
            errors.add("hours", "Hour-based leave must start and end on the same day")
        if is_half_day:
            errors.add("is_half_day", "A half day must start and end on the same day")


@dataclass(frozen=True)
class LoginInput:
    username: str
    password: str

    @classmethod
    def from_json(cls, data) -> "LoginInput":
        data = _object(data)
        errors = _Errors()
        username = _text(data, "username", errors, max_len=100, min_len=3)
        if username and not _USERNAME.match(username):
            errors.add("username", "Use letters, digits or underscore only")
        password = data.get("password")
        if not isinstance(password, str) or not (8 <= len(password) <= 128):
            errors.add("password", "Must be 8 to 128 characters")
        errors.raise_if_any()
        return cls(username=username, password=password)


@dataclass(frozen=True)
class LeaveInput:
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: str
    is_half_day: bool = False
    hours: Optional[float] = None
    user_id: Optional[int] = None

    @classmethod
    def from_json(cls, data) -> "LeaveInput":
        data = _object(data)
        errors = _Errors()

        leave_type = None
        try:
            leave_type = LeaveType(data.get("type"))
        except ValueError:
            errors.add("type", "Unknown leave type")

        start = _date_field(data, "start_date", errors)
        end = _date_field(data, "end_date", errors)
        reason = _text(data, "reason", errors, max_len=500)
        is_half_day = _bool(data, "is_half_day", errors)
        hours = _hours(data, errors)
        user_id = _optional_int(data, "user_id", errors)

        check_leave_shape(start, end, is_half_day, hours, errors)
        errors.raise_if_any()
        return cls(leave_type, start, end, reason, is_half_day, hours, user_id)


@dataclass(frozen=True)
class LeaveUpdate:
    leave_type: object = UNSET
    start_date: object = UNSET
    end_date: object = UNSET
    reason: object = UNSET
    is_half_day: object = UNSET
    hours: object = UNSET

    @classmethod
    def from_json(cls, data) -> "LeaveUpdate":
        data = _object(data)
        errors = _Errors()
        values = {}

        if "type" in data:
            try:
                values["leave_type"] = LeaveType(data.get("type"))
            except ValueError:
                errors.add("type", "Unknown leave type")
        if "start_date" in data:
            values["start_date"] = _date_field(data, "start_date", errors)
        if "end_date" in data:
            values["end_date"] = _date_field(data, "end_date", errors)
        if "reason" in data:
            values["reason"] = _text(data, "reason", errors, max_len=500)
        if "is_half_day" in data:
            values["is_half_day"] = _bool(data, "is_half_day", errors)
        if "hours" in data:
            values["hours"] = _hours(data, errors)

        errors.raise_if_any()
        if not values:
            raise PayloadError("Nothing to update")
        return cls(**values)

    def changes_day_count(self) -> bool:
        return any(getattr(self, name) is not UNSET
                   for name in ("start_date", "end_date", "is_half_day", "hours"))

    def apply_to(self, leave):
        """Copies set fields onto the leave after checking the combined result."""
        merged = {
            f.name: getattr(self, f.name) if getattr(self, f.name) is not UNSET else getattr(leave, f.name)
            for f in fields(self)
        }
        errors = _Errors()
        check_leave_shape(merged["start_date"], merged["end_date"],
                          bool(merged["is_half_day"]), merged["hours"], errors)
        errors.raise_if_any()

        for name, value in merged.items():
            if name == "leave_type":
                value = value.value if isinstance(value, LeaveType) else value
            setattr(leave, name, value)


@dataclass(frozen=True)
class LeaveDecision:
    status: LeaveStatus

    @classmethod
    def from_json(cls, data) -> "LeaveDecision":
        status = _object(data).get("status")
        if status not in (LeaveStatus.APPROVED.value, LeaveStatus.REJECTED.value):
            raise PayloadError("Invalid status", {"status": ["Must be APPROVED or REJECTED"]})
        return cls(LeaveStatus(status))


def _password_errors(password, errors, name="password"):
    if not isinstance(password, str) or not (8 <= len(password) <= 128):
        errors.add(name, "Must be 8 to 128 characters")
        return
    if not (_UPPER.search(password) and _LOWER.search(password) and _DIGIT.search(password)):
        errors.add(name, "Must include upper case, lower case and a digit")


def _email(data, errors):
    email = _text(data, "email", errors, max_len=255)
    if email and "@" not in email:
        errors.add("email", "Invalid email")
        return None
    return email.lower() if email else email


def _role(data, errors):
    role = Role.parse(data.get("role"))
    if role is None:
        errors.add("role", "Unknown role")
    return role


@dataclass(frozen=True)
class UserCreate:
    email: str
    username: str
    password: str
    name: str
    role: Role = Role.EMPLOYEE
    department_id: Optional[int] = None
    position: Optional[str] = None

    @classmethod
    def from_json(cls, data) -> "UserCreate":
        data = _object(data)
        errors = _Errors()
        email = _email(data, errors)
        username = _text(data, "username", errors, max_len=100, min_len=3)
        if username and not _USERNAME.match(username):
            errors.add("username", "Use letters, digits or underscore only")
        password = data.get("password")
        _password_errors(password, errors)
        name = _text(data, "name", errors, max_len=100)
        role = _role(data, errors) if "role" in data else Role.EMPLOYEE
        department_id = _optional_int(data, "department_id", errors)
        position = _text(data, "position", errors, max_len=100, required=False)
        errors.raise_if_any()
        return cls(email, username, password, name, role, department_id, position)


@dataclass(frozen=True)
class UserUpdate:
    email: object = UNSET
    name: object = UNSET
    password: object = UNSET
    role: object = UNSET
    department_id: object = UNSET
    position: object = UNSET
    is_active: object = UNSET

    ADMIN_ONLY = ("role", "department_id", "position", "is_active")

    @classmethod
    def from_json(cls, data) -> "UserUpdate":
        data = _object(data)
        errors = _Errors()
        values = {}
        if "email" in data:
            values["email"] = _email(data, errors)
        if "name" in data:
            values["name"] = _text(data, "name", errors, max_len=100)
        if "password" in data:
            _password_errors(data.get("password"), errors)
            values["password"] = data.get("password")
        if "role" in data:
            values["role"] = _role(data, errors)
        if "department_id" in data:
            values["department_id"] = _optional_int(data, "department_id", errors)
        if "position" in data:
            values["position"] = _text(data, "position", errors, max_len=100, required=False)
        if "is_active" in data:
            values["is_active"] = _bool(data, "is_active", errors, default=None)
        errors.raise_if_any()
        if not values:
            raise PayloadError("Nothing to update")
        return cls(**values)

    def provided(self) -> Dict[str, object]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not UNSET}

    def touches_admin_fields(self) -> bool:
        return any(name in self.provided() for name in self.ADMIN_ONLY)


@dataclass(frozen=True)
class HolidayInput:
    start_date: date
    end_date: date
    name: str
    description: Optional[str] = None

    @classmethod
    def from_json(cls, data, max_days: int) -> "HolidayInput":
        data = _object(data)
        errors = _Errors()
        start = _date_field(data, "start_date", errors)
        end = _date_field(data, "end_date", errors, required=False) or start
        name = _text(data, "name", errors, max_len=200)
        description = _text(data, "description", errors, max_len=500, required=False)
        if start and end:
            if end < start:
                errors.add("end_date", "End date must not be before start date")
            elif (end - start).days + 1 > max_days:
                errors.add("end_date", f"At most {max_days} days per request")
        errors.raise_if_any()
        return cls(start, end, name, description)


@dataclass(frozen=True)
class DepartmentInput:
    name: str
    description: Optional[str] = None
    sort_order: int = 0

    @classmethod
    def from_json(cls, data) -> "DepartmentInput":
        data = _object(data)
        errors = _Errors()
        name = _text(data, "name", errors, max_len=100)
        description = _text(data, "description", errors, max_len=255, required=False)
        sort_order = _optional_int(data, "sort_order", errors) or 0
        errors.raise_if_any()
        return cls(name, description, sort_order)


def _priority(data, errors):
    try:
        return TaskPriority(data.get("priority"))
    except ValueError:
        errors.add("priority", "Must be LOW, MEDIUM, HIGH or URGENT")
        return None


def _non_negative(data, name, errors):
    value = _optional_int(data, name, errors)
    if value is not None and value < 0:
        errors.add(name, "Must not be negative")
        return None
    return value


@dataclass(frozen=True)
class ColumnInput:
    name: str
    color: str = "slate"
    order: Optional[int] = None

    @classmethod
    def from_json(cls, data) -> "ColumnInput":
        data = _object(data)
        errors = _Errors()
        name = _text(data, "name", errors, max_len=50)
        color = _text(data, "color", errors, max_len=20, required=False) or "slate"
        order = _non_negative(data, "order", errors)
        errors.raise_if_any()
        return cls(name, color, order)


@dataclass(frozen=True)
class ColumnUpdate:
    name: object = UNSET
    color: object = UNSET
    order: object = UNSET

    @classmethod
    def from_json(cls, data) -> "ColumnUpdate":
        data = _object(data)
        errors = _Errors()
        values = {}
        if "name" in data:
            values["name"] = _text(data, "name", errors, max_len=50)
        if "color" in data:
            values["color"] = _text(data, "color", errors, max_len=20)
        if "order" in data:
            if data.get("order") is None:
                errors.add("order", "Required")
            values["order"] = _non_negative(data, "order", errors)
        errors.raise_if_any()
        if not values:
            raise PayloadError("Nothing to update")
        return cls(**values)

    def provided(self) -> Dict[str, object]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not UNSET}


@dataclass(frozen=True)
class ColumnReorder:
    column_ids: List[int]

    @classmethod
    def from_json(cls, data) -> "ColumnReorder":
        ids = _object(data).get("column_ids")
        if not isinstance(ids, list) or not ids:
            raise PayloadError("Invalid data", {"column_ids": ["Must be a non-empty list"]})
        if any(isinstance(i, bool) or not isinstance(i, int) or i <= 0 for i in ids):
            raise PayloadError("Invalid data", {"column_ids": ["Must contain positive integers"]})
        if len(set(ids)) != len(ids):
            raise PayloadError("Invalid data", {"column_ids": ["Must not repeat a column"]})
        return cls(list(ids))


@dataclass(frozen=True)
class TaskInput:
    title: str
    priority: TaskPriority
    description: Optional[str] = None
    column_id: Optional[int] = None
    assignee_id: Optional[int] = None

    @classmethod
    def from_json(cls, data) -> "TaskInput":
        data = _object(data)
        errors = _Errors()
        title = _text(data, "title", errors, max_len=255)
        description = _text(data, "description", errors, max_len=1000, required=False)
        priority = _priority(data, errors)
        column_id = _optional_int(data, "column_id", errors)
        assignee_id = _optional_int(data, "assignee_id", errors)
        errors.raise_if_any()
        return cls(title, priority, description, column_id, assignee_id)


@dataclass(frozen=True)
class TaskUpdate:
    title: object = UNSET
    description: object = UNSET
    priority: object = UNSET
    column_id: object = UNSET
    assignee_id: object = UNSET

    @classmethod
    def from_json(cls, data) -> "TaskUpdate":
        data = _object(data)
        errors = _Errors()
        values = {}
        if "title" in data:
            values["title"] = _text(data, "title", errors, max_len=255)
        if "description" in data:
            values["description"] = _text(data, "description", errors, max_len=1000, required=False)
        if "priority" in data:
            values["priority"] = _priority(data, errors)
        if "column_id" in data:
            if data.get("column_id") is None:
                errors.add("column_id", "Required")
            values["column_id"] = _optional_int(data, "column_id", errors)
        if "assignee_id" in data:
            # null unassigns the task
            values["assignee_id"] = _optional_int(data, "assignee_id", errors)
        errors.raise_if_any()
        if not values:
            raise PayloadError("Nothing to update")
        return cls(**values)

    def provided(self) -> Dict[str, object]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not UNSET}


LEAVE_RULE_DEFAULTS = {
    "start_time": "08:30",
    "end_time": "16:30",
    "full_day_hours": 8.0,
    "half_day_hours": 4.0,
    "max_consecutive_days": 30,
    "is_active": True,
}


def _clock(data, name, errors):
    value = data.get(name)
    if not isinstance(value, str) or not _CLOCK.match(value):
        errors.add(name, "Use HH:MM")
        return None
    return value


def _rule_hours(data, name, errors):
    value = data.get(name)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not (0 < value <= 24):
        errors.add(name, "Must be above 0 and at most 24")
        return None
    return float(value)


def _leave_rule_values(data, errors) -> Dict[str, object]:
    values = {}
    if "name" in data:
        values["name"] = _text(data, "name", errors, max_len=100)
    for name in ("start_time", "end_time"):
        if name in data:
            values[name] = _clock(data, name, errors)
    for name in ("full_day_hours", "half_day_hours"):
        if name in data:
            values[name] = _rule_hours(data, name, errors)
    if "max_consecutive_days" in data:
        days = _optional_int(data, "max_consecutive_days", errors)
        if days is None or not (1 <= days <= 365):
            errors.add("max_consecutive_days", "Must be between 1 and 365")
        values["max_consecutive_days"] = days
    if "is_active" in data:
        values["is_active"] = _bool(data, "is_active", errors, default=True)
    return values


def check_rule_shape(rule: Dict[str, object], errors: _Errors):
    if rule.get("start_time") and rule.get("end_time") and rule["end_time"] <= rule["start_time"]:
        errors.add("end_time", "End time must be after start time")
    if rule.get("full_day_hours") and rule.get("half_day_hours") and rule["half_day_hours"] > rule["full_day_hours"]:
        errors.add("half_day_hours", "Must not exceed full_day_hours")


@dataclass(frozen=True)
class LeaveRuleInput:
    name: str
    start_time: str = LEAVE_RULE_DEFAULTS["start_time"]
    end_time: str = LEAVE_RULE_DEFAULTS["end_time"]
    full_day_hours: float = LEAVE_RULE_DEFAULTS["full_day_hours"]
    half_day_hours: float = LEAVE_RULE_DEFAULTS["half_day_hours"]
    max_consecutive_days: int = LEAVE_RULE_DEFAULTS["max_consecutive_days"]
    is_active: bool = LEAVE_RULE_DEFAULTS["is_active"]

    @classmethod
    def from_json(cls, data) -> "LeaveRuleInput":
        data = _object(data)
        errors = _Errors()
        if "name" not in data:
            errors.add("name", "Required")
        values = _leave_rule_values(data, errors)
        check_rule_shape({**LEAVE_RULE_DEFAULTS, **values}, errors)
        errors.raise_if_any()
        return cls(**values)


@dataclass(frozen=True)
class LeaveRuleUpdate:
    values: Dict[str, object]

    @classmethod
    def from_json(cls, data) -> "LeaveRuleUpdate":
        data = _object(data)
        errors = _Errors()
        values = _leave_rule_values(data, errors)
        errors.raise_if_any()
        if not values:
            raise PayloadError("Nothing to update")
        return cls(values)

    def apply_to(self, rule):
        """Copies the values onto the rule after checking the combined result."""
        merged = {name: getattr(rule, name) for name in LEAVE_RULE_DEFAULTS}
        merged.update(self.values)
        errors = _Errors()
        check_rule_shape(merged, errors)
        errors.raise_if_any()
        for name, value in self.values.items():
            setattr(rule, name, value)
