from datetime import date

import pytest

from models.kanban import TaskPriority
from models.leave import Leave, LeaveType
from models.leave_rule import LeaveRule
from security.rbac import Role
from utils.payloads import (
    UNSET,
    ColumnReorder,
    ColumnUpdate,
    HolidayInput,
    LeaveDecision,
    LeaveInput,
    LeaveRuleInput,
    LeaveRuleUpdate,
    LeaveUpdate,
    LoginInput,
    PayloadError,
    TaskInput,
    TaskUpdate,
    UserCreate,
    UserUpdate,
)


def _leave_body(**overrides):
    body = {"type": "SICK", "start_date": "2024-01-08", "end_date": "2024-01-08", "reason": "flu"}
    body.update(overrides)
    return body


def test_login_input_rejects_bad_username():
    with pytest.raises(PayloadError) as exc:
        LoginInput.from_json({"username": "no spaces!", "password": "x"})
    assert set(exc.value.details) == {"username", "password"}


def test_leave_input_parses():
    payload = LeaveInput.from_json(_leave_body(hours=2))
    assert payload.leave_type is LeaveType.SICK
    assert payload.start_date == date(2024, 1, 8)
    assert payload.hours == 2.0
    assert payload.user_id is None


@pytest.mark.parametrize("overrides,field", [
    ({"type": "HOLIDAY"}, "type"),
    ({"start_date": "08/01/2024"}, "start_date"),
    ({"end_date": "2024-01-05"}, "end_date"),
    ({"reason": "   "}, "reason"),
    ({"hours": 9}, "hours"),
    ({"hours": 2, "is_half_day": True}, "hours"),
    ({"end_date": "2024-01-09", "hours": 2}, "hours"),
    ({"end_date": "2024-01-09", "is_half_day": True}, "is_half_day"),
    ({"is_half_day": "false"}, "is_half_day"),
    ({"is_half_day": 1}, "is_half_day"),
])
def test_leave_input_errors(overrides, field):
    with pytest.raises(PayloadError) as exc:
        LeaveInput.from_json(_leave_body(**overrides))
    assert field in exc.value.details


def test_leave_update_only_sets_given_fields():
    update = LeaveUpdate.from_json({"reason": "dentist"})
    assert update.reason == "dentist"
    assert update.start_date is UNSET
    assert not update.changes_day_count()


def test_leave_update_checks_merged_result():
    leave = Leave(leave_type="SICK", start_date=date(2024, 1, 8), end_date=date(2024, 1, 8),
                  is_half_day=False, hours=2, reason="flu")
    with pytest.raises(PayloadError):
        LeaveUpdate.from_json({"end_date": "2024-01-10"}).apply_to(leave)

    LeaveUpdate.from_json({"end_date": "2024-01-10", "hours": None, "type": "VACATION"}).apply_to(leave)
    assert leave.end_date == date(2024, 1, 10)
    assert leave.hours is None
    assert leave.leave_type == "VACATION"


def test_empty_update_is_rejected():
    with pytest.raises(PayloadError):
        LeaveUpdate.from_json({})


def test_leave_decision():
    assert LeaveDecision.from_json({"status": "APPROVED"}).status.value == "APPROVED"
    with pytest.raises(PayloadError):
        LeaveDecision.from_json({"status": "PENDING"})


def test_user_create_defaults_and_password_rules():
    payload = UserCreate.from_json({
        "email": "Ann@Example.com", "username": "ann", "password": "Secret123", "name": "Ann Lee",
    })
    assert payload.email == "ann@example.com"
    assert payload.role is Role.EMPLOYEE

    with pytest.raises(PayloadError) as exc:
        UserCreate.from_json({"email": "ann@example.com", "username": "ann",
                              "password": "alllowercase1", "name": "Ann"})
    assert "password" in exc.value.details


def test_user_update_can_clear_department():
    update = UserUpdate.from_json({"department_id": None, "name": "Ann"})
    assert update.provided() == {"department_id": None, "name": "Ann"}
    assert update.touches_admin_fields()
    assert not UserUpdate.from_json({"name": "Ann"}).touches_admin_fields()


def test_holiday_input_range_limit():
    single = HolidayInput.from_json({"start_date": "2024-12-25", "name": "Christmas"}, max_days=30)
    assert single.end_date == single.start_date

    with pytest.raises(PayloadError) as exc:
        HolidayInput.from_json({"start_date": "2024-01-01", "end_date": "2024-02-15", "name": "Long"},
                               max_days=30)
    assert "end_date" in exc.value.details


@pytest.mark.parametrize("parse", [
    LoginInput.from_json,
    LeaveInput.from_json,
    LeaveUpdate.from_json,
    LeaveDecision.from_json,
    UserCreate.from_json,
    UserUpdate.from_json,
    TaskInput.from_json,
    LeaveRuleInput.from_json,
])
def test_non_object_body_is_rejected(parse):
    with pytest.raises(PayloadError) as exc:
        parse([1, 2])
    assert exc.value.message == "Expected a JSON object"


def test_boolean_flags_must_be_booleans():
    with pytest.raises(PayloadError) as exc:
        LeaveUpdate.from_json({"is_half_day": "false"})
    assert "is_half_day" in exc.value.details

    with pytest.raises(PayloadError) as exc:
        UserUpdate.from_json({"is_active": "no"})
    assert "is_active" in exc.value.details

    assert UserUpdate.from_json({"is_active": False}).is_active is False


def test_task_input():
    payload = TaskInput.from_json({"title": "  Write report ", "priority": "HIGH"})
    assert payload.title == "Write report"
    assert payload.priority is TaskPriority.HIGH
    assert payload.column_id is None

    with pytest.raises(PayloadError) as exc:
        TaskInput.from_json({"title": "", "priority": "SOON", "assignee_id": "3"})
    assert set(exc.value.details) == {"title", "priority", "assignee_id"}


def test_task_update_allows_unassigning():
    update = TaskUpdate.from_json({"assignee_id": None})
    assert update.provided() == {"assignee_id": None}

    with pytest.raises(PayloadError) as exc:
        TaskUpdate.from_json({"column_id": None})
    assert "column_id" in exc.value.details


def test_column_update_and_reorder():
    assert ColumnUpdate.from_json({"order": 2}).provided() == {"order": 2}
    with pytest.raises(PayloadError):
        ColumnUpdate.from_json({"order": -1})

    assert ColumnReorder.from_json({"column_ids": [3, 1, 2]}).column_ids == [3, 1, 2]
    for bad in ([], [1, 1], [0], ["1"], None):
        with pytest.raises(PayloadError):
            ColumnReorder.from_json({"column_ids": bad})


def test_leave_rule_input_defaults_and_shape():
    rule = LeaveRuleInput.from_json({"name": "Short day", "end_time": "12:30"})
    assert rule.start_time == "08:30"
    assert rule.full_day_hours == 8.0

    with pytest.raises(PayloadError) as exc:
        LeaveRuleInput.from_json({"name": "Bad", "start_time": "17:00", "half_day_hours": 10})
    assert set(exc.value.details) == {"end_time", "half_day_hours"}

    with pytest.raises(PayloadError) as exc:
        LeaveRuleInput.from_json({"start_time": "8:30", "max_consecutive_days": 0})
    assert set(exc.value.details) == {"name", "start_time", "max_consecutive_days"}


def test_leave_rule_update_checks_merged_result():
    rule = LeaveRule(name="Default", start_time="08:30", end_time="16:30", full_day_hours=8,
                     half_day_hours=4, max_consecutive_days=30, is_active=True)

    with pytest.raises(PayloadError) as exc:
        LeaveRuleUpdate.from_json({"end_time": "08:00"}).apply_to(rule)
    assert "end_time" in exc.value.details
    assert rule.end_time == "16:30"

    LeaveRuleUpdate.from_json({"full_day_hours": 7.5}).apply_to(rule)
    assert rule.full_day_hours == 7.5
