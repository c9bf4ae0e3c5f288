from flask import Blueprint, g, jsonify, request

from models import db
from models.leave import Leave, LeaveStatus, LeaveType
from models.user import User
from security.rbac import Role, has_role, require_role
from utils.audit import log_event
from utils.auth_context import login_required
from utils.clock import utcnow
from utils.holidays import holiday_dates
from utils.leave_accounting import (
    chargeable_days,
    fiscal_year_for,
    fiscal_year_range,
    previous_leave,
    statistics_by_type,
    type_statistics,
)
from utils.payloads import LeaveDecision, LeaveInput, LeaveUpdate, PayloadError, parse_date

leaves_bp = Blueprint("leaves", __name__, url_prefix="/leaves")

# always shown on the leave form, plus the leave's own type
FORM_TYPES = (LeaveType.SICK, LeaveType.PERSONAL, LeaveType.MATERNITY)


def window_dict(window):
    return {
        "start": window.start.isoformat(),
        "end": window.end.isoformat(),
        "label": window.label,
        "start_year": window.start_year,
    }


def _can_view(leave) -> bool:
    return leave.user_id == g.user.id or has_role(Role.MANAGER)


def _total_days(start, end, is_half_day, hours) -> float:
    return chargeable_days(start, end, is_half_day, hours, holiday_dates(start, end))


@leaves_bp.get("")
@login_required
def list_leaves():
    q = Leave.query

    user_id = request.args.get("user_id", type=int)
    if has_role(Role.MANAGER):
        if user_id is not None:
            q = q.filter(Leave.user_id == user_id)
    else:
        if user_id is not None and user_id != g.user.id:
            return jsonify(error="Forbidden"), 403
        q = q.filter(Leave.user_id == g.user.id)

    status = request.args.get("status")
    if status:
        if status not in LeaveStatus.__members__:
            return jsonify(error="Unknown status"), 400
        q = q.filter(Leave.status == status)

    leave_type = request.args.get("type")
    if leave_type:
        if leave_type not in LeaveType.__members__:
            return jsonify(error="Unknown leave type"), 400
        q = q.filter(Leave.leave_type == leave_type)

    rows = q.order_by(Leave.start_date.desc(), Leave.id.desc()).limit(500).all()
    return jsonify([l.to_dict() for l in rows]), 200


@leaves_bp.post("")
@login_required
def create_leave():
    try:
        payload = LeaveInput.from_json(request.get_json(silent=True))
    except PayloadError as e:
        return jsonify(error=e.message, details=e.details), 400

    user_id = payload.user_id if payload.user_id is not None else g.user.id
    if user_id != g.user.id:
        if not has_role(Role.MANAGER):
            return jsonify(error="Forbidden"), 403
        if db.session.get(User, user_id) is None:
            return jsonify(error="User not found"), 404

    leave = Leave(
        user_id=user_id,
        leave_type=payload.leave_type.value,
        start_date=payload.start_date,
        end_date=payload.end_date,
        is_half_day=payload.is_half_day,
        hours=payload.hours,
        reason=payload.reason,
        status=LeaveStatus.PENDING.value,
        total_days=_total_days(payload.start_date, payload.end_date, payload.is_half_day, payload.hours),
    )
    db.session.add(leave)
    db.session.commit()

    log_event("LEAVE_CREATE", user_id=g.user.id, entity="leave", entity_id=leave.id,
              metadata={"for_user": user_id, "type": leave.leave_type, "days": leave.total_days})
    return jsonify(leave.to_dict()), 201


@leaves_bp.get("/<int:leave_id>")
@login_required
def get_leave(leave_id):
    leave = db.session.get(Leave, leave_id)
    if not leave:
        return jsonify(error="Leave not found"), 404
    if not _can_view(leave):
        return jsonify(error="Forbidden"), 403

    window = fiscal_year_range(leave.start_date)
    history = Leave.query.filter(Leave.user_id == leave.user_id).all()
    holidays = holiday_dates(window.start.date(), window.end.date())

    types = list(FORM_TYPES)
    if LeaveType(leave.leave_type) not in types:
        types.append(LeaveType(leave.leave_type))

    previous = previous_leave(history, leave)

    out = leave.to_dict()
    out["form"] = {
        "fiscal_year": window_dict(window),
        "statistics": {
            t.value: type_statistics(t, history, leave, window, holidays).to_dict() for t in types
        },
        "previous_leave": previous.to_dict(include_user=False) if previous else None,
    }
    return jsonify(out), 200


def _decide(leave):
    if not has_role(Role.MANAGER):
        return jsonify(error="Forbidden"), 403
    try:
        decision = LeaveDecision.from_json(request.get_json(silent=True))
    except PayloadError as e:
        return jsonify(error=e.message, details=e.details), 400

    if leave.status != LeaveStatus.PENDING.value:
        return jsonify(error="Leave has already been decided"), 409

    leave.status = decision.status.value
    leave.approved_by = g.user.id
    leave.approved_at = utcnow()
    db.session.commit()

    action = "LEAVE_APPROVE" if decision.status is LeaveStatus.APPROVED else "LEAVE_REJECT"
    log_event(action, user_id=g.user.id, entity="leave", entity_id=leave.id,
              metadata={"for_user": leave.user_id})
    return jsonify(leave.to_dict()), 200


def _edit(leave, data):
    if leave.user_id != g.user.id:
        return jsonify(error="Only the requester can edit a leave"), 403
    if leave.status != LeaveStatus.PENDING.value:
        return jsonify(error="Only pending leaves can be edited"), 409

    try:
        update = LeaveUpdate.from_json(data)
        update.apply_to(leave)
    except PayloadError as e:
        db.session.rollback()
        return jsonify(error=e.message, details=e.details), 400

    if update.changes_day_count():
        leave.total_days = _total_days(leave.start_date, leave.end_date, leave.is_half_day, leave.hours)
    db.session.commit()

    log_event("LEAVE_UPDATE", user_id=g.user.id, entity="leave", entity_id=leave.id)
    return jsonify(leave.to_dict()), 200


@leaves_bp.patch("/<int:leave_id>")
@login_required
def update_leave(leave_id):
    leave = db.session.get(Leave, leave_id)
    if not leave:
        return jsonify(error="Leave not found"), 404
    if not _can_view(leave):
        return jsonify(error="Forbidden"), 403

    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify(error="Expected a JSON object"), 400
    if "status" in data:
        if len(data) > 1:
            return jsonify(error="Change the status on its own"), 400
        return _decide(leave)
    return _edit(leave, data)


@leaves_bp.delete("/<int:leave_id>")
@login_required
def delete_leave(leave_id):
    leave = db.session.get(Leave, leave_id)
    if not leave:
        return jsonify(error="Leave not found"), 404
    if not _can_view(leave):
        return jsonify(error="Forbidden"), 403

    owner_id = leave.user_id
    db.session.delete(leave)
    db.session.commit()

    log_event("LEAVE_DELETE", user_id=g.user.id, entity="leave", entity_id=leave_id,
              metadata={"for_user": owner_id})
    return jsonify(message="Leave deleted"), 200


@leaves_bp.get("/statistics")
@login_required
def leave_statistics():
    user_id = request.args.get("user_id", type=int) or g.user.id
    if user_id != g.user.id and not has_role(Role.MANAGER):
        return jsonify(error="Forbidden"), 403

    year = request.args.get("year", type=int)
    window = fiscal_year_for(year) if year else fiscal_year_range(utcnow())

    leaves = (
        Leave.query
        .filter(
            Leave.user_id == user_id,
            Leave.start_date >= window.start.date(),
            Leave.start_date <= window.end.date(),
        )
        .all()
    )
    holidays = holiday_dates(window.start.date(), window.end.date())
    return jsonify(
        user_id=user_id,
        fiscal_year=window_dict(window),
        statistics=statistics_by_type(leaves, window, holidays),
    ), 200


@leaves_bp.get("/search")
@require_role(Role.MANAGER)
def search_leaves():
    q = Leave.query.join(User, Leave.user_id == User.id)

    name = (request.args.get("name") or "").strip()
    if name:
        q = q.filter(User.name.ilike(f"%{name}%"))

    try:
        day = parse_date(request.args["date"]) if request.args.get("date") else None
        start = parse_date(request.args["start_date"]) if request.args.get("start_date") else None
        end = parse_date(request.args["end_date"]) if request.args.get("end_date") else None
    except ValueError:
        return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400

    if day is not None:
        q = q.filter(Leave.start_date <= day, Leave.end_date >= day)
    if (start is None) != (end is None):
        return jsonify(error="start_date and end_date must be given together"), 400
    if start is not None:
        if end < start:
            return jsonify(error="end_date must not be before start_date"), 400
        q = q.filter(Leave.start_date <= end, Leave.end_date >= start)

    rows = q.order_by(Leave.start_date.desc(), Leave.id.desc()).limit(500).all()
    return jsonify([l.to_dict() for l in rows]), 200
