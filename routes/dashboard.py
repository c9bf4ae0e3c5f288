from collections import defaultdict

from flask import Blueprint, g, jsonify, request
from sqlalchemy import func

from models import db
from models.kanban import KanbanColumn, Task
from models.leave import Leave, LeaveStatus, LeaveType
from models.user import User
from routes.leaves import window_dict
from security.rbac import Role, has_role
from utils.auth_context import login_required
from utils.clock import utcnow
from utils.holidays import holiday_dates
from utils.leave_accounting import (
    fiscal_months,
    fiscal_year_for,
    fiscal_year_range,
    leave_days,
    monthly_buckets,
)

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/dashboard")

RECENT_LIMIT = 5


@dashboard_bp.get("")
@login_required
def overview():
    """Home page counters plus the latest pending leave and tasks."""
    leaves = Leave.query
    if not has_role(Role.MANAGER):
        leaves = leaves.filter(Leave.user_id == g.user.id)
    pending = leaves.filter(Leave.status == LeaveStatus.PENDING.value)

    per_column = (
        db.session.query(KanbanColumn.id, KanbanColumn.name, func.count(Task.id))
        .outerjoin(Task, Task.column_id == KanbanColumn.id)
        .group_by(KanbanColumn.id, KanbanColumn.name, KanbanColumn.position)
        .order_by(KanbanColumn.position.asc(), KanbanColumn.id.asc())
        .all()
    )

    stats = {
        "total_users": User.query.count(),
        "active_users": User.query.filter_by(is_active=True).count(),
        "pending_leaves": pending.count(),
        "total_leaves": leaves.count(),
        "total_tasks": Task.query.count(),
        "tasks_by_column": [
            {"column_id": cid, "column_name": name, "count": count} for cid, name, count in per_column
        ],
    }

    recent_leaves = pending.order_by(Leave.created_at.desc(), Leave.id.desc()).limit(RECENT_LIMIT).all()
    recent_tasks = Task.query.order_by(Task.created_at.desc(), Task.id.desc()).limit(RECENT_LIMIT).all()

    return jsonify(
        stats=stats,
        recent_pending_leaves=[l.to_dict() for l in recent_leaves],
        recent_tasks=[t.to_dict() for t in recent_tasks],
    ), 200


@dashboard_bp.get("/leave-stats")
@login_required
def leave_stats():
    """
    Fiscal-year leave overview. Managers and above see everyone, other users
    see only their own leave.
    """
    year = request.args.get("year", type=int)
    window = fiscal_year_for(year) if year else fiscal_year_range(utcnow())
    months = fiscal_months(window)

    q = Leave.query.filter(
        Leave.start_date >= window.start.date(),
        Leave.start_date <= window.end.date(),
    )
    if not has_role(Role.MANAGER):
        q = q.filter(Leave.user_id == g.user.id)
    leaves = q.order_by(Leave.start_date.asc(), Leave.id.asc()).all()

    # leaves may run past the window end
    last_day = max([window.end.date()] + [l.end_date for l in leaves])
    holidays = holiday_dates(window.start.date(), last_day)

    buckets = monthly_buckets(leaves, months, holidays)

    chart = []
    per_user = defaultdict(lambda: defaultdict(float))
    for bucket in buckets:
        point = {"month": bucket.label, "year": bucket.year, "month_number": bucket.month}
        for user_id, per_type in bucket.totals.items():
            point[f"user_{user_id}"] = bucket.user_total(user_id)
            for leave_type, days in per_type.items():
                per_user[user_id][leave_type] += days
        chart.append(point)

    user_ids = {l.user_id for l in leaves}
    users = {u.id: u for u in User.query.filter(User.id.in_(user_ids)).all()} if user_ids else {}

    summaries = []
    for user_id in sorted(per_user, key=lambda uid: users[uid].name if uid in users else ""):
        by_type = {t.value: round(per_user[user_id].get(t.value, 0), 2) for t in LeaveType}
        user = users.get(user_id)
        summaries.append({
            "user_id": user_id,
            "name": user.name if user else None,
            "department": user.department.name if user and user.department else None,
            "by_type": by_type,
            "total_days": round(sum(by_type.values()), 2),
        })

    rows = []
    for l in leaves:
        row = l.to_dict()
        row["days"] = leave_days(l, holidays)
        rows.append(row)

    return jsonify(
        fiscal_year=window_dict(window),
        months=[{"year": m.year, "month": m.month, "label": m.label} for m in months],
        chart=chart,
        users=summaries,
        leaves=rows,
    ), 200
