import logging

from flask import Blueprint, g, jsonify, request
from sqlalchemy import func

from models import db
from models.kanban import KanbanColumn, Task, TaskPriority
from models.user import User
from security.rbac import Role, require_role
from utils.audit import log_event
from utils.auth_context import login_required
from utils.payloads import (
    ColumnInput,
    ColumnReorder,
    ColumnUpdate,
    PayloadError,
    TaskInput,
    TaskUpdate,
)

logger = logging.getLogger(__name__)

columns_bp = Blueprint("columns", __name__, url_prefix="/columns")
tasks_bp = Blueprint("tasks", __name__, url_prefix="/tasks")


# ---------- columns ----------

@columns_bp.get("")
@login_required
def list_columns():
    rows = KanbanColumn.query.order_by(KanbanColumn.position.asc(), KanbanColumn.id.asc()).all()
    return jsonify([c.to_dict() for c in rows]), 200


@columns_bp.post("")
@require_role(Role.MANAGER)
def create_column():
    try:
        payload = ColumnInput.from_json(request.get_json(silent=True))
    except PayloadError as e:
        return jsonify(error=e.message, details=e.details), 400

    position = payload.order
    if position is None:
        last = db.session.query(func.max(KanbanColumn.position)).scalar()
        position = 0 if last is None else last + 1

    column = KanbanColumn(name=payload.name, color=payload.color, position=position)
    db.session.add(column)
    db.session.commit()

    log_event("COLUMN_CREATE", user_id=g.user.id, entity="column", entity_id=column.id)
    return jsonify(column.to_dict()), 201


@columns_bp.post("/reorder")
@require_role(Role.MANAGER)
def reorder_columns():
    try:
        payload = ColumnReorder.from_json(request.get_json(silent=True))
    except PayloadError as e:
        return jsonify(error=e.message, details=e.details), 400

    columns = {c.id: c for c in KanbanColumn.query.filter(KanbanColumn.id.in_(payload.column_ids)).all()}
    missing = [i for i in payload.column_ids if i not in columns]
    if missing:
        return jsonify(error="Unknown column ids", details={"column_ids": missing}), 400

    for index, column_id in enumerate(payload.column_ids):
        columns[column_id].position = index
    db.session.commit()

    log_event("COLUMN_REORDER", user_id=g.user.id, entity="column",
              metadata={"column_ids": payload.column_ids})
    rows = KanbanColumn.query.order_by(KanbanColumn.position.asc(), KanbanColumn.id.asc()).all()
    return jsonify([c.to_dict() for c in rows]), 200


@columns_bp.patch("/<int:column_id>")
@require_role(Role.MANAGER)
def update_column(column_id):
    column = db.session.get(KanbanColumn, column_id)
    if not column:
        return jsonify(error="Column not found"), 404

    try:
        payload = ColumnUpdate.from_json(request.get_json(silent=True))
    except PayloadError as e:
        return jsonify(error=e.message, details=e.details), 400

    changes = payload.provided()
    for name, value in changes.items():
        setattr(column, "position" if name == "order" else name, value)
    db.session.commit()

    log_event("COLUMN_UPDATE", user_id=g.user.id, entity="column", entity_id=column.id,
              metadata={"fields": sorted(changes)})
    return jsonify(column.to_dict()), 200


@columns_bp.delete("/<int:column_id>")
@require_role(Role.MANAGER)
def delete_column(column_id):
    column = db.session.get(KanbanColumn, column_id)
    if not column:
        return jsonify(error="Column not found"), 404

    remaining = Task.query.filter_by(column_id=column.id).count()
    if remaining:
        return jsonify(error="Column still has tasks", tasks=remaining), 409

    db.session.delete(column)
    db.session.commit()

    log_event("COLUMN_DELETE", user_id=g.user.id, entity="column", entity_id=column_id)
    return jsonify(message="Column deleted"), 200


# ---------- tasks ----------

def _lookup(column_id=None, assignee_id=None):
    """Returns an error response for a dangling reference, else None."""
    if column_id is not None and not db.session.get(KanbanColumn, column_id):
        return jsonify(error="Column not found"), 404
    if assignee_id is not None and not db.session.get(User, assignee_id):
        return jsonify(error="Assignee not found"), 404
    return None


@tasks_bp.get("")
@login_required
def list_tasks():
    q = Task.query

    column_id = request.args.get("column_id", type=int)
    if column_id:
        q = q.filter(Task.column_id == column_id)
    assignee_id = request.args.get("assignee_id", type=int)
    if assignee_id:
        q = q.filter(Task.assignee_id == assignee_id)
    priority = request.args.get("priority")
    if priority:
        try:
            q = q.filter(Task.priority == TaskPriority(priority.upper()).value)
        except ValueError:
            return jsonify(error="Invalid priority"), 400

    rows = q.order_by(Task.priority_rank.desc(), Task.created_at.desc(), Task.id.desc()).all()
    return jsonify([t.to_dict() for t in rows]), 200


@tasks_bp.post("")
@login_required
def create_task():
    try:
        payload = TaskInput.from_json(request.get_json(silent=True))
    except PayloadError as e:
        return jsonify(error=e.message, details=e.details), 400

    missing = _lookup(payload.column_id, payload.assignee_id)
    if missing:
        return missing

    column_id = payload.column_id
    if column_id is None:
        first = KanbanColumn.query.order_by(KanbanColumn.position.asc(), KanbanColumn.id.asc()).first()
        if not first:
            return jsonify(error="Create a column first"), 400
        column_id = first.id

    task = Task(
        title=payload.title,
        description=payload.description,
        column_id=column_id,
        assignee_id=payload.assignee_id,
        created_by=g.user.id,
    )
    task.set_priority(payload.priority)
    db.session.add(task)
    db.session.commit()

    log_event("TASK_CREATE", user_id=g.user.id, entity="task", entity_id=task.id,
              metadata={"column_id": column_id})
    return jsonify(task.to_dict()), 201


@tasks_bp.get("/<int:task_id>")
@login_required
def get_task(task_id):
    task = db.session.get(Task, task_id)
    if not task:
        return jsonify(error="Task not found"), 404
    return jsonify(task.to_dict()), 200


@tasks_bp.patch("/<int:task_id>")
@login_required
def update_task(task_id):
    task = db.session.get(Task, task_id)
    if not task:
        return jsonify(error="Task not found"), 404

    try:
        payload = TaskUpdate.from_json(request.get_json(silent=True))
    except PayloadError as e:
        return jsonify(error=e.message, details=e.details), 400

    changes = payload.provided()
    missing = _lookup(changes.get("column_id"), changes.get("assignee_id"))
    if missing:
        return missing

    for name, value in changes.items():
        if name == "priority":
            task.set_priority(value)
        else:
            setattr(task, name, value)
    db.session.commit()

    if "column_id" in changes:
        logger.info("Task %s moved to column %s", task.id, task.column_id)
    log_event("TASK_UPDATE", user_id=g.user.id, entity="task", entity_id=task.id,
              metadata={"fields": sorted(changes)})
    return jsonify(task.to_dict()), 200


@tasks_bp.delete("/<int:task_id>")
@login_required
def delete_task(task_id):
    task = db.session.get(Task, task_id)
    if not task:
        return jsonify(error="Task not found"), 404

    db.session.delete(task)
    db.session.commit()

    log_event("TASK_DELETE", user_id=g.user.id, entity="task", entity_id=task_id)
    return jsonify(message="Task deleted"), 200
