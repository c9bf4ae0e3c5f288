from flask import Blueprint, g, jsonify, request
from sqlalchemy.exc import IntegrityError

from models import db
from models.department import Department
from models.user import User
from security.rbac import Role, require_role
from utils.audit import log_event
from utils.auth_context import login_required
from utils.payloads import DepartmentInput, PayloadError

departments_bp = Blueprint("departments", __name__, url_prefix="/departments")


@departments_bp.get("")
@login_required
def list_departments():
    rows = (
        Department.query
        .order_by(Department.is_active.desc(), Department.sort_order.asc(), Department.name.asc())
        .all()
    )
    return jsonify([d.to_dict() for d in rows]), 200


@departments_bp.post("")
@require_role(Role.ADMIN)
def create_department():
    try:
        payload = DepartmentInput.from_json(request.get_json(silent=True))
    except PayloadError as e:
        return jsonify(error=e.message, details=e.details), 400

    if Department.query.filter_by(name=payload.name).first():
        return jsonify(error="Department already exists"), 409

    dept = Department(name=payload.name, description=payload.description, sort_order=payload.sort_order)
    db.session.add(dept)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="Department already exists"), 409

    log_event("DEPARTMENT_CREATE", user_id=g.user.id, entity="department", entity_id=dept.id)
    return jsonify(dept.to_dict()), 201


@departments_bp.delete("/<int:department_id>")
@require_role(Role.ADMIN)
def delete_department(department_id):
    dept = db.session.get(Department, department_id)
    if not dept:
        return jsonify(error="Department not found"), 404

    assigned = User.query.filter_by(department_id=dept.id).count()
    if assigned:
        return jsonify(error="Department still has users assigned", users=assigned), 409

    db.session.delete(dept)
    db.session.commit()

    log_event("DEPARTMENT_DELETE", user_id=g.user.id, entity="department", entity_id=department_id)
    return jsonify(message="Department deleted"), 200
