import logging

from flask import Blueprint, g, jsonify, request
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from models import db
from models.department import Department
from models.user import User, avatar_initials
from security.password import hash_password
from security.rbac import Role, has_role, require_role
from security.session import revoke_all_sessions
from utils.audit import log_event
from utils.auth_context import login_required
from utils.payloads import PayloadError, UserCreate, UserUpdate

logger = logging.getLogger(__name__)

users_bp = Blueprint("users", __name__, url_prefix="/users")


def _parse_bool(value):
    if value is None:
        return None
    value = value.strip().lower()
    if value in ("true", "1", "yes"):
        return True
    if value in ("false", "0", "no"):
        return False
    return None


def _department_exists(department_id) -> bool:
    return department_id is None or db.session.get(Department, department_id) is not None


@users_bp.get("")
@require_role(Role.MANAGER)
def list_users():
    q = User.query

    search = (request.args.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        q = q.filter(or_(User.name.ilike(like), User.email.ilike(like), User.username.ilike(like)))

    role = request.args.get("role")
    if role:
        parsed = Role.parse(role)
        if parsed is None:
            return jsonify(error="Unknown role"), 400
        q = q.filter(User.role == parsed.value)

    department_id = request.args.get("department_id", type=int)
    if department_id is not None:
        q = q.filter(User.department_id == department_id)

    is_active = _parse_bool(request.args.get("is_active"))
    if is_active is not None:
        q = q.filter(User.is_active.is_(is_active))

    users = q.order_by(User.name.asc()).limit(500).all()
    return jsonify([u.to_dict() for u in users]), 200


@users_bp.post("")
@require_role(Role.ADMIN)
def create_user():
    try:
        payload = UserCreate.from_json(request.get_json(silent=True))
    except PayloadError as e:
        return jsonify(error=e.message, details=e.details), 400

    if payload.role.meets_or_exceeds(Role.SUPER_ADMIN) and not has_role(Role.SUPER_ADMIN):
        return jsonify(error="Only a super admin can grant that role"), 403

    if not _department_exists(payload.department_id):
        return jsonify(error="Department not found"), 404

    if User.query.filter(or_(User.email == payload.email, User.username == payload.username)).first():
        return jsonify(error="Email or username already in use"), 409

    user = User(
        email=payload.email,
        username=payload.username,
        password_hash=hash_password(payload.password),
        name=payload.name,
        role=payload.role.value,
        department_id=payload.department_id,
        position=payload.position,
        avatar=avatar_initials(payload.name),
    )
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="Email or username already in use"), 409

    log_event("USER_CREATE", user_id=g.user.id, entity="user", entity_id=user.id,
              metadata={"role": user.role})
    return jsonify(user.to_dict()), 201


@users_bp.get("/<int:user_id>")
@login_required
def get_user(user_id):
    if user_id != g.user.id and not has_role(Role.MANAGER):
        return jsonify(error="Forbidden"), 403

    user = db.session.get(User, user_id)
    if not user:
        return jsonify(error="User not found"), 404
    return jsonify(user.to_dict()), 200


@users_bp.patch("/<int:user_id>")
@login_required
def update_user(user_id):
    is_admin = has_role(Role.ADMIN)
    if user_id != g.user.id and not is_admin:
        return jsonify(error="Forbidden"), 403

    user = db.session.get(User, user_id)
    if not user:
        return jsonify(error="User not found"), 404

    try:
        payload = UserUpdate.from_json(request.get_json(silent=True))
    except PayloadError as e:
        return jsonify(error=e.message, details=e.details), 400

    if payload.touches_admin_fields() and not is_admin:
        return jsonify(error="Forbidden"), 403
    # a super admin account is only managed by another super admin
    if user.id != g.user.id and user.role_enum.meets_or_exceeds(Role.SUPER_ADMIN) and not has_role(Role.SUPER_ADMIN):
        return jsonify(error="Forbidden"), 403

    changes = payload.provided()

    if "role" in changes:
        granting_top = changes["role"].meets_or_exceeds(Role.SUPER_ADMIN)
        if (granting_top or user.role_enum.meets_or_exceeds(Role.SUPER_ADMIN)) and not has_role(Role.SUPER_ADMIN):
            return jsonify(error="Only a super admin can change that role"), 403
    if "is_active" in changes and user.id == g.user.id and changes["is_active"] is False:
        return jsonify(error="You cannot deactivate your own account"), 400
    if "department_id" in changes and not _department_exists(changes["department_id"]):
        return jsonify(error="Department not found"), 404

    for name, value in changes.items():
        if name == "password":
            user.password_hash = hash_password(value)
        elif name == "role":
            user.role = value.value
        else:
            setattr(user, name, value)
    if "name" in changes:
        user.avatar = avatar_initials(user.name)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="Email already in use"), 409

    if "password" in changes or changes.get("is_active") is False:
        keep = g.session.id if user.id == g.user.id else None
        revoked = revoke_all_sessions(user.id, keep_session_id=keep)
        logger.info("Revoked %d sessions for user %s", revoked, user.id)

    log_event("USER_UPDATE", user_id=g.user.id, entity="user", entity_id=user.id,
              metadata={"fields": sorted(changes)})
    return jsonify(user.to_dict()), 200


@users_bp.delete("/<int:user_id>")
@require_role(Role.ADMIN)
def deactivate_user(user_id):
    if user_id == g.user.id:
        return jsonify(error="You cannot deactivate your own account"), 400

    user = db.session.get(User, user_id)
    if not user:
        return jsonify(error="User not found"), 404
    if user.role_enum.meets_or_exceeds(Role.SUPER_ADMIN) and not has_role(Role.SUPER_ADMIN):
        return jsonify(error="Forbidden"), 403

    user.is_active = False
    db.session.commit()
    revoke_all_sessions(user.id)

    log_event("USER_DEACTIVATE", user_id=g.user.id, entity="user", entity_id=user.id)
    return jsonify(message="User deactivated"), 200
