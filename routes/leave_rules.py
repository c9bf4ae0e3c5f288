from flask import Blueprint, g, jsonify, request

from models import db
from models.leave_rule import LeaveRule
from security.rbac import Role, require_role
from utils.audit import log_event
from utils.auth_context import login_required
from utils.payloads import LeaveRuleInput, LeaveRuleUpdate, PayloadError

leave_rules_bp = Blueprint("leave_rules", __name__, url_prefix="/leave-rules")

DEFAULT_RULE_NAME = "Default working day"


@leave_rules_bp.get("")
@login_required
def list_leave_rules():
    rows = LeaveRule.query.order_by(LeaveRule.is_active.desc(), LeaveRule.id.asc()).all()
    if not rows:
        # first read seeds the standard office day
        rule = LeaveRule(name=DEFAULT_RULE_NAME)
        db.session.add(rule)
        db.session.commit()
        rows = [rule]
    return jsonify([r.to_dict() for r in rows]), 200


@leave_rules_bp.post("")
@require_role(Role.MANAGER)
def create_leave_rule():
    try:
        payload = LeaveRuleInput.from_json(request.get_json(silent=True))
    except PayloadError as e:
        return jsonify(error=e.message, details=e.details), 400

    rule = LeaveRule(
        name=payload.name,
        start_time=payload.start_time,
        end_time=payload.end_time,
        full_day_hours=payload.full_day_hours,
        half_day_hours=payload.half_day_hours,
        max_consecutive_days=payload.max_consecutive_days,
        is_active=payload.is_active,
    )
    db.session.add(rule)
    db.session.commit()

    log_event("LEAVE_RULE_CREATE", user_id=g.user.id, entity="leave_rule", entity_id=rule.id)
    return jsonify(rule.to_dict()), 201


@leave_rules_bp.patch("/<int:rule_id>")
@require_role(Role.MANAGER)
def update_leave_rule(rule_id):
    rule = db.session.get(LeaveRule, rule_id)
    if not rule:
        return jsonify(error="Leave rule not found"), 404

    try:
        payload = LeaveRuleUpdate.from_json(request.get_json(silent=True))
        payload.apply_to(rule)
    except PayloadError as e:
        db.session.rollback()
        return jsonify(error=e.message, details=e.details), 400
    db.session.commit()

    log_event("LEAVE_RULE_UPDATE", user_id=g.user.id, entity="leave_rule", entity_id=rule.id,
              metadata={"fields": sorted(payload.values)})
    return jsonify(rule.to_dict()), 200
