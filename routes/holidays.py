from datetime import timedelta

from flask import Blueprint, current_app, g, jsonify, request

from models import db
from models.holiday import Holiday
from security.rbac import Role, require_role
from utils.audit import log_event
from utils.auth_context import login_required
from utils.payloads import HolidayInput, PayloadError

holidays_bp = Blueprint("holidays", __name__, url_prefix="/holidays")


@holidays_bp.get("")
@login_required
def list_holidays():
    q = Holiday.query.filter(Holiday.is_active.is_(True))
    year = request.args.get("year", type=int)
    if year is not None:
        q = q.filter(Holiday.year == year)
    return jsonify([h.to_dict() for h in q.order_by(Holiday.date.asc()).all()]), 200


@holidays_bp.post("")
@require_role(Role.MANAGER)
def add_holidays():
    max_days = current_app.config.get("HOLIDAY_RANGE_MAX_DAYS", 30)
    try:
        payload = HolidayInput.from_json(request.get_json(silent=True), max_days=max_days)
    except PayloadError as e:
        return jsonify(error=e.message, details=e.details), 400

    existing = {
        row.date for row in
        Holiday.query.filter(Holiday.date >= payload.start_date, Holiday.date <= payload.end_date).all()
    }

    created, skipped = [], []
    day = payload.start_date
    while day <= payload.end_date:
        if day in existing:
            skipped.append(day.isoformat())
        else:
            holiday = Holiday(date=day, name=payload.name, description=payload.description, year=day.year)
            db.session.add(holiday)
            created.append(holiday)
        day += timedelta(days=1)
    db.session.commit()

    log_event("HOLIDAY_CREATE", user_id=g.user.id, entity="holiday",
              metadata={"start": payload.start_date, "end": payload.end_date,
                        "created": len(created), "skipped": len(skipped)})
    return jsonify(created=[h.to_dict() for h in created], skipped=skipped), 201 if created else 200


@holidays_bp.delete("/<int:holiday_id>")
@require_role(Role.MANAGER)
def delete_holiday(holiday_id):
    holiday = db.session.get(Holiday, holiday_id)
    if not holiday:
        return jsonify(error="Holiday not found"), 404

    day = holiday.date
    db.session.delete(holiday)
    db.session.commit()

    log_event("HOLIDAY_DELETE", user_id=g.user.id, entity="holiday", entity_id=holiday_id,
              metadata={"date": day})
    return jsonify(message="Holiday deleted"), 200
