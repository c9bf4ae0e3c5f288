import logging
from datetime import date
from typing import Optional, Set

from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.holiday import Holiday

logger = logging.getLogger(__name__)


def holiday_dates(start: Optional[date] = None, end: Optional[date] = None) -> Set[date]:
    """
    Active holiday dates, optionally limited to [start, end].
    Holidays only refine day counts, so a storage error yields an empty set.
    """
    q = Holiday.query.filter(Holiday.is_active.is_(True))
    if start is not None:
        q = q.filter(Holiday.date >= start)
    if end is not None:
        q = q.filter(Holiday.date <= end)
    try:
        return {row.date for row in q.all()}
    except SQLAlchemyError:
        db.session.rollback()
        logger.warning("Holiday lookup failed; counting without holidays", exc_info=True)
        return set()
