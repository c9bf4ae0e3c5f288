"""
Leave day accounting: chargeable days, fiscal-year windows and the
aggregates shown on leave forms and the leave dashboard.

Everything here is pure. Leaves are any objects exposing ``id``,
``user_id``, ``leave_type``, ``start_date``, ``end_date``, ``is_half_day``,
``hours`` and ``status`` (the ``Leave`` model does). Holidays are passed in
as an iterable of dates so reports and forms recompute with whatever holiday
data is current.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional

from models.leave import LeaveStatus, LeaveType

FISCAL_YEAR_START_MONTH = 10
HALF_DAY_MAX_HOURS = 3

COUNTED_STATUSES = frozenset({LeaveStatus.APPROVED.value, LeaveStatus.PENDING.value})

_MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
                "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def _value(v) -> str:
    return v.value if hasattr(v, "value") else v


def chargeable_days(start, end, half_day: bool, hours: Optional[float],
                    holidays: Iterable = ()) -> float:
    """
    Hour-based leave is 0.5 day up to 3 hours and 1 day above that.
    A half day is 0.5. Otherwise count weekdays in [start, end] that are not
    holidays; a reversed range counts nothing.
    """
    if hours is not None and hours > 0:
        return 0.5 if hours <= HALF_DAY_MAX_HOURS else 1

    if half_day:
        return 0.5

    excluded = {_as_date(h) for h in holidays}
    current = _as_date(start)
    last = _as_date(end)
    count = 0
    while current <= last:
        # Saturday=5, Sunday=6
        if current.weekday() < 5 and current not in excluded:
            count += 1
        current += timedelta(days=1)
    return count


def leave_days(leave, holidays: Iterable = ()) -> float:
    return chargeable_days(leave.start_date, leave.end_date, leave.is_half_day, leave.hours, holidays)


@dataclass(frozen=True)
class FiscalYearWindow:
    start: datetime
    end: datetime

    @property
    def start_year(self) -> int:
        return self.start.year

    @property
    def label(self) -> str:
        return f"{self.start.year}-{self.end.year}"

    def contains(self, value) -> bool:
        if not isinstance(value, datetime):
            value = datetime(value.year, value.month, value.day)
        return self.start <= value <= self.end


def fiscal_year_for(start_year: int) -> FiscalYearWindow:
    return FiscalYearWindow(
        start=datetime(start_year, FISCAL_YEAR_START_MONTH, 1),
        end=datetime(start_year + 1, 9, 30, 23, 59, 59),
    )


def fiscal_year_range(as_of) -> FiscalYearWindow:
    start_year = as_of.year if as_of.month >= FISCAL_YEAR_START_MONTH else as_of.year - 1
    return fiscal_year_for(start_year)


@dataclass(frozen=True)
class FiscalMonth:
    year: int
    month: int

    @property
    def label(self) -> str:
        return f"{_MONTH_NAMES[self.month - 1]} {self.year}"


def fiscal_months(window: FiscalYearWindow) -> List[FiscalMonth]:
    months = []
    for i in range(12):
        month = (FISCAL_YEAR_START_MONTH - 1 + i) % 12 + 1
        year = window.start_year if month >= FISCAL_YEAR_START_MONTH else window.start_year + 1
        months.append(FiscalMonth(year=year, month=month))
    return months


@dataclass(frozen=True)
class TypeStats:
    past_count: int
    past_days: float
    current_count: int
    current_days: float
    total_count: int
    total_days: float

    def to_dict(self):
        return {
            "past": {"count": self.past_count, "days": self.past_days},
            "current": {"count": self.current_count, "days": self.current_days},
            "total": {"count": self.total_count, "days": self.total_days},
        }


def _same_leave(a, b) -> bool:
    if a.id is not None and b.id is not None:
        return a.id == b.id
    return a is b


def type_statistics(leave_type, leaves: Iterable, current, window: FiscalYearWindow,
                    holidays: Iterable = ()) -> TypeStats:
    """
    Leave already taken this fiscal year in one category (past), what the
    current request adds (current), and their sum (total).
    """
    leave_type = _value(leave_type)
    holidays = {_as_date(h) for h in holidays}

    past = [
        l for l in leaves
        if not _same_leave(l, current)
        and _value(l.leave_type) == leave_type
        and _value(l.status) in COUNTED_STATUSES
        and window.contains(l.start_date)
    ]
    past_days = sum(leave_days(l, holidays) for l in past)

    matches = _value(current.leave_type) == leave_type
    current_count = 1 if matches else 0
    current_days = leave_days(current, holidays) if matches else 0

    return TypeStats(
        past_count=len(past),
        past_days=round(past_days, 2),
        current_count=current_count,
        current_days=round(current_days, 2),
        total_count=len(past) + current_count,
        total_days=round(past_days + current_days, 2),
    )


def statistics_by_type(leaves: Iterable, window: FiscalYearWindow,
                       holidays: Iterable = ()) -> Dict[str, dict]:
    holidays = {_as_date(h) for h in holidays}
    stats = {t.value: {"count": 0, "days": 0} for t in LeaveType}
    for l in leaves:
        if _value(l.status) not in COUNTED_STATUSES or not window.contains(l.start_date):
            continue
        bucket = stats.get(_value(l.leave_type))
        if bucket is None:
            continue
        bucket["count"] += 1
        bucket["days"] += leave_days(l, holidays)
    for bucket in stats.values():
        bucket["days"] = round(bucket["days"], 2)
    return stats


@dataclass
class MonthBucket:
    year: int
    month: int
    label: str
    # user_id -> leave_type -> days; only users/types with leave that month
    totals: Dict[int, Dict[str, float]] = field(default_factory=dict)

    def user_total(self, user_id: int) -> float:
        return round(sum(self.totals.get(user_id, {}).values()), 2)


def monthly_buckets(leaves: Iterable, months: List[FiscalMonth],
                    holidays: Iterable = ()) -> List[MonthBucket]:
    holidays = {_as_date(h) for h in holidays}
    by_month: Dict[tuple, Dict[int, Dict[str, float]]] = defaultdict(
        lambda: defaultdict(lambda: defaultdict(float))
    )
    for l in leaves:
        if _value(l.status) not in COUNTED_STATUSES:
            continue
        start = _as_date(l.start_date)
        by_month[(start.year, start.month)][l.user_id][_value(l.leave_type)] += leave_days(l, holidays)

    buckets = []
    for m in months:
        users = by_month.get((m.year, m.month), {})
        totals = {
            user_id: {t: round(days, 2) for t, days in per_type.items()}
            for user_id, per_type in users.items()
        }
        buckets.append(MonthBucket(year=m.year, month=m.month, label=m.label, totals=totals))
    return buckets


def previous_leave(leaves: Iterable, current):
    """Latest other approved leave of the same category that started earlier."""
    start = _as_date(current.start_date)
    candidates = [
        l for l in leaves
        if not _same_leave(l, current)
        and l.user_id == current.user_id
        and _value(l.leave_type) == _value(current.leave_type)
        and _value(l.status) == LeaveStatus.APPROVED.value
        and _as_date(l.start_date) < start
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda l: _as_date(l.start_date))
