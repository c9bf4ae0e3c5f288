from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

import pytest

from models.leave import LeaveStatus, LeaveType
from utils.leave_accounting import (
    chargeable_days,
    fiscal_months,
    fiscal_year_for,
    fiscal_year_range,
    monthly_buckets,
    previous_leave,
    statistics_by_type,
    type_statistics,
)


@dataclass
class FakeLeave:
    id: Optional[int]
    user_id: int
    leave_type: str
    start_date: date
    end_date: date
    status: str = LeaveStatus.APPROVED.value
    is_half_day: bool = False
    hours: Optional[float] = None


# 2024-01-08 is a Monday
MON, WED, FRI = date(2024, 1, 8), date(2024, 1, 10), date(2024, 1, 12)
SAT, SUN = date(2024, 1, 13), date(2024, 1, 14)


def test_single_weekday_counts_one():
    assert chargeable_days(WED, WED, False, None) == 1


def test_work_week_with_holiday():
    assert chargeable_days(MON, FRI, False, None) == 5
    assert chargeable_days(MON, FRI, False, None, holidays=[WED]) == 4


def test_weekend_counts_nothing():
    assert chargeable_days(SAT, SUN, False, None) == 0


def test_reversed_range_counts_nothing():
    assert chargeable_days(FRI, MON, False, None) == 0


def test_half_day_ignores_range():
    assert chargeable_days(MON, FRI, True, None) == 0.5


@pytest.mark.parametrize("hours,expected", [(1, 0.5), (3, 0.5), (4, 1), (8, 1)])
def test_hours_step(hours, expected):
    assert chargeable_days(WED, WED, False, hours) == expected


def test_hours_take_precedence_over_half_day():
    assert chargeable_days(WED, WED, True, 5) == 1


def test_datetimes_use_calendar_date():
    start = datetime(2024, 1, 8, 17, 30)
    end = datetime(2024, 1, 9, 8, 0)
    assert chargeable_days(start, end, False, None, holidays=[datetime(2024, 1, 9, 12, 0)]) == 1


def test_chargeable_days_is_repeatable():
    args = (MON, FRI, False, None, [WED])
    assert chargeable_days(*args) == chargeable_days(*args)


def test_fiscal_year_before_october():
    window = fiscal_year_range(date(2024, 9, 15))
    assert window.start == datetime(2023, 10, 1)
    assert window.end == datetime(2024, 9, 30, 23, 59, 59)
    assert window.label == "2023-2024"


def test_fiscal_year_from_october():
    window = fiscal_year_range(date(2024, 10, 15))
    assert window.start == datetime(2024, 10, 1)
    assert window.end == datetime(2025, 9, 30, 23, 59, 59)


def test_fiscal_window_contains_last_day():
    window = fiscal_year_for(2023)
    assert window.contains(date(2024, 9, 30))
    assert not window.contains(date(2024, 10, 1))
    assert not window.contains(date(2023, 9, 30))


def test_fiscal_months_run_october_to_september():
    months = fiscal_months(fiscal_year_for(2023))
    assert len(months) == 12
    assert (months[0].year, months[0].month, months[0].label) == (2023, 10, "Oct 2023")
    assert (months[-1].year, months[-1].month) == (2024, 9)


def test_type_statistics_never_counts_current_as_past():
    window = fiscal_year_for(2023)
    history = [
        FakeLeave(1, 7, "SICK", date(2023, 11, 6), date(2023, 11, 7)),
        FakeLeave(2, 7, "SICK", date(2023, 12, 4), date(2023, 12, 4), status="PENDING"),
        FakeLeave(3, 7, "SICK", date(2023, 12, 5), date(2023, 12, 5), status="REJECTED"),
        FakeLeave(4, 7, "PERSONAL", date(2023, 12, 6), date(2023, 12, 6)),
        FakeLeave(5, 7, "SICK", date(2023, 9, 4), date(2023, 9, 4)),
    ]
    current = FakeLeave(6, 7, "SICK", MON, WED, status="PENDING")
    history.append(current)

    stats = type_statistics(LeaveType.SICK, history, current, window)

    assert (stats.past_count, stats.past_days) == (2, 3)
    assert (stats.current_count, stats.current_days) == (1, 3)
    assert (stats.total_count, stats.total_days) == (3, 6)


def test_type_statistics_other_category_has_no_current():
    window = fiscal_year_for(2023)
    current = FakeLeave(None, 7, "SICK", MON, MON)
    stats = type_statistics("MATERNITY", [current], current, window)
    assert stats.to_dict() == {
        "past": {"count": 0, "days": 0},
        "current": {"count": 0, "days": 0},
        "total": {"count": 0, "days": 0},
    }


def test_statistics_by_type_covers_every_category():
    window = fiscal_year_for(2023)
    leaves = [
        FakeLeave(1, 7, "VACATION", MON, FRI),
        FakeLeave(2, 7, "VACATION", WED, WED, is_half_day=True, status="PENDING"),
        FakeLeave(3, 7, "SICK", WED, WED, status="REJECTED"),
    ]
    stats = statistics_by_type(leaves, window)
    assert set(stats) == {t.value for t in LeaveType}
    assert stats["VACATION"] == {"count": 2, "days": 5.5}
    assert stats["SICK"] == {"count": 0, "days": 0}


def test_monthly_buckets_are_sparse():
    window = fiscal_year_for(2023)
    leaves = [
        FakeLeave(1, 7, "SICK", MON, WED),
        FakeLeave(2, 7, "PERSONAL", FRI, FRI, hours=2),
        FakeLeave(3, 9, "SICK", date(2023, 10, 2), date(2023, 10, 2)),
    ]
    buckets = monthly_buckets(leaves, fiscal_months(window))

    by_label = {b.label: b for b in buckets}
    assert by_label["Oct 2023"].totals == {9: {"SICK": 1}}
    assert by_label["Jan 2024"].totals == {7: {"SICK": 3, "PERSONAL": 0.5}}
    assert by_label["Jan 2024"].user_total(7) == 3.5
    assert by_label["Feb 2024"].totals == {}


def test_previous_leave_picks_latest_earlier_approved():
    older = FakeLeave(1, 7, "SICK", date(2023, 10, 2), date(2023, 10, 2))
    newer = FakeLeave(2, 7, "SICK", date(2023, 11, 6), date(2023, 11, 6))
    pending = FakeLeave(3, 7, "SICK", date(2023, 12, 4), date(2023, 12, 4), status="PENDING")
    someone_else = FakeLeave(4, 9, "SICK", date(2023, 12, 5), date(2023, 12, 5))
    current = FakeLeave(5, 7, "SICK", MON, MON)

    assert previous_leave([older, newer, pending, someone_else, current], current) is newer
    assert previous_leave([current], current) is None
