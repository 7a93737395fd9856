# response_tracker/services/points.py

from datetime import datetime
from typing import Iterable, List, NamedTuple, Optional

from ..schemas import Emergency, ManualPointEntry, Points, Response


class PeriodWindows(NamedTuple):
    year_start: datetime
    month_start: datetime
    previous_month_start: datetime
    # Nothing older than this counts at all (the last reset, if any)
    lower_bound: Optional[datetime]


def start_of_year(now: datetime) -> datetime:
    return now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)


def start_of_month(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def start_of_previous_month(now: datetime) -> datetime:
    month_start = start_of_month(now)
    if month_start.month == 1:
        return month_start.replace(year=month_start.year - 1, month=12)
    return month_start.replace(month=month_start.month - 1)


def period_windows(now: datetime, last_reset: Optional[datetime] = None) -> PeriodWindows:
    """
    Calendar windows for `now`, each clamped so it never starts before
    the last reset.
    """
    year_start = start_of_year(now)
    month_start = start_of_month(now)
    previous_month_start = start_of_previous_month(now)

    if last_reset is not None:
        year_start = max(year_start, last_reset)
        month_start = max(month_start, last_reset)
        previous_month_start = max(previous_month_start, last_reset)

    return PeriodWindows(year_start, month_start, previous_month_start, last_reset)


def _since(value: datetime, bound: Optional[datetime]) -> bool:
    return bound is None or value >= bound


def _count_responses(responses: Iterable[Response], w: PeriodWindows) -> Points:
    points = Points()
    for r in responses:
        if not _since(r.date, w.lower_bound):
            continue
        points.all += 1
        if r.date >= w.year_start:
            points.current_year += 1
        if r.date >= w.month_start:
            points.current_month += 1
        if w.previous_month_start <= r.date < w.month_start:
            points.previous_month += 1
    return points


def emergency_points(
    emergency: Emergency,
    now: datetime,
    last_reset: Optional[datetime] = None,
) -> Points:
    """
    Points for a single category, from its own responses only.

    previous_month is not tracked per category and is always 0.
    """
    w = period_windows(now, last_reset)
    points = _count_responses(emergency.responses, w)
    points.previous_month = 0
    return points


def dataset_points(
    responses: Iterable[Response],
    manual_entries: Iterable[ManualPointEntry],
    now: datetime,
    last_reset: Optional[datetime] = None,
) -> Points:
    """
    Points across every response plus every manually added entry.
    Each manual entry contributes its `points` value, not 1.
    """
    w = period_windows(now, last_reset)
    points = _count_responses(responses, w)

    for entry in manual_entries:
        if not _since(entry.date_added, w.lower_bound):
            continue
        points.all += entry.points
        if entry.date_added >= w.year_start:
            points.current_year += entry.points
        if entry.date_added >= w.month_start:
            points.current_month += entry.points
        if w.previous_month_start <= entry.date_added < w.month_start:
            points.previous_month += entry.points

    return points


def sort_by_current_month(
    emergencies: Iterable[Emergency],
    now: datetime,
    last_reset: Optional[datetime] = None,
) -> List[Emergency]:
    """
    Busiest category this month first. sorted() is stable, so ties keep
    the order they came in.
    """
    return sorted(
        emergencies,
        key=lambda e: emergency_points(e, now, last_reset).current_month,
        reverse=True,
    )
