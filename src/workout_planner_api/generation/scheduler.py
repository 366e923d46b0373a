"""Calendar placement of generated plan days."""
import logging
from datetime import date, datetime, timedelta
from typing import List, Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from workout_planner_api.models import WEEKDAYS


logger = logging.getLogger(__name__)


def weekday_name(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def rotate_available_days(available_days: Sequence[str], today: date) -> List[str]:
    """
    Order the user's weekdays by distance from today (today's weekday first).

    Unknown names are dropped and duplicates collapsed. An empty result means
    "every day of the week", starting today.
    """
    today_index = today.weekday()
    known = []
    for day in available_days:
        name = (day or "").strip().lower()
        if name not in WEEKDAYS:
            logger.warning(f"Ignoring unknown weekday {day!r} in available days")
            continue
        if name not in known:
            known.append(name)

    if not known:
        known = list(WEEKDAYS)
    return sorted(known, key=lambda name: (WEEKDAYS.index(name) - today_index) % 7)


def next_date_for_weekday(weekday: str, reference: date) -> date:
    """First date on or after ``reference`` falling on ``weekday``."""
    target = WEEKDAYS.index(weekday.strip().lower())
    return reference + timedelta(days=(target - reference.weekday()) % 7)


def assign_plan_dates(available_days: Sequence[str], day_count: int, today: date) -> List[date]:
    """
    Give each generated day a calendar date.

    Day ``i`` lands on the ``i mod cycle``-th rotated weekday, strictly after
    the date of day ``i - 1``; the first day may be today.
    """
    cycle = rotate_available_days(available_days, today)
    dates: List[date] = []
    reference = today
    for index in range(day_count):
        scheduled = next_date_for_weekday(cycle[index % len(cycle)], reference)
        dates.append(scheduled)
        reference = scheduled + timedelta(days=1)
    return dates


def resolve_timezone_today(timezone: Optional[str] = None, now: Optional[datetime] = None) -> date:
    """Today's calendar date in ``timezone`` (server local time when unset or unknown)."""
    if timezone:
        try:
            zone = ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"Unknown timezone {timezone!r}, using server local date")
        else:
            current = now.astimezone(zone) if now is not None else datetime.now(zone)
            return current.date()
    return (now or datetime.now()).date()


def plan_end_date(start: date, plan_dates: Sequence[date]) -> date:
    """Last scheduled date, never earlier than the end of the starting week."""
    week_end = start + timedelta(days=6)
    if not plan_dates:
        return week_end
    return max(week_end, max(plan_dates))
