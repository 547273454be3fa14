from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional, Sequence, Tuple

from .dates import (
    DayLike,
    add_months,
    date_range,
    day_key,
    first_of_month,
    month_key,
    parse_day,
    window_dates,
)
from .ledger import CompletionLedger
from .models import Habit
from .schedule import is_due


@dataclass
class TimelinePoint:
    date: date
    day_key: str
    scheduled_count: int
    completed_count: int

    @property
    def rate(self) -> int:
        return completion_rate(self.completed_count, self.scheduled_count)


@dataclass
class RateSummary:
    rate: int
    scheduled: int
    completed: int


@dataclass
class HabitStat:
    habit: Habit
    scheduled: int
    completed: int
    rate: int


@dataclass
class HistoryDay:
    date: date
    day_key: str
    scheduled: bool
    completed: bool


def completion_rate(completed: int, scheduled: int) -> int:
    if scheduled == 0:
        return 0
    # integer round-half-up of 100 * completed / scheduled
    return (200 * completed + scheduled) // (2 * scheduled)


def _count_days(
    habits: Sequence[Habit], ledger: CompletionLedger, days: Iterable[date]
) -> Tuple[int, int]:
    scheduled = 0
    completed = 0
    for day in days:
        for habit in habits:
            if not is_due(habit, day):
                continue
            scheduled += 1
            if ledger.is_completed(habit.id, day):
                completed += 1
    return scheduled, completed


def completion_timeline(
    habits: Sequence[Habit], ledger: CompletionLedger, days: int, today: DayLike
) -> List[TimelinePoint]:
    if days <= 0:
        return []
    points: List[TimelinePoint] = []
    for day in window_dates(parse_day(today), days):
        scheduled, completed = _count_days(habits, ledger, [day])
        points.append(TimelinePoint(day, day_key(day), scheduled, completed))
    return points


def heatmap_data(
    habits: Sequence[Habit], ledger: CompletionLedger, days: int, today: DayLike
) -> List[TimelinePoint]:
    return completion_timeline(habits, ledger, days, today)


def completion_timeline_by_month(
    habits: Sequence[Habit],
    ledger: CompletionLedger,
    today: DayLike,
    months: Optional[int] = None,
) -> List[TimelinePoint]:
    """Scheduled/completed counts bucketed by calendar month, oldest first.

    Without ``months`` the series starts at the month of the earliest
    habit creation. The current month is counted up to ``today`` only.
    """
    today_date = parse_day(today)
    current = first_of_month(today_date)
    if months is not None:
        if months <= 0:
            return []
        start = add_months(current, -(months - 1))
    else:
        if not habits:
            return []
        start = min(first_of_month(habit.created_at) for habit in habits)
    points: List[TimelinePoint] = []
    month = start
    while month <= current:
        month_end = min(add_months(month, 1).toordinal() - 1, today_date.toordinal())
        days = date_range(month, date.fromordinal(month_end))
        scheduled, completed = _count_days(habits, ledger, days)
        points.append(TimelinePoint(month, month_key(month), scheduled, completed))
        month = add_months(month, 1)
    return points


def monthly_completion_rate(
    habits: Sequence[Habit], ledger: CompletionLedger, today: DayLike
) -> RateSummary:
    today_date = parse_day(today)
    days = date_range(first_of_month(today_date), today_date)
    scheduled, completed = _count_days(habits, ledger, days)
    return RateSummary(completion_rate(completed, scheduled), scheduled, completed)


def habit_stats(
    habits: Sequence[Habit], ledger: CompletionLedger, days: int, today: DayLike
) -> List[HabitStat]:
    window = window_dates(parse_day(today), days) if days > 0 else []
    stats: List[HabitStat] = []
    for habit in habits:
        if habit.archived:
            continue
        scheduled, completed = _count_days([habit], ledger, window)
        stats.append(HabitStat(habit, scheduled, completed, completion_rate(completed, scheduled)))
    stats.sort(key=lambda stat: (-stat.rate, -stat.completed))
    return stats


def habit_history(
    habit: Habit, ledger: CompletionLedger, days: int, today: DayLike
) -> List[HistoryDay]:
    if days <= 0:
        return []
    return [
        HistoryDay(day, day_key(day), is_due(habit, day), ledger.is_completed(habit.id, day))
        for day in window_dates(parse_day(today), days)
    ]


def tracked_days(habits: Sequence[Habit], today: DayLike) -> int:
    if not habits:
        return 0
    earliest = min(parse_day(habit.created_at) for habit in habits)
    return max((parse_day(today) - earliest).days + 1, 0)
