from datetime import date, datetime, timedelta
from typing import Callable, Dict, Optional

from .dates import DayLike, parse_day, utc_now, window_dates
from .errors import NotFoundError
from .ledger import CompletionLedger
from .models import Habit
from .repository import HabitRepository
from .schedule import is_due

STREAK_HORIZON_DAYS = 365


def current_streak(habit: Habit, ledger: CompletionLedger, today: DayLike) -> int:
    """Consecutive completed due days counted backward from ``today``.

    A due day that is not completed ends the streak unless it is today,
    which is still open. Days that are not due are skipped. The walk covers
    at most ``STREAK_HORIZON_DAYS`` days.
    """
    today_date = parse_day(today)
    streak = 0
    for offset in range(STREAK_HORIZON_DAYS):
        day = today_date - timedelta(days=offset)
        if not is_due(habit, day):
            continue
        if ledger.is_completed(habit.id, day):
            streak += 1
        elif day != today_date:
            break
    return streak


def longest_streak(habit: Habit, ledger: CompletionLedger, today: DayLike) -> int:
    longest = 0
    run = 0
    for day in window_dates(parse_day(today), STREAK_HORIZON_DAYS):
        if not is_due(habit, day):
            continue
        if ledger.is_completed(habit.id, day):
            run += 1
            longest = max(longest, run)
        else:
            run = 0
    return longest


class StreakCalculator:
    def __init__(
        self,
        repository: HabitRepository,
        ledger: CompletionLedger,
        now: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.ledger = ledger
        self._now = now

    def _today(self, today: Optional[DayLike]) -> date:
        return parse_day(today if today is not None else self._now())

    def _habit(self, habit_id: str) -> Optional[Habit]:
        try:
            return self.repository.get(habit_id)
        except NotFoundError:
            return None

    def current_streak(self, habit_id: str, today: Optional[DayLike] = None) -> int:
        habit = self._habit(habit_id)
        if habit is None:
            return 0
        return current_streak(habit, self.ledger, self._today(today))

    def longest_streak(self, habit_id: str, today: Optional[DayLike] = None) -> int:
        habit = self._habit(habit_id)
        if habit is None:
            return 0
        return longest_streak(habit, self.ledger, self._today(today))

    def summary(self, habit_id: str, today: Optional[DayLike] = None) -> Dict[str, int]:
        return {
            "current": self.current_streak(habit_id, today),
            "longest": self.longest_streak(habit_id, today),
            "total": len(self.ledger.completed_days(habit_id)),
        }
