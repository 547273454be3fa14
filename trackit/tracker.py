import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

from . import analytics
from .config import Settings
from .dates import DayLike, parse_day, utc_now
from .errors import NotFoundError
from .ledger import CompletionLedger
from .merge import Snapshot
from .models import Completion, Habit
from .remote import RemoteStore
from .repository import HabitRepository
from .schedule import due_habits
from .storage import COMPLETIONS_KEY, HABITS_KEY, BlobStore, FileBlobStore
from .streaks import StreakCalculator
from .sync import SyncEngine, SyncOutcome

logger = logging.getLogger(__name__)


@dataclass
class DailyHabit:
    habit: Habit
    completed: bool
    completed_at: Optional[datetime] = None


@dataclass
class DeletedHabit:
    habit: Habit
    completions: Dict[str, Completion]


class HabitTracker:
    """Habit repository and completion ledger over one local store.

    Owns the delete cascade, undo of deletes, the daily view and the
    clock used for "today" in streaks and statistics.
    """

    def __init__(self, store: BlobStore, now: Callable[[], datetime] = utc_now):
        self.store = store
        self._now = now
        self.habits = HabitRepository(store, now)
        self.ledger = CompletionLedger(store, now)
        self.streaks = StreakCalculator(self.habits, self.ledger, now)

    def today(self) -> date:
        return parse_day(self._now())

    def _day(self, day: Optional[DayLike]) -> date:
        return parse_day(day) if day is not None else self.today()

    def create_habit(self, name: str, **attrs: Any) -> Habit:
        return self.habits.create(name, **attrs)

    def update_habit(self, habit_id: str, **changes: Any) -> Habit:
        return self.habits.update(habit_id, **changes)

    def delete_habit(self, habit_id: str) -> Optional[DeletedHabit]:
        try:
            habit = self.habits.get(habit_id)
        except NotFoundError:
            return None
        completions = self.ledger.snapshot_for_habit(habit_id)
        self.habits.delete(habit_id)
        self.ledger.remove_all_for_habit(habit_id)
        return DeletedHabit(habit, completions)

    def undo_delete(self, deleted: DeletedHabit) -> Habit:
        habit = self.habits.restore(deleted.habit)
        self.ledger.restore_for_habit(habit.id, deleted.completions)
        return habit

    def toggle(self, habit_id: str, day: Optional[DayLike] = None) -> bool:
        if not self.habits.exists(habit_id):
            logger.warning("Cannot toggle habit %s: not found", habit_id)
            raise NotFoundError(habit_id)
        return self.ledger.toggle(habit_id, day if day is not None else self._now())

    def habits_for_date(self, day: Optional[DayLike] = None) -> List[DailyHabit]:
        target = self._day(day)
        result = []
        for habit in due_habits(self.habits.list_habits(), target):
            completion = self.ledger.completion_for(habit.id, target)
            result.append(DailyHabit(
                habit,
                completion is not None,
                completion.completed_at if completion else None,
            ))
        return result

    def current_streak(self, habit_id: str) -> int:
        return self.streaks.current_streak(habit_id, self.today())

    def longest_streak(self, habit_id: str) -> int:
        return self.streaks.longest_streak(habit_id, self.today())

    def completion_timeline(self, days: int) -> List[analytics.TimelinePoint]:
        return analytics.completion_timeline(self.habits.list_habits(), self.ledger, days, self.today())

    def completion_timeline_by_month(self, months: Optional[int] = None) -> List[analytics.TimelinePoint]:
        return analytics.completion_timeline_by_month(
            self.habits.list_habits(), self.ledger, self.today(), months
        )

    def monthly_completion_rate(self) -> analytics.RateSummary:
        return analytics.monthly_completion_rate(self.habits.list_habits(), self.ledger, self.today())

    def heatmap_data(self, days: int) -> List[analytics.TimelinePoint]:
        return analytics.heatmap_data(self.habits.list_habits(), self.ledger, days, self.today())

    def habit_stats(self, days: int) -> List[analytics.HabitStat]:
        return analytics.habit_stats(self.habits.list_habits(), self.ledger, days, self.today())

    def habit_history(self, habit_id: str, days: int = 7) -> List[analytics.HistoryDay]:
        return analytics.habit_history(self.habits.get(habit_id), self.ledger, days, self.today())

    def tracked_days(self) -> int:
        return analytics.tracked_days(self.habits.list_habits(), self.today())

    def snapshot(self) -> Snapshot:
        return Snapshot(self.habits.list_habits(), self.ledger.as_map())

    def apply_baseline(self, baseline: Snapshot) -> None:
        self.habits.replace_all(baseline.habits)
        self.ledger.replace_all(baseline.completions)

    def sync(self, remote: RemoteStore, bulk: bool = False) -> SyncOutcome:
        engine = SyncEngine(remote)
        local = self.snapshot()
        if bulk:
            outcome = engine.sync_bulk(local.habits, local.completions)
        else:
            outcome = engine.sync(local.habits, local.completions)
        if outcome.ok:
            self.apply_baseline(outcome.baseline)
        return outcome

    def clear(self) -> None:
        self.habits.replace_all([])
        self.ledger.replace_all({})
        self.store.remove(HABITS_KEY)
        self.store.remove(COMPLETIONS_KEY)


def open_tracker(settings: Settings) -> HabitTracker:
    return HabitTracker(FileBlobStore(settings.home))
