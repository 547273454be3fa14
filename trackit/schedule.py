from datetime import datetime
from typing import Iterable, List, Optional

from .dates import DayLike, day_key, today_key, weekday_of
from .models import Habit


def is_due(habit: Habit, day: DayLike) -> bool:
    if habit.archived:
        return False
    key = day_key(day)
    if key < habit.created_key:
        return False
    return weekday_of(key) in habit.target_days


def is_future(day: DayLike, now: Optional[datetime] = None) -> bool:
    return day_key(day) > today_key(now)


def due_habits(habits: Iterable[Habit], day: DayLike) -> List[Habit]:
    return [habit for habit in habits if is_due(habit, day)]
