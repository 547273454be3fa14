import logging
from datetime import datetime
from typing import Any, Callable, Iterable, List, Optional, Set

from .dates import utc_now
from .errors import NotFoundError, ValidationError
from .models import (
    MUTABLE_FIELDS,
    Habit,
    new_habit_id,
    normalize_tags,
    normalize_target_days,
    validate_name,
)
from .storage import HABITS_KEY, BlobStore

logger = logging.getLogger(__name__)


class HabitRepository:
    """Durable list of habits kept in the ``trackit-habits`` blob.

    Deleting a habit does not touch its completions; callers cascade
    through :meth:`CompletionLedger.remove_all_for_habit`.
    """

    def __init__(self, store: BlobStore, now: Callable[[], datetime] = utc_now):
        self.store = store
        self._now = now
        self._habits: List[Habit] = self._load()

    def _load(self) -> List[Habit]:
        habits: List[Habit] = []
        seen: Set[str] = set()
        for record in self.store.load(HABITS_KEY, []):
            try:
                habit = Habit.from_dict(record)
            except ValidationError as exc:
                logger.warning("Skipping stored habit: %s", exc)
                continue
            if habit.id in seen:
                continue
            seen.add(habit.id)
            habits.append(habit)
        return habits

    def _save(self) -> None:
        self.store.write_json(HABITS_KEY, [habit.to_dict() for habit in self._habits])

    def _find(self, habit_id: str) -> Optional[Habit]:
        for habit in self._habits:
            if habit.id == habit_id:
                return habit
        return None

    def list_habits(self) -> List[Habit]:
        return [habit.copy() for habit in self._habits]

    def get(self, habit_id: str) -> Habit:
        habit = self._find(habit_id)
        if habit is None:
            logger.warning("Habit %s not found", habit_id)
            raise NotFoundError(habit_id)
        return habit.copy()

    def exists(self, habit_id: str) -> bool:
        return self._find(habit_id) is not None

    def create(
        self,
        name: str,
        target_days: Optional[Iterable[Any]] = None,
        description: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        archived: bool = False,
        notification_enabled: bool = False,
        notification_time: Optional[str] = None,
    ) -> Habit:
        now = self._now()
        habit = Habit(
            id=new_habit_id(),
            name=validate_name(name),
            target_days=normalize_target_days(target_days),
            description=(description or "").strip() or None,
            tags=normalize_tags(tags),
            archived=bool(archived),
            notification_enabled=bool(notification_enabled),
            notification_time=notification_time or None,
            created_at=now,
            updated_at=now,
        )
        self._habits.append(habit)
        self._save()
        logger.debug("Created habit %s (%s)", habit.id, habit.name)
        return habit.copy()

    def update(self, habit_id: str, **changes: Any) -> Habit:
        unknown = set(changes) - set(MUTABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        habit = self._find(habit_id)
        if habit is None:
            logger.warning("Cannot update habit %s: not found", habit_id)
            raise NotFoundError(habit_id)
        if "name" in changes:
            changes["name"] = validate_name(changes["name"])
        if "target_days" in changes:
            changes["target_days"] = normalize_target_days(changes["target_days"])
        if "tags" in changes:
            changes["tags"] = normalize_tags(changes["tags"])
        if "description" in changes:
            changes["description"] = (changes["description"] or "").strip() or None
        for key, value in changes.items():
            setattr(habit, key, value)
        habit.updated_at = self._now()
        self._save()
        return habit.copy()

    def delete(self, habit_id: str) -> bool:
        remaining = [habit for habit in self._habits if habit.id != habit_id]
        if len(remaining) == len(self._habits):
            return False
        self._habits = remaining
        self._save()
        return True

    def restore(self, habit: Habit) -> Habit:
        existing = self._find(habit.id)
        if existing is not None:
            return existing.copy()
        self._habits.append(habit.copy())
        self._save()
        return habit.copy()

    def replace_all(self, habits: Iterable[Habit]) -> None:
        self._habits = [habit.copy() for habit in habits]
        self._save()

    def all_tags(self) -> List[str]:
        return sorted({tag for habit in self._habits for tag in habit.tags})

    def with_tags(self, tags: Iterable[str]) -> List[Habit]:
        wanted = normalize_tags(tags)
        return [
            habit.copy()
            for habit in self._habits
            if all(tag in habit.tags for tag in wanted)
        ]

