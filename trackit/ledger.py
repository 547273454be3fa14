import logging
from datetime import datetime
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple

from .dates import DayLike, day_key, today_key, to_utc, utc_now
from .errors import FutureDateError
from .models import Completion, completion_map_to_dict, parse_completion_map
from .storage import COMPLETIONS_KEY, BlobStore

logger = logging.getLogger(__name__)


class CompletionLedger:
    """Day-key to completions mapping, at most one entry per habit and day.

    Loading upgrades legacy entries (bare habit ids) to structured
    completions in memory; the upgraded shape is written back on the next
    mutation.
    """

    def __init__(self, store: BlobStore, now: Callable[[], datetime] = utc_now):
        self.store = store
        self._now = now
        self._days: Dict[str, List[Completion]] = parse_completion_map(
            self.store.load(COMPLETIONS_KEY, {})
        )

    def _save(self) -> None:
        self.store.write_json(COMPLETIONS_KEY, self.to_dict())

    def _find(self, habit_id: str, key: str) -> Optional[Completion]:
        for entry in self._days.get(key, []):
            if entry.habit_id == habit_id:
                return entry
        return None

    def toggle(self, habit_id: str, day: DayLike) -> bool:
        key = day_key(day)
        current = today_key(self._now())
        if key > current:
            raise FutureDateError(key, current)
        entries = self._days.setdefault(key, [])
        existing = self._find(habit_id, key)
        if existing is not None:
            entries.remove(existing)
            if not entries:
                del self._days[key]
            completed = False
        else:
            entries.append(Completion(habit_id, self._now()))
            completed = True
        self._save()
        logger.debug("Toggled habit %s on %s -> %s", habit_id, key, completed)
        return completed

    def is_completed(self, habit_id: str, day: DayLike) -> bool:
        return self._find(habit_id, day_key(day)) is not None

    def completion_for(self, habit_id: str, day: DayLike) -> Optional[Completion]:
        return self._find(habit_id, day_key(day))

    def entries_for_day(self, day: DayLike) -> List[Completion]:
        return list(self._days.get(day_key(day), []))

    def completed_days(self, habit_id: str) -> Set[str]:
        return {key for key, entry in self.entries() if entry.habit_id == habit_id}

    def entries(self) -> Iterator[Tuple[str, Completion]]:
        for key in sorted(self._days):
            for entry in self._days[key]:
                yield key, entry

    def add(self, habit_id: str, day: DayLike, completed_at: datetime) -> bool:
        key = day_key(day)
        if self._find(habit_id, key) is not None:
            return False
        self._days.setdefault(key, []).append(Completion(habit_id, to_utc(completed_at)))
        self._save()
        return True

    def remove_all_for_habit(self, habit_id: str) -> int:
        removed = 0
        for key in list(self._days):
            kept = [entry for entry in self._days[key] if entry.habit_id != habit_id]
            removed += len(self._days[key]) - len(kept)
            if kept:
                self._days[key] = kept
            else:
                del self._days[key]
        if removed:
            self._save()
        return removed

    def snapshot_for_habit(self, habit_id: str) -> Dict[str, Completion]:
        return {key: entry for key, entry in self.entries() if entry.habit_id == habit_id}

    def restore_for_habit(self, habit_id: str, snapshot: Dict[str, Completion]) -> int:
        restored = 0
        for key, entry in snapshot.items():
            if self._find(habit_id, key) is None:
                self._days.setdefault(key, []).append(Completion(habit_id, entry.completed_at))
                restored += 1
        if restored:
            self._save()
        return restored

    def replace_all(self, completions: Dict[str, List[Completion]]) -> None:
        self._days = {key: list(entries) for key, entries in completions.items() if entries}
        self._save()

    def to_dict(self) -> Dict[str, List[Dict[str, str]]]:
        return completion_map_to_dict(self._days)

    def as_map(self) -> Dict[str, List[Completion]]:
        return {key: list(entries) for key, entries in self._days.items()}
