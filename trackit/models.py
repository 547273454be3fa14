import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from .dates import (
    MONDAY_FIRST,
    Weekday,
    day_key,
    format_iso_datetime,
    midnight_utc,
    parse_iso_datetime,
    to_utc,
    utc_now,
)
from .errors import ValidationError

# python attribute -> persisted JSON key
MUTABLE_FIELDS = {
    "name": "name",
    "description": "description",
    "target_days": "targetDays",
    "tags": "tags",
    "archived": "archived",
    "notification_enabled": "notificationEnabled",
    "notification_time": "notificationTime",
}


def new_habit_id() -> str:
    return str(uuid.uuid4())


def normalize_tags(tags: Optional[Iterable[Any]]) -> List[str]:
    if tags is None:
        return []
    if isinstance(tags, str):
        tags = [tags]
    seen: List[str] = []
    for tag in tags:
        if not isinstance(tag, str):
            continue
        cleaned = tag.strip().lower()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen


def normalize_target_days(values: Optional[Iterable[Any]]) -> List[Weekday]:
    if values is None:
        return []
    if isinstance(values, (str, Weekday)):
        values = [values]
    values = list(values)
    if len(values) == 7 and all(isinstance(v, bool) for v in values):
        return [day for day, flag in zip(MONDAY_FIRST, values) if flag]
    days = {Weekday.parse(v) for v in values}
    return [day for day in MONDAY_FIRST if day in days]


def validate_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Habit name must not be empty.")
    return name.strip()


@dataclass
class Habit:
    id: str
    name: str
    target_days: List[Weekday] = field(default_factory=list)
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    archived: bool = False
    notification_enabled: bool = False
    notification_time: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def created_key(self) -> str:
        return day_key(self.created_at)

    def copy(self) -> "Habit":
        return replace(self, target_days=list(self.target_days), tags=list(self.tags))

    def mutable_fields(self) -> Dict[str, Any]:
        payload = self.to_dict()
        return {key: payload[key] for key in MUTABLE_FIELDS.values()}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "targetDays": [day.value for day in self.target_days],
            "tags": list(self.tags),
            "archived": self.archived,
            "notificationEnabled": self.notification_enabled,
            "notificationTime": self.notification_time,
            "createdAt": format_iso_datetime(self.created_at),
            "updatedAt": format_iso_datetime(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Habit":
        if not isinstance(data, dict):
            raise ValidationError("Habit record must be an object.")
        habit_id = data.get("id")
        if habit_id is None or str(habit_id) == "":
            raise ValidationError("Habit record has no id.")
        if "targetDays" in data:
            target_days = normalize_target_days(data.get("targetDays"))
        else:
            target_days = normalize_target_days(data.get("daysOfWeek"))
        created_at = parse_iso_datetime(data.get("createdAt"))
        updated_at = parse_iso_datetime(data.get("updatedAt"))
        if created_at is None:
            created_at = updated_at or utc_now()
        if updated_at is None:
            updated_at = created_at
        return cls(
            id=str(habit_id),
            name=validate_name(data.get("name")),
            target_days=target_days,
            description=data.get("description") or None,
            tags=normalize_tags(data.get("tags")),
            archived=bool(data.get("archived", False)),
            notification_enabled=bool(data.get("notificationEnabled", False)),
            notification_time=data.get("notificationTime") or None,
            created_at=created_at,
            updated_at=updated_at,
        )


@dataclass(frozen=True)
class Completion:
    habit_id: str
    completed_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {"habitId": self.habit_id, "completedAt": format_iso_datetime(self.completed_at)}


class EntryKind(Enum):
    STRUCTURED = "structured"
    LEGACY_ID = "legacy_id"
    FLAGGED = "flagged"


@dataclass(frozen=True)
class RawEntry:
    """One persisted completion entry, tagged by the shape it was stored in.

    ``LEGACY_ID`` is a bare habit id string, ``STRUCTURED`` is
    ``{habitId, completedAt}`` and ``FLAGGED`` is the remote
    ``{habitId, completed}`` shape.
    """

    kind: EntryKind
    habit_id: str
    completed_at: Optional[datetime] = None
    completed: bool = True


def classify_entry(raw: Any) -> Optional[RawEntry]:
    if isinstance(raw, str):
        return RawEntry(EntryKind.LEGACY_ID, raw) if raw else None
    if not isinstance(raw, dict) or not raw.get("habitId"):
        return None
    habit_id = str(raw["habitId"])
    completed_at = parse_iso_datetime(raw.get("completedAt"))
    if "completed" in raw:
        return RawEntry(EntryKind.FLAGGED, habit_id, completed_at, bool(raw["completed"]))
    return RawEntry(EntryKind.STRUCTURED, habit_id, completed_at)


def upgrade_entry(day: str, entry: RawEntry) -> Optional[Completion]:
    if not entry.completed:
        return None
    if entry.kind is EntryKind.LEGACY_ID or entry.completed_at is None:
        return Completion(entry.habit_id, midnight_utc(day))
    return Completion(entry.habit_id, to_utc(entry.completed_at))


def parse_completion_map(data: Any) -> Dict[str, List[Completion]]:
    """Upgrade a ``{dayKey: [entry, ...]}`` blob into structured completions.

    Duplicate ``(habitId, dayKey)`` entries keep the first occurrence and
    malformed day keys or entries are skipped.
    """
    if not isinstance(data, dict):
        return {}
    result: Dict[str, List[Completion]] = {}
    for raw_day, raw_entries in data.items():
        try:
            key = day_key(raw_day)
        except ValidationError:
            continue
        if isinstance(raw_entries, (str, dict)):
            raw_entries = [raw_entries]
        if not isinstance(raw_entries, list):
            continue
        bucket = result.setdefault(key, [])
        for raw in raw_entries:
            entry = classify_entry(raw)
            if entry is None:
                continue
            completion = upgrade_entry(key, entry)
            if completion is None:
                continue
            if any(existing.habit_id == completion.habit_id for existing in bucket):
                continue
            bucket.append(completion)
        if not bucket:
            del result[key]
    return result


def completion_map_to_dict(completions: Dict[str, List[Completion]]) -> Dict[str, List[Dict[str, Any]]]:
    return {
        key: [entry.to_dict() for entry in entries]
        for key, entries in sorted(completions.items())
        if entries
    }
