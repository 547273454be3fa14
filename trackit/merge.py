"""Merge policy shared by the client sync engine and the bulk sync endpoint.

Habits are reconciled last-writer-wins on ``updatedAt`` with ties kept on
the remote side. Completions are union-only: a remote completion is never
removed, and local completions for habits unknown locally are dropped.
"""
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Set, Tuple

from .models import (
    MUTABLE_FIELDS,
    Completion,
    Habit,
    completion_map_to_dict,
    parse_completion_map,
)

CompletionMap = Dict[str, List[Completion]]


@dataclass
class Snapshot:
    habits: List[Habit] = field(default_factory=list)
    completions: CompletionMap = field(default_factory=dict)

    def habit_ids(self) -> Set[str]:
        return {habit.id for habit in self.habits}

    def completion_keys(self) -> Set[Tuple[str, str]]:
        return {
            (entry.habit_id, key)
            for key, entries in self.completions.items()
            for entry in entries
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "habits": [habit.to_dict() for habit in self.habits],
            "completions": completion_map_to_dict(self.completions),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Snapshot":
        habits = [Habit.from_dict(record) for record in data.get("habits") or []]
        return cls(habits, parse_completion_map(data.get("completions") or {}))


@dataclass
class SyncPlan:
    creates: List[Habit] = field(default_factory=list)
    updates: List[Habit] = field(default_factory=list)
    completions: List[Tuple[str, Completion]] = field(default_factory=list)
    dropped: int = 0

    @property
    def writes(self) -> int:
        return len(self.creates) + len(self.updates) + len(self.completions)


def update_payload(habit: Habit) -> Dict[str, Any]:
    payload = habit.mutable_fields()
    payload["updatedAt"] = habit.to_dict()["updatedAt"]
    return payload


def apply_update(existing: Habit, local: Habit) -> Habit:
    changes = {name: getattr(local, name) for name in MUTABLE_FIELDS}
    changes["updated_at"] = local.updated_at
    return replace(existing, **changes).copy()


def plan_sync(remote: Snapshot, habits: Iterable[Habit], completions: CompletionMap) -> SyncPlan:
    plan = SyncPlan()
    remote_by_id = {habit.id: habit for habit in remote.habits}
    local_ids: Set[str] = set()
    for habit in habits:
        local_ids.add(habit.id)
        existing = remote_by_id.get(habit.id)
        if existing is None:
            plan.creates.append(habit)
        elif habit.updated_at > existing.updated_at:
            plan.updates.append(habit)

    known = remote.completion_keys()
    for key in sorted(completions):
        for entry in completions[key]:
            if entry.habit_id not in local_ids:
                plan.dropped += 1
                continue
            if (entry.habit_id, key) in known:
                continue
            known.add((entry.habit_id, key))
            plan.completions.append((key, entry))
    return plan


def without_dangling(snapshot: Snapshot) -> Snapshot:
    ids = snapshot.habit_ids()
    completions: CompletionMap = {}
    for key, entries in snapshot.completions.items():
        kept = [entry for entry in entries if entry.habit_id in ids]
        if kept:
            completions[key] = kept
    return Snapshot([habit.copy() for habit in snapshot.habits], completions)


def merge_into(
    remote: Snapshot, habits: Iterable[Habit], completions: CompletionMap
) -> Tuple[Snapshot, SyncPlan]:
    """Apply the sync policy to ``remote`` in memory.

    This is what the bulk ``habits/sync`` endpoint computes server side; the
    result equals the baseline the step-wise engine re-fetches after pushing
    the same plan.
    """
    habits = list(habits)
    plan = plan_sync(remote, habits, completions)
    updated = {habit.id: habit for habit in plan.updates}
    merged_habits = [
        apply_update(habit, updated[habit.id]) if habit.id in updated else habit.copy()
        for habit in remote.habits
    ]
    merged_habits.extend(habit.copy() for habit in plan.creates)
    merged_completions: CompletionMap = {
        key: list(entries) for key, entries in remote.completions.items()
    }
    for key, entry in plan.completions:
        merged_completions.setdefault(key, []).append(entry)
    return without_dangling(Snapshot(merged_habits, merged_completions)), plan
