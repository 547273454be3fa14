import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from .errors import SyncTransportError
from .merge import CompletionMap, Snapshot, plan_sync, update_payload, without_dangling
from .models import Habit
from .remote import RemoteStore

logger = logging.getLogger(__name__)


@dataclass
class SyncOutcome:
    created: int = 0
    updated: int = 0
    completions_added: int = 0
    dropped: int = 0
    baseline: Optional[Snapshot] = None
    error: Optional[SyncTransportError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.baseline is not None

    @property
    def writes(self) -> int:
        return self.created + self.updated + self.completions_added


class SyncEngine:
    """Reconciles local habits and completions with a :class:`RemoteStore`.

    Remote calls are issued one at a time. A transport failure stops the
    pass and is reported on the returned :class:`SyncOutcome`; steps that
    already succeeded stay applied, and running the pass again is safe.
    The engine never writes local storage: the caller installs
    ``outcome.baseline``.
    """

    def __init__(self, remote: RemoteStore):
        self.remote = remote

    def sync(self, habits: Iterable[Habit], completions: CompletionMap) -> SyncOutcome:
        habits = list(habits)
        local_by_id = {habit.id: habit for habit in habits}
        outcome = SyncOutcome()
        try:
            snapshot = self.remote.fetch_snapshot()
            plan = plan_sync(snapshot, habits, completions)
            outcome.dropped = plan.dropped
            for habit in plan.creates:
                self.remote.create_habit(habit)
                outcome.created += 1
            for habit in plan.updates:
                self.remote.update_habit(habit.id, update_payload(habit))
                outcome.updated += 1
            for key, entry in plan.completions:
                self.remote.add_completion(local_by_id[entry.habit_id], key, entry.completed_at)
                outcome.completions_added += 1
            outcome.baseline = without_dangling(self.remote.fetch_snapshot())
        except SyncTransportError as exc:
            logger.warning(
                "Sync aborted after %d create(s), %d update(s), %d completion(s): %s",
                outcome.created, outcome.updated, outcome.completions_added, exc,
            )
            outcome.error = exc
            return outcome
        logger.info(
            "Sync done: %d created, %d updated, %d completion(s) added, %d dropped",
            outcome.created, outcome.updated, outcome.completions_added, outcome.dropped,
        )
        return outcome

    def sync_bulk(self, habits: Iterable[Habit], completions: CompletionMap) -> SyncOutcome:
        outcome = SyncOutcome()
        try:
            outcome.baseline = without_dangling(self.remote.bulk_sync(habits, completions))
        except SyncTransportError as exc:
            logger.warning("Bulk sync aborted: %s", exc)
            outcome.error = exc
        return outcome
