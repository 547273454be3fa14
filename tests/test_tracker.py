import unittest
from datetime import date

from fakes import Clock, InMemoryRemoteStore, utc
from trackit.errors import FutureDateError, NotFoundError
from trackit.storage import MemoryBlobStore
from trackit.tracker import HabitTracker


class HabitTrackerTests(unittest.TestCase):
    def setUp(self):
        self.clock = Clock(utc(2024, 1, 1))
        self.store = MemoryBlobStore()
        self.tracker = HabitTracker(self.store, now=self.clock)
        self.habit = self.tracker.create_habit("Meditation", target_days=["mon", "wed", "fri"])
        self.clock.now = utc(2024, 1, 8)

    def test_delete_cascades_and_undo_restores(self):
        self.tracker.toggle(self.habit.id, date(2024, 1, 1))
        self.tracker.toggle(self.habit.id, date(2024, 1, 3))

        deleted = self.tracker.delete_habit(self.habit.id)

        self.assertEqual(sorted(deleted.completions), ["2024-01-01", "2024-01-03"])
        self.assertEqual(self.tracker.habits.list_habits(), [])
        self.assertEqual(self.tracker.ledger.to_dict(), {})
        self.assertIsNone(self.tracker.delete_habit(self.habit.id))

        restored = self.tracker.undo_delete(deleted)
        self.assertEqual(restored.created_at, self.habit.created_at)
        self.assertEqual(self.tracker.ledger.completed_days(self.habit.id), {"2024-01-01", "2024-01-03"})
        self.assertEqual(self.tracker.longest_streak(self.habit.id), 2)

    def test_toggle_checks_habit_and_date(self):
        with self.assertRaises(NotFoundError):
            self.tracker.toggle("missing")
        with self.assertRaises(FutureDateError):
            self.tracker.toggle(self.habit.id, date(2024, 1, 9))
        self.assertTrue(self.tracker.toggle(self.habit.id))
        self.assertTrue(self.tracker.ledger.is_completed(self.habit.id, "2024-01-08"))

    def test_habits_for_date(self):
        other = self.tracker.create_habit("Swim", target_days=["tue"])
        self.tracker.toggle(self.habit.id)

        monday = self.tracker.habits_for_date()
        tuesday = self.tracker.habits_for_date(date(2024, 1, 9))

        self.assertEqual([(d.habit.id, d.completed) for d in monday], [(self.habit.id, True)])
        self.assertEqual(monday[0].completed_at, utc(2024, 1, 8))
        self.assertEqual([d.habit.id for d in tuesday], [other.id])
        self.assertFalse(tuesday[0].completed)

    def test_stats_use_the_clock(self):
        self.tracker.toggle(self.habit.id, date(2024, 1, 1))
        self.tracker.toggle(self.habit.id, date(2024, 1, 3))
        self.tracker.toggle(self.habit.id, date(2024, 1, 8))

        self.assertEqual(self.tracker.current_streak(self.habit.id), 1)
        self.assertEqual(self.tracker.monthly_completion_rate().rate, 75)
        self.assertEqual(self.tracker.tracked_days(), 8)
        self.assertEqual(len(self.tracker.heatmap_data(30)), 30)
        self.assertEqual([s.completed for s in self.tracker.habit_stats(7)], [2])
        self.assertEqual(len(self.tracker.habit_history(self.habit.id)), 7)
        self.assertEqual([p.day_key for p in self.tracker.completion_timeline_by_month()], ["2024-01"])

    def test_sync_installs_baseline(self):
        self.tracker.toggle(self.habit.id, date(2024, 1, 1))
        remote = InMemoryRemoteStore()

        outcome = self.tracker.sync(remote)
        reloaded = HabitTracker(self.store, now=self.clock)

        self.assertTrue(outcome.ok)
        self.assertEqual(reloaded.snapshot().to_dict(), remote.snapshot.to_dict())

    def test_clear(self):
        self.tracker.toggle(self.habit.id)
        self.tracker.clear()
        self.assertEqual(self.store.blobs, {})
        self.assertEqual(HabitTracker(self.store).habits.list_habits(), [])


if __name__ == "__main__":
    unittest.main()
