import unittest

from fakes import Clock, utc
from trackit.dates import Weekday
from trackit.errors import NotFoundError, ValidationError
from trackit.repository import HabitRepository
from trackit.storage import HABITS_KEY, MemoryBlobStore


class HabitRepositoryTests(unittest.TestCase):
    def setUp(self):
        self.clock = Clock(utc(2024, 1, 1))
        self.store = MemoryBlobStore()
        self.repo = HabitRepository(self.store, now=self.clock)

    def test_create_assigns_defaults(self):
        habit = self.repo.create("  Read  ", target_days=["mon", "wed"], tags=["Books", " books "])

        self.assertEqual(habit.name, "Read")
        self.assertEqual(habit.tags, ["books"])
        self.assertEqual(habit.target_days, [Weekday.MON, Weekday.WED])
        self.assertFalse(habit.archived)
        self.assertEqual(habit.created_at, utc(2024, 1, 1))
        self.assertEqual(habit.updated_at, habit.created_at)
        self.assertTrue(habit.id)

    def test_create_rejects_empty_name(self):
        with self.assertRaises(ValidationError):
            self.repo.create("   ")
        self.assertEqual(self.repo.list_habits(), [])

    def test_habits_persist_across_instances(self):
        habit = self.repo.create("Walk", target_days=["sat", "sun"])
        reloaded = HabitRepository(self.store, now=self.clock)
        self.assertEqual(reloaded.list_habits(), [habit])

    def test_update_merges_and_refreshes_updated_at(self):
        habit = self.repo.create("Walk", target_days=["mon"], description="outside")
        self.clock.advance(hours=1)

        updated = self.repo.update(habit.id, tags=["Health", "HEALTH"], archived=True)

        self.assertEqual(updated.tags, ["health"])
        self.assertTrue(updated.archived)
        self.assertEqual(updated.description, "outside")
        self.assertEqual(updated.created_at, habit.created_at)
        self.assertEqual(updated.updated_at, utc(2024, 1, 1, 13))

    def test_update_errors(self):
        habit = self.repo.create("Walk")
        with self.assertRaises(NotFoundError):
            self.repo.update("missing", name="x")
        with self.assertRaises(ValidationError):
            self.repo.update(habit.id, name="")
        with self.assertRaises(ValidationError):
            self.repo.update(habit.id, created_at=utc(2020, 1, 1))

    def test_delete_and_restore(self):
        habit = self.repo.create("Walk")
        self.assertTrue(self.repo.delete(habit.id))
        self.assertFalse(self.repo.delete(habit.id))

        restored = self.repo.restore(habit)
        self.assertEqual(restored.id, habit.id)
        self.assertEqual(restored.created_at, habit.created_at)

        self.repo.restore(habit)
        self.assertEqual(len(self.repo.list_habits()), 1)

    def test_returned_habits_are_copies(self):
        habit = self.repo.create("Walk", tags=["a"])
        habit.tags.append("b")
        self.assertEqual(self.repo.get(habit.id).tags, ["a"])

    def test_tags(self):
        self.repo.create("Walk", tags=["health", "outdoor"])
        self.repo.create("Read", tags=["mind"])
        self.repo.create("Run", tags=["health"])

        self.assertEqual(self.repo.all_tags(), ["health", "mind", "outdoor"])
        self.assertEqual(sorted(h.name for h in self.repo.with_tags(["Health"])), ["Run", "Walk"])
        self.assertEqual([h.name for h in self.repo.with_tags(["health", "outdoor"])], ["Walk"])

    def test_corrupted_blob_falls_back_to_empty(self):
        store = MemoryBlobStore({HABITS_KEY: "{not json"})
        with self.assertLogs("trackit.storage", level="WARNING"):
            repo = HabitRepository(store)
        self.assertEqual(repo.list_habits(), [])

    def test_invalid_records_are_skipped(self):
        store = MemoryBlobStore()
        store.write_json(HABITS_KEY, [
            {"id": "a", "name": "Ok", "targetDays": ["monday"], "createdAt": "2024-01-01T00:00:00.000Z"},
            {"id": "b", "name": ""},
            {"id": "a", "name": "Duplicate"},
        ])
        repo = HabitRepository(store)
        self.assertEqual([h.name for h in repo.list_habits()], ["Ok"])


if __name__ == "__main__":
    unittest.main()
