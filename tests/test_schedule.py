import unittest
from datetime import date, timedelta

from fakes import utc
from trackit.dates import Weekday, weekday_of
from trackit.models import Habit
from trackit.schedule import due_habits, is_due, is_future


def make_habit(habit_id="h1", days=(Weekday.MON, Weekday.WED, Weekday.FRI), **kwargs):
    created = kwargs.pop("created_at", utc(2024, 1, 1, 15))
    return Habit(habit_id, habit_id.upper(), list(days), created_at=created, updated_at=created, **kwargs)


class ScheduleTests(unittest.TestCase):
    def test_due_on_target_weekdays_only(self):
        habit = make_habit()
        start = date(2024, 1, 1)
        for offset in range(21):
            day = start + timedelta(days=offset)
            self.assertEqual(is_due(habit, day), weekday_of(day) in habit.target_days, day)

    def test_never_due_before_creation_day(self):
        habit = make_habit(created_at=utc(2024, 1, 3, 20))
        self.assertFalse(is_due(habit, date(2024, 1, 1)))
        # creation is compared by day, not by instant
        self.assertTrue(is_due(habit, utc(2024, 1, 3, 6)))

    def test_archived_is_never_due(self):
        habit = make_habit(archived=True)
        self.assertFalse(is_due(habit, date(2024, 1, 1)))

    def test_empty_schedule_is_never_due(self):
        habit = make_habit(days=())
        self.assertFalse(is_due(habit, date(2024, 1, 1)))

    def test_is_future(self):
        now = utc(2024, 1, 10, 23)
        self.assertTrue(is_future(date(2024, 1, 11), now))
        self.assertFalse(is_future("2024-01-10", now))
        self.assertFalse(is_future(date(2023, 12, 31), now))

    def test_due_habits(self):
        habits = [make_habit("a"), make_habit("b", days=(Weekday.TUE,)), make_habit("c", archived=True)]
        self.assertEqual([h.id for h in due_habits(habits, date(2024, 1, 8))], ["a"])


if __name__ == "__main__":
    unittest.main()
