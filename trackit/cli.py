import argparse
import logging
import sys
from typing import List, Optional

from .config import Settings, build_remote, load_settings
from .dates import MONDAY_FIRST, parse_day
from .errors import FutureDateError, NotFoundError, TrackitError, ValidationError
from .models import Habit
from .tracker import HabitTracker, open_tracker

WEEKDAY_LABELS = [day.value[:3] for day in MONDAY_FIRST]


def _short_id(habit: Habit) -> str:
    return habit.id[:8]


def _split(value: Optional[str]) -> Optional[List[str]]:
    if value is None:
        return None
    return [part for part in (p.strip() for p in value.split(",")) if part]


def _days_label(habit: Habit) -> str:
    if not habit.target_days:
        return "-"
    return ",".join(day.value[:3] for day in habit.target_days)


def _resolve(tracker: HabitTracker, ref: str) -> Habit:
    matches = [habit for habit in tracker.habits.list_habits() if habit.id.startswith(ref)]
    if len(matches) != 1:
        raise NotFoundError(ref)
    return matches[0]


def cmd_add(tracker: HabitTracker, args: argparse.Namespace) -> None:
    days = _split(args.days) if args.days else WEEKDAY_LABELS
    habit = tracker.create_habit(
        args.name,
        target_days=days,
        description=args.description,
        tags=_split(args.tags),
    )
    print(f"Added habit {_short_id(habit)}: {habit.name} ({_days_label(habit)})")


def cmd_list(tracker: HabitTracker, args: argparse.Namespace) -> None:
    habits = tracker.habits.with_tags(_split(args.tag) or [])
    if not args.all:
        habits = [h for h in habits if not h.archived]
    if not habits:
        print("No habits yet.")
        return
    for habit in sorted(habits, key=lambda h: h.created_at):
        status = "a" if habit.archived else "·"
        tags = " ".join(f"#{tag}" for tag in habit.tags)
        print(f"{_short_id(habit)} {status} {habit.name} ({_days_label(habit)}) {tags}".rstrip())


def cmd_edit(tracker: HabitTracker, args: argparse.Namespace) -> None:
    habit = _resolve(tracker, args.id)
    changes = {}
    if args.name is not None:
        changes["name"] = args.name
    if args.days is not None:
        changes["target_days"] = _split(args.days)
    if args.description is not None:
        changes["description"] = args.description
    if args.tags is not None:
        changes["tags"] = _split(args.tags)
    if not changes:
        print("Nothing to change.")
        return
    updated = tracker.update_habit(habit.id, **changes)
    print(f"Updated habit {_short_id(updated)}: {updated.name} ({_days_label(updated)})")


def cmd_archive(tracker: HabitTracker, args: argparse.Namespace) -> None:
    habit = _resolve(tracker, args.id)
    if habit.archived == args.archived:
        state = "archived" if habit.archived else "active"
        print(f"Habit {_short_id(habit)} is already {state}.")
        return
    tracker.update_habit(habit.id, archived=args.archived)
    verb = "Archived" if args.archived else "Unarchived"
    print(f"{verb} habit {_short_id(habit)}: {habit.name}")


def cmd_delete(tracker: HabitTracker, args: argparse.Namespace) -> None:
    habit = _resolve(tracker, args.id)
    deleted = tracker.delete_habit(habit.id)
    removed = len(deleted.completions) if deleted else 0
    print(f"Deleted habit {_short_id(habit)} and {removed} completion(s).")


def cmd_toggle(tracker: HabitTracker, args: argparse.Namespace) -> None:
    habit = _resolve(tracker, args.id)
    day = parse_day(args.date) if args.date else tracker.today()
    completed = tracker.toggle(habit.id, day)
    if completed:
        print(f"Completed {habit.name} on {day.isoformat()}.")
    else:
        print(f"Removed completion of {habit.name} on {day.isoformat()}.")


def cmd_today(tracker: HabitTracker, args: argparse.Namespace) -> None:
    day = parse_day(args.date) if args.date else tracker.today()
    entries = tracker.habits_for_date(day)
    if not entries:
        print(f"Nothing due on {day.isoformat()}.")
        return
    print(f"Due on {day.isoformat()}:")
    for entry in entries:
        mark = "✓" if entry.completed else "·"
        print(f"{_short_id(entry.habit)} {mark} {entry.habit.name}")


def cmd_streak(tracker: HabitTracker, args: argparse.Namespace) -> None:
    habit = _resolve(tracker, args.id)
    summary = tracker.streaks.summary(habit.id, tracker.today())
    print(f"Current streak: {summary['current']} day(s)")
    print(f"Longest streak: {summary['longest']} day(s)")
    print(f"Total completions: {summary['total']}")


def cmd_history(tracker: HabitTracker, args: argparse.Namespace) -> None:
    if args.days <= 0:
        print("Days must be at least 1.")
        return
    habit = _resolve(tracker, args.id)
    history = tracker.habit_history(habit.id, args.days)
    print(f"History: {habit.name} ({history[0].day_key} → {history[-1].day_key})")
    for day in history:
        if not day.scheduled:
            mark = " "
        else:
            mark = "✓" if day.completed else "·"
        print(f"{day.day_key} {mark}")


def cmd_report(tracker: HabitTracker, args: argparse.Namespace) -> None:
    if args.days <= 0:
        print("Days must be at least 1.")
        return
    stats = tracker.habit_stats(args.days)
    if not stats:
        print("No active habits.")
        return
    print(f"Report window: last {args.days} day(s)")
    for stat in stats:
        print(
            f"{_short_id(stat.habit)} {stat.habit.name} | "
            f"{stat.completed}/{stat.scheduled} ({stat.rate}%) | "
            f"current {tracker.current_streak(stat.habit.id)} | "
            f"best {tracker.longest_streak(stat.habit.id)}"
        )


def cmd_timeline(tracker: HabitTracker, args: argparse.Namespace) -> None:
    if args.by_month:
        points = tracker.completion_timeline_by_month(args.months)
    else:
        if args.days <= 0:
            print("Days must be at least 1.")
            return
        points = tracker.completion_timeline(args.days)
    if not points:
        print("No data yet.")
        return
    for point in points:
        print(f"{point.day_key} {point.completed_count}/{point.scheduled_count} ({point.rate}%)")


def cmd_month(tracker: HabitTracker, _: argparse.Namespace) -> None:
    summary = tracker.monthly_completion_rate()
    print(f"This month: {summary.completed}/{summary.scheduled} ({summary.rate}%)")
    print(f"Tracked days: {tracker.tracked_days()}")


def cmd_tags(tracker: HabitTracker, _: argparse.Namespace) -> None:
    tags = tracker.habits.all_tags()
    if not tags:
        print("No tags yet.")
        return
    for tag in tags:
        print(f"#{tag} ({len(tracker.habits.with_tags([tag]))})")


def cmd_sync(tracker: HabitTracker, args: argparse.Namespace, settings: Settings) -> int:
    remote = build_remote(settings)
    if remote is None:
        print("Sync needs TRACKIT_API_URL with TRACKIT_TOKEN, or DATABASE_URL / TRACKIT_DB_URL.")
        return 1
    outcome = tracker.sync(remote, bulk=args.bulk)
    if not outcome.ok:
        print(f"Sync failed, try again later: {outcome.error}")
        return 1
    baseline = outcome.baseline
    print(
        f"Synced: {outcome.created} created, {outcome.updated} updated, "
        f"{outcome.completions_added} completion(s) pushed."
    )
    print(f"Local copy now has {len(baseline.habits)} habit(s).")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="trackit", description="Local-first habit tracker")
    sub = parser.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="Add a new habit")
    add.add_argument("name", help="Habit name")
    add.add_argument("--days", help="Weekdays, e.g. mon,wed,fri (default: every day)")
    add.add_argument("--description", help="Free text description")
    add.add_argument("--tags", help="Comma-separated tags")
    add.set_defaults(func=cmd_add)

    list_cmd = sub.add_parser("list", help="List habits")
    list_cmd.add_argument("--all", action="store_true", help="Include archived habits")
    list_cmd.add_argument("--tag", help="Only habits carrying these comma-separated tags")
    list_cmd.set_defaults(func=cmd_list)

    edit = sub.add_parser("edit", help="Edit a habit")
    edit.add_argument("id", help="Habit id or unique prefix")
    edit.add_argument("--name", help="New name")
    edit.add_argument("--days", help="New weekdays, e.g. mon,wed,fri")
    edit.add_argument("--description", help="New description")
    edit.add_argument("--tags", help="New comma-separated tags")
    edit.set_defaults(func=cmd_edit)

    archive = sub.add_parser("archive", help="Archive a habit")
    archive.add_argument("id", help="Habit id or unique prefix")
    archive.set_defaults(func=cmd_archive, archived=True)

    unarchive = sub.add_parser("unarchive", help="Reactivate an archived habit")
    unarchive.add_argument("id", help="Habit id or unique prefix")
    unarchive.set_defaults(func=cmd_archive, archived=False)

    delete = sub.add_parser("delete", help="Delete a habit and its completions")
    delete.add_argument("id", help="Habit id or unique prefix")
    delete.set_defaults(func=cmd_delete)

    toggle = sub.add_parser("toggle", help="Toggle the completion of a habit")
    toggle.add_argument("id", help="Habit id or unique prefix")
    toggle.add_argument("--date", help="Override date (YYYY-MM-DD)")
    toggle.set_defaults(func=cmd_toggle)

    today = sub.add_parser("today", help="Show habits due on a day")
    today.add_argument("--date", help="Override date (YYYY-MM-DD)")
    today.set_defaults(func=cmd_today)

    streak = sub.add_parser("streak", help="Show streak stats for a habit")
    streak.add_argument("id", help="Habit id or unique prefix")
    streak.set_defaults(func=cmd_streak)

    history = sub.add_parser("history", help="Show daily completions for a habit")
    history.add_argument("id", help="Habit id or unique prefix")
    history.add_argument("--days", type=int, default=14, help="Number of days to include")
    history.set_defaults(func=cmd_history)

    report = sub.add_parser("report", help="Per-habit success rates")
    report.add_argument("--days", type=int, default=30, help="Number of days to include")
    report.set_defaults(func=cmd_report)

    timeline = sub.add_parser("timeline", help="Scheduled vs completed over time")
    timeline.add_argument("--days", type=int, default=7, help="Number of days to include")
    timeline.add_argument("--by-month", action="store_true", help="Bucket by calendar month")
    timeline.add_argument("--months", type=int, help="Number of months (default: since first habit)")
    timeline.set_defaults(func=cmd_timeline)

    month = sub.add_parser("month", help="Completion rate of the current month")
    month.set_defaults(func=cmd_month)

    tags = sub.add_parser("tags", help="List tags")
    tags.set_defaults(func=cmd_tags)

    sync = sub.add_parser("sync", help="Sync with the remote copy")
    sync.add_argument("--bulk", action="store_true", help="Use the single-request sync endpoint")
    sync.set_defaults(func=cmd_sync)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = load_settings()
    logging.basicConfig(level=settings.log_level_value, format="%(levelname)s %(name)s: %(message)s")
    tracker = open_tracker(settings)
    try:
        if args.func is cmd_sync:
            return cmd_sync(tracker, args, settings)
        args.func(tracker, args)
    except NotFoundError as exc:
        print(f"Habit {exc.habit_id} not found.")
        return 1
    except (ValidationError, FutureDateError) as exc:
        print(str(exc))
        return 1
    except TrackitError as exc:
        print(f"Error: {exc}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
