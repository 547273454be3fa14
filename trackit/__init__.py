"""Local-first habit tracking: habits, completions, streaks, stats and sync."""

__version__ = "0.3.0"
