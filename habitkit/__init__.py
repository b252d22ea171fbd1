"""Habit recurrence and streak analytics."""

from habitkit.recurrence import FrequencyType, RecurrenceRule, is_due_on
from habitkit.schemas.habit import HabitStreakInfo, ToggleResult
from habitkit.tracker import HabitTracker

__all__ = [
    "FrequencyType",
    "HabitStreakInfo",
    "HabitTracker",
    "RecurrenceRule",
    "ToggleResult",
    "is_due_on",
]

__version__ = "0.1.0"
