from habitkit.models.base import Base
from habitkit.models.habit import Habit, HabitCompletion

__all__ = [
    "Base",
    "Habit",
    "HabitCompletion",
]
