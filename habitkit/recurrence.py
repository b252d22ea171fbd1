"""Recurrence rules: is a habit due on a given day?"""
import enum
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, assert_never

from habitkit.dates import shift_day
from habitkit.exceptions import ValidationError


class FrequencyType(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    CUSTOM = "custom"
    TIMES_PER_PERIOD = "times_per_period"

    @property
    def uses_days(self) -> bool:
        return self in (FrequencyType.WEEKLY, FrequencyType.CUSTOM)


# Python weekday(): Monday=0 .. Sunday=6
WEEKDAYS = range(7)


@dataclass(frozen=True)
class RecurrenceRule:
    frequency_type: FrequencyType
    days: frozenset[int] = field(default_factory=frozenset)
    times_per_period: int = 1

    def __post_init__(self):
        try:
            frequency_type = FrequencyType(self.frequency_type)
        except ValueError:
            raise ValidationError(
                "frequency_type", f"unknown frequency {self.frequency_type!r}"
            ) from None
        object.__setattr__(self, "frequency_type", frequency_type)

        if self.times_per_period < 1:
            raise ValidationError("times_per_period", "must be at least 1")

        if not frequency_type.uses_days:
            object.__setattr__(self, "days", frozenset())
            return

        days = frozenset(self.days)
        invalid = sorted(d for d in days if d not in WEEKDAYS)
        if invalid:
            raise ValidationError("frequency_days", f"weekday indices must be 0-6, got {invalid}")
        object.__setattr__(self, "days", days)

    @classmethod
    def for_habit(cls, habit: Any) -> "RecurrenceRule":
        """Build the rule for an ORM habit or a habit schema."""
        return cls(
            frequency_type=habit.frequency_type,
            days=frozenset(habit.frequency_days or ()),
            times_per_period=habit.times_per_period or 1,
        )

    def is_due_on(self, day: date) -> bool:
        frequency_type = self.frequency_type
        if frequency_type is FrequencyType.DAILY:
            return True
        elif frequency_type is FrequencyType.WEEKLY or frequency_type is FrequencyType.CUSTOM:
            return day.weekday() in self.days
        elif frequency_type is FrequencyType.TIMES_PER_PERIOD:
            # Quota habits are due every day; the quota only shapes completion rate.
            return True
        else:
            assert_never(frequency_type)

    def period_bounds(self, day: date) -> tuple[date, date]:
        """Monday..Sunday week containing ``day``."""
        start = shift_day(day, -day.weekday()) or date.min
        return start, shift_day(start, 6) or date.max


def is_due_on(habit: Any, day: date) -> bool:
    return RecurrenceRule.for_habit(habit).is_due_on(day)


def normalize_frequency_days(
    frequency_type: FrequencyType | str, days: Iterable[int] | None
) -> list[int] | None:
    """Sorted, de-duplicated weekday list, or None when the type ignores days."""
    rule = RecurrenceRule(frequency_type, frozenset(days or ()))
    if not rule.frequency_type.uses_days:
        return None
    return sorted(rule.days)
