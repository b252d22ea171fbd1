"""
Streak and completion-rate statistics.

Everything here except ``load_snapshot`` is pure: it works on a frozen
snapshot of one habit's rule and completion dates, and takes the reference
day as an argument instead of reading the clock.
"""
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from habitkit.dates import shift_day
from habitkit.exceptions import NotFoundError
from habitkit.models.habit import Habit, HabitCompletion
from habitkit.recurrence import FrequencyType, RecurrenceRule
from habitkit.schemas.habit import HabitStreakInfo

# Upper bound on the backward walk; guards against calendar anomalies.
MAX_STREAK_LOOKBACK_DAYS = 365
DEFAULT_RATE_WINDOW_DAYS = 30


@dataclass(frozen=True)
class HabitSnapshot:
    habit_id: uuid.UUID
    rule: RecurrenceRule
    completion_dates: frozenset[date]
    total_completions: int


async def load_snapshot(db: AsyncSession, habit_id: uuid.UUID) -> HabitSnapshot:
    """Read a habit's rule and completion dates in a single statement."""
    # One SELECT so a commit can never land between the rule and the dates
    result = await db.execute(
        select(Habit, HabitCompletion.completed_date)
        .outerjoin(HabitCompletion, HabitCompletion.habit_id == Habit.id)
        .where(Habit.id == habit_id)
    )
    rows = result.all()
    if not rows:
        raise NotFoundError("Habit", habit_id)

    habit = rows[0][0]
    dates = [completed_date for _, completed_date in rows if completed_date is not None]
    return HabitSnapshot(
        habit_id=habit.id,
        rule=RecurrenceRule.for_habit(habit),
        completion_dates=frozenset(dates),
        total_completions=len(dates),
    )


def current_streak(
    rule: RecurrenceRule,
    completion_dates: frozenset[date] | set[date],
    today: date,
    max_lookback: int = MAX_STREAK_LOOKBACK_DAYS,
) -> int:
    """Consecutive completed due days ending today (or yesterday).

    An unmet due day today neither counts nor breaks the streak; the walk
    simply starts at yesterday. Any earlier missed due day ends it.
    """
    start = today
    if rule.is_due_on(today) and today not in completion_dates:
        start = shift_day(today, -1)
        if start is None:
            return 0

    streak = 0
    for offset in range(max_lookback):
        day = shift_day(start, -offset)
        if day is None:
            break
        if not rule.is_due_on(day):
            continue
        if day not in completion_dates:
            break
        streak += 1

    return streak


def longest_streak(rule: RecurrenceRule, completion_dates: frozenset[date] | set[date]) -> int:
    """Longest run of completed due days between the first and last completion."""
    if not completion_dates:
        return 0

    first = min(completion_dates)
    span = (max(completion_dates) - first).days + 1

    longest = 0
    running = 0
    for offset in range(span):
        day = shift_day(first, offset)
        if day is None:
            break
        if not rule.is_due_on(day):
            continue
        if day in completion_dates:
            running += 1
            longest = max(longest, running)
        else:
            running = 0

    return longest


def completion_rate(
    rule: RecurrenceRule,
    completion_dates: frozenset[date] | set[date],
    today: date,
    window_days: int = DEFAULT_RATE_WINDOW_DAYS,
) -> float:
    """Completed due days over due days in the window ending today (inclusive)."""
    if window_days < 1:
        return 0.0
    start = shift_day(today, -(window_days - 1))
    # A window reaching past date.min is not truncated; it has no rate
    if start is None:
        return 0.0

    window = []
    for offset in range(window_days):
        day = shift_day(start, offset)
        if day is None:
            break
        window.append(day)

    if rule.frequency_type is FrequencyType.TIMES_PER_PERIOD:
        return _quota_rate(rule, completion_dates, window)

    due_days = 0
    completed_days = 0
    for day in window:
        if rule.is_due_on(day):
            due_days += 1
            if day in completion_dates:
                completed_days += 1

    return completed_days / due_days if due_days > 0 else 0.0


def _quota_rate(
    rule: RecurrenceRule, completion_dates: frozenset[date] | set[date], window: list[date]
) -> float:
    # Each week in the window asks for times_per_period completions, capped
    # at the number of window days falling in that week. Extra completions
    # in a week earn nothing.
    days_per_period: dict[date, int] = defaultdict(int)
    done_per_period: dict[date, int] = defaultdict(int)
    for day in window:
        period_start, _ = rule.period_bounds(day)
        days_per_period[period_start] += 1
        if day in completion_dates:
            done_per_period[period_start] += 1

    target = 0
    credited = 0
    for period_start, available in days_per_period.items():
        quota = min(rule.times_per_period, available)
        target += quota
        credited += min(done_per_period[period_start], quota)

    return credited / target if target > 0 else 0.0


def last_completed_date(completion_dates: frozenset[date] | set[date]) -> date | None:
    return max(completion_dates) if completion_dates else None


def calculate_streak_info(
    snapshot: HabitSnapshot,
    today: date,
    window_days: int = DEFAULT_RATE_WINDOW_DAYS,
    max_lookback: int = MAX_STREAK_LOOKBACK_DAYS,
) -> HabitStreakInfo:
    rule = snapshot.rule
    dates = snapshot.completion_dates
    return HabitStreakInfo(
        current_streak=current_streak(rule, dates, today, max_lookback),
        longest_streak=longest_streak(rule, dates),
        total_completions=snapshot.total_completions,
        completion_rate=completion_rate(rule, dates, today, window_days),
        last_completed_date=last_completed_date(dates),
    )
