import uuid
from datetime import date

import pytest

from habitkit.config import Settings
from habitkit.exceptions import NotFoundError, ValidationError
from habitkit.recurrence import FrequencyType
from habitkit.schemas.habit import HabitCreate, HabitUpdate
from habitkit.tracker import HabitTracker
from tests.helpers import TODAY, days_ago


async def test_create_habit_defaults(tracker):
    habit = await tracker.create_habit(HabitCreate(title="Drink water"))

    assert habit.title == "Drink water"
    assert habit.frequency_type is FrequencyType.DAILY
    assert habit.frequency_days is None
    assert habit.times_per_period == 1
    assert habit.icon == "checkmark.circle"
    assert habit.is_archived is False
    assert habit.created_at is not None


async def test_create_weekly_habit_sorts_days(weekly_habit):
    assert weekly_habit.frequency_type is FrequencyType.WEEKLY
    assert weekly_habit.frequency_days == [0, 3]


async def test_days_are_dropped_for_daily_habits(tracker):
    habit = await tracker.create_habit({"title": "Walk", "frequency_days": [1, 2]})
    assert habit.frequency_days is None


@pytest.mark.parametrize(
    "data, field",
    [
        ({"title": "Run", "frequency_type": "times_per_period", "times_per_period": 0}, "times_per_period"),
        ({"title": "Run", "frequency_type": "weekly", "frequency_days": [7]}, "frequency_days"),
        ({"title": ""}, "title"),
        ({"title": "Run", "frequency_type": "hourly"}, "frequency_type"),
        ({"title": "Run", "reminder_time": "25:00"}, "reminder_time"),
    ],
)
async def test_create_habit_validation(tracker, data, field):
    with pytest.raises(ValidationError) as exc_info:
        await tracker.create_habit(data)
    assert exc_info.value.field == field
    assert await tracker.list_habits("all") == []


async def test_get_and_require_habit(tracker, daily_habit):
    assert await tracker.get_habit(daily_habit.id) == daily_habit
    assert await tracker.get_habit(uuid.uuid4()) is None

    with pytest.raises(NotFoundError):
        await tracker.require_habit(uuid.uuid4())


async def test_update_habit(tracker, daily_habit):
    updated = await tracker.update_habit(
        daily_habit.id,
        HabitUpdate(frequency_type=FrequencyType.CUSTOM, frequency_days=[5, 6], color="#ff8800"),
    )

    assert updated.frequency_type is FrequencyType.CUSTOM
    assert updated.frequency_days == [5, 6]
    assert updated.color == "#ff8800"
    assert updated.title == daily_habit.title


async def test_switching_to_daily_clears_days(tracker, weekly_habit):
    updated = await tracker.update_habit(weekly_habit.id, {"frequency_type": "daily"})
    assert updated.frequency_days is None


async def test_update_missing_habit(tracker):
    with pytest.raises(NotFoundError):
        await tracker.update_habit(uuid.uuid4(), {"title": "Ghost"})


async def test_archive_and_unarchive(tracker, daily_habit, weekly_habit):
    await tracker.archive_habit(daily_habit.id)

    active = await tracker.list_habits("active")
    archived = await tracker.list_habits("archived")
    assert [h.id for h in active] == [weekly_habit.id]
    assert [h.id for h in archived] == [daily_habit.id]
    assert len(await tracker.list_habits("all")) == 2
    assert await tracker.active_count() == 1

    restored = await tracker.unarchive_habit(daily_habit.id)
    assert restored.is_archived is False
    assert await tracker.active_count() == 2


async def test_unknown_status_filter(tracker):
    with pytest.raises(ValidationError) as exc_info:
        await tracker.list_habits("deleted")
    assert exc_info.value.field == "status"


async def test_delete_habit_cascades(tracker, daily_habit):
    await tracker.record_completion(daily_habit.id, TODAY)
    await tracker.record_completion(daily_habit.id, days_ago(1))

    assert await tracker.delete_habit(daily_habit.id) is True
    assert await tracker.get_habit(daily_habit.id) is None
    assert await tracker.get_completion_dates(daily_habit.id) == set()
    assert await tracker.completed_habit_ids(TODAY) == set()


async def test_delete_missing_habit_is_noop(tracker):
    assert await tracker.delete_habit(uuid.uuid4()) is False


async def test_record_completion_notes(tracker, daily_habit):
    completion = await tracker.record_completion(daily_habit.id, notes="felt great")
    assert completion.completed_date == TODAY
    assert completion.notes == "felt great"

    completions = await tracker.get_completions(daily_habit.id)
    assert [c.notes for c in completions] == ["felt great"]


async def test_streak_info_through_tracker(tracker, weekly_habit):
    for day in (date(2026, 3, 2), date(2026, 3, 5), date(2026, 3, 9), date(2026, 3, 10)):
        await tracker.record_completion(weekly_habit.id, day)

    info = await tracker.streak_info(weekly_habit.id)

    # Thursday 12 March is due and still open
    assert info.current_streak == 3
    assert info.longest_streak == 3
    assert info.total_completions == 4
    assert info.last_completed_date == date(2026, 3, 10)
    assert 0.0 < info.completion_rate < 1.0


async def test_streak_info_for_missing_habit(tracker):
    with pytest.raises(NotFoundError):
        await tracker.streak_info(uuid.uuid4())


async def test_snapshot_is_frozen(tracker, daily_habit):
    await tracker.record_completion(daily_habit.id, TODAY)
    snapshot = await tracker.snapshot(daily_habit.id)

    await tracker.toggle_completion(daily_habit.id, TODAY)

    assert snapshot.completion_dates == frozenset({TODAY})
    assert snapshot.total_completions == 1


async def test_daily_summary(tracker, daily_habit, weekly_habit):
    monday_only = await tracker.create_habit(
        {"title": "Plan week", "frequency_type": "weekly", "frequency_days": [0]}
    )
    await tracker.toggle_completion(daily_habit.id, TODAY)
    await tracker.toggle_completion(monday_only.id, TODAY)

    summary = await tracker.daily_summary()

    assert summary.date == TODAY
    assert summary.due_count == 2
    assert summary.completed_count == 1
    assert summary.progress == pytest.approx(0.5)


async def test_daily_summary_with_nothing_due(tracker):
    summary = await tracker.daily_summary()
    assert summary.due_count == 0
    assert summary.progress == 1.0


async def test_tracker_from_settings(tmp_path):
    settings = Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'habits.db'}",
        COMPLETION_RATE_WINDOW_DAYS=7,
    )
    tracker = await HabitTracker.from_settings(settings, today_provider=lambda: TODAY)
    try:
        habit = await tracker.create_habit({"title": "Floss"})
        await tracker.toggle_completion(habit.id, TODAY)
        info = await tracker.streak_info(habit.id)
        assert info.completion_rate == pytest.approx(1 / 7)
    finally:
        await tracker.aclose()


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("STREAK_MAX_LOOKBACK_DAYS", "90")
    assert Settings().STREAK_MAX_LOOKBACK_DAYS == 90
