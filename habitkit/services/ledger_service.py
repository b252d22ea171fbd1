"""
Completion ledger: per-habit, per-day completion marks.

All dates are normalized to calendar days before they reach a query, and
the (habit_id, completed_date) unique constraint guarantees at most one row
per habit per day.
"""
import logging
import uuid
from datetime import date, datetime

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from habitkit.dates import start_of_day
from habitkit.exceptions import NotFoundError
from habitkit.models.habit import Habit, HabitCompletion
from habitkit.schemas.habit import ToggleResult

logger = logging.getLogger(__name__)


async def _require_habit(db: AsyncSession, habit_id: uuid.UUID) -> None:
    result = await db.execute(select(Habit.id).where(Habit.id == habit_id))
    if result.scalar_one_or_none() is None:
        raise NotFoundError("Habit", habit_id)


async def _get_completion(
    db: AsyncSession, habit_id: uuid.UUID, day: date
) -> HabitCompletion | None:
    result = await db.execute(
        select(HabitCompletion).where(
            HabitCompletion.habit_id == habit_id,
            HabitCompletion.completed_date == day,
        )
    )
    return result.scalar_one_or_none()


async def record_completion(
    db: AsyncSession,
    habit_id: uuid.UUID,
    day: date | datetime,
    notes: str | None = None,
) -> HabitCompletion:
    """Mark ``day`` completed, replacing the notes of an existing mark."""
    day = start_of_day(day)
    await _require_habit(db, habit_id)

    completion = await _get_completion(db, habit_id, day)
    if completion is None:
        completion = HabitCompletion(habit_id=habit_id, completed_date=day, notes=notes)
        db.add(completion)
    else:
        completion.notes = notes

    await db.flush()
    await db.refresh(completion)
    return completion


async def remove_completion(db: AsyncSession, habit_id: uuid.UUID, day: date | datetime) -> bool:
    result = await db.execute(
        delete(HabitCompletion).where(
            HabitCompletion.habit_id == habit_id,
            HabitCompletion.completed_date == start_of_day(day),
        )
    )
    return result.rowcount > 0


async def is_completed(db: AsyncSession, habit_id: uuid.UUID, day: date | datetime) -> bool:
    result = await db.execute(
        select(func.count(HabitCompletion.id)).where(
            HabitCompletion.habit_id == habit_id,
            HabitCompletion.completed_date == start_of_day(day),
        )
    )
    return result.scalar_one() > 0


async def get_completions(
    db: AsyncSession,
    habit_id: uuid.UUID,
    start: date | datetime | None = None,
    end: date | datetime | None = None,
) -> list[HabitCompletion]:
    query = select(HabitCompletion).where(HabitCompletion.habit_id == habit_id)
    if start is not None:
        query = query.where(HabitCompletion.completed_date >= start_of_day(start))
    if end is not None:
        query = query.where(HabitCompletion.completed_date <= start_of_day(end))
    query = query.order_by(HabitCompletion.completed_date.desc())
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_completion_dates(
    db: AsyncSession,
    habit_id: uuid.UUID,
    start: date | datetime | None = None,
    end: date | datetime | None = None,
) -> set[date]:
    query = select(HabitCompletion.completed_date).where(HabitCompletion.habit_id == habit_id)
    if start is not None:
        query = query.where(HabitCompletion.completed_date >= start_of_day(start))
    if end is not None:
        query = query.where(HabitCompletion.completed_date <= start_of_day(end))
    result = await db.execute(query)
    return set(result.scalars().all())


async def get_completed_habit_ids(db: AsyncSession, day: date | datetime) -> set[uuid.UUID]:
    result = await db.execute(
        select(HabitCompletion.habit_id).where(
            HabitCompletion.completed_date == start_of_day(day)
        )
    )
    return set(result.scalars().all())


async def count_completions(db: AsyncSession, habit_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count(HabitCompletion.id)).where(HabitCompletion.habit_id == habit_id)
    )
    return result.scalar_one()


async def toggle_completion(
    db: AsyncSession, habit_id: uuid.UUID, day: date | datetime
) -> ToggleResult:
    """Flip the completion mark for ``day``.

    Must run inside a single transaction so the check and the write are
    one unit.
    """
    day = start_of_day(day)
    await _require_habit(db, habit_id)

    completion = await _get_completion(db, habit_id, day)
    if completion is not None:
        await db.delete(completion)
        await db.flush()
        logger.debug("Habit %s unmarked for %s", habit_id, day)
        return ToggleResult.INCOMPLETE

    db.add(HabitCompletion(habit_id=habit_id, completed_date=day))
    await db.flush()
    logger.debug("Habit %s marked for %s", habit_id, day)
    return ToggleResult.COMPLETED
