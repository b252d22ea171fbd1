import logging
import uuid
from datetime import date, datetime, timezone

from sqlalchemy import and_, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from habitkit.exceptions import ValidationError
from habitkit.models.habit import Habit, HabitCompletion
from habitkit.recurrence import normalize_frequency_days

logger = logging.getLogger(__name__)

STATUS_ACTIVE = "active"
STATUS_ARCHIVED = "archived"
STATUS_ALL = "all"


async def get_habit(db: AsyncSession, habit_id: uuid.UUID) -> Habit | None:
    result = await db.execute(select(Habit).where(Habit.id == habit_id))
    return result.scalar_one_or_none()


async def get_habits(db: AsyncSession, status: str = STATUS_ACTIVE) -> list[Habit]:
    query = select(Habit)
    if status == STATUS_ACTIVE:
        query = query.where(Habit.is_archived.is_(False)).order_by(Habit.created_at.desc())
    elif status == STATUS_ARCHIVED:
        query = query.where(Habit.is_archived.is_(True)).order_by(Habit.updated_at.desc())
    elif status == STATUS_ALL:
        query = query.order_by(Habit.created_at.desc())
    else:
        raise ValidationError("status", f"unknown habit status filter {status!r}")
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_active_habits_for_day(db: AsyncSession, day: date) -> list[tuple[Habit, bool]]:
    """Active habits paired with whether each was completed on ``day``."""
    result = await db.execute(
        select(Habit, HabitCompletion.id.is_not(None))
        .outerjoin(
            HabitCompletion,
            and_(HabitCompletion.habit_id == Habit.id, HabitCompletion.completed_date == day),
        )
        .where(Habit.is_archived.is_(False))
        .order_by(Habit.created_at.desc())
    )
    return [(habit, bool(completed)) for habit, completed in result.all()]


async def count_active(db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count(Habit.id)).where(Habit.is_archived.is_(False))
    )
    return result.scalar_one()


async def create_habit(db: AsyncSession, data: dict) -> Habit:
    data = dict(data)
    data["frequency_days"] = normalize_frequency_days(
        data.get("frequency_type", "daily"), data.get("frequency_days")
    )
    habit = Habit(**data)
    db.add(habit)
    await db.flush()
    await db.refresh(habit)
    logger.debug("Created habit %s (%s)", habit.id, habit.frequency_type)
    return habit


async def update_habit(db: AsyncSession, habit_id: uuid.UUID, data: dict) -> Habit | None:
    habit = await get_habit(db, habit_id)
    if habit is None:
        return None

    for key, value in data.items():
        if value is not None:
            setattr(habit, key, value)
    # Days only survive for weekly/custom habits
    habit.frequency_days = normalize_frequency_days(habit.frequency_type, habit.frequency_days)
    habit.updated_at = datetime.now(timezone.utc)

    await db.flush()
    await db.refresh(habit)
    return habit


async def delete_habit(db: AsyncSession, habit_id: uuid.UUID) -> bool:
    """Hard-delete a habit and its completions. Missing habits are a no-op."""
    habit = await get_habit(db, habit_id)
    if habit is None:
        return False

    await db.execute(delete(HabitCompletion).where(HabitCompletion.habit_id == habit_id))
    await db.delete(habit)
    await db.flush()
    logger.info("Deleted habit %s", habit_id)
    return True
