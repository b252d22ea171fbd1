import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import date, datetime
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from habitkit.config import Settings, settings as default_settings
from habitkit.database import create_engine, create_session_factory, init_models, session_scope
from habitkit.dates import local_today, start_of_day
from habitkit.exceptions import NotFoundError, ValidationError
from habitkit.observability import init_observability
from habitkit.observation import ObservationBridge, Subscription
from habitkit.recurrence import RecurrenceRule
from habitkit.schemas.habit import (
    DailySummary,
    HabitCompletionResponse,
    HabitCreate,
    HabitResponse,
    HabitStreakInfo,
    HabitUpdate,
    ToggleResult,
)
from habitkit.services import habit_service, ledger_service, streak_service
from habitkit.services.streak_service import HabitSnapshot

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


class HabitTracker:
    """Async entry point for habits, their completion ledger and statistics.

    Mutations are serialized through one writer lock and each runs in its
    own transaction; subscribers are notified only after commit. Reads do
    not take the lock, and every statistics computation works from a single
    snapshot read.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        bridge: ObservationBridge | None = None,
        today_provider: Callable[[], date] = local_today,
        rate_window_days: int = streak_service.DEFAULT_RATE_WINDOW_DAYS,
        max_lookback_days: int = streak_service.MAX_STREAK_LOOKBACK_DAYS,
        engine: AsyncEngine | None = None,
    ):
        self._session_factory = session_factory
        self.bridge = bridge or ObservationBridge()
        self._today_provider = today_provider
        self._rate_window_days = rate_window_days
        self._max_lookback_days = max_lookback_days
        self._engine = engine
        self._write_lock = asyncio.Lock()
        self._pending: set[asyncio.Task] = set()

    @classmethod
    async def from_settings(cls, settings: Settings | None = None, **kwargs: Any) -> "HabitTracker":
        settings = settings or default_settings
        init_observability(settings)

        engine = create_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
        await init_models(engine)
        return cls(
            create_session_factory(engine),
            rate_window_days=settings.COMPLETION_RATE_WINDOW_DAYS,
            max_lookback_days=settings.STREAK_MAX_LOOKBACK_DAYS,
            engine=engine,
            **kwargs,
        )

    def today(self) -> date:
        return start_of_day(self._today_provider())

    # --- Transactions ---

    async def _read(self, operation: str, fn: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async with session_scope(self._session_factory, operation) as db:
            return await fn(db)

    async def _write(
        self,
        operation: str,
        fn: Callable[[AsyncSession], Awaitable[T]],
        habit_id: uuid.UUID | None = None,
    ) -> T:
        # Shielded so a caller giving up on the await never aborts a write
        task = asyncio.ensure_future(self._run_write(operation, fn, habit_id))
        self._pending.add(task)
        task.add_done_callback(self._forget)
        return await asyncio.shield(task)

    async def _run_write(
        self,
        operation: str,
        fn: Callable[[AsyncSession], Awaitable[T]],
        habit_id: uuid.UUID | None,
    ) -> T:
        async with self._write_lock:
            async with session_scope(self._session_factory, operation) as db:
                result = await fn(db)
            self.bridge.publish(habit_id)
        return result

    def _forget(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Mutation finished with error: %s", task.exception())

    async def wait_for_pending(self) -> None:
        """Wait until every in-flight mutation has committed or failed."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        await self.wait_for_pending()
        self.bridge.close()
        if self._engine is not None:
            await self._engine.dispose()

    @staticmethod
    def _validate(model: type[M], data: M | dict) -> M:
        if isinstance(data, model):
            return data
        try:
            return model.model_validate(data)
        except PydanticValidationError as exc:
            error = exc.errors()[0]
            field = ".".join(str(part) for part in error["loc"]) or model.__name__
            raise ValidationError(field, error["msg"]) from exc

    # --- Habits ---

    async def create_habit(self, data: HabitCreate | dict) -> HabitResponse:
        payload = self._validate(HabitCreate, data)
        habit_id = uuid.uuid4()

        async def op(db: AsyncSession) -> HabitResponse:
            habit = await habit_service.create_habit(db, {"id": habit_id, **payload.model_dump()})
            return HabitResponse.model_validate(habit)

        return await self._write("create habit", op, habit_id)

    async def update_habit(self, habit_id: uuid.UUID, data: HabitUpdate | dict) -> HabitResponse:
        payload = self._validate(HabitUpdate, data)
        changes = payload.model_dump(exclude_unset=True)

        async def op(db: AsyncSession) -> HabitResponse:
            habit = await habit_service.update_habit(db, habit_id, changes)
            if habit is None:
                raise NotFoundError("Habit", habit_id)
            return HabitResponse.model_validate(habit)

        return await self._write("update habit", op, habit_id)

    async def archive_habit(self, habit_id: uuid.UUID) -> HabitResponse:
        return await self.update_habit(habit_id, HabitUpdate(is_archived=True))

    async def unarchive_habit(self, habit_id: uuid.UUID) -> HabitResponse:
        return await self.update_habit(habit_id, HabitUpdate(is_archived=False))

    async def delete_habit(self, habit_id: uuid.UUID) -> bool:
        return await self._write(
            "delete habit", lambda db: habit_service.delete_habit(db, habit_id), habit_id
        )

    async def get_habit(self, habit_id: uuid.UUID) -> HabitResponse | None:
        async def op(db: AsyncSession) -> HabitResponse | None:
            habit = await habit_service.get_habit(db, habit_id)
            return HabitResponse.model_validate(habit) if habit is not None else None

        return await self._read("fetch habit", op)

    async def require_habit(self, habit_id: uuid.UUID) -> HabitResponse:
        habit = await self.get_habit(habit_id)
        if habit is None:
            raise NotFoundError("Habit", habit_id)
        return habit

    async def list_habits(self, status: str = habit_service.STATUS_ACTIVE) -> list[HabitResponse]:
        async def op(db: AsyncSession) -> list[HabitResponse]:
            habits = await habit_service.get_habits(db, status)
            return [HabitResponse.model_validate(h) for h in habits]

        return await self._read("fetch habits", op)

    async def active_count(self) -> int:
        return await self._read("count habits", habit_service.count_active)

    # --- Completion ledger ---

    async def record_completion(
        self,
        habit_id: uuid.UUID,
        day: date | datetime | None = None,
        notes: str | None = None,
    ) -> HabitCompletionResponse:
        day = self.today() if day is None else start_of_day(day)

        async def op(db: AsyncSession) -> HabitCompletionResponse:
            completion = await ledger_service.record_completion(db, habit_id, day, notes)
            return HabitCompletionResponse.model_validate(completion)

        return await self._write("record completion", op, habit_id)

    async def remove_completion(self, habit_id: uuid.UUID, day: date | datetime | None = None) -> bool:
        day = self.today() if day is None else start_of_day(day)
        return await self._write(
            "remove completion",
            lambda db: ledger_service.remove_completion(db, habit_id, day),
            habit_id,
        )

    async def toggle_completion(
        self, habit_id: uuid.UUID, day: date | datetime | None = None
    ) -> ToggleResult:
        day = self.today() if day is None else start_of_day(day)
        result = await self._write(
            "toggle completion",
            lambda db: ledger_service.toggle_completion(db, habit_id, day),
            habit_id,
        )
        logger.info("Habit %s %s on %s", habit_id, result.value, day)
        return result

    async def is_completed(self, habit_id: uuid.UUID, day: date | datetime | None = None) -> bool:
        day = self.today() if day is None else day
        return await self._read(
            "fetch completion", lambda db: ledger_service.is_completed(db, habit_id, day)
        )

    async def get_completions(
        self,
        habit_id: uuid.UUID,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
    ) -> list[HabitCompletionResponse]:
        async def op(db: AsyncSession) -> list[HabitCompletionResponse]:
            completions = await ledger_service.get_completions(db, habit_id, start, end)
            return [HabitCompletionResponse.model_validate(c) for c in completions]

        return await self._read("fetch completions", op)

    async def get_completion_dates(
        self,
        habit_id: uuid.UUID,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
    ) -> set[date]:
        return await self._read(
            "fetch completions",
            lambda db: ledger_service.get_completion_dates(db, habit_id, start, end),
        )

    async def completed_habit_ids(self, day: date | datetime | None = None) -> set[uuid.UUID]:
        day = self.today() if day is None else day
        return await self._read(
            "fetch completed habits", lambda db: ledger_service.get_completed_habit_ids(db, day)
        )

    # --- Statistics ---

    async def snapshot(self, habit_id: uuid.UUID) -> HabitSnapshot:
        return await self._read(
            "load snapshot", lambda db: streak_service.load_snapshot(db, habit_id)
        )

    async def streak_info(self, habit_id: uuid.UUID, today: date | None = None) -> HabitStreakInfo:
        snapshot = await self.snapshot(habit_id)
        return streak_service.calculate_streak_info(
            snapshot,
            self.today() if today is None else start_of_day(today),
            window_days=self._rate_window_days,
            max_lookback=self._max_lookback_days,
        )

    async def daily_summary(self, today: date | None = None) -> DailySummary:
        """Due and completed counts over active habits for one day."""
        day = self.today() if today is None else start_of_day(today)

        async def op(db: AsyncSession) -> DailySummary:
            rows = await habit_service.get_active_habits_for_day(db, day)
            due = [
                completed
                for habit, completed in rows
                if RecurrenceRule.for_habit(habit).is_due_on(day)
            ]
            completed = sum(due)
            return DailySummary(
                date=day,
                due_count=len(due),
                completed_count=completed,
                progress=completed / len(due) if due else 1.0,
            )

        return await self._read("daily summary", op)

    # --- Observation ---

    def observe_habit(self, habit_id: uuid.UUID) -> Subscription[HabitResponse | None]:
        return self.bridge.subscribe(lambda: self.get_habit(habit_id), habit_id)

    def observe_completion_dates(self, habit_id: uuid.UUID) -> Subscription[set[date]]:
        return self.bridge.subscribe(lambda: self.get_completion_dates(habit_id), habit_id)

    def observe_streak_info(
        self, habit_id: uuid.UUID, today: date | None = None
    ) -> Subscription[HabitStreakInfo]:
        return self.bridge.subscribe(lambda: self.streak_info(habit_id, today), habit_id)

    def observe_completed_habit_ids(
        self, day: date | datetime | None = None
    ) -> Subscription[set[uuid.UUID]]:
        day = self.today() if day is None else start_of_day(day)
        return self.bridge.subscribe(lambda: self.completed_habit_ids(day))

    def observe_active_habits(self) -> Subscription[list[HabitResponse]]:
        return self.bridge.subscribe(lambda: self.list_habits(habit_service.STATUS_ACTIVE))
