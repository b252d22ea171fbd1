import uuid
from datetime import date, datetime

from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from habitkit.models.base import Base


class Habit(Base):
    __tablename__ = "habits"

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    frequency_type: Mapped[str] = mapped_column(String(20), nullable=False, default="daily")  # daily, weekly, custom, times_per_period
    frequency_days: Mapped[list[int] | None] = mapped_column(JSON)  # weekday indices, Monday=0; weekly/custom only
    times_per_period: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    goal_id: Mapped[uuid.UUID | None] = mapped_column(index=True)
    reminder_time: Mapped[str | None] = mapped_column(String(5))  # HH:MM
    color: Mapped[str | None] = mapped_column(String(20))
    icon: Mapped[str | None] = mapped_column(String(100), default="checkmark.circle")
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    completions: Mapped[list["HabitCompletion"]] = relationship(
        back_populates="habit", cascade="all, delete-orphan", passive_deletes=True
    )


class HabitCompletion(Base):
    __tablename__ = "habit_completions"

    habit_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("habits.id", ondelete="CASCADE"), nullable=False
    )
    completed_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # At most one completion per habit per calendar day
    __table_args__ = (
        UniqueConstraint("habit_id", "completed_date", name="uq_habit_completions_habit_day"),
    )

    # Relationships
    habit: Mapped["Habit"] = relationship(back_populates="completions")
