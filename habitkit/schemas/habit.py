import enum
import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from habitkit.recurrence import FrequencyType


class ToggleResult(str, enum.Enum):
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"


class HabitCreate(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    description: str | None = None
    frequency_type: FrequencyType = FrequencyType.DAILY
    frequency_days: list[int] | None = None
    times_per_period: int = Field(default=1, ge=1)
    goal_id: uuid.UUID | None = None
    reminder_time: str | None = Field(default=None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    color: str | None = Field(default=None, max_length=20)
    icon: str | None = Field(default="checkmark.circle", max_length=100)
    is_archived: bool = False

    model_config = {"use_enum_values": True}

    @field_validator("frequency_days")
    @classmethod
    def check_weekdays(cls, value: list[int] | None) -> list[int] | None:
        if value is None:
            return None
        if any(day < 0 or day > 6 for day in value):
            raise ValueError("weekday indices must be 0-6")
        return sorted(set(value))

    @model_validator(mode="after")
    def drop_unused_days(self) -> "HabitCreate":
        if not FrequencyType(self.frequency_type).uses_days:
            self.frequency_days = None
        return self


class HabitUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    frequency_type: FrequencyType | None = None
    frequency_days: list[int] | None = None
    times_per_period: int | None = Field(default=None, ge=1)
    goal_id: uuid.UUID | None = None
    reminder_time: str | None = Field(default=None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    color: str | None = Field(default=None, max_length=20)
    icon: str | None = Field(default=None, max_length=100)
    is_archived: bool | None = None

    model_config = {"use_enum_values": True}

    @field_validator("frequency_days")
    @classmethod
    def check_weekdays(cls, value: list[int] | None) -> list[int] | None:
        if value is None:
            return None
        if any(day < 0 or day > 6 for day in value):
            raise ValueError("weekday indices must be 0-6")
        return sorted(set(value))


class HabitResponse(BaseModel):
    id: uuid.UUID
    title: str
    description: str | None
    frequency_type: FrequencyType
    frequency_days: list[int] | None
    times_per_period: int
    goal_id: uuid.UUID | None
    reminder_time: str | None
    color: str | None
    icon: str | None
    is_archived: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class HabitCompletionResponse(BaseModel):
    id: uuid.UUID
    habit_id: uuid.UUID
    completed_date: date
    notes: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class HabitStreakInfo(BaseModel):
    current_streak: int = Field(ge=0)
    longest_streak: int = Field(ge=0)
    total_completions: int = Field(ge=0)
    completion_rate: float = Field(ge=0.0, le=1.0)
    last_completed_date: date | None = None

    model_config = {"frozen": True}


class DailySummary(BaseModel):
    date: date
    due_count: int
    completed_count: int
    progress: float  # completed / due, 1.0 when nothing is due
