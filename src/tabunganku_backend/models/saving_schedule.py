from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..common.config import settings
from ..database.db_enums import DayOfWeek, SavingFrequency


def _blank_to_none(value):
    if isinstance(value, str) and value.strip() == "":
        return None
    return value


class ScheduleFields(BaseModel):
    """amount/frequency/day triple shared by every schedule payload."""
    amount_expected: Decimal = Field(..., gt=0, decimal_places=2)
    frequency: SavingFrequency
    day_of_week: Optional[DayOfWeek] = None

    @field_validator("day_of_week", mode="before")
    @classmethod
    def blank_day_is_none(cls, value):
        return _blank_to_none(value)

    @model_validator(mode="after")
    def check_day_of_week(self):
        if self.frequency == SavingFrequency.WEEKLY and self.day_of_week is None:
            raise ValueError("Hari wajib diisi untuk frekuensi mingguan.")
        if self.frequency != SavingFrequency.WEEKLY and self.day_of_week is not None:
            raise ValueError("Hari hanya boleh diisi untuk frekuensi mingguan.")
        return self


class SavingScheduleCreate(ScheduleFields):
    """Applies one schedule to every student of a class."""
    class_name: str = Field(..., alias="class")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("class_name")
    @classmethod
    def check_class(cls, value: str) -> str:
        if value not in settings.CLASS_OPTIONS:
            raise ValueError("Kelas tidak valid.")
        return value


class SavingScheduleRead(BaseModel):
    id: UUID
    student_id: UUID
    teacher_id: Optional[UUID] = None
    amount_expected: Decimal
    frequency: SavingFrequency
    day_of_week: Optional[DayOfWeek] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SavingScheduleBatchResult(BaseModel):
    created_count: int
    failed_count: int
    errors: list[str] = Field(default_factory=list)


class GroupedSavingSchedule(BaseModel):
    """One logical schedule: every per-student row sharing the same key."""
    class_name: str = Field(..., serialization_alias="class")
    amount_expected: Decimal
    frequency: SavingFrequency
    day_of_week: Optional[DayOfWeek] = None
    teacher_name: str
    student_count: int


# --- Privileged grouped operations (camelCase bodies) ---

class GroupedScheduleDelete(BaseModel):
    class_name: str = Field(..., alias="class")
    amount_expected: Decimal = Field(..., alias="amountExpected")
    frequency: SavingFrequency
    day_of_week: Optional[DayOfWeek] = Field(None, alias="dayOfWeek")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("day_of_week", mode="before")
    @classmethod
    def blank_day_is_none(cls, value):
        return _blank_to_none(value)


class GroupedScheduleUpdate(BaseModel):
    old_class: str = Field(..., alias="oldClass")
    old_amount_expected: Decimal = Field(..., alias="oldAmountExpected")
    old_frequency: SavingFrequency = Field(..., alias="oldFrequency")
    old_day_of_week: Optional[DayOfWeek] = Field(None, alias="oldDayOfWeek")
    new_amount_expected: Decimal = Field(..., gt=0, decimal_places=2, alias="newAmountExpected")
    new_frequency: SavingFrequency = Field(..., alias="newFrequency")
    new_day_of_week: Optional[DayOfWeek] = Field(None, alias="newDayOfWeek")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("old_day_of_week", "new_day_of_week", mode="before")
    @classmethod
    def blank_days_are_none(cls, value):
        return _blank_to_none(value)

    @model_validator(mode="after")
    def check_new_day_of_week(self):
        if self.new_frequency == SavingFrequency.WEEKLY and self.new_day_of_week is None:
            raise ValueError("Hari wajib diisi untuk frekuensi mingguan.")
        if self.new_frequency != SavingFrequency.WEEKLY and self.new_day_of_week is not None:
            raise ValueError("Hari hanya boleh diisi untuk frekuensi mingguan.")
        return self


class UpdatedCount(BaseModel):
    updated_count: int = Field(..., alias="updatedCount")
    model_config = ConfigDict(populate_by_name=True)


class DeletedCount(BaseModel):
    deleted_count: int = Field(..., alias="deletedCount")
    model_config = ConfigDict(populate_by_name=True)


class StudentSavingScheduleRead(SavingScheduleRead):
    """A schedule row with its student, as a parent sees it."""
    student_name: str
    class_name: str = Field(..., serialization_alias="class")
