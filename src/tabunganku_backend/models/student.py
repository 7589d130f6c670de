from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..common.config import settings
from ..database.models import NISN_MAX_LENGTH


class StudentBase(BaseModel):
    name: str = Field(..., min_length=1)
    nisn: str = Field(..., min_length=1, max_length=NISN_MAX_LENGTH)
    class_name: str = Field(..., alias="class")

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    @field_validator("class_name")
    @classmethod
    def check_class(cls, value: str) -> str:
        if value not in settings.CLASS_OPTIONS:
            raise ValueError(
                "Kelas tidak valid. Pastikan sesuai dengan daftar kelas yang tersedia "
                "(contoh: 'Kelas 1', 'Kelas 2')."
            )
        return value


class StudentCreate(StudentBase):
    pass


class StudentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    nisn: Optional[str] = Field(None, min_length=1, max_length=NISN_MAX_LENGTH)
    class_name: Optional[str] = Field(None, alias="class")

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    @field_validator("class_name")
    @classmethod
    def check_class(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in settings.CLASS_OPTIONS:
            raise ValueError("Kelas tidak valid.")
        return value


class StudentRead(BaseModel):
    id: UUID
    name: str
    nisn: str
    class_name: str = Field(..., serialization_alias="class")
    teacher_id: Optional[UUID] = None
    parent_id: Optional[UUID] = None

    model_config = ConfigDict(from_attributes=True)


# --- Parent registration lookups ---

class StudentLookupRequest(BaseModel):
    nisn: str = Field(..., min_length=1, max_length=NISN_MAX_LENGTH)


class StudentLookupResponse(BaseModel):
    student_id: UUID = Field(..., alias="studentId")
    student_name: str = Field(..., alias="studentName")

    model_config = ConfigDict(populate_by_name=True)


class LinkStudentRequest(BaseModel):
    student_id: UUID = Field(..., alias="studentId")
    parent_id: UUID = Field(..., alias="parentId")

    model_config = ConfigDict(populate_by_name=True)


# --- Bulk import ---

class ImportRowError(BaseModel):
    row: dict
    error: str


class StudentImportResult(BaseModel):
    """Outcome of an import: nothing is rolled back when some rows fail."""
    success_count: int
    fail_count: int
    imported: list[StudentRead] = Field(default_factory=list)
    errors: list[ImportRowError] = Field(default_factory=list)
