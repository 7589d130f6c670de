from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from ..common.config import settings
from ..database.models import NISN_MAX_LENGTH
from ..database.db_enums import UserRole


def _check_class(value: Optional[str]) -> Optional[str]:
    if value is None or value.strip() == "":
        return None
    if value not in settings.CLASS_OPTIONS:
        raise ValueError(f"Kelas tidak valid: '{value}'.")
    return value


def split_full_name(full_name: str) -> tuple[str, Optional[str]]:
    """'Budi Santoso Putra' -> ('Budi', 'Santoso Putra')"""
    parts = full_name.strip().split(" ", 1)
    first_name = parts[0]
    last_name = parts[1].strip() if len(parts) > 1 and parts[1].strip() else None
    return first_name, last_name


# --- Read Models ---

class ProfileRead(BaseModel):
    """
    Pydantic model for reading a user profile.
    Corresponds to the db_models.Profiles ORM model.
    """
    id: UUID
    email: str
    role: UserRole
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    class_taught: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# --- Self-service Models ---

class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile. The role is not one of them."""
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=settings.MIN_PASSWORD_LENGTH)


class TeacherRegister(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=settings.MIN_PASSWORD_LENGTH)
    full_name: str = Field(..., min_length=1, alias="fullName")
    class_taught: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("class_taught")
    @classmethod
    def check_class_taught(cls, value: Optional[str]) -> Optional[str]:
        return _check_class(value)


class ParentRegister(BaseModel):
    nisn: str = Field(..., min_length=1, max_length=NISN_MAX_LENGTH)
    password: str = Field(..., min_length=settings.MIN_PASSWORD_LENGTH)
    full_name: str = Field(..., min_length=1, alias="fullName")

    model_config = ConfigDict(populate_by_name=True)


class ParentLogin(BaseModel):
    nisn: str = Field(..., min_length=1, max_length=NISN_MAX_LENGTH)
    password: str


# --- Privileged (admin) Operation Models ---

class AdminExistsResponse(BaseModel):
    admin_exists: bool = Field(..., alias="adminExists")
    model_config = ConfigDict(populate_by_name=True)


class AdminNameResponse(BaseModel):
    admin_name: Optional[str] = Field(None, alias="adminName")
    model_config = ConfigDict(populate_by_name=True)


class AdminCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=settings.MIN_PASSWORD_LENGTH)
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class UserCreateByAdmin(BaseModel):
    """
    Payload of `create-user`. Teachers need an email, a name and a class;
    parents are identified by their child's NISN instead of an email.
    """
    email: Optional[EmailStr] = None
    password: str = Field(..., min_length=settings.MIN_PASSWORD_LENGTH)
    role: UserRole
    full_name: Optional[str] = Field(None, alias="fullName")
    class_taught: Optional[str] = None
    nisn: Optional[str] = Field(None, max_length=NISN_MAX_LENGTH)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("class_taught")
    @classmethod
    def check_class_taught(cls, value: Optional[str]) -> Optional[str]:
        return _check_class(value)

    @model_validator(mode="after")
    def check_role_fields(self):
        if self.role == UserRole.TEACHER:
            if not self.email:
                raise ValueError("Email tidak boleh kosong untuk peran guru.")
            if not self.full_name or not self.full_name.strip():
                raise ValueError("Nama lengkap tidak boleh kosong untuk peran guru.")
            if not self.class_taught:
                raise ValueError("Kelas yang diajar tidak boleh kosong untuk peran guru.")
        elif self.role == UserRole.PARENT:
            if not self.nisn or not self.nisn.strip():
                raise ValueError("NISN anak tidak boleh kosong untuk peran orang tua.")
        elif self.role == UserRole.ADMIN:
            raise ValueError("Admin hanya dapat dibuat melalui pengaturan awal.")
        return self


class UserIdRequest(BaseModel):
    user_id: UUID = Field(..., alias="userId")
    model_config = ConfigDict(populate_by_name=True)


class UserUpdateByAdmin(BaseModel):
    user_id: UUID = Field(..., alias="userId")
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    role: UserRole
    class_taught: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("class_taught")
    @classmethod
    def check_class_taught(cls, value: Optional[str]) -> Optional[str]:
        return _check_class(value)


class UserProfileResponse(BaseModel):
    user: ProfileRead


class OkResponse(BaseModel):
    ok: bool = True
    message: Optional[str] = None


class InitialUser(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=settings.MIN_PASSWORD_LENGTH)
    role: UserRole
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    class_taught: Optional[str] = None


class InitialUsersRequest(BaseModel):
    users: list[InitialUser] = Field(..., min_length=1)


class CreatedUser(BaseModel):
    id: UUID
    email: str
    role: UserRole


class InitialUserError(BaseModel):
    user: str
    message: str


class InitialUsersResponse(BaseModel):
    created_users: list[CreatedUser] = Field(default_factory=list, alias="createdUsers")
    errors: list[InitialUserError] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class UserListResponse(BaseModel):
    users: list[ProfileRead]
