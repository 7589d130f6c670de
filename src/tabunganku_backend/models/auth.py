'''
Credential and session payloads.
'''
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..database.db_enums import UserRole
from .user import ProfileRead


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: Optional[UserRole] = None


class TokenPayload(BaseModel):
    sub: str  # the profile's email; parents carry their NISN-derived email
    exp: datetime


class RouteDecision(BaseModel):
    """What a client should do when it lands on `path`."""
    state: str
    role: Optional[UserRole] = None
    action: str
    target: Optional[str] = None
    signal: Optional[str] = None
    sign_out: bool = Field(False, alias="signOut")

    model_config = ConfigDict(populate_by_name=True)


class RegistrationResult(BaseModel):
    user: ProfileRead
    access_token: str
    token_type: str = "bearer"
