'''
JWT issuing / verification and the current-user dependencies.
'''
from datetime import datetime, timedelta, timezone
from typing import Optional, Annotated
from jose import JWTError, jwt
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from ..common.config import settings
from ..common.exceptions import AuthenticationError
from ..common.logger import log
from ..models.auth import TokenPayload
from ..database import models as db_models
from .user_service import UserService


# --- JWT Handling ---
class JWTHandler:
    @staticmethod
    def create_access_token(
        subject: str,
        expires_delta: Optional[timedelta] = None
    ) -> str:
        if expires_delta is None:
            expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

        expire = datetime.now(timezone.utc) + expires_delta
        to_encode = {"sub": str(subject), "exp": expire}
        return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def decode_token(token: str) -> TokenPayload | None:
        try:
            payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
            return TokenPayload(**payload)
        except (JWTError, ValueError) as e:  # pydantic errors are ValueErrors
            log.warning(f"JWT decode/validation error: {e}")
            return None


# --- JWT Verification Dependencies ---
# auto_error is off so a missing header answers with our own 401 body.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


async def verify_token_and_get_user(
    token: Annotated[Optional[str], Depends(oauth2_scheme)],
    user_service: Annotated[UserService, Depends(UserService)]
) -> db_models.Profiles:
    """
    Verifies the bearer token and loads the caller's profile.
    The profile (and so the role) is read fresh on every request.
    """
    if not token:
        raise AuthenticationError("Sesi tidak ditemukan. Silakan masuk terlebih dahulu.")

    token_data = JWTHandler.decode_token(token)
    if not token_data or not token_data.sub:
        log.warning("JWT decode failed or invalid token structure.")
        raise AuthenticationError("Sesi tidak valid. Silakan masuk kembali.")

    user = await user_service.get_user_by_email(token_data.sub)
    if user is None:
        log.warning(f"User '{token_data.sub}' not found during token verification.")
        raise AuthenticationError("Sesi tidak valid. Silakan masuk kembali.")

    log.info(f"JWT verified successfully for user: {user.email} (Role: {user.role})")
    return user


async def get_token_subject(
    token: Annotated[Optional[str], Depends(oauth2_scheme)],
) -> Optional[str]:
    """The identity behind an optional bearer token, or None when absent or invalid."""
    if not token:
        return None
    token_data = JWTHandler.decode_token(token)
    return token_data.sub if token_data else None
