'''
Login (email or NISN) and self-registration.
'''
from typing import Annotated
from fastapi import Depends
from fastapi.security import OAuth2PasswordRequestForm

from .security import JWTHandler
from .user_service import UserService
from .student_service import StudentService
from ..common.exceptions import AuthenticationError
from ..common.logger import log
from ..common.security_utils import HashedPassword, parent_email_for_nisn
from ..database import models as db_models
from ..database.db_enums import UserRole
from ..models import auth as auth_models
from ..models import user as user_models


class LoginService:
    """
    Service for handling user login and registration.
    Depends on the UserService to fetch profiles.
    """
    def __init__(
        self,
        user_service: Annotated[UserService, Depends(UserService)],
        student_service: Annotated[StudentService, Depends(StudentService)],
    ):
        self.user_service = user_service
        self.student_service = student_service

    def _issue_token(self, user: db_models.Profiles) -> auth_models.Token:
        access_token = JWTHandler.create_access_token(subject=user.email)
        return auth_models.Token(access_token=access_token, role=user.role)

    async def authenticate(self, email: str, password: str) -> auth_models.Token:
        log.info(f"Attempting login for user: {email}")
        user = await self.user_service.get_user_by_email(email)

        if not user or not HashedPassword.verify(password, user.password):
            log.warning(f"Login failed for user: {email} - Incorrect email or password")
            raise AuthenticationError("Email atau kata sandi salah.")

        log.info(f"Login successful for user: {email}")
        return self._issue_token(user)

    async def login_user(self, form_data: OAuth2PasswordRequestForm) -> auth_models.Token:
        return await self.authenticate(form_data.username, form_data.password)

    async def login_parent(self, data: user_models.ParentLogin) -> auth_models.Token:
        """Parents sign in with their child's NISN instead of an email."""
        try:
            return await self.authenticate(parent_email_for_nisn(data.nisn), data.password)
        except AuthenticationError:
            raise AuthenticationError("NISN atau kata sandi salah.") from None

    async def register_parent(self, data: user_models.ParentRegister) -> auth_models.RegistrationResult:
        """
        The student is looked up (and refused when already linked) before the
        account is created, so a failed lookup never leaves an account behind.
        """
        lookup = await self.student_service.get_student_for_parent_registration(data.nisn)
        parent = await self.user_service.create_profile(
            email=parent_email_for_nisn(data.nisn),
            password=data.password,
            role=UserRole.PARENT,
            first_name=data.full_name.strip(),
        )
        await self.student_service.link_student_to_parent(lookup.student_id, parent.id)
        log.info(f"Parent {parent.id} registered and linked to student {lookup.student_id}.")

        token = self._issue_token(parent)
        return auth_models.RegistrationResult(
            user=user_models.ProfileRead.model_validate(parent),
            access_token=token.access_token,
        )

    async def register_teacher(self, data: user_models.TeacherRegister) -> auth_models.RegistrationResult:
        teacher = await self.user_service.register_teacher(data)
        token = self._issue_token(teacher)
        return auth_models.RegistrationResult(
            user=user_models.ProfileRead.model_validate(teacher),
            access_token=token.access_token,
        )
