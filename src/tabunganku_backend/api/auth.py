'''
API endpoints for Authentication: login (email or NISN) and self-registration.
'''
from typing import Annotated
from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm

from ..services.auth_service import LoginService
from ..models import auth as auth_models
from ..models import user as user_models


class AuthRoutes:
    """
    A class to encapsulate all authentication and registration endpoints.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/auth",
            tags=["Authentication"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
            "/login",
            self.login_for_access_token,
            methods=["POST"],
            response_model=auth_models.Token,
            summary="Login for Access Token"
        )
        self.router.add_api_route(
            "/login/parent",
            self.login_parent,
            methods=["POST"],
            response_model=auth_models.Token,
            summary="Parent Login with NISN"
        )
        self.router.add_api_route(
            "/register/parent",
            self.register_parent,
            methods=["POST"],
            response_model=auth_models.RegistrationResult,
            status_code=status.HTTP_201_CREATED,
            summary="Parent Registration"
        )
        self.router.add_api_route(
            "/register/teacher",
            self.register_teacher,
            methods=["POST"],
            response_model=auth_models.RegistrationResult,
            status_code=status.HTTP_201_CREATED,
            summary="Teacher Registration"
        )

    async def login_for_access_token(
        self,
        form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
        login_service: Annotated[LoginService, Depends(LoginService)]
    ):
        """
        Authenticates a user and returns an access token.
        Uses OAuth2PasswordRequestForm (username = email).
        """
        return await login_service.login_user(form_data)

    async def login_parent(
        self,
        credentials: user_models.ParentLogin,
        login_service: Annotated[LoginService, Depends(LoginService)]
    ):
        return await login_service.login_parent(credentials)

    async def register_parent(
        self,
        data: user_models.ParentRegister,
        login_service: Annotated[LoginService, Depends(LoginService)]
    ):
        """
        Creates a parent account bound to the student with the given NISN.
        Refused with 409 when that student already has a parent.
        """
        return await login_service.register_parent(data)

    async def register_teacher(
        self,
        data: user_models.TeacherRegister,
        login_service: Annotated[LoginService, Depends(LoginService)]
    ):
        return await login_service.register_teacher(data)

# Create an instance of the class and export its router
auth_routes = AuthRoutes()
router = auth_routes.router
