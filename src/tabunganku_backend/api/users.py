'''
API endpoints for the signed-in user's own account.
'''
from typing import Annotated, Any
from fastapi import APIRouter, Depends

from ..database import models as db_models
from ..models import user as user_models
from ..services.security import verify_token_and_get_user
from ..services.user_service import UserService


class UsersAPI:
    def __init__(self):
        self.router = APIRouter(
            prefix="/users",
            tags=["Users"]
        )
        self._register_routes()

    def _register_routes(self):
        self.router.add_api_route(
            "/me",
            self.get_me,
            methods=["GET"],
            response_model=user_models.ProfileRead)

        self.router.add_api_route(
            "/me",
            self.update_me,
            methods=["PATCH"],
            response_model=user_models.ProfileRead)

        self.router.add_api_route(
            "/me/password",
            self.change_password,
            methods=["POST"],
            response_model=user_models.OkResponse)

    async def get_me(
        self,
        current_user: Annotated[db_models.Profiles, Depends(verify_token_and_get_user)]
    ) -> Any:
        return current_user

    async def update_me(
        self,
        data: user_models.ProfileUpdate,
        current_user: Annotated[db_models.Profiles, Depends(verify_token_and_get_user)],
        user_service: Annotated[UserService, Depends(UserService)]
    ) -> Any:
        """Updates the caller's name. The role can only be changed by an admin."""
        return await user_service.update_me(current_user, data)

    async def change_password(
        self,
        data: user_models.PasswordChange,
        current_user: Annotated[db_models.Profiles, Depends(verify_token_and_get_user)],
        user_service: Annotated[UserService, Depends(UserService)]
    ) -> Any:
        await user_service.change_password(current_user, data)
        return user_models.OkResponse(message="Kata sandi berhasil diubah.")

users_api = UsersAPI()
router = users_api.router
