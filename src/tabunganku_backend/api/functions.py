'''
Privileged operations, one endpoint per operation under /functions.

Bodies use camelCase keys. Admin-only operations re-check the caller's
stored role inside the services on every call.
'''
from typing import Annotated, Any
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ..database import models as db_models
from ..models import finance as finance_models
from ..models import saving_schedule as schedule_models
from ..models import student as student_models
from ..models import user as user_models
from ..services.security import verify_token_and_get_user
from ..services.user_service import AdminService
from ..services.student_service import StudentService
from ..services.saving_schedule_service import SavingScheduleService
from ..services.transaction_service import TransactionService

CurrentUser = Annotated[db_models.Profiles, Depends(verify_token_and_get_user)]


class FunctionsAPI:
    def __init__(self):
        self.router = APIRouter(
            prefix="/functions",
            tags=["Privileged Operations"]
        )
        self._register_routes()

    def _register_routes(self):
        routes = [
            ("/check-admin-exists", self.check_admin_exists, "GET", user_models.AdminExistsResponse),
            ("/create-admin-user", self.create_admin_user, "POST", user_models.OkResponse),
            ("/create-user", self.create_user, "POST", user_models.OkResponse),
            ("/get-user-by-admin", self.get_user_by_admin, "POST", user_models.UserProfileResponse),
            ("/update-user-by-admin", self.update_user_by_admin, "POST", user_models.OkResponse),
            ("/delete-user-by-admin", self.delete_user_by_admin, "POST", user_models.OkResponse),
            ("/list-users-by-admin", self.list_users_by_admin, "GET", user_models.UserListResponse),
            ("/get-student-for-parent-registration", self.get_student_for_parent_registration,
             "POST", student_models.StudentLookupResponse),
            ("/link-student-to-parent", self.link_student_to_parent, "POST", user_models.OkResponse),
            ("/update-grouped-saving-schedule", self.update_grouped_saving_schedule,
             "POST", schedule_models.UpdatedCount),
            ("/delete-grouped-saving-schedule", self.delete_grouped_saving_schedule,
             "POST", schedule_models.DeletedCount),
            ("/delete-transaction-by-admin", self.delete_transaction_by_admin, "POST", user_models.OkResponse),
            ("/delete-all-transactions-by-admin", self.delete_all_transactions_by_admin,
             "POST", user_models.OkResponse),
            ("/get-admin-name", self.get_admin_name, "GET", user_models.AdminNameResponse),
            ("/create-initial-users", self.create_initial_users, "POST", user_models.InitialUsersResponse),
        ]
        for path, endpoint, method, response_model in routes:
            self.router.add_api_route(path, endpoint, methods=[method], response_model=response_model)

    # --- setup (no token) ---

    async def check_admin_exists(
        self, admin_service: Annotated[AdminService, Depends(AdminService)]
    ) -> Any:
        return user_models.AdminExistsResponse(admin_exists=await admin_service.check_admin_exists())

    async def create_admin_user(
        self,
        data: user_models.AdminCreate,
        admin_service: Annotated[AdminService, Depends(AdminService)]
    ) -> Any:
        """Creates the first admin. Refused once any admin exists."""
        await admin_service.create_admin_user(data)
        return user_models.OkResponse(message="Akun admin berhasil dibuat.")

    async def get_admin_name(
        self, admin_service: Annotated[AdminService, Depends(AdminService)]
    ) -> Any:
        return user_models.AdminNameResponse(admin_name=await admin_service.get_admin_name())

    async def get_student_for_parent_registration(
        self,
        data: student_models.StudentLookupRequest,
        student_service: Annotated[StudentService, Depends(StudentService)]
    ) -> Any:
        return await student_service.get_student_for_parent_registration(data.nisn)

    # --- user management ---

    async def create_user(
        self,
        data: user_models.UserCreateByAdmin,
        current_user: CurrentUser,
        admin_service: Annotated[AdminService, Depends(AdminService)]
    ) -> Any:
        user = await admin_service.create_user(current_user, data)
        return user_models.OkResponse(message=f"Pengguna {user.email} ({user.role}) berhasil ditambahkan!")

    async def get_user_by_admin(
        self,
        data: user_models.UserIdRequest,
        current_user: CurrentUser,
        admin_service: Annotated[AdminService, Depends(AdminService)]
    ) -> Any:
        user = await admin_service.get_user(current_user, data.user_id)
        return user_models.UserProfileResponse(user=user_models.ProfileRead.model_validate(user))

    async def update_user_by_admin(
        self,
        data: user_models.UserUpdateByAdmin,
        current_user: CurrentUser,
        admin_service: Annotated[AdminService, Depends(AdminService)]
    ) -> Any:
        await admin_service.update_user(current_user, data)
        return user_models.OkResponse(message="Pengguna berhasil diperbarui.")

    async def delete_user_by_admin(
        self,
        data: user_models.UserIdRequest,
        current_user: CurrentUser,
        admin_service: Annotated[AdminService, Depends(AdminService)]
    ) -> Any:
        await admin_service.delete_user(current_user, data.user_id)
        return user_models.OkResponse(message="Pengguna berhasil dihapus.")

    async def list_users_by_admin(
        self,
        current_user: CurrentUser,
        admin_service: Annotated[AdminService, Depends(AdminService)]
    ) -> Any:
        users = await admin_service.list_users(current_user)
        return user_models.UserListResponse(
            users=[user_models.ProfileRead.model_validate(u) for u in users]
        )

    async def create_initial_users(
        self,
        data: user_models.InitialUsersRequest,
        current_user: CurrentUser,
        admin_service: Annotated[AdminService, Depends(AdminService)]
    ) -> Any:
        """Answers 207 when at least one user could not be created."""
        result = await admin_service.create_initial_users(current_user, data)
        if result.errors:
            return JSONResponse(
                status_code=status.HTTP_207_MULTI_STATUS,
                content=result.model_dump(mode="json", by_alias=True),
            )
        return result

    # --- students ---

    async def link_student_to_parent(
        self,
        data: student_models.LinkStudentRequest,
        current_user: CurrentUser,
        student_service: Annotated[StudentService, Depends(StudentService)]
    ) -> Any:
        await student_service.link_student_to_parent(data.student_id, data.parent_id, actor=current_user)
        return user_models.OkResponse(message="Siswa berhasil dihubungkan dengan orang tua.")

    # --- saving schedules ---

    async def update_grouped_saving_schedule(
        self,
        data: schedule_models.GroupedScheduleUpdate,
        current_user: CurrentUser,
        schedule_service: Annotated[SavingScheduleService, Depends(SavingScheduleService)]
    ) -> Any:
        updated = await schedule_service.update_grouped(current_user, data)
        return schedule_models.UpdatedCount(updated_count=updated)

    async def delete_grouped_saving_schedule(
        self,
        data: schedule_models.GroupedScheduleDelete,
        current_user: CurrentUser,
        schedule_service: Annotated[SavingScheduleService, Depends(SavingScheduleService)]
    ) -> Any:
        deleted = await schedule_service.delete_grouped(current_user, data)
        return schedule_models.DeletedCount(deleted_count=deleted)

    # --- transactions ---

    async def delete_transaction_by_admin(
        self,
        data: finance_models.TransactionIdRequest,
        current_user: CurrentUser,
        transaction_service: Annotated[TransactionService, Depends(TransactionService)]
    ) -> Any:
        await transaction_service.delete_transaction_by_admin(current_user, data.transaction_id)
        return user_models.OkResponse(message="Transaksi berhasil dihapus.")

    async def delete_all_transactions_by_admin(
        self,
        current_user: CurrentUser,
        transaction_service: Annotated[TransactionService, Depends(TransactionService)]
    ) -> Any:
        deleted = await transaction_service.delete_all_transactions_by_admin(current_user)
        return user_models.OkResponse(message=f"{deleted} transaksi berhasil dihapus.")

functions_api = FunctionsAPI()
router = functions_api.router
