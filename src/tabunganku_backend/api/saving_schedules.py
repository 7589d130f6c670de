'''
API endpoints for Saving Schedules.
'''
from typing import Annotated, Any, List
from fastapi import APIRouter, Depends, status

from ..database import models as db_models
from ..models import saving_schedule as schedule_models
from ..services.security import verify_token_and_get_user
from ..services.saving_schedule_service import SavingScheduleService


class SavingSchedulesAPI:
    def __init__(self):
        self.router = APIRouter(
            prefix="/saving-schedules",
            tags=["Saving Schedules"]
        )
        self._register_routes()

    def _register_routes(self):
        self.router.add_api_route(
                "",
                self.list_grouped,
                methods=["GET"],
                response_model=List[schedule_models.GroupedSavingSchedule])

        self.router.add_api_route(
                "",
                self.create_for_class,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=schedule_models.SavingScheduleBatchResult)

        self.router.add_api_route(
                "/class",
                self.list_for_teacher_class,
                methods=["GET"],
                response_model=List[schedule_models.GroupedSavingSchedule])

        self.router.add_api_route(
                "/mine",
                self.list_for_parent,
                methods=["GET"],
                response_model=List[schedule_models.StudentSavingScheduleRead])

    async def list_grouped(
        self,
        current_user: Annotated[db_models.Profiles, Depends(verify_token_and_get_user)],
        schedule_service: Annotated[SavingScheduleService, Depends(SavingScheduleService)]
    ) -> Any:
        """All schedules, one row per class/amount/frequency/day/teacher group. Admin only."""
        return await schedule_service.list_grouped(current_user)

    async def create_for_class(
        self,
        schedule_data: schedule_models.SavingScheduleCreate,
        current_user: Annotated[db_models.Profiles, Depends(verify_token_and_get_user)],
        schedule_service: Annotated[SavingScheduleService, Depends(SavingScheduleService)]
    ) -> Any:
        return await schedule_service.create_for_class(current_user, schedule_data)

    async def list_for_teacher_class(
        self,
        current_user: Annotated[db_models.Profiles, Depends(verify_token_and_get_user)],
        schedule_service: Annotated[SavingScheduleService, Depends(SavingScheduleService)]
    ) -> Any:
        return await schedule_service.list_grouped_for_teacher(current_user)

    async def list_for_parent(
        self,
        current_user: Annotated[db_models.Profiles, Depends(verify_token_and_get_user)],
        schedule_service: Annotated[SavingScheduleService, Depends(SavingScheduleService)]
    ) -> Any:
        return await schedule_service.list_for_parent(current_user)

saving_schedules_api = SavingSchedulesAPI()
router = saving_schedules_api.router
