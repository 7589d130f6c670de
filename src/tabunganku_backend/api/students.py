'''
API endpoints for managing Students.
'''
from typing import Annotated, Any, List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Response, UploadFile, status

from ..common.exceptions import ValidationError
from ..core import exporters
from ..database import models as db_models
from ..models import finance as finance_models
from ..models import saving_schedule as schedule_models
from ..models import student as student_models
from ..services.security import verify_token_and_get_user
from ..services.student_service import StudentService


class StudentsAPI:
    """
    CRUD and import endpoints for students. Every query is scoped to what the
    caller may see.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/students",
            tags=["Students"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        # Static paths first so they are not captured by /{student_id}.
        self.router.add_api_route(
                "/classes",
                self.list_classes,
                methods=["GET"],
                response_model=List[str])

        self.router.add_api_route(
                "/import/template",
                self.download_import_template,
                methods=["GET"],
                response_class=Response)

        self.router.add_api_route(
                "/import",
                self.import_students,
                methods=["POST"],
                response_model=student_models.StudentImportResult)

        self.router.add_api_route(
                "",
                self.list_students,
                methods=["GET"],
                response_model=List[student_models.StudentRead])

        self.router.add_api_route(
                "",
                self.create_student,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=student_models.StudentRead)

        self.router.add_api_route(
                "/{student_id}",
                self.get_student,
                methods=["GET"],
                response_model=student_models.StudentRead)

        self.router.add_api_route(
                "/{student_id}",
                self.update_student,
                methods=["PATCH"],
                response_model=student_models.StudentRead)

        self.router.add_api_route(
                "/{student_id}",
                self.delete_student,
                methods=["DELETE"],
                status_code=status.HTTP_204_NO_CONTENT)

        self.router.add_api_route(
                "/{student_id}/summary",
                self.get_student_summary,
                methods=["GET"],
                response_model=finance_models.StudentSummaryRead)

        self.router.add_api_route(
                "/{student_id}/transactions",
                self.list_student_transactions,
                methods=["GET"],
                response_model=List[finance_models.TransactionRead])

        self.router.add_api_route(
                "/{student_id}/saving-schedule",
                self.get_student_saving_schedule,
                methods=["GET"],
                response_model=Optional[schedule_models.SavingScheduleRead])

    async def list_classes(
        self,
        current_user: Annotated[db_models.Profiles, Depends(verify_token_and_get_user)],
        student_service: Annotated[StudentService, Depends(StudentService)]
    ) -> List[str]:
        """Distinct class names among the students visible to the caller."""
        return await student_service.list_classes(current_user)

    async def download_import_template(
        self,
        current_user: Annotated[db_models.Profiles, Depends(verify_token_and_get_user)],
    ):
        return Response(
            content=exporters.build_import_template(),
            media_type=exporters.XLSX_MEDIA_TYPE,
            headers={
                "Content-Disposition": f'attachment; filename="{exporters.IMPORT_TEMPLATE_FILENAME}"'
            },
        )

    async def import_students(
        self,
        file: UploadFile,
        current_user: Annotated[db_models.Profiles, Depends(verify_token_and_get_user)],
        student_service: Annotated[StudentService, Depends(StudentService)]
    ) -> Any:
        """
        Imports students from an .xlsx file with the columns Nama, NISN, Kelas.
        Rows are inserted one by one; failures are listed in the response.
        """
        filename = (file.filename or "").lower()
        if not filename.endswith((".xlsx", ".xls")):
            raise ValidationError("Hanya file Excel (.xlsx atau .xls) yang didukung untuk impor.")
        content = await file.read()
        return await student_service.import_students(current_user, content)

    async def list_students(
        self,
        current_user: Annotated[db_models.Profiles, Depends(verify_token_and_get_user)],
        student_service: Annotated[StudentService, Depends(StudentService)],
        search: Optional[str] = None,
        class_name: Annotated[Optional[str], Query(alias="class")] = None,
    ) -> Any:
        return await student_service.list_students(current_user, search=search, class_name=class_name)

    async def create_student(
        self,
        student_data: student_models.StudentCreate,
        current_user: Annotated[db_models.Profiles, Depends(verify_token_and_get_user)],
        student_service: Annotated[StudentService, Depends(StudentService)]
    ) -> Any:
        """Creates a student owned by the calling teacher."""
        return await student_service.create_student(current_user, student_data)

    async def get_student(
        self,
        student_id: UUID,
        current_user: Annotated[db_models.Profiles, Depends(verify_token_and_get_user)],
        student_service: Annotated[StudentService, Depends(StudentService)]
    ) -> Any:
        return await student_service.get_student(current_user, student_id)

    async def update_student(
        self,
        student_id: UUID,
        student_data: student_models.StudentUpdate,
        current_user: Annotated[db_models.Profiles, Depends(verify_token_and_get_user)],
        student_service: Annotated[StudentService, Depends(StudentService)]
    ) -> Any:
        return await student_service.update_student(current_user, student_id, student_data)

    async def delete_student(
        self,
        student_id: UUID,
        current_user: Annotated[db_models.Profiles, Depends(verify_token_and_get_user)],
        student_service: Annotated[StudentService, Depends(StudentService)]
    ):
        """
        Deletes the student along with their transactions and saving schedule.
        """
        await student_service.delete_student(current_user, student_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    async def get_student_summary(
        self,
        student_id: UUID,
        current_user: Annotated[db_models.Profiles, Depends(verify_token_and_get_user)],
        student_service: Annotated[StudentService, Depends(StudentService)]
    ) -> Any:
        return await student_service.get_summary(current_user, student_id)

    async def list_student_transactions(
        self,
        student_id: UUID,
        current_user: Annotated[db_models.Profiles, Depends(verify_token_and_get_user)],
        student_service: Annotated[StudentService, Depends(StudentService)]
    ) -> Any:
        return await student_service.list_transactions(current_user, student_id)

    async def get_student_saving_schedule(
        self,
        student_id: UUID,
        current_user: Annotated[db_models.Profiles, Depends(verify_token_and_get_user)],
        student_service: Annotated[StudentService, Depends(StudentService)]
    ) -> Any:
        return await student_service.get_saving_schedule(current_user, student_id)

# Instantiate the class and export its router
students_api = StudentsAPI()
router = students_api.router
