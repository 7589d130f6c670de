'''
API endpoints for the savings recap, its PDF / Excel exports and the
school-wide statistics.
'''
from datetime import date
from typing import Annotated, Any, Optional
from fastapi import APIRouter, Depends, Query, Response

from ..core import exporters
from ..database import models as db_models
from ..models import finance as finance_models
from ..services.security import verify_token_and_get_user
from ..services.recap_service import RecapService


class RecapAPI:
    def __init__(self):
        self.router = APIRouter(tags=["Recap"])
        self._register_routes()

    def _register_routes(self):
        self.router.add_api_route(
                "/recap",
                self.get_recap,
                methods=["GET"],
                response_model=finance_models.RecapRead)

        self.router.add_api_route(
                "/recap/export/pdf",
                self.export_pdf,
                methods=["GET"],
                response_class=Response)

        self.router.add_api_route(
                "/recap/export/xlsx",
                self.export_xlsx,
                methods=["GET"],
                response_class=Response)

        self.router.add_api_route(
                "/stats/global",
                self.get_global_stats,
                methods=["GET"],
                response_model=finance_models.GlobalStats)

    @staticmethod
    def _attachment(content: bytes, filename: str, media_type: str) -> Response:
        return Response(
            content=content,
            media_type=media_type,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    async def get_recap(
        self,
        current_user: Annotated[db_models.Profiles, Depends(verify_token_and_get_user)],
        recap_service: Annotated[RecapService, Depends(RecapService)],
        class_name: Annotated[Optional[str], Query(alias="class")] = None,
        day: Annotated[Optional[date], Query(alias="date")] = None,
        search: Optional[str] = None,
    ) -> Any:
        """
        Per-student deposits/withdrawals for the chosen day (or all time)
        next to each student's current balance.
        """
        return await recap_service.build_recap(current_user, class_name, day, search)

    async def export_pdf(
        self,
        current_user: Annotated[db_models.Profiles, Depends(verify_token_and_get_user)],
        recap_service: Annotated[RecapService, Depends(RecapService)],
        class_name: Annotated[Optional[str], Query(alias="class")] = None,
        day: Annotated[Optional[date], Query(alias="date")] = None,
        search: Optional[str] = None,
    ):
        content, filename = await recap_service.export_pdf(current_user, class_name, day, search)
        return self._attachment(content, filename, exporters.PDF_MEDIA_TYPE)

    async def export_xlsx(
        self,
        current_user: Annotated[db_models.Profiles, Depends(verify_token_and_get_user)],
        recap_service: Annotated[RecapService, Depends(RecapService)],
        class_name: Annotated[Optional[str], Query(alias="class")] = None,
        day: Annotated[Optional[date], Query(alias="date")] = None,
        search: Optional[str] = None,
    ):
        content, filename = await recap_service.export_xlsx(current_user, class_name, day, search)
        return self._attachment(content, filename, exporters.XLSX_MEDIA_TYPE)

    async def get_global_stats(
        self,
        current_user: Annotated[db_models.Profiles, Depends(verify_token_and_get_user)],
        recap_service: Annotated[RecapService, Depends(RecapService)],
    ) -> Any:
        return await recap_service.global_stats(current_user)

recap_api = RecapAPI()
router = recap_api.router
