'''
Savings recap (on screen and exported) and school-wide statistics.
'''
from datetime import date
from typing import Optional, Annotated
from fastapi import Depends
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.engine import get_db_session
from ..database import models as db_models
from ..database.db_enums import UserRole
from ..database.views import fetch_global_stats, fetch_student_balances
from ..common.logger import log
from ..core import exporters
from ..core.access_policy import AccessPolicy
from ..core.aggregator import aggregate_period, has_period_activity, period_totals
from ..core.school_calendar import day_window_utc, school_now
from ..models import finance as finance_models


class RecapService:
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    @staticmethod
    def _export_filename(
        current_user: db_models.Profiles, class_name: Optional[str], day: Optional[date], extension: str
    ) -> str:
        if AccessPolicy(current_user).is_teacher:
            return exporters.teacher_recap_filename(current_user.class_taught, day, extension)
        return exporters.recap_filename(class_name, day, extension)

    async def build_recap(
        self,
        current_user: db_models.Profiles,
        class_name: Optional[str] = None,
        day: Optional[date] = None,
        search: Optional[str] = None,
    ) -> finance_models.RecapRead:
        """
        Period columns sum the transactions of `day` (school time), or of all
        time when no day is given. The balance column is always all-time.
        Teachers filtering by day only see students with activity that day.
        """
        policy = AccessPolicy(current_user)
        policy.require_role(
            UserRole.ADMIN, UserRole.TEACHER,
            message="Akses ditolak. Rekapitulasi hanya untuk admin dan guru.",
        )

        stmt = policy.scope_students(select(db_models.Students))
        if not exporters.is_all_classes(class_name):
            stmt = stmt.filter(db_models.Students.class_name == class_name)
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.filter(or_(
                db_models.Students.name.ilike(pattern),
                db_models.Students.nisn.ilike(pattern),
            ))
        students = list((await self.db.execute(stmt)).scalars().all())
        student_ids = [s.id for s in students]

        balances = await fetch_student_balances(self.db, student_ids)

        transactions = []
        if student_ids:
            tx_stmt = select(db_models.Transactions).filter(
                db_models.Transactions.student_id.in_(student_ids)
            )
            if policy.is_teacher:
                # a teacher's period figures only count what they recorded themselves
                tx_stmt = tx_stmt.filter(db_models.Transactions.teacher_id == current_user.id)
            if day is not None:
                start, end = day_window_utc(day)
                tx_stmt = tx_stmt.filter(
                    db_models.Transactions.created_at >= start,
                    db_models.Transactions.created_at < end,
                )
            transactions = list((await self.db.execute(tx_stmt)).scalars().all())

        rows = aggregate_period(students, transactions, balances)
        if policy.is_teacher and day is not None:
            rows = [row for row in rows if has_period_activity(row)]

        totals = period_totals(rows)
        log.info(
            f"Recap for {current_user.id}: class={class_name or 'all'}, day={day}, "
            f"{len(rows)} rows."
        )
        return finance_models.RecapRead(
            class_name=None if exporters.is_all_classes(class_name) else class_name,
            day=day,
            rows=rows,
            total_period_deposits=totals.total_period_deposits,
            total_period_withdrawals=totals.total_period_withdrawals,
        )

    async def export_pdf(
        self,
        current_user: db_models.Profiles,
        class_name: Optional[str] = None,
        day: Optional[date] = None,
        search: Optional[str] = None,
    ) -> tuple[bytes, str]:
        recap = await self.build_recap(current_user, class_name, day, search)
        content = exporters.build_recap_pdf(
            recap.rows,
            recap,
            class_name=recap.class_name,
            day=day,
            printed_on=school_now().date(),
        )
        return content, self._export_filename(current_user, recap.class_name, day, "pdf")

    async def export_xlsx(
        self,
        current_user: db_models.Profiles,
        class_name: Optional[str] = None,
        day: Optional[date] = None,
        search: Optional[str] = None,
    ) -> tuple[bytes, str]:
        recap = await self.build_recap(current_user, class_name, day, search)
        content = exporters.build_recap_xlsx(recap.rows)
        return content, self._export_filename(current_user, recap.class_name, day, "xlsx")

    async def global_stats(self, current_user: db_models.Profiles) -> finance_models.GlobalStats:
        AccessPolicy(current_user).require_admin("melihat statistik sekolah")
        return finance_models.GlobalStats(**await fetch_global_stats(self.db))
