'''
Expected-savings schedules: per-class insertion, grouped views and the
grouped admin update/delete.
'''
from typing import Optional, Annotated
from fastapi import Depends
from sqlalchemy import select, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.engine import get_db_session
from ..database import models as db_models
from ..database.db_enums import UserRole
from ..common.exceptions import ValidationError
from ..common.logger import log
from ..core.access_policy import AccessPolicy
from ..core.aggregator import group_saving_schedules
from ..core.batch import run_batch
from ..models import saving_schedule as schedule_models


class SavingScheduleService:
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    def _rows_query(self):
        return (
            select(db_models.SavingSchedules, db_models.Students, db_models.Profiles)
            .join(db_models.Students, db_models.SavingSchedules.student_id == db_models.Students.id)
            .outerjoin(db_models.Profiles, db_models.SavingSchedules.teacher_id == db_models.Profiles.id)
            .order_by(db_models.SavingSchedules.created_at, db_models.Students.name)
        )

    async def _grouped(self, stmt) -> list[schedule_models.GroupedSavingSchedule]:
        rows = (await self.db.execute(stmt)).all()
        return group_saving_schedules(
            {
                "class_name": student.class_name,
                "amount_expected": schedule.amount_expected,
                "frequency": schedule.frequency,
                "day_of_week": schedule.day_of_week,
                "teacher_name": teacher.full_name if teacher else None,
            }
            for schedule, student, teacher in rows
        )

    async def list_grouped(self, current_user: db_models.Profiles) -> list[schedule_models.GroupedSavingSchedule]:
        AccessPolicy(current_user).require_admin("melihat semua jadwal menabung")
        return await self._grouped(self._rows_query())

    async def list_grouped_for_teacher(
        self, current_user: db_models.Profiles
    ) -> list[schedule_models.GroupedSavingSchedule]:
        policy = AccessPolicy(current_user)
        policy.require_role(UserRole.TEACHER, message="Hanya guru yang dapat melihat jadwal kelas.")
        return await self._grouped(policy.scope_schedules(self._rows_query()))

    async def list_for_parent(
        self, current_user: db_models.Profiles
    ) -> list[schedule_models.StudentSavingScheduleRead]:
        policy = AccessPolicy(current_user)
        policy.require_role(UserRole.PARENT, message="Hanya orang tua yang dapat melihat jadwal anak.")
        rows = (await self.db.execute(policy.scope_schedules(self._rows_query()))).all()
        return [
            schedule_models.StudentSavingScheduleRead(
                id=schedule.id,
                student_id=schedule.student_id,
                teacher_id=schedule.teacher_id,
                amount_expected=schedule.amount_expected,
                frequency=schedule.frequency,
                day_of_week=schedule.day_of_week,
                created_at=schedule.created_at,
                student_name=student.name,
                class_name=student.class_name,
            )
            for schedule, student, _ in rows
        ]

    async def create_for_class(
        self, current_user: db_models.Profiles, data: schedule_models.SavingScheduleCreate
    ) -> schedule_models.SavingScheduleBatchResult:
        """
        One schedule row per student of the class, attributed to that
        student's teacher. Rows are inserted independently.
        """
        AccessPolicy(current_user).require_admin("menambahkan jadwal menabung")
        stmt = (
            select(db_models.Students)
            .filter(db_models.Students.class_name == data.class_name)
            .order_by(db_models.Students.name)
        )
        students = list((await self.db.execute(stmt)).scalars().all())
        if not students:
            raise ValidationError(f"Tidak ada siswa di {data.class_name}.")

        async def insert_one(student: db_models.Students) -> db_models.SavingSchedules:
            schedule = db_models.SavingSchedules(
                student_id=student.id,
                teacher_id=student.teacher_id,
                amount_expected=data.amount_expected,
                frequency=data.frequency.value,
                day_of_week=data.day_of_week.value if data.day_of_week else None,
            )
            self.db.add(schedule)
            await self.db.flush()
            return schedule

        result = await run_batch(
            students, insert_one, describe=lambda s: f"{s.name} ({s.nisn})",
            savepoint=self.db.begin_nested,
        )
        log.info(
            f"Admin {current_user.id} added schedules for {data.class_name}: "
            f"{result.success_count} created, {result.fail_count} failed."
        )
        return schedule_models.SavingScheduleBatchResult(
            created_count=result.success_count,
            failed_count=result.fail_count,
            errors=[
                f"Gagal menambahkan jadwal untuk {f.item.name} ({f.item.nisn}): {f.error}"
                for f in result.failed
            ],
        )

    # --- grouped admin operations ---

    def _group_filter(self, stmt, class_name: str, amount_expected, frequency, day_of_week: Optional[str]):
        """Matches every row of the plain-value group key. No day matches NULL."""
        class_students = select(db_models.Students.id).filter(db_models.Students.class_name == class_name)
        stmt = stmt.where(
            db_models.SavingSchedules.student_id.in_(class_students),
            db_models.SavingSchedules.amount_expected == amount_expected,
            db_models.SavingSchedules.frequency == frequency,
        )
        if day_of_week:
            return stmt.where(db_models.SavingSchedules.day_of_week == day_of_week)
        return stmt.where(db_models.SavingSchedules.day_of_week.is_(None))

    async def update_grouped(
        self, current_user: db_models.Profiles, data: schedule_models.GroupedScheduleUpdate
    ) -> int:
        AccessPolicy(current_user).require_admin("memperbarui jadwal menabung")
        stmt = self._group_filter(
            update(db_models.SavingSchedules),
            data.old_class,
            data.old_amount_expected,
            data.old_frequency.value,
            data.old_day_of_week.value if data.old_day_of_week else None,
        ).values(
            amount_expected=data.new_amount_expected,
            frequency=data.new_frequency.value,
            day_of_week=data.new_day_of_week.value if data.new_day_of_week else None,
        ).execution_options(synchronize_session=False)
        result = await self.db.execute(stmt)
        await self.db.flush()
        log.info(f"Admin {current_user.id} updated {result.rowcount} schedules of {data.old_class}.")
        return result.rowcount

    async def delete_grouped(
        self, current_user: db_models.Profiles, data: schedule_models.GroupedScheduleDelete
    ) -> int:
        AccessPolicy(current_user).require_admin("menghapus jadwal menabung")
        stmt = self._group_filter(
            delete(db_models.SavingSchedules),
            data.class_name,
            data.amount_expected,
            data.frequency.value,
            data.day_of_week.value if data.day_of_week else None,
        ).execution_options(synchronize_session=False)
        result = await self.db.execute(stmt)
        await self.db.flush()
        log.info(f"Admin {current_user.id} deleted {result.rowcount} schedules of {data.class_name}.")
        return result.rowcount
