'''
Student records: scoped CRUD, bulk import and parent linking.
'''
from typing import Optional, Annotated
from uuid import UUID
from fastapi import Depends
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select, delete, update, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.engine import get_db_session
from ..database import models as db_models
from ..database.db_enums import UserRole
from ..common.exceptions import ConflictError, NotFoundError, ValidationError, AuthorizationError
from ..common.logger import log
from ..core import exporters
from ..core.access_policy import AccessPolicy
from ..core.aggregator import aggregate
from ..core.batch import run_batch
from ..models import finance as finance_models
from ..models import student as student_models


class StudentService:
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    # --- reads ---

    async def _get_student_or_404(self, student_id: UUID) -> db_models.Students:
        student = await self.db.get(db_models.Students, student_id)
        if student is None:
            raise NotFoundError("Siswa tidak ditemukan.")
        return student

    async def get_student(self, current_user: db_models.Profiles, student_id: UUID) -> db_models.Students:
        student = await self._get_student_or_404(student_id)
        AccessPolicy(current_user).ensure_can_view_student(student)
        return student

    async def list_students(
        self,
        current_user: db_models.Profiles,
        search: Optional[str] = None,
        class_name: Optional[str] = None,
    ) -> list[db_models.Students]:
        stmt = AccessPolicy(current_user).scope_students(select(db_models.Students))
        if class_name and class_name != "all":
            stmt = stmt.filter(db_models.Students.class_name == class_name)
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.filter(or_(
                db_models.Students.name.ilike(pattern),
                db_models.Students.nisn.ilike(pattern),
            ))
        stmt = stmt.order_by(db_models.Students.class_name, db_models.Students.name)
        return list((await self.db.execute(stmt)).scalars().all())

    async def list_classes(self, current_user: db_models.Profiles) -> list[str]:
        stmt = AccessPolicy(current_user).scope_students(
            select(db_models.Students.class_name).distinct()
        ).order_by(db_models.Students.class_name)
        return [row for row in (await self.db.execute(stmt)).scalars().all() if row]

    async def get_summary(
        self, current_user: db_models.Profiles, student_id: UUID
    ) -> finance_models.StudentSummaryRead:
        student = await self.get_student(current_user, student_id)
        transactions = await self.list_transactions(current_user, student_id)
        return finance_models.StudentSummaryRead(
            student_id=student.id,
            student_name=student.name,
            nisn=student.nisn,
            class_name=student.class_name,
            summary=aggregate(transactions),
        )

    async def list_transactions(
        self, current_user: db_models.Profiles, student_id: UUID
    ) -> list[db_models.Transactions]:
        await self.get_student(current_user, student_id)
        stmt = (
            select(db_models.Transactions)
            .filter(db_models.Transactions.student_id == student_id)
            .order_by(db_models.Transactions.created_at.desc())
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_saving_schedule(
        self, current_user: db_models.Profiles, student_id: UUID
    ) -> Optional[db_models.SavingSchedules]:
        await self.get_student(current_user, student_id)
        stmt = (
            select(db_models.SavingSchedules)
            .filter(db_models.SavingSchedules.student_id == student_id)
            .order_by(db_models.SavingSchedules.created_at.desc())
        )
        return (await self.db.execute(stmt)).scalars().first()

    # --- writes ---

    async def _ensure_nisn_free(self, nisn: str, exclude_id: Optional[UUID] = None):
        stmt = select(db_models.Students.id).filter(db_models.Students.nisn == nisn)
        if exclude_id is not None:
            stmt = stmt.filter(db_models.Students.id != exclude_id)
        if (await self.db.execute(stmt)).scalars().first() is not None:
            raise ConflictError(f"NISN {nisn} sudah terdaftar.")

    async def _insert_student(
        self, teacher: db_models.Profiles, data: student_models.StudentCreate
    ) -> db_models.Students:
        await self._ensure_nisn_free(data.nisn)
        student = db_models.Students(
            name=data.name,
            nisn=data.nisn,
            class_name=data.class_name,
            teacher_id=teacher.id,
            parent_id=None,
        )
        self.db.add(student)
        try:
            await self.db.flush()
        except IntegrityError as e:
            log.warning(f"Integrity error inserting student with NISN {data.nisn}: {e}")
            raise ConflictError(f"NISN {data.nisn} sudah terdaftar.") from e
        return student

    async def create_student(
        self, current_user: db_models.Profiles, data: student_models.StudentCreate
    ) -> db_models.Students:
        AccessPolicy(current_user).require_role(
            UserRole.TEACHER, message="Hanya guru yang dapat menambahkan siswa."
        )
        student = await self._insert_student(current_user, data)
        log.info(f"Teacher {current_user.id} created student {student.id} ({student.nisn}).")
        return student

    async def update_student(
        self,
        current_user: db_models.Profiles,
        student_id: UUID,
        data: student_models.StudentUpdate,
    ) -> db_models.Students:
        student = await self._get_student_or_404(student_id)
        AccessPolicy(current_user).ensure_can_manage_student(student)

        update_data = data.model_dump(exclude_unset=True, exclude_none=True)
        if "nisn" in update_data and update_data["nisn"] != student.nisn:
            await self._ensure_nisn_free(update_data["nisn"], exclude_id=student.id)
        for key, value in update_data.items():
            setattr(student, key, value)
        try:
            await self.db.flush()
        except IntegrityError as e:
            log.warning(f"Integrity error updating student {student_id}: {e}")
            raise ConflictError("NISN ini sudah terdaftar. Harap gunakan NISN yang berbeda.") from e
        log.info(f"User {current_user.id} updated student {student_id}: {list(update_data)}")
        return student

    async def delete_student(self, current_user: db_models.Profiles, student_id: UUID):
        """Removes the student together with their transactions and schedules."""
        student = await self._get_student_or_404(student_id)
        AccessPolicy(current_user).ensure_can_manage_student(student)

        await self.db.execute(
            delete(db_models.Transactions).filter(db_models.Transactions.student_id == student_id)
        )
        await self.db.execute(
            delete(db_models.SavingSchedules).filter(db_models.SavingSchedules.student_id == student_id)
        )
        await self.db.execute(
            delete(db_models.Students).filter(db_models.Students.id == student_id)
        )
        await self.db.flush()
        log.info(f"User {current_user.id} deleted student {student_id} and their records.")

    async def import_students(
        self, current_user: db_models.Profiles, content: bytes
    ) -> student_models.StudentImportResult:
        """
        Inserts each workbook row independently. Rows must name the
        teacher's own class; failed rows are reported, earlier inserts stay.
        """
        AccessPolicy(current_user).require_role(
            UserRole.TEACHER, message="Anda harus login sebagai guru untuk mengimpor siswa."
        )
        class_taught = current_user.class_taught
        if not class_taught:
            raise ValidationError(
                "Kelas yang diajar guru tidak ditemukan. Harap hubungi Admin untuk menetapkan kelas Anda."
            )

        rows = exporters.parse_student_import(content)
        if not rows:
            raise ValidationError("Tidak ada data yang ditemukan di file atau format tidak valid.")

        async def import_row(row: dict) -> db_models.Students:
            try:
                data = student_models.StudentCreate(name=row["Nama"], nisn=row["NISN"], class_name=row["Kelas"])
            except PydanticValidationError as e:
                messages = ", ".join(
                    f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
                )
                raise ValidationError(f"Baris dengan data {row} gagal divalidasi: {messages}") from e
            if data.class_name != class_taught:
                raise ValidationError(
                    f"Siswa {data.name} ({data.nisn}) tidak dapat diimpor. Kelas di file "
                    f"('{data.class_name}') tidak cocok dengan kelas yang Anda ajar ('{class_taught}')."
                )
            return await self._insert_student(current_user, data)

        result = await run_batch(
            rows,
            import_row,
            describe=lambda row: row.get("NISN") or row.get("Nama"),
            savepoint=self.db.begin_nested,
        )
        log.info(
            f"Teacher {current_user.id} imported students: "
            f"{result.success_count} succeeded, {result.fail_count} failed."
        )
        return student_models.StudentImportResult(
            success_count=result.success_count,
            fail_count=result.fail_count,
            imported=[student_models.StudentRead.model_validate(s) for s in result.succeeded],
            errors=[student_models.ImportRowError(row=f.item, error=f.error) for f in result.failed],
        )

    # --- parent linking ---

    async def get_student_for_parent_registration(
        self, nisn: str
    ) -> student_models.StudentLookupResponse:
        nisn = nisn.strip()
        stmt = select(db_models.Students).filter(db_models.Students.nisn == nisn)
        student = (await self.db.execute(stmt)).scalars().first()
        if student is None:
            raise NotFoundError("Siswa dengan NISN tersebut tidak ditemukan.")
        if student.parent_id is not None:
            log.warning(f"Parent registration refused: student {student.id} is already linked.")
            raise ConflictError(f"Siswa {student.name} sudah terhubung dengan akun orang tua lain.")
        return student_models.StudentLookupResponse(student_id=student.id, student_name=student.name)

    async def link_student_to_parent(
        self,
        student_id: UUID,
        parent_id: UUID,
        actor: Optional[db_models.Profiles] = None,
    ):
        """
        Sets `parent_id` once. The update is conditional on the column still
        being empty, so two racing links cannot both succeed.
        """
        if actor is not None:
            policy = AccessPolicy(actor)
            if not policy.is_admin and actor.id != parent_id:
                log.warning(f"User {actor.id} tried to link student {student_id} to parent {parent_id}.")
                raise AuthorizationError("Akses ditolak. Anda tidak dapat menghubungkan siswa ke akun lain.")

        parent = await self.db.get(db_models.Profiles, parent_id)
        if parent is None or parent.role != UserRole.PARENT.value:
            raise NotFoundError("Akun orang tua tidak ditemukan.")
        student = await self._get_student_or_404(student_id)

        stmt = (
            update(db_models.Students)
            .where(db_models.Students.id == student_id, db_models.Students.parent_id.is_(None))
            .values(parent_id=parent_id)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            raise ConflictError("Siswa sudah terhubung dengan akun orang tua lain.")
        await self.db.flush()
        await self.db.refresh(student)
        log.info(f"Student {student_id} linked to parent {parent_id}.")
