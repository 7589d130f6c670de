import io
import uuid

import openpyxl
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tabunganku_backend.common.exceptions import (
    AuthorizationError, ConflictError, NotFoundError, ValidationError,
)
from tabunganku_backend.database import models as db_models
from tabunganku_backend.models import student as student_models
from tabunganku_backend.services.student_service import StudentService

from tests.constants import (
    TEST_TEACHER_ID, TEST_PARENT_ID, TEST_UNRELATED_PARENT_ID,
    TEST_STUDENT_ID, TEST_STUDENT_NISN, TEST_STUDENT_BALANCE,
    TEST_UNLINKED_STUDENT_ID, TEST_UNLINKED_STUDENT_NISN,
    TEST_UNRELATED_STUDENT_ID,
)
from tests.database import factories


def make_workbook(rows) -> bytes:
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    output = io.BytesIO()
    workbook.save(output)
    return output.getvalue()


@pytest.mark.anyio
class TestStudentServiceRead:

    async def test_admin_sees_everyone(self, student_service: StudentService, test_admin_orm):
        students = await student_service.list_students(test_admin_orm)
        assert len(students) == 3

    async def test_teacher_sees_own_class(self, student_service: StudentService, test_teacher_orm):
        students = await student_service.list_students(test_teacher_orm)
        assert {s.id for s in students} == {TEST_STUDENT_ID, TEST_UNLINKED_STUDENT_ID}
        assert all(s.teacher_id == TEST_TEACHER_ID for s in students)

    async def test_parent_sees_own_child(self, student_service: StudentService, test_parent_orm):
        students = await student_service.list_students(test_parent_orm)
        assert [s.id for s in students] == [TEST_STUDENT_ID]

    async def test_search_by_name_or_nisn(self, student_service: StudentService, test_admin_orm):
        by_name = await student_service.list_students(test_admin_orm, search="bunga")
        assert [s.id for s in by_name] == [TEST_UNLINKED_STUDENT_ID]
        by_nisn = await student_service.list_students(test_admin_orm, search=TEST_STUDENT_NISN)
        assert [s.id for s in by_nisn] == [TEST_STUDENT_ID]

    async def test_list_classes(self, student_service: StudentService, test_admin_orm, test_teacher_orm):
        assert await student_service.list_classes(test_admin_orm) == ["Kelas 1", "Kelas 2"]
        assert await student_service.list_classes(test_teacher_orm) == ["Kelas 1"]

    async def test_other_teachers_student_is_forbidden(
        self, student_service: StudentService, test_teacher_orm,
    ):
        with pytest.raises(AuthorizationError):
            await student_service.get_student(test_teacher_orm, TEST_UNRELATED_STUDENT_ID)

    async def test_missing_student(self, student_service: StudentService, test_admin_orm):
        with pytest.raises(NotFoundError):
            await student_service.get_student(test_admin_orm, uuid.uuid4())

    async def test_summary(self, student_service: StudentService, test_parent_orm):
        summary = await student_service.get_summary(test_parent_orm, TEST_STUDENT_ID)
        print(summary.model_dump(by_alias=True))
        assert summary.summary.balance == TEST_STUDENT_BALANCE
        assert summary.summary.total_deposits == 60000
        assert summary.summary.total_withdrawals == 20000

    async def test_transactions_newest_first(self, student_service: StudentService, test_teacher_orm):
        transactions = await student_service.list_transactions(test_teacher_orm, TEST_STUDENT_ID)
        assert [tx.type for tx in transactions] == ["deposit", "withdrawal", "deposit"]
        assert transactions[0].created_at > transactions[-1].created_at

    async def test_saving_schedule_is_latest_row(
        self, student_service: StudentService, test_parent_orm, db_session: AsyncSession,
    ):
        assert await student_service.get_saving_schedule(test_parent_orm, TEST_STUDENT_ID) is None

        factories.SavingScheduleFactory.create(student_id=TEST_STUDENT_ID, teacher_id=TEST_TEACHER_ID)
        await db_session.flush()

        schedule = await student_service.get_saving_schedule(test_parent_orm, TEST_STUDENT_ID)
        assert schedule is not None
        assert schedule.frequency == "daily"


@pytest.mark.anyio
class TestStudentServiceWrite:

    async def test_teacher_creates_student(self, student_service: StudentService, test_teacher_orm):
        student = await student_service.create_student(
            test_teacher_orm, student_models.StudentCreate(name=" Dimas ", nisn="0055500001", class_name="Kelas 1")
        )
        assert student.name == "Dimas"
        assert student.teacher_id == TEST_TEACHER_ID
        assert student.parent_id is None

    async def test_admin_cannot_create_student(self, student_service: StudentService, test_admin_orm):
        with pytest.raises(AuthorizationError):
            await student_service.create_student(
                test_admin_orm, student_models.StudentCreate(name="X", nisn="1", class_name="Kelas 1")
            )

    async def test_duplicate_nisn(self, student_service: StudentService, test_teacher_orm):
        with pytest.raises(ConflictError):
            await student_service.create_student(
                test_teacher_orm,
                student_models.StudentCreate(name="Dupe", nisn=TEST_STUDENT_NISN, class_name="Kelas 1"),
            )

    async def test_invalid_class(self):
        with pytest.raises(ValueError):
            student_models.StudentCreate(name="X", nisn="1", class_name="Kelas 9")

    async def test_nisn_longer_than_column(self):
        with pytest.raises(ValueError):
            student_models.StudentCreate(name="X", nisn="1" * 33, class_name="Kelas 1")
        with pytest.raises(ValueError):
            student_models.StudentUpdate(nisn="1" * 33)

    async def test_update_student(self, student_service: StudentService, test_teacher_orm):
        student = await student_service.update_student(
            test_teacher_orm, TEST_UNLINKED_STUDENT_ID, student_models.StudentUpdate(name="Bunga Citra Lestari"),
        )
        assert student.name == "Bunga Citra Lestari"
        assert student.nisn == TEST_UNLINKED_STUDENT_NISN

    async def test_update_to_taken_nisn(self, student_service: StudentService, test_teacher_orm):
        with pytest.raises(ConflictError):
            await student_service.update_student(
                test_teacher_orm, TEST_UNLINKED_STUDENT_ID, student_models.StudentUpdate(nisn=TEST_STUDENT_NISN),
            )

    async def test_parent_cannot_update(self, student_service: StudentService, test_parent_orm):
        with pytest.raises(AuthorizationError):
            await student_service.update_student(
                test_parent_orm, TEST_STUDENT_ID, student_models.StudentUpdate(name="Hacked"),
            )

    async def test_delete_removes_dependents(
        self, student_service: StudentService, test_admin_orm, db_session: AsyncSession,
    ):
        factories.SavingScheduleFactory.create(student_id=TEST_STUDENT_ID, teacher_id=TEST_TEACHER_ID)
        await db_session.flush()

        await student_service.delete_student(test_admin_orm, TEST_STUDENT_ID)

        tx_left = (await db_session.execute(
            select(db_models.Transactions.id).filter(db_models.Transactions.student_id == TEST_STUDENT_ID)
        )).scalars().all()
        schedules_left = (await db_session.execute(
            select(db_models.SavingSchedules.id).filter(db_models.SavingSchedules.student_id == TEST_STUDENT_ID)
        )).scalars().all()
        assert tx_left == []
        assert schedules_left == []
        with pytest.raises(NotFoundError):
            await student_service.get_student(test_admin_orm, TEST_STUDENT_ID)


@pytest.mark.anyio
class TestStudentImport:

    async def test_partial_import(self, student_service: StudentService, test_teacher_orm):
        """Good rows are kept even when other rows fail."""
        content = make_workbook([
            ["Nama", "NISN", "Kelas"],
            ["Eka", "0066600001", "Kelas 1"],
            ["Fani", "0066600002", "Kelas 2"],
            ["Gilang", TEST_STUDENT_NISN, "Kelas 1"],
            ["Hana", "0066600004", "Kelas 9"],
            ["Indra", "0066600005", "Kelas 1"],
        ])
        result = await student_service.import_students(test_teacher_orm, content)

        print(result.model_dump())
        assert result.success_count == 2
        assert result.fail_count == 3
        assert [s.name for s in result.imported] == ["Eka", "Indra"]
        assert "tidak cocok dengan kelas yang Anda ajar" in result.errors[0].error
        assert "sudah terdaftar" in result.errors[1].error
        assert "gagal divalidasi" in result.errors[2].error

    async def test_failed_insert_does_not_break_the_session(
        self, student_service: StudentService, test_teacher_orm, db_session: AsyncSession, monkeypatch,
    ):
        """A row rejected by the unique constraint only rolls back itself."""
        async def skip_nisn_check(nisn, exclude_id=None):
            return None

        # let the duplicate reach the database instead of the pre-check
        monkeypatch.setattr(student_service, "_ensure_nisn_free", skip_nisn_check)
        content = make_workbook([
            ["Nama", "NISN", "Kelas"],
            ["Joko", "0077700001", "Kelas 1"],
            ["Kiki", TEST_STUDENT_NISN, "Kelas 1"],
            ["Lina", "0077700003", "Kelas 1"],
        ])
        result = await student_service.import_students(test_teacher_orm, content)

        print(result.model_dump())
        assert result.success_count == 2
        assert result.fail_count == 1
        assert [s.name for s in result.imported] == ["Joko", "Lina"]
        assert result.errors[0].error == f"NISN {TEST_STUDENT_NISN} sudah terdaftar."

        await db_session.flush()
        stored = (await db_session.execute(
            select(db_models.Students.name).filter(
                db_models.Students.nisn.in_(["0077700001", TEST_STUDENT_NISN, "0077700003"])
            ).order_by(db_models.Students.nisn)
        )).scalars().all()
        assert stored == ["Andi Wijaya", "Joko", "Lina"]

    async def test_overlong_nisn_row_fails_validation(self, student_service: StudentService, test_teacher_orm):
        content = make_workbook([
            ["Nama", "NISN", "Kelas"],
            ["Mira", "9" * 33, "Kelas 1"],
            ["Nanda", "0077700004", "Kelas 1"],
        ])
        result = await student_service.import_students(test_teacher_orm, content)

        assert [s.name for s in result.imported] == ["Nanda"]
        assert result.fail_count == 1
        assert "gagal divalidasi" in result.errors[0].error

    async def test_empty_file(self, student_service: StudentService, test_teacher_orm):
        with pytest.raises(ValidationError):
            await student_service.import_students(test_teacher_orm, make_workbook([["Nama", "NISN", "Kelas"]]))

    async def test_teacher_without_class(
        self, student_service: StudentService, test_teacher_orm,
    ):
        test_teacher_orm.class_taught = None
        with pytest.raises(ValidationError) as e:
            await student_service.import_students(test_teacher_orm, b"")
        assert "hubungi Admin" in e.value.message

    async def test_only_teachers_import(self, student_service: StudentService, test_admin_orm):
        with pytest.raises(AuthorizationError):
            await student_service.import_students(test_admin_orm, b"")


@pytest.mark.anyio
class TestParentLinking:

    async def test_lookup_for_registration(self, student_service: StudentService):
        lookup = await student_service.get_student_for_parent_registration(f" {TEST_UNLINKED_STUDENT_NISN} ")
        assert lookup.student_id == TEST_UNLINKED_STUDENT_ID
        assert lookup.student_name == "Bunga Citra"

    async def test_lookup_of_linked_student_conflicts(self, student_service: StudentService):
        with pytest.raises(ConflictError) as e:
            await student_service.get_student_for_parent_registration(TEST_STUDENT_NISN)
        assert "Andi Wijaya" in e.value.message

    async def test_link_once(self, student_service: StudentService, test_unlinked_student_orm):
        """The first link wins; a second parent is refused and the first link stays."""
        await student_service.link_student_to_parent(TEST_UNLINKED_STUDENT_ID, TEST_UNRELATED_PARENT_ID)
        assert test_unlinked_student_orm.parent_id == TEST_UNRELATED_PARENT_ID

        with pytest.raises(ConflictError):
            await student_service.link_student_to_parent(TEST_UNLINKED_STUDENT_ID, TEST_PARENT_ID)
        await student_service.db.refresh(test_unlinked_student_orm)
        assert test_unlinked_student_orm.parent_id == TEST_UNRELATED_PARENT_ID

    async def test_link_requires_parent_profile(self, student_service: StudentService):
        with pytest.raises(NotFoundError):
            await student_service.link_student_to_parent(TEST_UNLINKED_STUDENT_ID, TEST_TEACHER_ID)

    async def test_link_missing_student(self, student_service: StudentService):
        with pytest.raises(NotFoundError):
            await student_service.link_student_to_parent(uuid.uuid4(), TEST_PARENT_ID)

    async def test_parent_can_only_link_themselves(self, student_service: StudentService, test_parent_orm):
        with pytest.raises(AuthorizationError):
            await student_service.link_student_to_parent(
                TEST_UNLINKED_STUDENT_ID, TEST_UNRELATED_PARENT_ID, actor=test_parent_orm,
            )
