from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tabunganku_backend.common.exceptions import AuthorizationError, ValidationError
from tabunganku_backend.core.aggregator import UNASSIGNED_TEACHER_NAME
from tabunganku_backend.database import models as db_models
from tabunganku_backend.database.db_enums import DayOfWeek, SavingFrequency
from tabunganku_backend.models import saving_schedule as schedule_models
from tabunganku_backend.services.saving_schedule_service import SavingScheduleService

from tests.constants import (
    TEST_TEACHER_ID, TEST_UNRELATED_TEACHER_ID,
    TEST_STUDENT_ID, TEST_UNLINKED_STUDENT_ID, TEST_UNRELATED_STUDENT_ID,
)
from tests.database import factories


async def schedule_rows(db_session: AsyncSession) -> list[tuple]:
    """Reads straight from the table, bypassing objects cached in the session."""
    stmt = select(
        db_models.SavingSchedules.student_id,
        db_models.SavingSchedules.amount_expected,
        db_models.SavingSchedules.frequency,
        db_models.SavingSchedules.day_of_week,
    )
    return list((await db_session.execute(stmt)).all())


@pytest.mark.anyio
class TestCreateForClass:

    async def test_one_row_per_student(
        self, saving_schedule_service: SavingScheduleService, test_admin_orm, db_session: AsyncSession,
    ):
        data = schedule_models.SavingScheduleCreate(
            class_name="Kelas 1", amount_expected=Decimal("5000"), frequency=SavingFrequency.WEEKLY,
            day_of_week=DayOfWeek.MONDAY,
        )
        result = await saving_schedule_service.create_for_class(test_admin_orm, data)

        assert result.created_count == 2
        assert result.failed_count == 0
        rows = await schedule_rows(db_session)
        assert {row.student_id for row in rows} == {TEST_STUDENT_ID, TEST_UNLINKED_STUDENT_ID}
        assert all(row.day_of_week == "Monday" for row in rows)

    async def test_rows_take_the_students_teacher(
        self, saving_schedule_service: SavingScheduleService, test_admin_orm, db_session: AsyncSession,
    ):
        data = schedule_models.SavingScheduleCreate(
            class_name="Kelas 2", amount_expected=Decimal("2000"), frequency=SavingFrequency.DAILY,
        )
        await saving_schedule_service.create_for_class(test_admin_orm, data)
        teacher_ids = (await db_session.execute(select(db_models.SavingSchedules.teacher_id))).scalars().all()
        assert teacher_ids == [TEST_UNRELATED_TEACHER_ID]

    async def test_empty_class(self, saving_schedule_service: SavingScheduleService, test_admin_orm):
        data = schedule_models.SavingScheduleCreate(
            class_name="Kelas 6", amount_expected=Decimal("2000"), frequency=SavingFrequency.DAILY,
        )
        with pytest.raises(ValidationError):
            await saving_schedule_service.create_for_class(test_admin_orm, data)

    async def test_teacher_cannot_create(self, saving_schedule_service: SavingScheduleService, test_teacher_orm):
        data = schedule_models.SavingScheduleCreate(
            class_name="Kelas 1", amount_expected=Decimal("2000"), frequency=SavingFrequency.DAILY,
        )
        with pytest.raises(AuthorizationError):
            await saving_schedule_service.create_for_class(test_teacher_orm, data)

    def test_weekly_needs_a_day_and_others_forbid_one(self):
        with pytest.raises(ValueError):
            schedule_models.SavingScheduleCreate(
                class_name="Kelas 1", amount_expected=Decimal("1000"), frequency=SavingFrequency.WEEKLY,
            )
        with pytest.raises(ValueError):
            schedule_models.SavingScheduleCreate(
                class_name="Kelas 1", amount_expected=Decimal("1000"), frequency=SavingFrequency.DAILY,
                day_of_week=DayOfWeek.MONDAY,
            )
        blank_day = schedule_models.SavingScheduleCreate(
            class_name="Kelas 1", amount_expected=Decimal("1000"), frequency="monthly", day_of_week="",
        )
        assert blank_day.day_of_week is None


@pytest.mark.anyio
class TestGroupedSchedules:
    """
    Kelas 1 gets a third student; all three save 5000 weekly on Monday and
    one of them also has a Tuesday row.
    """

    @pytest.fixture
    async def kelas_1_schedules(self, db_session: AsyncSession):
        extra = factories.StudentFactory.create(
            name="Zahra", nisn="0012345699", class_name="Kelas 1", teacher_id=TEST_TEACHER_ID,
        )
        await db_session.flush()
        for student_id in (TEST_STUDENT_ID, TEST_UNLINKED_STUDENT_ID, extra.id):
            factories.SavingScheduleFactory.create(
                student_id=student_id, teacher_id=TEST_TEACHER_ID,
                amount_expected=Decimal("5000.00"), frequency="weekly", day_of_week="Monday",
            )
        factories.SavingScheduleFactory.create(
            student_id=TEST_STUDENT_ID, teacher_id=TEST_TEACHER_ID,
            amount_expected=Decimal("5000.00"), frequency="weekly", day_of_week="Tuesday",
        )
        await db_session.flush()
        return extra

    async def test_admin_grouped_view(
        self, saving_schedule_service: SavingScheduleService, test_admin_orm, kelas_1_schedules,
    ):
        groups = await saving_schedule_service.list_grouped(test_admin_orm)

        print([g.model_dump(by_alias=True) for g in groups])
        counts = {(g.class_name, g.day_of_week): g.student_count for g in groups}
        assert counts == {("Kelas 1", DayOfWeek.MONDAY): 3, ("Kelas 1", DayOfWeek.TUESDAY): 1}
        assert all(g.teacher_name == "Budi Santoso" for g in groups)

    async def test_teacher_grouped_view_is_scoped(
        self, saving_schedule_service: SavingScheduleService, test_unrelated_teacher_orm, kelas_1_schedules,
    ):
        assert await saving_schedule_service.list_grouped_for_teacher(test_unrelated_teacher_orm) == []

    async def test_parent_sees_own_child_rows(
        self, saving_schedule_service: SavingScheduleService, test_parent_orm, kelas_1_schedules,
    ):
        rows = await saving_schedule_service.list_for_parent(test_parent_orm)
        assert len(rows) == 2
        assert all(row.student_id == TEST_STUDENT_ID for row in rows)
        assert rows[0].student_name == "Andi Wijaya"

    async def test_update_grouped_touches_only_matching_rows(
        self, saving_schedule_service: SavingScheduleService, test_admin_orm,
        kelas_1_schedules, db_session: AsyncSession,
    ):
        data = schedule_models.GroupedScheduleUpdate(
            oldClass="Kelas 1", oldAmountExpected=Decimal("5000"), oldFrequency="weekly", oldDayOfWeek="Monday",
            newAmountExpected=Decimal("7500"), newFrequency="weekly", newDayOfWeek="Wednesday",
        )
        updated = await saving_schedule_service.update_grouped(test_admin_orm, data)

        assert updated == 3
        rows = await schedule_rows(db_session)
        days = sorted(row.day_of_week for row in rows)
        assert days == ["Tuesday", "Wednesday", "Wednesday", "Wednesday"]
        tuesday = [row for row in rows if row.day_of_week == "Tuesday"][0]
        assert tuesday.amount_expected == Decimal("5000")

    async def test_delete_grouped(
        self, saving_schedule_service: SavingScheduleService, test_admin_orm,
        kelas_1_schedules, db_session: AsyncSession,
    ):
        data = schedule_models.GroupedScheduleDelete(
            **{"class": "Kelas 1", "amountExpected": "5000", "frequency": "weekly", "dayOfWeek": "Tuesday"}
        )
        deleted = await saving_schedule_service.delete_grouped(test_admin_orm, data)

        assert deleted == 1
        assert len(await schedule_rows(db_session)) == 3

    async def test_delete_grouped_without_day_matches_null_day(
        self, saving_schedule_service: SavingScheduleService, test_admin_orm, db_session: AsyncSession,
    ):
        factories.SavingScheduleFactory.create(
            student_id=TEST_UNRELATED_STUDENT_ID, teacher_id=TEST_UNRELATED_TEACHER_ID,
            amount_expected=Decimal("2000.00"), frequency="daily", day_of_week=None,
        )
        await db_session.flush()
        data = schedule_models.GroupedScheduleDelete(
            **{"class": "Kelas 2", "amountExpected": "2000", "frequency": "daily", "dayOfWeek": ""}
        )
        assert await saving_schedule_service.delete_grouped(test_admin_orm, data) == 1

    async def test_unassigned_teacher_name(
        self, saving_schedule_service: SavingScheduleService, test_admin_orm, db_session: AsyncSession,
    ):
        factories.SavingScheduleFactory.create(
            student_id=TEST_UNRELATED_STUDENT_ID, teacher_id=None,
            amount_expected=Decimal("2000.00"), frequency="daily",
        )
        await db_session.flush()
        groups = await saving_schedule_service.list_grouped(test_admin_orm)
        assert groups[0].teacher_name == UNASSIGNED_TEACHER_NAME

    async def test_grouped_operations_are_admin_only(
        self, saving_schedule_service: SavingScheduleService, test_teacher_orm,
    ):
        data = schedule_models.GroupedScheduleDelete(
            **{"class": "Kelas 1", "amountExpected": "5000", "frequency": "daily"}
        )
        with pytest.raises(AuthorizationError):
            await saving_schedule_service.delete_grouped(test_teacher_orm, data)
        with pytest.raises(AuthorizationError):
            await saving_schedule_service.list_grouped(test_teacher_orm)
