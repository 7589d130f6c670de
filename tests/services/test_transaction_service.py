import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from tabunganku_backend.common.exceptions import AuthorizationError, NotFoundError, ValidationError
from tabunganku_backend.database.db_enums import TransactionType
from tabunganku_backend.models import finance as finance_models
from tabunganku_backend.services.student_service import StudentService
from tabunganku_backend.services.transaction_service import TransactionService

from tests.constants import (
    TEST_TEACHER_ID, TEST_ADMIN_ID,
    TEST_STUDENT_ID, TEST_STUDENT_BALANCE, TEST_UNRELATED_STUDENT_ID,
    TEST_DEPOSIT_ID, TEST_UNRELATED_DEPOSIT_ID,
    SEED_TIME,
)
from tests.database import factories


def deposit(amount, student_id=TEST_STUDENT_ID, description=None):
    return finance_models.TransactionCreate(
        student_id=student_id, amount=Decimal(str(amount)), type=TransactionType.DEPOSIT, description=description,
    )


def withdrawal(amount, student_id=TEST_STUDENT_ID):
    return finance_models.TransactionCreate(
        student_id=student_id, amount=Decimal(str(amount)), type=TransactionType.WITHDRAWAL,
    )


@pytest.mark.anyio
class TestCreateTransaction:

    async def test_teacher_records_deposit(
        self, transaction_service: TransactionService, student_service: StudentService, test_teacher_orm,
    ):
        tx = await transaction_service.create_transaction(test_teacher_orm, deposit(5000, description="  "))

        print(tx.model_dump())
        assert tx.teacher_id == TEST_TEACHER_ID
        assert tx.student_name == "Andi Wijaya"
        assert tx.teacher_name == "Budi Santoso"
        assert tx.description is None

        summary = await student_service.get_summary(test_teacher_orm, TEST_STUDENT_ID)
        assert summary.summary.balance == TEST_STUDENT_BALANCE + 5000

    async def test_admin_is_recorded_as_actor(self, transaction_service: TransactionService, test_admin_orm):
        tx = await transaction_service.create_transaction(test_admin_orm, deposit(1000, TEST_UNRELATED_STUDENT_ID))
        assert tx.teacher_id == TEST_ADMIN_ID

    async def test_withdraw_whole_balance(self, transaction_service: TransactionService, test_teacher_orm):
        tx = await transaction_service.create_transaction(test_teacher_orm, withdrawal(TEST_STUDENT_BALANCE))
        assert tx.type == TransactionType.WITHDRAWAL

    async def test_withdraw_more_than_balance(self, transaction_service: TransactionService, test_teacher_orm):
        with pytest.raises(ValidationError) as e:
            await transaction_service.create_transaction(test_teacher_orm, withdrawal(TEST_STUDENT_BALANCE + 1))
        assert e.value.message == "Jumlah penarikan melebihi saldo yang tersedia."

    async def test_withdrawal_checks_raw_negative_balance(
        self, transaction_service: TransactionService, test_teacher_orm, db_session: AsyncSession,
    ):
        """A student pushed below zero by legacy data cannot withdraw anything."""
        factories.TransactionFactory.create(
            student_id=TEST_STUDENT_ID, teacher_id=TEST_TEACHER_ID,
            amount=Decimal("50000.00"), type="withdrawal", created_at=SEED_TIME + timedelta(hours=3),
        )
        await db_session.flush()
        with pytest.raises(ValidationError):
            await transaction_service.create_transaction(test_teacher_orm, withdrawal("0.01"))

    async def test_other_teacher_is_refused(self, transaction_service: TransactionService, test_unrelated_teacher_orm):
        with pytest.raises(AuthorizationError):
            await transaction_service.create_transaction(test_unrelated_teacher_orm, deposit(5000))

    async def test_parent_is_refused(self, transaction_service: TransactionService, test_parent_orm):
        with pytest.raises(AuthorizationError):
            await transaction_service.create_transaction(test_parent_orm, deposit(5000))

    async def test_unknown_student(self, transaction_service: TransactionService, test_teacher_orm):
        with pytest.raises(NotFoundError):
            await transaction_service.create_transaction(test_teacher_orm, deposit(5000, uuid.uuid4()))

    def test_amount_must_be_positive(self):
        with pytest.raises(ValueError):
            deposit(0)
        with pytest.raises(ValueError):
            deposit("-10")


@pytest.mark.anyio
class TestWeeklyScheduleDay:
    """Deposits for weekly savers only go through on the scheduled day (UTC+7)."""

    @pytest.fixture
    async def monday_schedule(self, db_session: AsyncSession):
        factories.SavingScheduleFactory.create(
            student_id=TEST_STUDENT_ID, teacher_id=TEST_TEACHER_ID,
            frequency="weekly", day_of_week="Monday",
        )
        await db_session.flush()

    async def test_deposit_on_scheduled_day(
        self, transaction_service: TransactionService, test_teacher_orm, monday_schedule,
    ):
        tx = await transaction_service.create_transaction(test_teacher_orm, deposit(5000), now=SEED_TIME)
        assert tx.amount == Decimal("5000")

    async def test_deposit_on_other_day(
        self, transaction_service: TransactionService, test_teacher_orm, monday_schedule,
    ):
        with pytest.raises(ValidationError) as e:
            await transaction_service.create_transaction(
                test_teacher_orm, deposit(5000), now=SEED_TIME + timedelta(days=1)
            )
        assert e.value.message == "Setoran hanya dapat dilakukan pada hari Senin sesuai jadwal."

    async def test_day_is_judged_in_school_time(
        self, transaction_service: TransactionService, test_teacher_orm, monday_schedule,
    ):
        # Sunday 18:00 UTC is Monday 01:00 at school.
        sunday_evening_utc = SEED_TIME - timedelta(hours=9)
        tx = await transaction_service.create_transaction(test_teacher_orm, deposit(5000), now=sunday_evening_utc)
        assert tx.type == TransactionType.DEPOSIT

    async def test_withdrawal_ignores_schedule(
        self, transaction_service: TransactionService, test_teacher_orm, monday_schedule,
    ):
        tx = await transaction_service.create_transaction(test_teacher_orm, withdrawal(1000))
        assert tx.type == TransactionType.WITHDRAWAL


@pytest.mark.anyio
class TestListTransactions:

    async def test_admin_sees_all(self, transaction_service: TransactionService, test_admin_orm):
        page = await transaction_service.list_transactions(test_admin_orm)
        assert page.total == 4
        assert len(page.items) == 4

    async def test_teacher_scope_and_filters(self, transaction_service: TransactionService, test_teacher_orm):
        page = await transaction_service.list_transactions(test_teacher_orm)
        assert page.total == 3
        assert all(item.student_id == TEST_STUDENT_ID for item in page.items)

        deposits = await transaction_service.list_transactions(test_teacher_orm, tx_type=TransactionType.DEPOSIT)
        assert deposits.total == 2

        other_class = await transaction_service.list_transactions(test_teacher_orm, class_name="Kelas 2")
        assert other_class.total == 0

    async def test_pagination(self, transaction_service: TransactionService, test_admin_orm):
        page = await transaction_service.list_transactions(test_admin_orm, page=2, per_page=3)
        assert page.total == 4
        assert len(page.items) == 1
        # oldest transaction comes last
        assert page.items[0].id == TEST_UNRELATED_DEPOSIT_ID

    async def test_get_transaction_scoped(
        self, transaction_service: TransactionService, test_parent_orm, test_unrelated_teacher_orm,
    ):
        tx = await transaction_service.get_transaction(test_parent_orm, TEST_DEPOSIT_ID)
        assert tx.amount == Decimal("50000")
        with pytest.raises(AuthorizationError):
            await transaction_service.get_transaction(test_unrelated_teacher_orm, TEST_DEPOSIT_ID)


@pytest.mark.anyio
class TestAdminDeletes:

    async def test_delete_one(self, transaction_service: TransactionService, test_admin_orm):
        await transaction_service.delete_transaction_by_admin(test_admin_orm, TEST_DEPOSIT_ID)
        with pytest.raises(NotFoundError):
            await transaction_service.get_transaction(test_admin_orm, TEST_DEPOSIT_ID)
        with pytest.raises(NotFoundError):
            await transaction_service.delete_transaction_by_admin(test_admin_orm, TEST_DEPOSIT_ID)

    async def test_delete_all(self, transaction_service: TransactionService, test_admin_orm):
        deleted = await transaction_service.delete_all_transactions_by_admin(test_admin_orm)
        assert deleted == 4
        page = await transaction_service.list_transactions(test_admin_orm)
        assert page.total == 0

    async def test_teacher_cannot_delete(self, transaction_service: TransactionService, test_teacher_orm):
        with pytest.raises(AuthorizationError):
            await transaction_service.delete_transaction_by_admin(test_teacher_orm, TEST_DEPOSIT_ID)
        with pytest.raises(AuthorizationError):
            await transaction_service.delete_all_transactions_by_admin(test_teacher_orm)
