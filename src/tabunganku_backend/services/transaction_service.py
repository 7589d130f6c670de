'''
Deposits and withdrawals.
'''
from datetime import datetime
from decimal import Decimal
from typing import Optional, Annotated
from uuid import UUID
from fastapi import Depends
from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.engine import get_db_session
from ..database import models as db_models
from ..database.db_enums import DayOfWeek, SavingFrequency, TransactionType
from ..database.views import fetch_student_balances
from ..common.exceptions import AuthorizationError, NotFoundError, ValidationError
from ..common.logger import log
from ..core.access_policy import AccessPolicy
from ..core.aggregator import can_withdraw
from ..core.school_calendar import school_weekday
from ..models import finance as finance_models


class TransactionService:
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    def _base_query(self):
        return (
            select(db_models.Transactions, db_models.Students, db_models.Profiles)
            .join(db_models.Students, db_models.Transactions.student_id == db_models.Students.id)
            .outerjoin(db_models.Profiles, db_models.Transactions.teacher_id == db_models.Profiles.id)
        )

    @staticmethod
    def _to_read(
        tx: db_models.Transactions,
        student: db_models.Students,
        teacher: Optional[db_models.Profiles],
    ) -> finance_models.TransactionRead:
        return finance_models.TransactionRead(
            id=tx.id,
            student_id=tx.student_id,
            teacher_id=tx.teacher_id,
            amount=tx.amount,
            type=tx.type,
            description=tx.description,
            created_at=tx.created_at,
            student_name=student.name,
            student_class=student.class_name,
            student_nisn=student.nisn,
            teacher_name=teacher.full_name if teacher else None,
        )

    async def _check_schedule_day(self, student: db_models.Students, now: Optional[datetime]):
        """A deposit for a weekly saver must fall on the scheduled day (school time)."""
        stmt = (
            select(db_models.SavingSchedules)
            .filter(db_models.SavingSchedules.student_id == student.id)
            .order_by(db_models.SavingSchedules.created_at.desc())
        )
        schedule = (await self.db.execute(stmt)).scalars().first()
        if schedule is None or schedule.frequency != SavingFrequency.WEEKLY.value:
            return
        if not schedule.day_of_week:
            return

        scheduled_day = DayOfWeek(schedule.day_of_week)
        if school_weekday(now) != scheduled_day:
            log.warning(
                f"Deposit for student {student.id} refused: scheduled on {scheduled_day.value}."
            )
            raise ValidationError(
                f"Setoran hanya dapat dilakukan pada hari {scheduled_day.label_id} sesuai jadwal."
            )

    async def create_transaction(
        self,
        current_user: db_models.Profiles,
        data: finance_models.TransactionCreate,
        now: Optional[datetime] = None,
    ) -> finance_models.TransactionRead:
        student = await self.db.get(db_models.Students, data.student_id)
        if student is None:
            raise NotFoundError("Siswa tidak ditemukan.")
        policy = AccessPolicy(current_user)
        if not (policy.is_admin or policy.is_teacher):
            raise AuthorizationError("Hanya guru atau admin yang dapat mencatat transaksi.")
        policy.ensure_can_manage_student(student)

        if data.type == TransactionType.WITHDRAWAL:
            balances = await fetch_student_balances(self.db, [student.id])
            raw_balance = balances.get(student.id, Decimal("0"))
            if not can_withdraw(raw_balance, data.amount):
                log.warning(
                    f"Withdrawal of {data.amount} for student {student.id} refused: balance {raw_balance}."
                )
                raise ValidationError("Jumlah penarikan melebihi saldo yang tersedia.")
        else:
            await self._check_schedule_day(student, now)

        tx = db_models.Transactions(
            student_id=student.id,
            teacher_id=current_user.id,
            amount=data.amount,
            type=data.type.value,
            description=data.description,
        )
        self.db.add(tx)
        await self.db.flush()
        log.info(
            f"User {current_user.id} recorded {data.type.value} of {data.amount} for student {student.id}."
        )
        return self._to_read(tx, student, current_user)

    async def list_transactions(
        self,
        current_user: db_models.Profiles,
        tx_type: Optional[TransactionType] = None,
        class_name: Optional[str] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> finance_models.TransactionPage:
        policy = AccessPolicy(current_user)
        stmt = policy.scope_transactions(self._base_query())
        count_stmt = policy.scope_transactions(
            select(func.count(db_models.Transactions.id))
            .join(db_models.Students, db_models.Transactions.student_id == db_models.Students.id)
        )
        if tx_type is not None:
            stmt = stmt.filter(db_models.Transactions.type == tx_type.value)
            count_stmt = count_stmt.filter(db_models.Transactions.type == tx_type.value)
        if class_name and class_name != "all":
            stmt = stmt.filter(db_models.Students.class_name == class_name)
            count_stmt = count_stmt.filter(db_models.Students.class_name == class_name)

        total = (await self.db.execute(count_stmt)).scalar_one()
        stmt = (
            stmt.order_by(db_models.Transactions.created_at.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        rows = (await self.db.execute(stmt)).all()
        return finance_models.TransactionPage(
            items=[self._to_read(tx, student, teacher) for tx, student, teacher in rows],
            total=total,
            page=page,
            per_page=per_page,
        )

    async def get_transaction(
        self, current_user: db_models.Profiles, transaction_id: UUID
    ) -> finance_models.TransactionRead:
        stmt = self._base_query().filter(db_models.Transactions.id == transaction_id)
        row = (await self.db.execute(stmt)).first()
        if row is None:
            raise NotFoundError("Transaksi tidak ditemukan.")
        tx, student, teacher = row
        AccessPolicy(current_user).ensure_can_view_student(student)
        return self._to_read(tx, student, teacher)

    # --- admin only ---

    async def delete_transaction_by_admin(self, actor: db_models.Profiles, transaction_id: UUID):
        AccessPolicy(actor).require_admin("menghapus transaksi")
        result = await self.db.execute(
            delete(db_models.Transactions)
            .filter(db_models.Transactions.id == transaction_id)
            .execution_options(synchronize_session="evaluate")
        )
        if result.rowcount == 0:
            raise NotFoundError("Transaksi tidak ditemukan.")
        await self.db.flush()
        log.info(f"Admin {actor.id} deleted transaction {transaction_id}.")

    async def delete_all_transactions_by_admin(self, actor: db_models.Profiles) -> int:
        AccessPolicy(actor).require_admin("menghapus semua transaksi")
        result = await self.db.execute(
            delete(db_models.Transactions).execution_options(synchronize_session="evaluate")
        )
        await self.db.flush()
        log.info(f"Admin {actor.id} deleted all transactions ({result.rowcount} rows).")
        return result.rowcount
