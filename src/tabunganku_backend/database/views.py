'''
Query equivalents of the precomputed database views
(`student_balances_view`, `app_global_stats_view`).

Both read the raw transaction rows at call time; nothing is cached.
'''
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from . import models as db_models
from .db_enums import TransactionType


def to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _totals_by_student_stmt() -> Select:
    return (
        select(
            db_models.Transactions.student_id,
            db_models.Transactions.type,
            func.sum(db_models.Transactions.amount),
        )
        .group_by(db_models.Transactions.student_id, db_models.Transactions.type)
    )


async def fetch_student_balances(
    db: AsyncSession,
    student_ids: Optional[list[UUID]] = None
) -> dict[UUID, Decimal]:
    """
    Returns the raw (unclamped) all-time balance for each requested student.
    Students without transactions are reported with a zero balance.
    """
    stmt = _totals_by_student_stmt()
    if student_ids is not None:
        if not student_ids:
            return {}
        stmt = stmt.filter(db_models.Transactions.student_id.in_(student_ids))

    balances: dict[UUID, Decimal] = {sid: Decimal("0") for sid in (student_ids or [])}
    for student_id, tx_type, total in (await db.execute(stmt)).all():
        signed = to_decimal(total) if tx_type == TransactionType.DEPOSIT.value else -to_decimal(total)
        balances[student_id] = balances.get(student_id, Decimal("0")) + signed
    return balances


async def fetch_global_stats(db: AsyncSession) -> dict:
    """Single-row school-wide figures."""
    total_students = (await db.execute(select(func.count(db_models.Students.id)))).scalar_one()

    stmt = select(
        db_models.Transactions.type,
        func.sum(db_models.Transactions.amount)
    ).group_by(db_models.Transactions.type)
    totals = {tx_type: to_decimal(total) for tx_type, total in (await db.execute(stmt)).all()}

    total_deposits = totals.get(TransactionType.DEPOSIT.value, Decimal("0"))
    total_withdrawals = totals.get(TransactionType.WITHDRAWAL.value, Decimal("0"))
    return {
        "total_students": total_students,
        "total_balance": total_deposits - total_withdrawals,
        "total_deposits": total_deposits,
        "total_withdrawals": total_withdrawals,
    }
