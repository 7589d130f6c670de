'''
Pure balance folding and recap assembly.

Nothing here touches the database: callers hand in plain rows (ORM objects,
pydantic models or dicts) and get pydantic value models back.
'''
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional
from uuid import UUID

from ..database.db_enums import TransactionType
from ..models.finance import BalanceSummary, PeriodTotals, StudentPeriodSummary
from ..models.saving_schedule import GroupedSavingSchedule

UNASSIGNED_TEACHER_NAME = "Guru Tidak Ditetapkan"
ZERO = Decimal("0")


def _field(row: Any, name: str, default: Any = None) -> Any:
    if isinstance(row, Mapping):
        return row.get(name, default)
    return getattr(row, name, default)


def _amount(row: Any) -> Decimal:
    value = _field(row, "amount")
    if value is None:
        return ZERO
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _type_value(row: Any) -> str:
    tx_type = _field(row, "type")
    return tx_type.value if isinstance(tx_type, TransactionType) else str(tx_type)


def aggregate(transactions: Iterable[Any]) -> BalanceSummary:
    """
    Folds transactions into deposits, withdrawals and the signed balance.
    The fold is commutative, so input order never changes the result.
    """
    deposits = ZERO
    withdrawals = ZERO
    for tx in transactions:
        tx_type = _type_value(tx)
        if tx_type == TransactionType.DEPOSIT.value:
            deposits += _amount(tx)
        elif tx_type == TransactionType.WITHDRAWAL.value:
            withdrawals += _amount(tx)
    return BalanceSummary(
        balance=deposits - withdrawals,
        total_deposits=deposits,
        total_withdrawals=withdrawals,
    )


def display_balance(raw_balance: Decimal) -> Decimal:
    return max(ZERO, raw_balance)


def can_withdraw(raw_balance: Decimal, amount: Decimal) -> bool:
    """Withdrawals are checked against the raw, unclamped balance."""
    return amount <= raw_balance


def aggregate_period(
    students: Iterable[Any],
    transactions_in_window: Iterable[Any],
    overall_balances: Mapping[UUID, Decimal],
) -> list[StudentPeriodSummary]:
    """
    Builds one recap row per student.

    `transactions_in_window` only feeds the period columns; the balance column
    always comes from `overall_balances` (all-time, raw). Rows are ordered by
    class, then by name.
    """
    per_student: dict[UUID, list[Any]] = {}
    for tx in transactions_in_window:
        per_student.setdefault(_field(tx, "student_id"), []).append(tx)

    rows = []
    for student in students:
        student_id = _field(student, "id")
        period = aggregate(per_student.get(student_id, []))
        rows.append(StudentPeriodSummary(
            student_id=student_id,
            student_name=_field(student, "name"),
            nisn=_field(student, "nisn"),
            class_name=_field(student, "class_name") or "",
            overall_current_balance=overall_balances.get(student_id, ZERO),
            period_deposits=period.total_deposits,
            period_withdrawals=period.total_withdrawals,
        ))
    rows.sort(key=lambda row: (row.class_name, row.student_name))
    return rows


def period_totals(rows: Iterable[StudentPeriodSummary]) -> PeriodTotals:
    totals = PeriodTotals()
    for row in rows:
        totals.total_period_deposits += row.period_deposits
        totals.total_period_withdrawals += row.period_withdrawals
    return totals


def has_period_activity(row: StudentPeriodSummary) -> bool:
    return row.period_deposits > 0 or row.period_withdrawals > 0


def schedule_group_key(
    class_name: str,
    amount_expected: Decimal,
    frequency: Any,
    day_of_week: Optional[Any],
    teacher_name: str,
) -> tuple:
    """Plain-value key: rows that agree on every component collapse into one group."""
    frequency = getattr(frequency, "value", frequency)
    day_of_week = getattr(day_of_week, "value", day_of_week) or ""
    return (class_name, Decimal(str(amount_expected)), frequency, day_of_week, teacher_name)


def group_saving_schedules(rows: Iterable[Any]) -> list[GroupedSavingSchedule]:
    """
    Collapses per-student schedule rows into logical schedules.

    Each row needs `amount_expected`, `frequency`, `day_of_week`,
    `class_name` and `teacher_name`. Rows without a class are skipped.
    Groups keep the order in which their first row was seen.
    """
    groups: dict[tuple, GroupedSavingSchedule] = {}
    for row in rows:
        class_name = _field(row, "class_name")
        if not class_name:
            continue
        teacher_name = (_field(row, "teacher_name") or "").strip() or UNASSIGNED_TEACHER_NAME
        key = schedule_group_key(
            class_name,
            _field(row, "amount_expected"),
            _field(row, "frequency"),
            _field(row, "day_of_week"),
            teacher_name,
        )
        group = groups.get(key)
        if group is None:
            groups[key] = GroupedSavingSchedule(
                class_name=class_name,
                amount_expected=key[1],
                frequency=key[2],
                day_of_week=key[3] or None,
                teacher_name=teacher_name,
                student_count=1,
            )
        else:
            group.student_count += 1
    return list(groups.values())
