from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKeyConstraint, Index, Numeric, PrimaryKeyConstraint, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
import datetime
import decimal
import uuid


NISN_MAX_LENGTH = 32


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class Base(DeclarativeBase):
    pass


class Profiles(Base):
    __tablename__ = 'profiles'
    __table_args__ = (
        PrimaryKeyConstraint('id', name='profiles_pkey'),
        UniqueConstraint('email', name='profiles_email_key'),
        Index('idx_profiles_role', 'role'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255))
    password: Mapped[str] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(Enum('admin', 'teacher', 'parent', name='user_role'))
    first_name: Mapped[Optional[str]] = mapped_column(Text)
    last_name: Mapped[Optional[str]] = mapped_column(Text)
    class_taught: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class Students(Base):
    __tablename__ = 'students'
    __table_args__ = (
        ForeignKeyConstraint(['teacher_id'], ['profiles.id'], ondelete='SET NULL', name='students_teacher_id_fkey'),
        ForeignKeyConstraint(['parent_id'], ['profiles.id'], ondelete='SET NULL', name='students_parent_id_fkey'),
        PrimaryKeyConstraint('id', name='students_pkey'),
        UniqueConstraint('nisn', name='students_nisn_key'),
        Index('idx_students_class', 'class'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text)
    nisn: Mapped[str] = mapped_column(String(NISN_MAX_LENGTH))
    class_name: Mapped[str] = mapped_column('class', Text)
    teacher_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow)

    teacher: Mapped[Optional['Profiles']] = relationship('Profiles', foreign_keys=[teacher_id])
    parent: Mapped[Optional['Profiles']] = relationship('Profiles', foreign_keys=[parent_id])


class Transactions(Base):
    __tablename__ = 'transactions'
    __table_args__ = (
        ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE', name='transactions_student_id_fkey'),
        ForeignKeyConstraint(['teacher_id'], ['profiles.id'], name='transactions_teacher_id_fkey'),
        PrimaryKeyConstraint('id', name='transactions_pkey'),
        Index('idx_transactions_student_id', 'student_id'),
        Index('idx_transactions_created_at', 'created_at'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    teacher_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    amount: Mapped[decimal.Decimal] = mapped_column(Numeric(14, 2))
    type: Mapped[str] = mapped_column(Enum('deposit', 'withdrawal', name='transaction_type'))
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow)

    student: Mapped['Students'] = relationship('Students')
    teacher: Mapped[Optional['Profiles']] = relationship('Profiles')


class SavingSchedules(Base):
    __tablename__ = 'saving_schedules'
    __table_args__ = (
        CheckConstraint(
            "(frequency = 'weekly' AND day_of_week IS NOT NULL) OR (frequency <> 'weekly' AND day_of_week IS NULL)",
            name='weekly_requires_day_of_week'
        ),
        ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE', name='saving_schedules_student_id_fkey'),
        ForeignKeyConstraint(['teacher_id'], ['profiles.id'], ondelete='SET NULL', name='saving_schedules_teacher_id_fkey'),
        PrimaryKeyConstraint('id', name='saving_schedules_pkey'),
        Index('idx_saving_schedules_student_id', 'student_id'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    teacher_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    amount_expected: Mapped[decimal.Decimal] = mapped_column(Numeric(14, 2))
    frequency: Mapped[str] = mapped_column(Enum('daily', 'weekly', 'monthly', name='saving_frequency'))
    day_of_week: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow)

    student: Mapped['Students'] = relationship('Students')
    teacher: Mapped[Optional['Profiles']] = relationship('Profiles')
