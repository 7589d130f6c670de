'''
Row visibility rules per role.

admin   -> every row
teacher -> students whose teacher_id is the teacher, and their rows
parent  -> students whose parent_id is the parent, and their rows
'''
from typing import Optional

from sqlalchemy import Select, false, select, true
from sqlalchemy.sql.elements import ColumnElement

from ..common.exceptions import AuthorizationError
from ..common.logger import log
from ..database import models as db_models
from ..database.db_enums import UserRole


class AccessPolicy:
    def __init__(self, user: db_models.Profiles):
        self.user = user

    @property
    def role(self) -> Optional[UserRole]:
        try:
            return UserRole(self.user.role)
        except ValueError:
            return None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_teacher(self) -> bool:
        return self.role == UserRole.TEACHER

    @property
    def is_parent(self) -> bool:
        return self.role == UserRole.PARENT

    def require_role(self, *roles: UserRole, message: Optional[str] = None):
        if self.role not in roles:
            allowed = ", ".join(role.value for role in roles)
            raise AuthorizationError(message or f"Akses ditolak. Peran yang diizinkan: {allowed}.")

    def require_admin(self, action: str):
        """`action` completes "Hanya Admin yang dapat ..."."""
        if not self.is_admin:
            log.warning(f"Non-admin {self.user.id} attempted to {action}.")
            raise AuthorizationError(f"Akses ditolak. Hanya Admin yang dapat {action}.")

    # --- query scoping ---

    def student_clause(self) -> ColumnElement[bool]:
        if self.is_admin:
            return true()
        if self.is_teacher:
            return db_models.Students.teacher_id == self.user.id
        if self.is_parent:
            return db_models.Students.parent_id == self.user.id
        return false()

    def scope_students(self, stmt: Select) -> Select:
        if self.is_admin:
            return stmt
        return stmt.filter(self.student_clause())

    def _visible_student_ids(self) -> Select:
        return select(db_models.Students.id).filter(self.student_clause())

    def scope_transactions(self, stmt: Select) -> Select:
        if self.is_admin:
            return stmt
        return stmt.filter(db_models.Transactions.student_id.in_(self._visible_student_ids()))

    def scope_schedules(self, stmt: Select) -> Select:
        if self.is_admin:
            return stmt
        return stmt.filter(db_models.SavingSchedules.student_id.in_(self._visible_student_ids()))

    # --- single-row checks ---

    def can_view_student(self, student: db_models.Students) -> bool:
        if self.is_admin:
            return True
        if self.is_teacher:
            return student.teacher_id == self.user.id
        if self.is_parent:
            return student.parent_id == self.user.id
        return False

    def can_manage_student(self, student: db_models.Students) -> bool:
        """Writing student data or recording transactions for them."""
        if self.is_admin:
            return True
        return self.is_teacher and student.teacher_id == self.user.id

    def ensure_can_view_student(self, student: db_models.Students):
        if not self.can_view_student(student):
            raise AuthorizationError("Anda tidak memiliki akses ke data siswa ini.")

    def ensure_can_manage_student(self, student: db_models.Students):
        if not self.can_manage_student(student):
            raise AuthorizationError("Anda tidak memiliki izin untuk mengelola siswa ini.")
