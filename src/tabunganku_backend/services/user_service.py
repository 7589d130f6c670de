'''
Profile lookups, self-service account changes and the admin-only user
operations.
'''
from typing import Optional, Annotated
from uuid import UUID
from fastapi import Depends
from sqlalchemy import select, delete, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.engine import get_db_session
from ..database import models as db_models
from ..database.db_enums import UserRole
from ..common.exceptions import ConflictError, NotFoundError, ValidationError
from ..common.logger import log
from ..common.security_utils import HashedPassword, parent_email_for_nisn
from ..core.access_policy import AccessPolicy
from ..core.batch import run_batch
from ..models import user as user_models


class UserService:
    """
    Base service for profile-related database operations.
    """
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    async def get_user_by_email(self, email: str) -> db_models.Profiles | None:
        log.info(f"Fetching profile for email: {email}")
        try:
            stmt = select(db_models.Profiles).filter(
                func.lower(db_models.Profiles.email) == email.strip().lower()
            )
            result = await self.db.execute(stmt)
            return result.scalars().first()
        except Exception as e:
            log.error(f"Database error fetching profile by email {email}: {e}", exc_info=True)
            raise

    async def get_user_by_id(self, user_id: UUID) -> db_models.Profiles | None:
        log.info(f"Fetching profile for ID: {user_id}")
        try:
            return await self.db.get(db_models.Profiles, user_id)
        except Exception as e:
            log.error(f"Database error fetching profile by ID {user_id}: {e}", exc_info=True)
            raise

    async def get_role(self, email: str) -> Optional[str]:
        """Used by the session router. None when no profile exists."""
        user = await self.get_user_by_email(email)
        return user.role if user else None

    async def create_profile(
        self,
        email: str,
        password: str,
        role: UserRole,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        class_taught: Optional[str] = None,
    ) -> db_models.Profiles:
        """
        Inserts a profile with a hashed password.
        `class_taught` is only ever stored for teachers.
        """
        email = email.strip().lower()
        if await self.get_user_by_email(email):
            log.warning(f"Refusing to create profile: email {email} already registered.")
            raise ConflictError(f"Email {email} sudah terdaftar.")

        profile = db_models.Profiles(
            email=email,
            password=HashedPassword.get_hash(password),
            role=role.value,
            first_name=first_name or None,
            last_name=last_name or None,
            class_taught=class_taught if role == UserRole.TEACHER else None,
        )
        self.db.add(profile)
        await self.db.flush()
        log.info(f"Created {role.value} profile {profile.id} ({email}).")
        return profile

    async def register_teacher(self, data: user_models.TeacherRegister) -> db_models.Profiles:
        first_name, last_name = user_models.split_full_name(data.full_name)
        return await self.create_profile(
            email=data.email,
            password=data.password,
            role=UserRole.TEACHER,
            first_name=first_name,
            last_name=last_name,
            class_taught=data.class_taught,
        )

    async def update_me(
        self, current_user: db_models.Profiles, data: user_models.ProfileUpdate
    ) -> db_models.Profiles:
        update_data = data.model_dump(exclude_unset=True)
        for key, value in update_data.items():
            setattr(current_user, key, value or None)
        await self.db.flush()
        log.info(f"User {current_user.id} updated their profile: {list(update_data)}")
        return current_user

    async def change_password(
        self, current_user: db_models.Profiles, data: user_models.PasswordChange
    ):
        if not HashedPassword.verify(data.current_password, current_user.password):
            log.warning(f"Password change refused for {current_user.id}: wrong current password.")
            raise ValidationError("Kata sandi saat ini salah.")
        current_user.password = HashedPassword.get_hash(data.new_password)
        await self.db.flush()
        log.info(f"User {current_user.id} changed their password.")


class AdminService(UserService):
    """
    Privileged user operations. Every admin-only method re-checks the
    caller's stored role before doing anything.
    """

    async def check_admin_exists(self) -> bool:
        stmt = select(func.count(db_models.Profiles.id)).filter(
            db_models.Profiles.role == UserRole.ADMIN.value
        )
        return (await self.db.execute(stmt)).scalar_one() > 0

    async def get_admin_name(self) -> Optional[str]:
        stmt = (
            select(db_models.Profiles)
            .filter(db_models.Profiles.role == UserRole.ADMIN.value)
            .order_by(db_models.Profiles.created_at)
            .limit(1)
        )
        admin = (await self.db.execute(stmt)).scalars().first()
        if admin is None:
            return None
        return admin.full_name or None

    async def create_admin_user(self, data: user_models.AdminCreate) -> db_models.Profiles:
        """Initial setup: only allowed while no admin exists."""
        if await self.check_admin_exists():
            log.warning("Refusing to create an admin: one already exists.")
            raise ConflictError("Admin sudah ada. Silakan masuk dengan akun admin.")
        return await self.create_profile(
            email=data.email,
            password=data.password,
            role=UserRole.ADMIN,
            first_name=data.first_name,
            last_name=data.last_name,
        )

    async def create_user(
        self, actor: db_models.Profiles, data: user_models.UserCreateByAdmin
    ) -> db_models.Profiles:
        """
        Creates a teacher, or a parent linked to the student with `data.nisn`.
        For parents the student is checked before the account exists, so an
        already-linked student never leaves an orphaned parent behind.
        """
        AccessPolicy(actor).require_admin("membuat pengguna")
        first_name, last_name = (
            user_models.split_full_name(data.full_name) if data.full_name else (None, None)
        )

        if data.role == UserRole.PARENT:
            nisn = data.nisn.strip()
            student = (await self.db.execute(
                select(db_models.Students).filter(db_models.Students.nisn == nisn)
            )).scalars().first()
            if student is None:
                raise NotFoundError("Siswa dengan NISN tersebut tidak ditemukan.")
            if student.parent_id is not None:
                raise ConflictError(f"Siswa {student.name} sudah terhubung dengan akun orang tua lain.")

            parent = await self.create_profile(
                email=parent_email_for_nisn(nisn),
                password=data.password,
                role=UserRole.PARENT,
                first_name=data.full_name.strip() if data.full_name else None,
            )
            student.parent_id = parent.id
            await self.db.flush()
            log.info(f"Admin {actor.id} created parent {parent.id} linked to student {student.id}.")
            return parent

        return await self.create_profile(
            email=data.email,
            password=data.password,
            role=data.role,
            first_name=first_name,
            last_name=last_name,
            class_taught=data.class_taught,
        )

    async def get_user(self, actor: db_models.Profiles, user_id: UUID) -> db_models.Profiles:
        AccessPolicy(actor).require_admin("melihat data pengguna")
        user = await self.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError("Pengguna tidak ditemukan.")
        return user

    async def list_users(self, actor: db_models.Profiles) -> list[db_models.Profiles]:
        AccessPolicy(actor).require_admin("melihat daftar pengguna")
        stmt = select(db_models.Profiles).order_by(
            db_models.Profiles.role, db_models.Profiles.first_name, db_models.Profiles.email
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def update_user(
        self, actor: db_models.Profiles, data: user_models.UserUpdateByAdmin
    ) -> db_models.Profiles:
        AccessPolicy(actor).require_admin("memperbarui pengguna")
        user = await self.get_user_by_id(data.user_id)
        if user is None:
            raise NotFoundError("Pengguna tidak ditemukan.")

        user.first_name = data.first_name or None
        user.last_name = data.last_name or None
        user.role = data.role.value
        user.class_taught = data.class_taught if data.role == UserRole.TEACHER else None
        await self.db.flush()
        log.info(f"Admin {actor.id} updated user {user.id} (role={user.role}).")
        return user

    async def _is_referenced(self, user_id: UUID) -> bool:
        checks = [
            select(func.count(db_models.Students.id)).filter(or_(
                db_models.Students.teacher_id == user_id,
                db_models.Students.parent_id == user_id,
            )),
            select(func.count(db_models.Transactions.id)).filter(
                db_models.Transactions.teacher_id == user_id
            ),
            select(func.count(db_models.SavingSchedules.id)).filter(
                db_models.SavingSchedules.teacher_id == user_id
            ),
        ]
        for stmt in checks:
            if (await self.db.execute(stmt)).scalar_one() > 0:
                return True
        return False

    async def delete_user(self, actor: db_models.Profiles, user_id: UUID):
        AccessPolicy(actor).require_admin("menghapus pengguna")
        if user_id == actor.id:
            raise ValidationError("Anda tidak dapat menghapus akun Anda sendiri.")

        user = await self.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError("Pengguna tidak ditemukan.")
        if await self._is_referenced(user_id):
            log.warning(f"Refusing to delete user {user_id}: still referenced.")
            raise ConflictError(
                "Pengguna masih terhubung dengan data siswa, transaksi, atau jadwal menabung."
            )

        await self.db.execute(delete(db_models.Profiles).filter(db_models.Profiles.id == user_id))
        await self.db.flush()
        log.info(f"Admin {actor.id} deleted user {user_id} ({user.email}).")

    async def create_initial_users(
        self, actor: db_models.Profiles, data: user_models.InitialUsersRequest
    ) -> user_models.InitialUsersResponse:
        """Creates each user independently; failures are reported, not rolled back."""
        AccessPolicy(actor).require_admin("membuat pengguna awal")

        async def create_one(item: user_models.InitialUser) -> db_models.Profiles:
            if item.role == UserRole.PARENT:
                raise ValidationError("Akun orang tua harus dibuat melalui NISN siswa.")
            return await self.create_profile(
                email=item.email,
                password=item.password,
                role=item.role,
                first_name=item.first_name,
                last_name=item.last_name,
                class_taught=item.class_taught,
            )

        result = await run_batch(
            data.users, create_one, describe=lambda item: item.email, savepoint=self.db.begin_nested
        )
        return user_models.InitialUsersResponse(
            created_users=[
                user_models.CreatedUser(id=p.id, email=p.email, role=p.role)
                for p in result.succeeded
            ],
            errors=[
                user_models.InitialUserError(user=failure.item.email, message=failure.error)
                for failure in result.failed
            ],
        )
