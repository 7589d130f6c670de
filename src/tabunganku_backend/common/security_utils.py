'''
This file contains common security-related utilities, such as password hashing,
that are decoupled from other services to prevent circular imports.
'''
from passlib.context import CryptContext

from .config import settings

# --- Password Hashing ---
class HashedPassword:
    pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
    @classmethod
    def verify(cls, plain_password: str, hashed_password: str) -> bool:
        return cls.pwd_context.verify(plain_password, hashed_password)

    @classmethod
    def get_hash(cls, password: str) -> str:
        return cls.pwd_context.hash(password)


# --- Parent identity ---
def parent_email_for_nisn(nisn: str) -> str:
    """
    Parents log in with their child's NISN. The auth layer only knows emails,
    so the NISN is mapped to a deterministic, email-shaped identifier.
    """
    return f"nisn-{nisn.strip()}@{settings.PARENT_EMAIL_DOMAIN}"
