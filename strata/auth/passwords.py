import re

from passlib.context import CryptContext

from ..config import settings
from ..constants import PASSWORD_MIN_LENGTH

pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
    argon2__memory_cost=settings.password_hash_memory_cost,
    argon2__rounds=settings.password_hash_time_cost,
)

_UPPER = re.compile(r"[A-Z]")
_LOWER = re.compile(r"[a-z]")
_DIGIT = re.compile(r"[0-9]")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def password_meets_policy(password: str) -> bool:
    return (
        len(password) >= PASSWORD_MIN_LENGTH
        and bool(_UPPER.search(password))
        and bool(_LOWER.search(password))
        and bool(_DIGIT.search(password))
    )
