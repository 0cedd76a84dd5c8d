"""
Password hashing and verification for account login.
"""
from passlib.context import CryptContext

_password_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)

MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    """Hash a password for storage."""
    return _password_ctx.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against stored hash."""
    if not hashed:
        return False
    try:
        return _password_ctx.verify(password, hashed)
    except ValueError:
        # malformed hash
        return False
