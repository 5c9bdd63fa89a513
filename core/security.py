"""
Security Utilities

Admin password hashing and JWT access tokens for the dashboard API.
"""

from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
import hashlib

from core.config import get_settings

settings = get_settings()

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def _prehash_password(password: str) -> str:
    """
    Pre-hash password with SHA-256 to stay inside bcrypt's 72-byte limit.

    Args:
        password: Plain text password (any length)

    Returns:
        str: SHA-256 hex digest of the password
    """
    return hashlib.sha256(password.encode('utf-8')).hexdigest()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against a stored hash.

    A malformed or empty stored hash never verifies.

    Args:
        plain_password: Plain text password
        hashed_password: Hash from ADMIN_PASSWORD_HASH

    Returns:
        bool: True if password matches, False otherwise
    """
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(_prehash_password(plain_password), hashed_password)
    except (ValueError, TypeError):
        return False


def get_password_hash(password: str) -> str:
    """
    Hash a password using SHA-256 + bcrypt.

    Args:
        password: Plain text password

    Returns:
        str: Bcrypt hash of the SHA-256 pre-hashed password
    """
    return pwd_context.hash(_prehash_password(password))


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Claims to encode (usually {"sub": admin_email})
        expires_delta: Optional expiration time delta

    Returns:
        str: Encoded JWT token

    Example:
        ```python
        token = create_access_token({"sub": settings.ADMIN_EMAIL})
        ```
    """
    to_encode = data.copy()
    expire = datetime.utcnow() + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token string

    Returns:
        dict: Decoded token payload if valid, None otherwise
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != "access":
        return None
    return payload
