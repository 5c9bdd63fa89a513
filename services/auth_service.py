"""
Authentication Service

Dashboard access is limited to a single admin account configured through
ADMIN_EMAIL and ADMIN_PASSWORD_HASH. There is no user table.
"""

import secrets
from datetime import timedelta
from typing import Optional

from fastapi import HTTPException, status

from core.config import get_settings
from core.logger import get_logger
from core.security import create_access_token, decode_access_token, verify_password

logger = get_logger(__name__)


class AuthService:
    """Service for admin login and token checks."""

    @staticmethod
    def authenticate_admin(email: str, password: str) -> bool:
        """
        Check credentials against the configured admin account.

        Args:
            email: Submitted email
            password: Submitted plain password

        Returns:
            bool: True if both match

        Raises:
            HTTPException: 503 if no admin account is configured
        """
        settings = get_settings()
        if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD_HASH:
            logger.error("Admin credentials not configured (ADMIN_EMAIL / ADMIN_PASSWORD_HASH)")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Admin login is not configured"
            )

        email_matches = secrets.compare_digest(
            email.strip().lower().encode("utf-8"),
            settings.ADMIN_EMAIL.strip().lower().encode("utf-8")
        )
        # Always run the hash check to keep timing uniform
        password_matches = verify_password(password, settings.ADMIN_PASSWORD_HASH)
        return email_matches and password_matches

    @staticmethod
    def login(email: str, password: str) -> dict:
        """
        Issue an access token for valid admin credentials.

        Returns:
            dict: access_token, token_type and expires_in (seconds)

        Raises:
            HTTPException: 401 on invalid credentials
        """
        if not AuthService.authenticate_admin(email, password):
            logger.warning(f"Failed admin login attempt for {email}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Incorrect email or password",
                headers={"WWW-Authenticate": "Bearer"},
            )

        settings = get_settings()
        expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        token = create_access_token({"sub": settings.ADMIN_EMAIL, "role": "admin"}, expires)
        logger.info("Admin logged in")
        return {
            "access_token": token,
            "token_type": "bearer",
            "expires_in": int(expires.total_seconds()),
        }

    @staticmethod
    def get_admin_from_token(token: str) -> Optional[str]:
        """
        Resolve an access token to the admin email.

        Returns:
            str: Admin email, or None if the token is invalid or not an admin token
        """
        payload = decode_access_token(token)
        if payload is None or payload.get("role") != "admin":
            return None

        subject = payload.get("sub")
        if not subject or subject != get_settings().ADMIN_EMAIL:
            return None
        return subject
