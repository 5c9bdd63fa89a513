"""
Authentication Routes

Dashboard admin login.
"""

from fastapi import APIRouter, Depends, Request

from api.dependencies import get_admin_user
from api.middleware.rate_limit import limiter
from schemas.analytics import LoginRequest, TokenResponse
from services.auth_service import AuthService

router = APIRouter()


@router.post("/login", response_model=TokenResponse)
@limiter.limit("10/minute")
async def login(request: Request, credentials: LoginRequest):
    """
    Exchange admin email and password for a bearer token.

    **Rate Limited**: 10 requests per minute per IP address

    **Response 200**: Access token
    **Response 401**: Incorrect email or password
    **Response 503**: Admin account not configured
    """
    return AuthService.login(credentials.email, credentials.password)


@router.get("/me")
async def get_me(admin: str = Depends(get_admin_user)):
    """Return the authenticated admin."""
    return {"email": admin, "role": "admin"}
