"""
API Dependencies

Shared dependencies for FastAPI routes: storage backends, services and
admin authentication.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from cache.base import PresenceTracker, SessionCache
from core.database import get_db
from repositories.base import AnalyticsStore
from repositories.sql_store import SQLAnalyticsStore
from services.aggregation_service import AnalyticsAggregationService
from services.auth_service import AuthService
from services.tracking_service import TrackingService

# Missing credentials are reported as 401 by get_admin_user
security = HTTPBearer(auto_error=False)


def get_store(db: Session = Depends(get_db)) -> AnalyticsStore:
    """Durable store bound to the request's database session."""
    return SQLAnalyticsStore(db)


def get_session_cache(request: Request) -> SessionCache:
    """Session cache created at startup and kept on app.state."""
    return request.app.state.session_cache


def get_presence(request: Request) -> PresenceTracker:
    """Realtime presence tracker created at startup and kept on app.state."""
    return request.app.state.presence


def get_tracking_service(
    store: AnalyticsStore = Depends(get_store),
    session_cache: SessionCache = Depends(get_session_cache),
    presence: PresenceTracker = Depends(get_presence)
) -> TrackingService:
    return TrackingService(store, session_cache, presence)


def get_aggregation_service(
    store: AnalyticsStore = Depends(get_store),
    presence: PresenceTracker = Depends(get_presence)
) -> AnalyticsAggregationService:
    return AnalyticsAggregationService(store, presence)


def get_admin_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> str:
    """
    Dependency requiring a valid admin bearer token.

    Args:
        credentials: HTTP Bearer credentials from Authorization header

    Returns:
        str: Admin email from the token

    Raises:
        HTTPException: 401 if the token is missing or invalid
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    admin = AuthService.get_admin_from_token(credentials.credentials)
    if admin is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return admin
