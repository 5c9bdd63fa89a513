"""
Rate limiting middleware using slowapi with Redis support.
"""

from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
import redis

from core.config import get_settings
from core.logger import get_logger

logger = get_logger(__name__)
settings = get_settings()

# Local development gets effectively unlimited quotas
if settings.DEBUG or settings.ENVIRONMENT.lower() in ["development", "dev", "local"]:
    rate_limit = "10000/minute"
    track_rate_limit = rate_limit
    logger.info(f"Rate limiting configured for development: {rate_limit}")
else:
    rate_limit = f"{settings.RATE_LIMIT_PER_MINUTE}/minute"
    track_rate_limit = settings.TRACK_RATE_LIMIT
    logger.info(f"Rate limiting configured for production: {rate_limit} (track: {track_rate_limit})")

# Share counters across workers through Redis when it is reachable
try:
    redis.from_url(settings.REDIS_URL, socket_connect_timeout=2).ping()
    limiter = Limiter(
        key_func=get_remote_address,
        storage_uri=settings.REDIS_URL,
        default_limits=[rate_limit]
    )
    logger.info("Rate limiting initialized with Redis")
except redis.RedisError as e:
    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[rate_limit]
    )
    logger.warning(f"Rate limiting initialized with in-memory storage (Redis not available): {str(e)}")

__all__ = ['limiter', 'rate_limit', 'track_rate_limit', '_rate_limit_exceeded_handler', 'RateLimitExceeded']
