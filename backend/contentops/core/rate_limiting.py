"""
Rate limiting configuration and utilities
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request, status
from fastapi.responses import JSONResponse
import logging

from contentops.core.config import settings

logger = logging.getLogger(__name__)

# Create rate limiter instance
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["1000/hour", "60/minute"]
)

# Custom rate limit exceeded handler
def custom_rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """Custom handler for rate limit exceeded"""
    logger.warning(f"Rate limit exceeded for {get_remote_address(request)}: {exc.detail}")

    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "detail": {
                "error": "Rate limit exceeded",
                "message": f"Too many requests. Limit: {exc.detail}",
            }
        }
    )

# Rate limit configurations
RATE_LIMITS = {
    "generate": settings.RATE_LIMIT_GENERATE,    # synchronous provider calls
    "enqueue": settings.RATE_LIMIT_ENQUEUE,      # job and batch submission
    "analyze": "120/minute",
}
