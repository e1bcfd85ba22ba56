"""
Security utilities, authentication and session headers
"""

from fastapi import HTTPException, Depends, Header, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
import time
from collections import defaultdict

from hooked.core.config import settings
from hooked.services.session_context import SessionContext

# Simple in-memory rate limiter
rate_limiter = defaultdict(list)

security = HTTPBearer()

def verify_admin_token(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """Verify admin authentication token"""
    if credentials.credentials != settings.ADMIN_TOKEN:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token"
        )
    return credentials.credentials

def rate_limit_check(client_ip: str, limit: int = None) -> bool:
    """Simple rate limiting by IP address"""
    if limit is None:
        limit = settings.RATE_LIMIT_PER_MINUTE

    current_time = time.time()
    minute_ago = current_time - 60

    # Clean old requests
    rate_limiter[client_ip] = [
        req_time for req_time in rate_limiter[client_ip]
        if req_time > minute_ago
    ]

    # Check limit
    if len(rate_limiter[client_ip]) >= limit:
        return False

    # Add current request
    rate_limiter[client_ip].append(current_time)
    return True

def get_client_ip(request) -> str:
    """Extract client IP from request"""
    # Check for forwarded IP first (for reverse proxy setups)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    # Check for real IP header
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    # Fall back to direct client IP
    return request.client.host if request.client else "unknown"

def enforce_rate_limit(request: Request) -> None:
    """Dependency form of the per-IP rate limit"""
    if not rate_limit_check(get_client_ip(request)):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Please try again later."
        )

def get_session_context(
    x_event_id: Optional[str] = Header(default=None),
    x_session_id: Optional[str] = Header(default=None),
) -> SessionContext:
    """Build the caller's session context from the X-Event-Id / X-Session-Id headers"""
    return SessionContext.from_ids(x_event_id, x_session_id)
