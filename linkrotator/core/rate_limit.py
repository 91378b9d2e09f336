"""
Rate Limiting Configuration for Authoring Endpoints

Rule creation, read-back and simulation are limited per IP with slowapi.
The redirect path does not use these limits; it goes through the
RateLimiter service, which applies its own window and fails open.

Both paths key clients the same way (see get_client_ip).

Format: "count/period" (e.g., "10/minute" means 10 requests per minute)
"""

from starlette.requests import Request
from slowapi import Limiter

from linkrotator.core.setting import settings


def get_client_ip(request: Request) -> str:
    """
    Address used to key a client for rate limiting and logging.
    
    The connecting peer address, unless the peer is listed in
    TRUSTED_PROXIES; only then is the first X-Forwarded-For hop used.
    Clients set that header freely, so trusting it from anyone would let
    them pick their own rate-limit key.
    """
    peer = request.client.host if request.client else "unknown"
    
    if peer in settings.TRUSTED_PROXIES:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            # X-Forwarded-For can contain multiple IPs, the first is the original client
            return forwarded_for.split(",")[0].strip()
    
    return peer


limiter = Limiter(key_func=get_client_ip, enabled=not settings.DISABLE_RATE_LIMITING)

RATE_LIMITS = {
    "create_rule": "10/minute",  # Rule creation: 10 per minute per IP
    "read_rule": "30/minute",  # Rule read-back: 30 per minute per IP
    "simulate": "30/minute",  # Simulations: 30 per minute per IP
}
