"""
Rate Limiting Configuration

Route-level rate limits applied with slowapi decorators.

Design Decisions:
- Uses slowapi for rate limiting (lightweight, FastAPI-compatible)
- IP-based limiting with the same client identity used elsewhere
- Challenge issuance is NOT limited here: it needs its own response body
  and a moving window, see linkgate.services.issuance_limiter
"""

from slowapi import Limiter

from linkgate.core.client_ip import get_client_ip
from linkgate.core.setting import settings

limiter = Limiter(key_func=get_client_ip, storage_uri=settings.RATE_LIMIT_STORAGE_URI)

# Rate limit configurations per endpoint
# Format: "count/period" (e.g., "10/minute" means 10 requests per minute)
RATE_LIMITS = {
    "admin": "30/minute",  # Admin proxy: 30 per minute per IP
    "verify": "30/minute",  # Proof submissions: 30 per minute per IP
}
