"""Rate limiting configuration for the SuperIntern API."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from superintern.settings import settings

# Single shared limiter instance - disabled in non-production environments
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200/minute"],
    storage_uri="memory://",
    enabled=settings.env == "production",
)

# Per-endpoint limits for unauthenticated referral endpoints
TRACK_VISIT_LIMIT = "60/minute"
VALIDATE_CODE_LIMIT = "30/minute"
SIGNUP_LIMIT = "10/minute"

# Public company request form
COMPANY_REQUEST_LIMIT = "5/minute"
