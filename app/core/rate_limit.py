"""
slowapi limiter shared by the app and the credential routes.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core import config


def get_authorization_header(request) -> str:
    """
    Extract authorization header for rate limiting.
    Used with slowapi Limiter.
    """
    auth = request.headers.get("Authorization", "")
    return auth or "anonymous"


limiter = Limiter(key_func=get_authorization_header, enabled=config.RATE_LIMIT_ENABLED)

# Credential endpoints are anonymous, so they are limited per client address
login_limit = limiter.limit(config.LOGIN_RATE_LIMIT, key_func=get_remote_address)
