"""
live_rekap.core.rate_limit
~~~~~~~~~~~~~~~~~~~~~~~~~~

Rate limiting for the control routes.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from live_rekap.core.config import settings

# Keyed by client IP; off under test so suites can hammer the routes
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    enabled=not settings.is_test,
)
