"""Shared rate limiter (in-memory storage).

Limits are per client address and per process. RATE_LIMIT_ENABLED=false
turns every limit off (tests).
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit_default],
    enabled=settings.rate_limit_enabled,
)
