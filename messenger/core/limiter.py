from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import get_settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["60/minute"],
    enabled=get_settings().RATE_LIMIT_ENABLED,
)
