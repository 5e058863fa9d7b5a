import os
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# In-memory storage suits a single instance; point RATELIMIT_STORAGE_URL at redis when scaling out
_limiter_storage = os.getenv("RATELIMIT_STORAGE_URL", "memory://")

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],
    storage_uri=_limiter_storage,
)

INVITATION_RATE_LIMIT = os.getenv("INVITATION_RATE_LIMIT", "20 per minute")

__all__ = ["limiter", "INVITATION_RATE_LIMIT"]
