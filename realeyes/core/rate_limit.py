from slowapi import Limiter
from slowapi.util import get_remote_address

from realeyes.config import settings

# Default IP-based key. Browser extensions share no session, so the client address is all we have.
limiter = Limiter(key_func=get_remote_address)


def request_rate_limit() -> str:
    return settings.RATE_LIMIT
